# =============================================================================
# cms_core/errors/exceptions.py
# Exception Hierarchy for the Website CMS Persistence Layer
# =============================================================================

from typing import Optional, Dict, Any


class CMSError(Exception):
    """
    Base exception for all CMS errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "DATA_001")
        details: Additional context as a dictionary
        recoverable: Whether the caller can retry or fall back
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "CMS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# CONFIGURATION & CONNECTIVITY
# =============================================================================

class ConfigurationError(CMSError):
    """Raised when endpoint or credentials are missing"""

    def __init__(
        self,
        message: str,
        missing: Optional[list] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing:
            details["missing"] = missing

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


class ConnectivityError(CMSError):
    """Raised when the hosted backend cannot be reached"""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# VALIDATION
# =============================================================================

class DataValidationError(CMSError):
    """Raised when an entity is missing required fields or has bad values"""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        field: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        if field:
            details["field"] = field

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


class UploadValidationError(CMSError):
    """Raised when an uploaded file has the wrong type or is too large"""

    def __init__(
        self,
        message: str,
        constraint: Optional[str] = None,
        file_name: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if constraint:
            details["constraint"] = constraint
        if file_name:
            details["file_name"] = file_name

        super().__init__(
            message=message,
            code="DATA_002",
            details=details,
            **kwargs,
        )

    @property
    def constraint(self) -> Optional[str]:
        return self.details.get("constraint")


# =============================================================================
# BACKEND OPERATIONS
# =============================================================================

class BackendOperationError(CMSError):
    """Raised when a read or write fails after the backend was selected"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        backend: Optional[str] = None,
        error_code: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if backend:
            details["backend"] = backend
        if error_code:
            details["error_code"] = error_code

        super().__init__(
            message=message,
            code="BACKEND_001",
            details=details,
            **kwargs,
        )

    @property
    def operation(self) -> Optional[str]:
        return self.details.get("operation")


class MediaUploadError(CMSError):
    """Raised when object storage rejects an upload or a delete"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        bucket: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key
        if bucket:
            details["bucket"] = bucket

        super().__init__(
            message=message,
            code="MEDIA_001",
            details=details,
            **kwargs,
        )


class MigrationError(CMSError):
    """Raised when a local-to-database migration is refused or aborted"""

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        migrated: Optional[Dict[str, int]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        if migrated is not None:
            details["migrated"] = dict(migrated)

        super().__init__(
            message=message,
            code="MIGRATE_001",
            details=details,
            **kwargs,
        )
