# =============================================================================
# cms_core/errors/__init__.py
# Centralized Error Handling for the Website CMS
# =============================================================================

from .exceptions import (
    CMSError,
    ConfigurationError,
    ConnectivityError,
    DataValidationError,
    UploadValidationError,
    BackendOperationError,
    MediaUploadError,
    MigrationError,
)

from .handlers import (
    translate_backend_error,
    handle_error,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "CMSError",
    "ConfigurationError",
    "ConnectivityError",
    "DataValidationError",
    "UploadValidationError",
    "BackendOperationError",
    "MediaUploadError",
    "MigrationError",
    # Handlers
    "translate_backend_error",
    "handle_error",
    "ErrorContext",
]
