# =============================================================================
# cms_core/errors/handlers.py
# Error Handling Utilities for the Website CMS
# =============================================================================

from __future__ import annotations
import traceback
from typing import Optional
import streamlit as st

from cms_core.logging import get_logger
from .exceptions import CMSError, BackendOperationError, ConnectivityError

logger = get_logger(__name__)


# PostgREST / Postgres codes surfaced by the hosted backend
NOT_FOUND_CODES = ("PGRST116",)
DUPLICATE_CODES = ("PGRST301", "23505")


def translate_backend_error(
    error: Exception,
    operation: str,
    backend: str = "database",
) -> CMSError:
    """
    Map a raw client error to a BackendOperationError with context.

    Unreachable-network failures become a ConnectivityError instead.

    The caller re-raises the result with ``raise ... from error`` so the
    original exception stays chained.

    Args:
        error: Exception raised by the backend client
        operation: Human readable operation name, e.g. "fetch products"
        backend: Backend label stored in the error details

    Returns:
        A CMSError (errors that already carry context are returned unchanged)
    """
    if isinstance(error, CMSError):
        return error

    code = getattr(error, "code", None)
    code = str(code) if code is not None else None
    raw = getattr(error, "message", None) or str(error)

    if code in NOT_FOUND_CODES:
        message = f"Record not found while trying to {operation}"
    elif code in DUPLICATE_CODES:
        message = f"Duplicate record while trying to {operation}"
    elif "JWT" in raw:
        message = "Authentication failed. Please check your database credentials."
    elif isinstance(error, (ConnectionError, TimeoutError)) or "network" in raw.lower():
        logger.error(f"Network error during {operation}: {raw}")
        return ConnectivityError(
            "Network error. Please check your internet connection.",
            details={"operation": operation, "backend": backend},
        )
    else:
        message = f"Failed to {operation}: {raw}"

    logger.error(f"Database error during {operation}: [{code}] {raw}")

    return BackendOperationError(
        message,
        operation=operation,
        backend=backend,
        error_code=code,
    )


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling for the admin UI.

    Args:
        error: The exception to handle
        show_user_message: Whether to display error to user via st.error
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    if isinstance(error, CMSError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error,
        )

    if show_user_message:
        if recoverable:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please check the configuration.")

        if details and st.session_state.get("debug_mode", False):
            with st.expander("Error Details", expanded=False):
                st.json(details)


class ErrorContext:
    """
    Context manager for admin actions with logging and user feedback.

    Usage:
        with ErrorContext("Reconnecting to database", show_success=True):
            runtime.run(dispatcher.reconnect_to_database())
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_success = show_success
        self.success_message = success_message
        self.failed = False

    def __enter__(self) -> ErrorContext:
        logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.failed = True
            if isinstance(exc_val, CMSError):
                handle_error(exc_val)
            else:
                handle_error(
                    exc_val,
                    user_message=f"Error during: {self.operation}",
                )
            return self.recoverable

        logger.info(f"Completed: {self.operation}")
        if self.show_success:
            st.success(self.success_message or f"{self.operation} completed")
        return False
