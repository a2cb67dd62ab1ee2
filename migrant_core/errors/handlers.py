# =============================================================================
# migrant_core/errors/handlers.py
# Streamlit-facing Error Handling for the Migrant Health client
# =============================================================================
"""
Turns core exceptions into page messages.

Connectivity problems are normal for this app, so recoverable errors are
shown as warnings with a plain-language message keyed by error code.
Only unrecoverable errors (bad configuration) use st.error.
"""

from __future__ import annotations
import functools
import logging
from typing import Any, Callable, Optional

import streamlit as st

from .exceptions import MigrantHealthError

logger = logging.getLogger(__name__)


USER_MESSAGES = {
    "NET_001": "You're offline. Changes are saved on this device and will sync when you reconnect.",
    "NET_002": "The connection is too slow to reach the health service right now.",
    "API_001": "The health service could not be reached.",
    "SMS_001": "The SMS service is not available on this device.",
    "SYNC_001": "Some data could not be synced. It will be retried.",
    "STORE_001": "Data could not be saved on this device.",
    "CONFIG_001": "The app is not configured correctly.",
}


def user_message_for(error: Exception) -> str:
    """Plain-language message for an error; falls back to its own text."""
    if isinstance(error, MigrantHealthError):
        return USER_MESSAGES.get(error.code, error.message)
    return str(error)


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Log an error and surface it in the page.

    Args:
        error: The exception to handle
        show_user_message: Whether to display a message in the page
        user_message: Overrides the code-based message
    """
    known = isinstance(error, MigrantHealthError)
    recoverable = error.recoverable if known else True
    message = user_message or user_message_for(error)

    if known:
        log = logger.warning if recoverable else logger.error
        log(str(error))
    else:
        logger.error(f"Unexpected error: {error}", exc_info=error)

    if not show_user_message:
        return

    if recoverable:
        st.warning(message)
    else:
        st.error(f"{message} Please contact support.")

    if known and error.details and st.session_state.get("debug_mode", False):
        with st.expander("Error Details", expanded=False):
            st.json(error.to_dict())


class ErrorContext:
    """
    Runs a user action, turning any failure into a page message.

    Exceptions are suppressed; check ``failed`` afterwards.

    Usage:
        with ErrorContext("Appointment request") as ctx:
            item = service.submit_appointment(data)
        if ctx.failed:
            return
    """

    def __init__(
        self,
        operation: str,
        show_success: bool = False,
        success_message: Optional[str] = None,
    ):
        self.operation = operation
        self.show_success = show_success
        self.success_message = success_message
        self.failed = False
        self.error: Optional[Exception] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"{self.operation}: started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"{self.operation}: done")
            if self.show_success:
                st.success(self.success_message or f"{self.operation} completed")
            return False

        if not issubclass(exc_type, Exception):
            return False

        self.failed = True
        self.error = exc_val
        if isinstance(exc_val, MigrantHealthError):
            handle_error(exc_val)
        else:
            handle_error(exc_val, user_message=f"{self.operation} failed: {exc_val}")
        return True


def error_boundary(default_return: Any = None, error_message: Optional[str] = None):
    """
    Keep one broken panel from taking down the whole page.

    Usage:
        @error_boundary(error_message="Could not render sync status")
        def render_sync_status(service):
            ...
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except MigrantHealthError as e:
                handle_error(e, user_message=error_message)
            except Exception as e:
                logger.error(f"Error in {func.__name__}: {e}", exc_info=True)
                st.error(error_message or f"Something went wrong in {func.__name__}")
            return default_return

        return wrapper

    return decorator
