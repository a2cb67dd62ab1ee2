# =============================================================================
# migrant_core/errors/__init__.py
# Error taxonomy for the sync core
# =============================================================================
"""
Exceptions only. The Streamlit-facing helpers live in
``migrant_core.errors.handlers`` so the core never imports the UI layer.
"""

from .exceptions import (
    MigrantHealthError,
    NetworkUnavailableError,
    ProbeTimeoutError,
    ApiRequestFailedError,
    DegradedChannelFailedError,
    SyncSubtaskFailedError,
    PersistenceFailedError,
    ConfigurationError,
)

__all__ = [
    "MigrantHealthError",
    "NetworkUnavailableError",
    "ProbeTimeoutError",
    "ApiRequestFailedError",
    "DegradedChannelFailedError",
    "SyncSubtaskFailedError",
    "PersistenceFailedError",
    "ConfigurationError",
]
