# =============================================================================
# migrant_core/logging/__init__.py
# Centralized Logging Configuration
# =============================================================================

from .config import setup_logging, LogContext, LOG_LEVEL_ENV

__all__ = ["setup_logging", "LogContext", "LOG_LEVEL_ENV"]
