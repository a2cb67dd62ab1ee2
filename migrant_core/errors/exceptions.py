# =============================================================================
# migrant_core/errors/exceptions.py
# Custom Exception Hierarchy for the Migrant Health client
# =============================================================================

from typing import Optional, Dict, Any


class MigrantHealthError(Exception):
    """
    Base exception for all Migrant Health client errors.

    Subclasses set ``code`` and ``recoverable`` as class attributes. Extra
    keyword arguments that are not None become entries in ``details``:

        ApiRequestFailedError("API error: 500", endpoint="appointments", status_code=500)
        # details == {"endpoint": "appointments", "status_code": 500}
    """

    code = "MH_000"
    recoverable = True

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable
        self.details = dict(details or {})
        self.details.update({key: value for key, value in context.items() if value is not None})

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.details:
            text += f" | Details: {self.details}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form for logs and the debug panel"""
        return {
            "error_type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# NETWORK
# =============================================================================

class NetworkUnavailableError(MigrantHealthError):
    """An operation needs an api-capable link and none is present"""
    code = "NET_001"

    def __init__(
        self,
        message: str = "Network not suitable for sync",
        connection_type: Optional[str] = None,
        fetch_method: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, connection_type=connection_type, fetch_method=fetch_method, **kwargs)


class ProbeTimeoutError(MigrantHealthError):
    """The speed probe transfer did not finish in time"""
    code = "NET_002"

    def __init__(self, message: str, url: Optional[str] = None, timeout: Optional[float] = None, **kwargs):
        super().__init__(message, url=url, timeout=timeout, **kwargs)


# =============================================================================
# FETCH CHANNELS
# =============================================================================

class ApiRequestFailedError(MigrantHealthError):
    """Transport error, timeout, non-2xx response or unusable body from the backend"""
    code = "API_001"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, endpoint=endpoint, status_code=status_code, **kwargs)
        self.status_code = status_code


class DegradedChannelFailedError(MigrantHealthError):
    """The SMS channel could not deliver a resource"""
    code = "SMS_001"

    def __init__(self, message: str, resource_key: Optional[str] = None, **kwargs):
        super().__init__(message, resource_key=resource_key, **kwargs)


# =============================================================================
# SYNC AND STORAGE
# =============================================================================

class SyncSubtaskFailedError(MigrantHealthError):
    """One or more per-resource sync tasks failed"""
    code = "SYNC_001"

    def __init__(
        self,
        message: str,
        task: Optional[str] = None,
        failures: Optional[Dict[str, str]] = None,
        **kwargs,
    ):
        super().__init__(message, task=task, failures=failures or None, **kwargs)


class PersistenceFailedError(MigrantHealthError):
    """The durable key-value store could not be read or written"""
    code = "STORE_001"

    def __init__(self, message: str, key: Optional[str] = None, operation: Optional[str] = None, **kwargs):
        super().__init__(message, key=key, operation=operation, **kwargs)


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConfigurationError(MigrantHealthError):
    """Settings are invalid or missing; the app cannot work around this"""
    code = "CONFIG_001"
    recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, config_key=config_key, expected_type=expected_type, **kwargs)
