"""
Sync Configuration Manager
Centralized loading of API endpoints, timeouts and sync cadence
"""
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import streamlit as st

from migrant_core.errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "migrant_health.db"


@dataclass
class SyncSettings:
    """Runtime configuration for the network-adaptive sync core"""
    api_base_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    request_timeout: float = 15.0          # seconds, per API request
    probe_url: str = "https://www.google.com/favicon.ico"
    probe_timeout: float = 10.0            # seconds, speed probe transfer
    sync_interval_minutes: float = 15.0    # periodic timer cadence
    min_sync_interval_minutes: float = 30.0  # throttle of record
    network_check_interval: float = 30.0   # seconds between platform polls
    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    sms_enabled: bool = True
    default_user_id: str = "default-user"

    def validate(self) -> "SyncSettings":
        """Check value ranges; raises ConfigurationError on the first bad key."""
        if not self.api_base_url:
            raise ConfigurationError("API base URL is required", config_key="api_base_url")

        for key in (
            "request_timeout",
            "probe_timeout",
            "sync_interval_minutes",
            "min_sync_interval_minutes",
            "network_check_interval",
        ):
            value = getattr(self, key)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigurationError(
                    f"{key} must be a positive number, got {value!r}",
                    config_key=key,
                    expected_type="float",
                )
        return self


# Environment variable overrides (highest priority)
ENV_OVERRIDES = {
    "MIGRANT_API_URL": "api_base_url",
    "MIGRANT_API_TOKEN": "api_token",
    "MIGRANT_REQUEST_TIMEOUT": "request_timeout",
    "MIGRANT_PROBE_URL": "probe_url",
    "MIGRANT_PROBE_TIMEOUT": "probe_timeout",
    "MIGRANT_SYNC_INTERVAL_MINUTES": "sync_interval_minutes",
    "MIGRANT_MIN_SYNC_INTERVAL_MINUTES": "min_sync_interval_minutes",
    "MIGRANT_DB_PATH": "db_path",
    "MIGRANT_SMS_ENABLED": "sms_enabled",
    "MIGRANT_DEFAULT_USER_ID": "default_user_id",
}


def _coerce(name: str, raw: Any) -> Any:
    """Convert a secrets/env value to the type of the matching SyncSettings field."""
    if name == "db_path":
        return Path(raw)
    if name == "sms_enabled":
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in ("1", "true", "yes", "on")
    if name in ("api_base_url", "api_token", "probe_url", "default_user_id"):
        return str(raw)

    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for {name}: {raw!r}",
            config_key=name,
            expected_type="float",
        )


def _load_secrets() -> Dict[str, Any]:
    """
    Load the [sync] table from Streamlit secrets

    Expected secrets.toml format:
    [sync]
    api_base_url = "https://health.example.org/api"
    api_token = "..."
    probe_url = "https://health.example.org/static/probe.bin"
    sync_interval_minutes = 15
    min_sync_interval_minutes = 30
    """
    try:
        if hasattr(st, "secrets") and "sync" in st.secrets:
            return dict(st.secrets["sync"])
    except Exception as e:
        # No secrets.toml present - fall back to env and defaults
        logger.debug(f"Streamlit secrets unavailable: {e}")
    return {}


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> SyncSettings:
    """
    Build SyncSettings from secrets, environment and explicit overrides.

    Priority: overrides > environment > secrets.toml > defaults.
    """
    known = {f.name for f in fields(SyncSettings)}
    values: Dict[str, Any] = {}

    for key, raw in _load_secrets().items():
        if key in known:
            values[key] = _coerce(key, raw)
        else:
            logger.warning(f"Ignoring unknown sync setting: {key}")

    for env_name, key in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw not in (None, ""):
            values[key] = _coerce(key, raw)

    for key, raw in (overrides or {}).items():
        if key not in known:
            raise ConfigurationError(f"Unknown sync setting: {key}", config_key=key)
        values[key] = _coerce(key, raw)

    settings = replace(SyncSettings(), **values)
    return settings.validate()
