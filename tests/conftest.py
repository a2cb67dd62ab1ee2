# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from migrant_core.errors import PersistenceFailedError
from migrant_core.offline.connection_manager import (
    ConnectionManager,
    NetworkSnapshot,
    NetworkType,
)
from migrant_core.offline.local_database import InMemoryStore


# =============================================================================
# NETWORK SNAPSHOTS
# =============================================================================

WIFI = NetworkSnapshot(is_connected=True, type=NetworkType.WIFI)
OFFLINE = NetworkSnapshot.offline()


# =============================================================================
# HELPERS
# =============================================================================

class FakeClock:
    """Settable wall clock for interval tests"""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FailingWriteStore(InMemoryStore):
    """Store whose writes always fail"""

    def set(self, key: str, value: str) -> None:
        raise PersistenceFailedError("disk full", key=key, operation="set")

    def set_settings(self, values) -> None:
        raise PersistenceFailedError("disk full", operation="set_settings")


def _make_response(status_code=200, json_data=None, content=b""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.content = content
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Fake wall clock starting at 2024-03-01 12:00"""
    return FakeClock()


@pytest.fixture
def store():
    """In-memory key-value store"""
    return InMemoryStore()


@pytest.fixture
def failing_store():
    return FailingWriteStore()


@pytest.fixture
def sqlite_path(tmp_path):
    """Path for a throwaway SQLite database (parent dir not yet created)"""
    return tmp_path / "local_data" / "migrant_health.db"


@pytest.fixture
def connection_manager():
    """Connection manager currently on wifi"""
    manager = ConnectionManager()
    manager.update_snapshot(WIFI)
    return manager


@pytest.fixture
def offline_manager():
    """Connection manager currently disconnected"""
    manager = ConnectionManager()
    manager.update_snapshot(OFFLINE)
    return manager


@pytest.fixture
def make_response():
    """Factory for mocked requests.Response objects"""
    return _make_response


@pytest.fixture
def mock_session():
    """Mock requests session"""
    session = MagicMock()
    session.headers = {}
    return session
