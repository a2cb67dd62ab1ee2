# =============================================================================
# migrant_core/offline/local_database.py
# Durable Key-Value Storage for Offline Operation
# =============================================================================
"""
LocalDatabase - SQLite-backed key-value store that survives restarts.

Holds the small pieces of state the sync core must keep across app
restarts: the last successful sync time, the pending appointment queue,
the appointment history and the cached prescriptions.

InMemoryStore offers the same interface for sessions where the database
cannot be opened.
"""

from __future__ import annotations
import sqlite3
import threading
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
import logging

from migrant_core.errors import PersistenceFailedError

logger = logging.getLogger(__name__)


class LocalDatabase:
    """
    Local SQLite key-value store.

    Values are strings; get_setting/set_setting add a JSON layer on top.
    """

    SCHEMA = {
        "app_settings": """
            CREATE TABLE IF NOT EXISTS app_settings (
                key TEXT PRIMARY KEY,
                value TEXT,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    def __init__(self, db_path: Path):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """
        Create the directory and schema.

        Raises:
            PersistenceFailedError: if the file cannot be created or opened
        """
        if self._initialized:
            return

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self.transaction() as conn:
                for table_name, schema in self.SCHEMA.items():
                    conn.execute(schema)
                    logger.debug(f"Created/verified table: {table_name}")
        except (OSError, sqlite3.Error) as e:
            raise PersistenceFailedError(
                f"Cannot open local database at {self.db_path}: {e}",
                operation="initialize",
            )

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")

    # =========================================================================
    # KEY-VALUE OPERATIONS
    # =========================================================================

    def get(self, key: str) -> Optional[str]:
        """Return the stored string for key, or None."""
        try:
            row = self._get_connection().execute(
                "SELECT value FROM app_settings WHERE key = ?",
                [key]
            ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceFailedError(f"Read failed: {e}", key=key, operation="get")
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Store a string value under key."""
        try:
            with self.transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [key, value, datetime.now().isoformat()]
                )
        except sqlite3.Error as e:
            raise PersistenceFailedError(f"Write failed: {e}", key=key, operation="set")

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a JSON-decoded value; unreadable JSON yields default."""
        return _decode(key, self.get(key), default)

    def set_setting(self, key: str, value: Any) -> None:
        """Set a JSON-encoded value."""
        self.set(key, json.dumps(value))

    def set_settings(self, values: Dict[str, Any]) -> None:
        """Set several JSON-encoded values in one transaction."""
        encoded = {key: json.dumps(value) for key, value in values.items()}
        now = datetime.now().isoformat()
        try:
            with self.transaction() as conn:
                for key, value in encoded.items():
                    conn.execute(
                        """
                        INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                        VALUES (?, ?, ?)
                        """,
                        [key, value, now]
                    )
        except sqlite3.Error as e:
            raise PersistenceFailedError(
                f"Write failed: {e}", key=",".join(encoded), operation="set_settings"
            )

    def close(self) -> None:
        """Close database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None


class InMemoryStore:
    """Session-only store with the LocalDatabase interface."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def get_setting(self, key: str, default: Any = None) -> Any:
        return _decode(key, self.get(key), default)

    def set_setting(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def set_settings(self, values: Dict[str, Any]) -> None:
        encoded = {key: json.dumps(value) for key, value in values.items()}
        with self._lock:
            self._data.update(encoded)

    def close(self) -> None:
        pass


def _decode(key: str, raw: Optional[str], default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring unreadable value for {key}: {e}")
        return default


def open_store(db_path: Path):
    """
    Open the durable store, degrading to memory for this session on failure.

    Returns:
        (store, durable) where durable is False for the in-memory fallback
    """
    database = LocalDatabase(db_path)
    try:
        database.initialize()
        return database, True
    except PersistenceFailedError as e:
        logger.error(f"{e} - continuing with in-memory storage for this session")
        return InMemoryStore(), False
