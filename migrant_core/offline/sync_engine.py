# =============================================================================
# migrant_core/offline/sync_engine.py
# Sync Orchestration
# =============================================================================
"""
SyncOrchestrator - runs registered per-resource sync tasks when conditions allow.

Features:
- Idle -> Syncing -> Idle state machine with a single-flight guard
- Periodic timer thread (trigger cadence)
- Minimum interval between successful syncs (throttle of record)
- Sync on network transitions that newly allow API traffic
- Forced sync that skips the interval guard
- Listener notification of started / completed / error events
- Persisted last-sync time
"""

from __future__ import annotations
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from migrant_core.errors import (
    MigrantHealthError,
    NetworkUnavailableError,
    PersistenceFailedError,
    SyncSubtaskFailedError,
)
from migrant_core.logging import LogContext
from migrant_core.offline.connection_manager import ConnectionInfo, ConnectionManager

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "lastSyncTime"


class SyncStatus(Enum):
    """Sync event status."""
    STARTED = "started"
    COMPLETED = "completed"
    ERROR = "error"


class SyncTrigger(Enum):
    """What asked for a sync cycle."""
    TIMER = "timer"
    NETWORK = "network"
    MANUAL = "manual"


@dataclass(frozen=True)
class SyncEvent:
    """Event delivered to sync listeners. Never stored."""
    status: SyncStatus
    timestamp: Optional[datetime] = None
    error: Optional[Exception] = None

    @classmethod
    def started(cls) -> SyncEvent:
        return cls(status=SyncStatus.STARTED)

    @classmethod
    def completed(cls, timestamp: datetime) -> SyncEvent:
        return cls(status=SyncStatus.COMPLETED, timestamp=timestamp)

    @classmethod
    def failed(cls, error: Exception) -> SyncEvent:
        return cls(status=SyncStatus.ERROR, error=error)


@dataclass
class SyncState:
    """Current sync state. Only last_sync_time is persisted."""
    is_syncing: bool = False
    last_sync_time: Optional[datetime] = None


@dataclass
class SyncTask:
    name: str
    func: Callable[[SyncTrigger], Any]


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a stored sync time; accepts JSON-quoted and 'Z'-suffixed ISO strings."""
    if not raw:
        return None
    value = raw
    try:
        decoded = json.loads(raw)
        if isinstance(decoded, str):
            value = decoded
    except json.JSONDecodeError:
        pass
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    # Stored times from other clients may be UTC-aware; compare in local naive time
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class SyncOrchestrator:
    """
    Owns the sync lifecycle.

    Usage:
        orchestrator = SyncOrchestrator(connection_manager, store)
        orchestrator.register_task("prescriptions", sync_prescriptions)
        orchestrator.initialize()
        orchestrator.start_periodic_sync()
        unsubscribe = orchestrator.add_listener(on_sync_event)
        orchestrator.force_sync()
    """

    SYNC_INTERVAL = timedelta(minutes=15)       # Timer cadence
    MIN_SYNC_INTERVAL = timedelta(minutes=30)   # Minimum time between successful syncs

    def __init__(
        self,
        connection_manager: ConnectionManager,
        store,
        sync_interval: Optional[timedelta] = None,
        min_sync_interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.now,
        has_pending_work: Optional[Callable[[SyncTrigger], bool]] = None,
    ):
        """
        Args:
            connection_manager: Source of the current classification
            store: Durable key-value store holding the last sync time
            sync_interval: Periodic timer cadence
            min_sync_interval: Interval guard for timer and network triggers
            clock: Returns the current local time
            has_pending_work: Given the trigger, returns True when queued user
                writes should run now; those bypass the interval guard
        """
        self._connection_manager = connection_manager
        self._store = store
        self._sync_interval = sync_interval or self.SYNC_INTERVAL
        self._min_sync_interval = min_sync_interval or self.MIN_SYNC_INTERVAL
        self._clock = clock
        self._has_pending_work = has_pending_work or (lambda trigger: False)

        self._state = SyncState()
        self._sync_lock = threading.Lock()
        self._tasks: List[SyncTask] = []
        self._listeners: List[Callable[[SyncEvent], None]] = []
        self._listeners_lock = threading.Lock()

        self._sync_thread: Optional[threading.Thread] = None
        self._stop_sync = threading.Event()
        self._unsubscribe_network: Optional[Callable[[], None]] = None
        self._was_api_capable = False
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def register_task(self, name: str, func: Callable[[SyncTrigger], Any]) -> None:
        """Add a per-resource sync task; tasks run in registration order."""
        self._tasks.append(SyncTask(name=name, func=func))

    def initialize(self) -> None:
        """Load the persisted sync time and listen for network changes."""
        if self._initialized:
            return

        try:
            self._state.last_sync_time = _parse_timestamp(self._store.get(LAST_SYNC_KEY))
        except (PersistenceFailedError, ValueError) as e:
            logger.error(f"Could not load last sync time, treating as never synced: {e}")
            self._state.last_sync_time = None

        self._was_api_capable = self._connection_manager.check_connection().is_api_capable
        self._unsubscribe_network = self._connection_manager.subscribe(self._on_network_change)

        self._initialized = True
        logger.info(
            "SyncOrchestrator initialized "
            f"(last sync: {self._state.last_sync_time.isoformat() if self._state.last_sync_time else 'never'})"
        )

    def dispose(self) -> None:
        """Stop the timer, drop the network subscription and all listeners."""
        self.stop_periodic_sync()
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None
        with self._listeners_lock:
            self._listeners.clear()
        self._initialized = False
        logger.info("SyncOrchestrator disposed")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> SyncState:
        """Copy of the current state."""
        return SyncState(
            is_syncing=self._state.is_syncing,
            last_sync_time=self._state.last_sync_time,
        )

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self._state.last_sync_time

    def should_sync(self) -> bool:
        """True if never synced or the minimum interval has elapsed."""
        last = self._state.last_sync_time
        if last is None:
            return True
        return self._clock() - last >= self._min_sync_interval

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def schedule_sync(self, trigger: SyncTrigger = SyncTrigger.TIMER) -> bool:
        """
        Run a cycle if every guard passes.

        Returns:
            True if a cycle ran and completed successfully
        """
        if self._state.is_syncing:
            return False

        connection = self._connection_manager.check_connection()
        if not connection.is_api_capable:
            logger.info(f"Network not suitable for sync ({connection.status_label}), skipping")
            return False

        if not self.should_sync() and not self._has_pending_work(trigger):
            logger.debug(f"Last sync within {self._min_sync_interval}, skipping {trigger.value} trigger")
            return False

        return self._perform_sync(trigger)

    def force_sync(self) -> bool:
        """
        Sync now regardless of the interval guard.

        Returns:
            True if the cycle completed; False if one was already running
            or a task failed

        Raises:
            NetworkUnavailableError: if the link cannot carry API traffic
        """
        connection = self._connection_manager.check_connection()
        if not connection.is_api_capable:
            raise NetworkUnavailableError(
                connection_type=connection.type.value,
                fetch_method=connection.fetch_method.value,
            )
        return self._perform_sync(SyncTrigger.MANUAL)

    def _on_network_change(self, info: ConnectionInfo) -> None:
        newly_capable = info.is_api_capable and not self._was_api_capable
        self._was_api_capable = info.is_api_capable
        if newly_capable:
            logger.info("Network connected, checking if sync needed")
            try:
                self.schedule_sync(SyncTrigger.NETWORK)
            except Exception as e:
                logger.error(f"Error scheduling sync: {e}")

    # =========================================================================
    # SYNC CYCLE
    # =========================================================================

    def _perform_sync(self, trigger: SyncTrigger) -> bool:
        if not self._sync_lock.acquire(blocking=False):
            logger.debug(f"Sync already in progress, dropping {trigger.value} trigger")
            return False

        self._state.is_syncing = True
        try:
            self._notify_listeners(SyncEvent.started())
            event = self._run_cycle(trigger)
        finally:
            self._state.is_syncing = False
            self._sync_lock.release()

        self._notify_listeners(event)
        return event.status == SyncStatus.COMPLETED

    def _run_cycle(self, trigger: SyncTrigger) -> SyncEvent:
        try:
            with LogContext(logger, f"Sync cycle ({trigger.value})"):
                failures = self._run_tasks(trigger)
        except Exception as e:
            return SyncEvent.failed(e)

        if failures:
            error = SyncSubtaskFailedError(
                f"{len(failures)} of {len(self._tasks)} sync task(s) failed",
                failures=failures,
            )
            logger.error(str(error))
            return SyncEvent.failed(error)

        now = self._clock()
        self._state.last_sync_time = now
        try:
            self._store.set(LAST_SYNC_KEY, now.isoformat())
        except PersistenceFailedError as e:
            logger.warning(f"Sync completed but last sync time was not persisted: {e}")

        logger.info("Sync completed successfully")
        return SyncEvent.completed(now)

    def _run_tasks(self, trigger: SyncTrigger) -> Dict[str, str]:
        """Run every task; one task's failure does not stop the others."""
        failures: Dict[str, str] = {}
        for task in list(self._tasks):
            try:
                task.func(trigger)
                logger.debug(f"Sync task '{task.name}' succeeded")
            except MigrantHealthError as e:
                logger.error(f"Sync task '{task.name}' failed: {e}")
                failures[task.name] = str(e)
            except Exception as e:
                logger.error(f"Sync task '{task.name}' failed: {e}", exc_info=True)
                failures[task.name] = str(e)
        return failures

    # =========================================================================
    # PERIODIC TIMER
    # =========================================================================

    def start_periodic_sync(self) -> None:
        """Start the periodic timer thread (restarts it if already running)."""
        self.stop_periodic_sync()

        self._stop_sync.clear()
        self._sync_thread = threading.Thread(
            target=self._sync_loop,
            daemon=True,
            name="SyncTimer"
        )
        self._sync_thread.start()
        logger.info(f"Periodic sync started (every {self._sync_interval})")

    def stop_periodic_sync(self) -> None:
        if self._sync_thread is None:
            return
        self._stop_sync.set()
        if self._sync_thread is not threading.current_thread():
            self._sync_thread.join(timeout=10)
        self._sync_thread = None
        logger.info("Periodic sync stopped")

    @property
    def is_periodic_sync_running(self) -> bool:
        return self._sync_thread is not None and self._sync_thread.is_alive()

    def _sync_loop(self) -> None:
        interval = self._sync_interval.total_seconds()
        while not self._stop_sync.wait(timeout=interval):
            try:
                self.schedule_sync(SyncTrigger.TIMER)
            except Exception as e:
                logger.error(f"Error scheduling sync: {e}")

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: Callable[[SyncEvent], None]) -> Callable[[], None]:
        """
        Register a listener for sync events.

        Returns:
            Function removing the listener; safe to call more than once
        """
        with self._listeners_lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def _notify_listeners(self, event: SyncEvent) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Error in sync listener: {e}")
