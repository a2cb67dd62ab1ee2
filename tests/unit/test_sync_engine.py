# =============================================================================
# tests/unit/test_sync_engine.py
# Unit Tests for the Sync Orchestrator
# =============================================================================

import threading
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock

from migrant_core.errors import NetworkUnavailableError, SyncSubtaskFailedError
from migrant_core.offline.connection_manager import (
    ConnectionManager,
    NetworkSnapshot,
    NetworkType,
)
from migrant_core.offline.local_database import LocalDatabase
from migrant_core.offline.sync_engine import (
    LAST_SYNC_KEY,
    SyncOrchestrator,
    SyncStatus,
    SyncTrigger,
    _parse_timestamp,
)

WIFI = NetworkSnapshot(is_connected=True, type=NetworkType.WIFI)
ETHERNET = NetworkSnapshot(is_connected=True, type=NetworkType.ETHERNET)


def _orchestrator(manager, store, clock, **kwargs):
    orchestrator = SyncOrchestrator(manager, store, clock=clock, **kwargs)
    orchestrator.initialize()
    return orchestrator


class TestSyncGuards:

    def test_never_synced_should_sync(self, connection_manager, store, clock):
        orchestrator = _orchestrator(connection_manager, store, clock)
        assert orchestrator.should_sync()
        assert orchestrator.last_sync_time is None

    def test_interval_guard_skips_timer_but_not_forced(self, connection_manager, store, clock):
        """Synced 10 minutes ago: timer skips, forced sync runs"""
        store.set(LAST_SYNC_KEY, (clock.now - timedelta(minutes=10)).isoformat())
        task = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        assert orchestrator.schedule_sync(SyncTrigger.TIMER) is False
        task.assert_not_called()

        assert orchestrator.force_sync() is True
        task.assert_called_once_with(SyncTrigger.MANUAL)
        assert orchestrator.last_sync_time == clock.now

    def test_interval_elapsed_allows_timer(self, connection_manager, store, clock):
        store.set(LAST_SYNC_KEY, (clock.now - timedelta(minutes=31)).isoformat())
        task = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        assert orchestrator.schedule_sync(SyncTrigger.TIMER) is True
        task.assert_called_once_with(SyncTrigger.TIMER)

    def test_pending_work_bypasses_interval(self, connection_manager, store, clock):
        store.set(LAST_SYNC_KEY, (clock.now - timedelta(minutes=5)).isoformat())
        task = MagicMock()
        orchestrator = _orchestrator(
            connection_manager, store, clock, has_pending_work=lambda trigger: True
        )
        orchestrator.register_task("appointments", task)

        assert orchestrator.schedule_sync(SyncTrigger.NETWORK) is True
        task.assert_called_once_with(SyncTrigger.NETWORK)

    def test_pending_work_check_receives_trigger(self, connection_manager, store, clock):
        store.set(LAST_SYNC_KEY, (clock.now - timedelta(minutes=5)).isoformat())
        task = MagicMock()
        orchestrator = _orchestrator(
            connection_manager, store, clock,
            has_pending_work=lambda trigger: trigger == SyncTrigger.NETWORK,
        )
        orchestrator.register_task("appointments", task)

        assert orchestrator.schedule_sync(SyncTrigger.TIMER) is False
        task.assert_not_called()
        assert orchestrator.schedule_sync(SyncTrigger.NETWORK) is True

    def test_offline_schedule_is_skipped(self, offline_manager, store, clock):
        task = MagicMock()
        orchestrator = _orchestrator(offline_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        assert orchestrator.schedule_sync() is False
        task.assert_not_called()

    def test_offline_force_sync_raises(self, offline_manager, store, clock):
        orchestrator = _orchestrator(offline_manager, store, clock)

        with pytest.raises(NetworkUnavailableError) as exc_info:
            orchestrator.force_sync()

        assert exc_info.value.code == "NET_001"
        assert exc_info.value.message == "Network not suitable for sync"

    def test_sms_only_link_is_not_api_capable(self, store, clock):
        manager = ConnectionManager()
        manager.update_snapshot(NetworkSnapshot(
            is_connected=True, type=NetworkType.CELLULAR, cellular_generation="2g"
        ))
        orchestrator = _orchestrator(manager, store, clock)

        with pytest.raises(NetworkUnavailableError):
            orchestrator.force_sync()


class TestSyncCycle:

    def test_success_persists_last_sync_time(self, connection_manager, store, clock):
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.register_task("prescriptions", MagicMock())

        orchestrator.force_sync()

        assert store.get(LAST_SYNC_KEY) == clock.now.isoformat()
        assert orchestrator.state.last_sync_time == clock.now
        assert not orchestrator.is_syncing

    def test_events_started_then_completed(self, connection_manager, store, clock):
        events = []
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.add_listener(events.append)

        orchestrator.force_sync()

        assert [e.status for e in events] == [SyncStatus.STARTED, SyncStatus.COMPLETED]
        assert events[1].timestamp == clock.now

    def test_task_failure_reports_error_and_keeps_last_sync(self, connection_manager, store, clock):
        previous = clock.now - timedelta(hours=2)
        store.set(LAST_SYNC_KEY, previous.isoformat())
        events = []
        second_task = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.register_task("prescriptions", MagicMock(side_effect=RuntimeError("HTTP 500")))
        orchestrator.register_task("appointments", second_task)
        orchestrator.add_listener(events.append)

        assert orchestrator.force_sync() is False

        second_task.assert_called_once()
        assert events[-1].status == SyncStatus.ERROR
        assert isinstance(events[-1].error, SyncSubtaskFailedError)
        assert "prescriptions" in events[-1].error.details["failures"]
        assert orchestrator.last_sync_time == previous
        assert store.get(LAST_SYNC_KEY) == previous.isoformat()
        assert not orchestrator.is_syncing

    def test_single_flight(self, connection_manager, store, clock):
        """A trigger arriving mid-sync is dropped"""
        orchestrator = _orchestrator(connection_manager, store, clock)
        observed = {}

        def task(trigger):
            observed["is_syncing"] = orchestrator.is_syncing
            observed["nested"] = orchestrator.force_sync()
            observed["scheduled"] = orchestrator.schedule_sync(SyncTrigger.NETWORK)

        orchestrator.register_task("prescriptions", task)
        started = []
        orchestrator.add_listener(lambda e: e.status == SyncStatus.STARTED and started.append(e))

        assert orchestrator.force_sync() is True
        assert observed == {"is_syncing": True, "nested": False, "scheduled": False}
        assert len(started) == 1

    def test_listener_failure_is_isolated(self, connection_manager, store, clock):
        broken = MagicMock(side_effect=RuntimeError("listener bug"))
        healthy = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.add_listener(broken)
        orchestrator.add_listener(healthy)

        assert orchestrator.force_sync() is True
        assert healthy.call_count == 2

    def test_remove_listener_is_idempotent(self, connection_manager, store, clock):
        listener = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        remove = orchestrator.add_listener(listener)

        remove()
        remove()
        orchestrator.force_sync()

        listener.assert_not_called()

    def test_unpersisted_sync_time_is_kept_in_memory(self, connection_manager, failing_store, clock):
        orchestrator = _orchestrator(connection_manager, failing_store, clock)

        assert orchestrator.force_sync() is True
        assert orchestrator.last_sync_time == clock.now

    def test_last_sync_survives_restart(self, connection_manager, sqlite_path, clock):
        database = LocalDatabase(sqlite_path)
        database.initialize()
        _orchestrator(connection_manager, database, clock).force_sync()
        database.close()

        reopened = LocalDatabase(sqlite_path)
        reopened.initialize()
        orchestrator = _orchestrator(connection_manager, reopened, clock)

        assert orchestrator.last_sync_time == clock.now
        reopened.close()

    def test_unreadable_last_sync_is_treated_as_never(self, connection_manager, store, clock):
        store.set(LAST_SYNC_KEY, "not-a-date")
        orchestrator = _orchestrator(connection_manager, store, clock)

        assert orchestrator.last_sync_time is None
        assert orchestrator.should_sync()


class TestNetworkTrigger:

    def test_reconnect_triggers_sync(self, offline_manager, store, clock):
        task = MagicMock()
        orchestrator = _orchestrator(offline_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        offline_manager.update_snapshot(WIFI)

        task.assert_called_once_with(SyncTrigger.NETWORK)

    def test_switch_between_capable_links_does_not_trigger(self, connection_manager, store, clock):
        task = MagicMock()
        orchestrator = _orchestrator(connection_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        connection_manager.update_snapshot(ETHERNET)

        task.assert_not_called()

    def test_reconnect_respects_interval(self, offline_manager, store, clock):
        store.set(LAST_SYNC_KEY, (clock.now - timedelta(minutes=5)).isoformat())
        task = MagicMock()
        orchestrator = _orchestrator(offline_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        offline_manager.update_snapshot(WIFI)

        task.assert_not_called()

    def test_dispose_drops_network_subscription(self, offline_manager, store, clock):
        task = MagicMock()
        orchestrator = _orchestrator(offline_manager, store, clock)
        orchestrator.register_task("prescriptions", task)

        orchestrator.dispose()
        offline_manager.update_snapshot(WIFI)

        task.assert_not_called()


class TestPeriodicSync:

    def test_start_and_stop(self, connection_manager, store, clock):
        orchestrator = _orchestrator(
            connection_manager, store, clock, sync_interval=timedelta(hours=1)
        )

        orchestrator.start_periodic_sync()
        assert orchestrator.is_periodic_sync_running

        orchestrator.stop_periodic_sync()
        assert not orchestrator.is_periodic_sync_running

    def test_timer_runs_sync(self, connection_manager, store, clock):
        ran = threading.Event()
        triggers = []

        def task(trigger):
            triggers.append(trigger)
            ran.set()

        orchestrator = _orchestrator(
            connection_manager, store, clock, sync_interval=timedelta(milliseconds=20)
        )
        orchestrator.register_task("prescriptions", task)

        orchestrator.start_periodic_sync()
        try:
            assert ran.wait(timeout=5)
        finally:
            orchestrator.stop_periodic_sync()

        assert triggers[0] == SyncTrigger.TIMER


class TestParseTimestamp:

    def test_plain_iso(self):
        assert _parse_timestamp("2024-03-01T12:00:00") == datetime(2024, 3, 1, 12, 0)

    def test_json_quoted(self):
        assert _parse_timestamp('"2024-03-01T12:00:00"') == datetime(2024, 3, 1, 12, 0)

    def test_utc_suffix_is_converted_to_local_naive(self):
        parsed = _parse_timestamp("2024-03-01T12:00:00.000Z")

        assert parsed.tzinfo is None
        assert parsed == datetime.fromisoformat("2024-03-01T12:00:00+00:00").astimezone().replace(tzinfo=None)

    def test_empty(self):
        assert _parse_timestamp(None) is None
        assert _parse_timestamp("") is None
