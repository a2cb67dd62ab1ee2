# =============================================================================
# tests/unit/test_fetch_selector.py
# Unit Tests for Fetch Method Selection
# =============================================================================

from unittest.mock import MagicMock

from migrant_core.errors import ProbeTimeoutError
from migrant_core.offline.connection_manager import (
    ConnectionManager,
    FetchMethod,
    NetworkSnapshot,
    NetworkType,
)
from migrant_core.offline.fetch_selector import (
    SOURCE_CLASSIFIER,
    SOURCE_SPEED_PROBE,
    FetchMethodSelector,
)
from migrant_core.offline.speed_probe import SpeedTestResult


def _manager(snapshot):
    manager = ConnectionManager()
    manager.update_snapshot(snapshot)
    return manager


class TestFetchMethodSelector:

    def test_sms_classification_skips_probe(self):
        probe = MagicMock()
        manager = _manager(NetworkSnapshot(
            is_connected=True, type=NetworkType.CELLULAR, cellular_generation="2g"
        ))

        selection = FetchMethodSelector(manager, probe).select_method()

        assert selection.method == FetchMethod.SMS
        assert selection.source == SOURCE_CLASSIFIER
        assert selection.speed_test is None
        probe.measure.assert_not_called()

    def test_offline_skips_probe(self, offline_manager):
        probe = MagicMock()

        selection = FetchMethodSelector(offline_manager, probe).select_method()

        assert selection.method == FetchMethod.SMS
        probe.measure.assert_not_called()

    def test_api_classification_defers_to_probe(self, connection_manager):
        probe = MagicMock()
        probe.measure.return_value = SpeedTestResult.from_transfer(size_kb=800, elapsed_ms=2000)

        selection = FetchMethodSelector(connection_manager, probe).select_method()

        probe.measure.assert_called_once()
        assert selection.method == FetchMethod.API
        assert selection.source == SOURCE_SPEED_PROBE
        assert selection.speed_test.speed_kbps == 400

    def test_slow_probe_downgrades_to_sms(self, connection_manager):
        probe = MagicMock()
        probe.measure.return_value = SpeedTestResult.from_transfer(size_kb=10, elapsed_ms=1000)

        selection = FetchMethodSelector(connection_manager, probe).select_method()

        assert selection.method == FetchMethod.SMS
        assert selection.source == SOURCE_SPEED_PROBE

    def test_failed_probe_downgrades_to_sms(self, connection_manager):
        probe = MagicMock()
        probe.measure.return_value = SpeedTestResult.failed(
            ProbeTimeoutError("timed out", url="https://example.org", timeout=10)
        )

        selection = FetchMethodSelector(connection_manager, probe).select_method()

        assert selection.method == FetchMethod.SMS
        assert selection.speed_test.error is not None
