# =============================================================================
# tests/unit/test_connection_classifier.py
# Unit Tests for Connection Classification and Subscription
# =============================================================================

import pytest
from unittest.mock import MagicMock, patch

from migrant_core.offline.connection_manager import (
    ConnectionManager,
    FetchMethod,
    NetworkSnapshot,
    NetworkType,
    classify,
    detect_network_snapshot,
)


class TestClassify:
    """Pure mapping from snapshot to fetch method"""

    def test_wifi_uses_api(self):
        info = classify(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))

        assert info.is_connected
        assert info.type == NetworkType.WIFI
        assert info.fetch_method == FetchMethod.API
        assert info.is_api_capable

    def test_ethernet_uses_api(self):
        info = classify(NetworkSnapshot(is_connected=True, type=NetworkType.ETHERNET))
        assert info.fetch_method == FetchMethod.API

    def test_cellular_2g_uses_sms(self):
        info = classify(NetworkSnapshot(
            is_connected=True,
            type=NetworkType.CELLULAR,
            cellular_generation="2g",
        ))

        assert info.is_connected
        assert info.type == NetworkType.CELLULAR
        assert info.cellular_generation == "2g"
        assert info.fetch_method == FetchMethod.SMS
        assert not info.is_api_capable

    @pytest.mark.parametrize("generation", ["3g", "4g", "5g"])
    def test_fast_cellular_uses_api(self, generation):
        info = classify(NetworkSnapshot(
            is_connected=True,
            type=NetworkType.CELLULAR,
            cellular_generation=generation,
        ))
        assert info.fetch_method == FetchMethod.API

    @pytest.mark.parametrize("effective_type", ["2g", "slow-2g"])
    def test_slow_effective_type_overrides_generation(self, effective_type):
        info = classify(NetworkSnapshot(
            is_connected=True,
            type=NetworkType.CELLULAR,
            cellular_generation="4g",
            effective_type=effective_type,
        ))
        assert info.fetch_method == FetchMethod.SMS

    def test_generation_is_case_insensitive(self):
        info = classify(NetworkSnapshot(
            is_connected=True,
            type=NetworkType.CELLULAR,
            cellular_generation="2G",
        ))
        assert info.fetch_method == FetchMethod.SMS
        assert info.cellular_generation == "2g"

    def test_disconnected_uses_sms(self):
        info = classify(NetworkSnapshot(is_connected=False, type=NetworkType.UNKNOWN))

        assert not info.is_connected
        assert info.fetch_method == FetchMethod.SMS
        assert not info.is_api_capable

    def test_connected_unknown_type_uses_api(self):
        info = classify(NetworkSnapshot(is_connected=True, type=NetworkType.UNKNOWN))
        assert info.fetch_method == FetchMethod.API

    def test_classify_is_deterministic(self):
        snapshot = NetworkSnapshot(is_connected=True, type=NetworkType.CELLULAR, cellular_generation="3g")
        first, second = classify(snapshot), classify(snapshot)

        assert first.fetch_method == second.fetch_method
        assert first.type == second.type

    def test_status_labels(self):
        assert classify(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI)).status_label == "online"
        assert classify(NetworkSnapshot(
            is_connected=True, type=NetworkType.CELLULAR, cellular_generation="2g"
        )).status_label == "limited"
        assert classify(NetworkSnapshot.offline()).status_label == "offline"

    def test_to_dict_uses_plain_values(self):
        data = classify(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI)).to_dict()

        assert data["type"] == "wifi"
        assert data["fetch_method"] == "api"
        assert data["error"] is None


class TestConnectionManager:
    """Snapshot holding, polling and subscription"""

    def test_unknown_state_reports_offline(self):
        manager = ConnectionManager()
        info = manager.check_connection()

        assert not info.is_connected
        assert info.fetch_method == FetchMethod.SMS
        assert info.error is not None

    def test_update_snapshot_notifies_subscribers(self):
        manager = ConnectionManager()
        callback = MagicMock()
        manager.subscribe(callback)

        manager.update_snapshot(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))

        callback.assert_called_once()
        assert callback.call_args[0][0].fetch_method == FetchMethod.API

    def test_unchanged_snapshot_does_not_notify(self):
        manager = ConnectionManager()
        snapshot = NetworkSnapshot(is_connected=True, type=NetworkType.WIFI)
        manager.update_snapshot(snapshot)

        callback = MagicMock()
        manager.subscribe(callback)
        manager.update_snapshot(snapshot)

        callback.assert_not_called()

    def test_unsubscribe_stops_delivery_and_is_idempotent(self):
        manager = ConnectionManager()
        callback = MagicMock()
        unsubscribe = manager.subscribe(callback)

        unsubscribe()
        unsubscribe()
        manager.update_snapshot(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))

        callback.assert_not_called()

    def test_failing_callback_does_not_block_others(self):
        manager = ConnectionManager()
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        manager.subscribe(broken)
        manager.subscribe(healthy)

        manager.update_snapshot(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))

        healthy.assert_called_once()

    def test_refresh_polls_provider(self):
        provider = MagicMock(return_value=NetworkSnapshot(
            is_connected=True, type=NetworkType.CELLULAR, cellular_generation="2g"
        ))
        manager = ConnectionManager(snapshot_provider=provider)

        info = manager.refresh()

        provider.assert_called_once()
        assert info.fetch_method == FetchMethod.SMS

    def test_failing_provider_is_reported_offline(self):
        provider = MagicMock(side_effect=OSError("no route"))
        manager = ConnectionManager(snapshot_provider=provider)

        info = manager.refresh()

        assert not info.is_connected
        assert info.fetch_method == FetchMethod.SMS

    def test_initialize_takes_first_snapshot(self):
        provider = MagicMock(return_value=NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))
        manager = ConnectionManager(snapshot_provider=provider)

        manager.initialize()

        assert manager.check_connection().is_api_capable

    def test_dispose_clears_subscribers(self):
        manager = ConnectionManager()
        callback = MagicMock()
        manager.subscribe(callback)

        manager.dispose()
        manager.update_snapshot(NetworkSnapshot(is_connected=True, type=NetworkType.WIFI))

        callback.assert_not_called()


class TestDetectNetworkSnapshot:
    """Default desktop probe"""

    def test_reachable_resolver_means_connected(self):
        with patch("migrant_core.offline.connection_manager.socket.create_connection") as create:
            create.return_value = MagicMock()
            snapshot = detect_network_snapshot(timeout=0.1)

        assert snapshot.is_connected
        assert snapshot.type == NetworkType.UNKNOWN

    def test_no_reachable_resolver_means_offline(self):
        with patch(
            "migrant_core.offline.connection_manager.socket.create_connection",
            side_effect=OSError("unreachable"),
        ):
            snapshot = detect_network_snapshot(timeout=0.1)

        assert not snapshot.is_connected
