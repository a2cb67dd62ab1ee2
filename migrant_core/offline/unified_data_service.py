# =============================================================================
# migrant_core/offline/unified_data_service.py
# Unified Data Service - Single API for Online/Offline Operations
# =============================================================================
"""
MigrantDataService - the one object the UI talks to.

Wires the connection manager, speed probe, fetch selector, data fetcher,
pending appointment queue and sync orchestrator together and exposes
their operations. It is an explicit instance with an initialize/dispose
lifecycle; the UI keeps it in st.cache_resource.

Usage:
------
from migrant_core.api import load_settings
from migrant_core.offline import MigrantDataService

service = MigrantDataService(load_settings())
service.initialize()

info = service.check_connection()
result = service.fetch_prescriptions("u42")
item = service.submit_appointment_offline({"hospital_id": "h1", "name": "Jane"})
service.sync_now()
"""

from __future__ import annotations
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

import requests

from migrant_core.api.appointment_connector import AppointmentConnector
from migrant_core.api.base_connector import APIConfig
from migrant_core.api.config_manager import SyncSettings
from migrant_core.api.prescription_connector import PrescriptionConnector
from migrant_core.api.sms_gateway import SmsGateway
from migrant_core.errors import PersistenceFailedError, SyncSubtaskFailedError
from migrant_core.offline.connection_manager import (
    ConnectionInfo,
    ConnectionManager,
    FetchMethod,
    detect_network_snapshot,
)
from migrant_core.offline.data_fetcher import DataFetcher, FetchResult
from migrant_core.offline.fetch_selector import FetchMethodSelector, MethodSelection
from migrant_core.offline.local_database import open_store
from migrant_core.offline.pending_queue import PendingAppointment, PendingAppointmentQueue
from migrant_core.offline.speed_probe import SpeedProbe, SpeedTestResult
from migrant_core.offline.sync_engine import SyncEvent, SyncOrchestrator, SyncState, SyncTrigger

logger = logging.getLogger(__name__)

PRESCRIPTIONS_KEY = "prescriptions"
USER_INFO_KEY = "userInfo"


class MigrantDataService:
    """
    Service facade for the network-adaptive sync core.

    Collaborators can be injected for tests or for a platform adapter
    that pushes real network snapshots into the connection manager.
    """

    def __init__(
        self,
        settings: SyncSettings,
        connection_manager: Optional[ConnectionManager] = None,
        store=None,
        session: Optional[requests.Session] = None,
        speed_probe: Optional[SpeedProbe] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings
        self._clock = clock

        if store is None:
            store, self.durable = open_store(settings.db_path)
        else:
            self.durable = True
        self._store = store

        self._connection_manager = connection_manager or ConnectionManager(
            snapshot_provider=detect_network_snapshot,
            check_interval=settings.network_check_interval,
        )

        session = session or requests.Session()
        api_config = APIConfig(
            api_name="Migrant Health API",
            base_url=settings.api_base_url,
            api_key=settings.api_token,
            timeout=settings.request_timeout,
        )
        self._prescriptions = PrescriptionConnector(api_config, session=session)
        self._appointments = AppointmentConnector(api_config, session=session)
        self._sms_gateway = SmsGateway(enabled=settings.sms_enabled)

        self._speed_probe = speed_probe or SpeedProbe(
            url=settings.probe_url,
            timeout=settings.probe_timeout,
            session=session,
        )
        self._selector = FetchMethodSelector(self._connection_manager, self._speed_probe)
        self._fetcher = DataFetcher(self._selector, self._prescriptions, self._sms_gateway)

        self._queue = PendingAppointmentQueue(
            self._store,
            submitter=self._appointments.submit_appointment,
            clock=clock,
        )

        self._orchestrator = SyncOrchestrator(
            self._connection_manager,
            self._store,
            sync_interval=timedelta(minutes=settings.sync_interval_minutes),
            min_sync_interval=timedelta(minutes=settings.min_sync_interval_minutes),
            clock=clock,
            has_pending_work=self._has_replayable_appointments,
        )
        self._orchestrator.register_task("prescriptions", self._sync_prescriptions)
        self._orchestrator.register_task("appointments", self._replay_appointments)

        self._last_event: Optional[SyncEvent] = None
        self._event_lock = threading.Lock()
        self._remove_status_listener: Optional[Callable[[], None]] = None
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self, start_monitoring: bool = False, start_periodic: bool = True) -> None:
        """
        Load persisted state and start listening.

        Args:
            start_monitoring: Poll the network snapshot provider in a thread
            start_periodic: Start the periodic sync timer
        """
        if self._initialized:
            return

        self._connection_manager.initialize(start_monitoring=start_monitoring)
        self._queue.load()
        self._orchestrator.initialize()
        self._remove_status_listener = self._orchestrator.add_listener(self._record_event)

        if start_periodic:
            self._orchestrator.start_periodic_sync()

        self._initialized = True
        logger.info(f"MigrantDataService initialized (durable storage: {self.durable})")

    def dispose(self) -> None:
        if self._remove_status_listener is not None:
            self._remove_status_listener()
            self._remove_status_listener = None
        self._orchestrator.dispose()
        self._connection_manager.dispose()
        self._prescriptions.close()
        self._store.close()
        self._initialized = False
        logger.info("MigrantDataService disposed")

    # =========================================================================
    # NETWORK
    # =========================================================================

    def check_connection(self) -> ConnectionInfo:
        return self._connection_manager.check_connection()

    def subscribe_to_network_changes(
        self, callback: Callable[[ConnectionInfo], None]
    ) -> Callable[[], None]:
        return self._connection_manager.subscribe(callback)

    def measure_connection_speed(self) -> SpeedTestResult:
        return self._speed_probe.measure()

    def select_fetch_method(self) -> MethodSelection:
        return self._selector.select_method()

    # =========================================================================
    # PRESCRIPTIONS
    # =========================================================================

    def fetch_prescriptions(self, user_id: str) -> FetchResult:
        """Fetch over the recommended channel, falling back to SMS once."""
        return self._fetcher.fetch_prescriptions(user_id)

    def get_cached_prescriptions(self) -> Optional[Dict[str, Any]]:
        """Last prescriptions stored by a successful sync: {data, lastUpdated, source}."""
        try:
            cached = self._store.get_setting(PRESCRIPTIONS_KEY)
        except PersistenceFailedError as e:
            logger.error(f"Error reading cached prescriptions: {e}")
            return None
        return cached if isinstance(cached, dict) else None

    def _resolve_user_id(self) -> str:
        try:
            user_info = self._store.get_setting(USER_INFO_KEY)
        except PersistenceFailedError as e:
            logger.warning(f"Could not read stored user info: {e}")
            user_info = None
        if isinstance(user_info, dict) and user_info.get("id"):
            return str(user_info["id"])
        return self.settings.default_user_id

    def set_user(self, user_id: str, **profile: Any) -> None:
        """Store the signed-in user used by the prescriptions sync task."""
        self._store.set_setting(USER_INFO_KEY, {"id": user_id, **profile})

    def _sync_prescriptions(self, trigger: SyncTrigger) -> None:
        user_id = self._resolve_user_id()
        logger.info(f"Syncing prescriptions for user: {user_id}")

        result = self._fetcher.fetch_prescriptions(user_id, method=FetchMethod.API)
        if result.is_degraded:
            # Degraded data must not replace the authoritative cache
            raise SyncSubtaskFailedError(
                f"Prescriptions API unavailable: {result.fallback_reason}",
                task="prescriptions",
            )

        self._store.set_setting(
            PRESCRIPTIONS_KEY,
            {
                "data": result.data,
                "lastUpdated": result.timestamp.isoformat(),
                "source": result.source.value,
            },
        )

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_now(self) -> bool:
        """
        Force a sync cycle.

        Raises:
            NetworkUnavailableError: if the link cannot carry API traffic
        """
        return self._orchestrator.force_sync()

    def add_sync_listener(self, listener: Callable[[SyncEvent], None]) -> Callable[[], None]:
        return self._orchestrator.add_listener(listener)

    def start_periodic_sync(self) -> None:
        self._orchestrator.start_periodic_sync()

    def stop_periodic_sync(self) -> None:
        self._orchestrator.stop_periodic_sync()

    def set_auto_sync(self, enabled: bool) -> None:
        if enabled:
            self.start_periodic_sync()
        else:
            self.stop_periodic_sync()

    @property
    def is_auto_sync_enabled(self) -> bool:
        return self._orchestrator.is_periodic_sync_running

    @property
    def sync_state(self) -> SyncState:
        return self._orchestrator.state

    @property
    def last_sync_event(self) -> Optional[SyncEvent]:
        with self._event_lock:
            return self._last_event

    def _record_event(self, event: SyncEvent) -> None:
        with self._event_lock:
            self._last_event = event

    # =========================================================================
    # APPOINTMENTS
    # =========================================================================

    def submit_appointment_offline(self, data: Dict[str, Any]) -> PendingAppointment:
        return self._queue.submit_offline(data)

    def submit_appointment(self, data: Dict[str, Any]) -> PendingAppointment:
        """
        Queue the appointment, then submit it right away if the link allows.

        The item is durable before any network attempt; if the immediate
        attempt fails it stays in the pending list as 'failed'.
        """
        item = self._queue.submit_offline(data)
        if self.check_connection().is_api_capable:
            report = self._queue.replay(include_failed=False)
            for outcome in report.confirmed + report.failed:
                if outcome.id == item.id:
                    return outcome
        return item

    def get_pending_appointments(self) -> List[PendingAppointment]:
        return self._queue.get_pending()

    def get_appointments(self) -> List[PendingAppointment]:
        return self._queue.get_appointments()

    def _has_replayable_appointments(self, trigger: SyncTrigger) -> bool:
        # Only a reconnect skips the interval guard; it retries failed items too
        return trigger == SyncTrigger.NETWORK and self._queue.has_pending_work(include_failed=True)

    def _replay_appointments(self, trigger: SyncTrigger) -> None:
        # Failed items are retried on explicit or reconnect triggers only
        report = self._queue.replay(include_failed=trigger != SyncTrigger.TIMER)
        if report.failed:
            raise SyncSubtaskFailedError(
                f"{len(report.failed)} appointment(s) could not be submitted",
                task="appointments",
                details={"ids": [item.id for item in report.failed]},
            )
