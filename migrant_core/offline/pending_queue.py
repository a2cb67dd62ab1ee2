# =============================================================================
# migrant_core/offline/pending_queue.py
# Offline Appointment Queue
# =============================================================================
"""
PendingAppointmentQueue - durable FIFO of appointment requests made offline.

Status per item: pending -> processing -> confirmed | failed.
Confirmed items leave the pending list; failed items stay in it so the
user can see them, and are only retried on an explicit sync or when
connectivity is restored.
"""

from __future__ import annotations
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

from migrant_core.errors import PersistenceFailedError

logger = logging.getLogger(__name__)

PENDING_KEY = "pendingAppointments"
HISTORY_KEY = "appointments"

CORE_FIELDS = ("id", "hospital_id", "hospital_name", "status", "created_at",
               "error_message", "attempts")


class AppointmentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class PendingAppointment:
    """An appointment request owned by the client until confirmed or failed."""
    id: str
    hospital_id: str
    hospital_name: str = ""
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime = field(default_factory=datetime.now)
    patient: Dict[str, Any] = field(default_factory=dict)  # name, phone, date, time, reason
    error_message: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Flat dict, as persisted and as submitted to the backend."""
        record = dict(self.patient)
        record.update({
            "id": self.id,
            "hospital_id": self.hospital_id,
            "hospital_name": self.hospital_name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "error_message": self.error_message,
            "attempts": self.attempts,
        })
        return record

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> PendingAppointment:
        return cls(
            id=str(record["id"]),
            hospital_id=str(record["hospital_id"]),
            hospital_name=record.get("hospital_name", ""),
            status=AppointmentStatus(record.get("status", "pending")),
            created_at=datetime.fromisoformat(record["created_at"]),
            patient={k: v for k, v in record.items() if k not in CORE_FIELDS},
            error_message=record.get("error_message"),
            attempts=int(record.get("attempts", 0)),
        )


@dataclass
class ReplayReport:
    confirmed: List[PendingAppointment] = field(default_factory=list)
    failed: List[PendingAppointment] = field(default_factory=list)
    skipped: bool = False   # Another replay was already running


class PendingAppointmentQueue:
    """
    Usage:
        queue = PendingAppointmentQueue(store, submitter=connector.submit_appointment)
        queue.load()
        item = queue.submit_offline({"hospital_id": "h1", "name": "Jane"})
        report = queue.replay(include_failed=True)
    """

    def __init__(
        self,
        store,
        submitter: Callable[[Dict[str, Any]], Any],
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ):
        self._store = store
        self._submitter = submitter
        self._clock = clock
        self._id_factory = id_factory

        self._pending: List[PendingAppointment] = []
        self._history: Dict[str, PendingAppointment] = {}
        self._state_lock = threading.RLock()
        self._replay_lock = threading.Lock()

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def load(self) -> None:
        """
        Load persisted lists. Items left in 'processing' by a crash mid-replay
        are reset to 'pending'.
        """
        with self._state_lock:
            try:
                pending = self._read_list(PENDING_KEY)
                history = self._read_list(HISTORY_KEY)
            except PersistenceFailedError as e:
                logger.error(f"Error loading appointments, starting empty: {e}")
                return

            recovered = 0
            for item in pending:
                if item.status == AppointmentStatus.PROCESSING:
                    item.status = AppointmentStatus.PENDING
                    recovered += 1

            self._pending = pending
            self._history = {item.id: item for item in history}
            for item in pending:
                self._history[item.id] = item

            if recovered:
                logger.info(f"Recovered {recovered} appointment(s) interrupted mid-submission")
                self._persist()

            logger.info(f"Loaded {len(self._pending)} pending appointment(s)")

    def _read_list(self, key: str) -> List[PendingAppointment]:
        records = self._store.get_setting(key, default=[])
        if not isinstance(records, list):
            logger.warning(f"Ignoring {key}: expected a list, found {type(records).__name__}")
            return []
        items = []
        for record in records:
            try:
                items.append(PendingAppointment.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable appointment record in {key}: {e}")
        return items

    def _persist(self) -> None:
        """Write both lists together. A failed write keeps the in-memory state."""
        try:
            self._store.set_settings({
                PENDING_KEY: [i.to_dict() for i in self._pending],
                HISTORY_KEY: [i.to_dict() for i in self._history.values()],
            })
        except PersistenceFailedError as e:
            logger.error(f"Error saving appointments: {e}")

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit_offline(self, data: Dict[str, Any]) -> PendingAppointment:
        """
        Queue an appointment request. Persisted before any network attempt.

        Args:
            data: Form fields; must include hospital_id (or hospitalId)

        Raises:
            ValueError: if no hospital id is given
        """
        fields = dict(data)
        hospital_id = fields.pop("hospital_id", None) or fields.pop("hospitalId", None)
        hospital_name = fields.pop("hospital_name", None) or fields.pop("hospitalName", None)
        fields.pop("hospitalId", None)
        fields.pop("hospitalName", None)
        if not hospital_id:
            raise ValueError("hospital_id is required")
        for key in CORE_FIELDS:
            fields.pop(key, None)

        item = PendingAppointment(
            id=self._id_factory(),
            hospital_id=str(hospital_id),
            hospital_name=hospital_name or "",
            created_at=self._clock(),
            patient=fields,
        )

        with self._state_lock:
            self._pending.append(item)
            self._history[item.id] = item
            self._persist()

        logger.info(f"Appointment {item.id} for hospital {item.hospital_id} saved offline")
        return _copy(item)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_pending(self) -> List[PendingAppointment]:
        with self._state_lock:
            return [_copy(item) for item in self._pending]

    def get_appointments(self) -> List[PendingAppointment]:
        """Every appointment submitted from this device, with its latest status."""
        with self._state_lock:
            return [_copy(item) for item in self._history.values()]

    def has_pending_work(self, include_failed: bool = False) -> bool:
        """
        True if an item is waiting for its first (or interrupted) attempt.

        Args:
            include_failed: Also count items that failed an earlier attempt
        """
        eligible = {AppointmentStatus.PENDING}
        if include_failed:
            eligible.add(AppointmentStatus.FAILED)
        with self._state_lock:
            return any(item.status in eligible for item in self._pending)

    # =========================================================================
    # REPLAY
    # =========================================================================

    def replay(self, include_failed: bool = False) -> ReplayReport:
        """
        Submit queued items in FIFO order.

        Args:
            include_failed: Also retry items that failed on an earlier replay

        Returns:
            ReplayReport; skipped=True if another replay is in progress
        """
        if not self._replay_lock.acquire(blocking=False):
            return ReplayReport(skipped=True)

        report = ReplayReport()
        batch: List[PendingAppointment] = []
        try:
            eligible = {AppointmentStatus.PENDING}
            if include_failed:
                eligible.add(AppointmentStatus.FAILED)

            with self._state_lock:
                batch = [item for item in self._pending if item.status in eligible]

            for item in batch:
                self._replay_one(item, report)
        finally:
            self._replay_lock.release()

        if batch:
            logger.info(
                f"Appointment replay: {len(report.confirmed)} confirmed, "
                f"{len(report.failed)} failed"
            )
        return report

    def _replay_one(self, item: PendingAppointment, report: ReplayReport) -> None:
        with self._state_lock:
            item.status = AppointmentStatus.PROCESSING
            item.attempts += 1
            item.error_message = None
            self._persist()

        try:
            self._submitter(item.to_dict())
        except Exception as e:
            logger.warning(f"Appointment {item.id} submission failed: {e}")
            with self._state_lock:
                item.status = AppointmentStatus.FAILED
                item.error_message = str(e)
                self._persist()
            report.failed.append(_copy(item))
            return

        with self._state_lock:
            item.status = AppointmentStatus.CONFIRMED
            self._pending = [p for p in self._pending if p.id != item.id]
            self._persist()
        report.confirmed.append(_copy(item))


def _copy(item: PendingAppointment) -> PendingAppointment:
    return PendingAppointment(
        id=item.id,
        hospital_id=item.hospital_id,
        hospital_name=item.hospital_name,
        status=item.status,
        created_at=item.created_at,
        patient=dict(item.patient),
        error_message=item.error_message,
        attempts=item.attempts,
    )
