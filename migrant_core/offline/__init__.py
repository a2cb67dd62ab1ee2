# =============================================================================
# migrant_core/offline/__init__.py
# Network-Adaptive Sync for the Migrant Health client
# =============================================================================
"""
Network-Adaptive Sync Module

Keeps the app usable on weak or missing connectivity: classifies the
link, picks the fetch channel (api or sms), queues appointment requests
made offline and syncs when a usable connection is available.

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                  NETWORK-ADAPTIVE SYNC                          │
├─────────────────────────────────────────────────────────────────┤
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                MigrantDataService                        │  │
│   │          (Single API - the UI uses this only)            │  │
│   └──────────────────────────────────────────────────────────┘  │
│          │                  │                    │              │
│          ▼                  ▼                    ▼              │
│   ┌─────────────┐   ┌──────────────┐   ┌──────────────────┐    │
│   │ DataFetcher │   │ PendingQueue │   │ SyncOrchestrator │    │
│   │ (api / sms) │   │ (FIFO, FSM)  │   │ (timer, guards)  │    │
│   └─────────────┘   └──────────────┘   └──────────────────┘    │
│          │                                       │              │
│          ▼                                       ▼              │
│   ┌──────────────────┐   ┌────────────┐   ┌─────────────┐      │
│   │ FetchMethod      │──►│ SpeedProbe │   │ LocalDatabase│      │
│   │ Selector         │   └────────────┘   │ (SQLite KV) │      │
│   └──────────────────┘                    └─────────────┘      │
│          │                                                      │
│          ▼                                                      │
│   ┌──────────────────┐                                          │
│   │ ConnectionManager│  (classify + subscribe)                  │
│   └──────────────────┘                                          │
└─────────────────────────────────────────────────────────────────┘
"""

from migrant_core.offline.connection_manager import (
    ConnectionInfo,
    ConnectionManager,
    FetchMethod,
    NetworkSnapshot,
    NetworkType,
    classify,
)

from migrant_core.offline.speed_probe import (
    QualityTier,
    SpeedProbe,
    SpeedTestResult,
)

from migrant_core.offline.fetch_selector import (
    FetchMethodSelector,
    MethodSelection,
)

from migrant_core.offline.data_fetcher import (
    DataFetcher,
    FetchResult,
)

from migrant_core.offline.local_database import (
    InMemoryStore,
    LocalDatabase,
    open_store,
)

from migrant_core.offline.pending_queue import (
    AppointmentStatus,
    PendingAppointment,
    PendingAppointmentQueue,
)

from migrant_core.offline.sync_engine import (
    SyncEvent,
    SyncOrchestrator,
    SyncState,
    SyncStatus,
    SyncTrigger,
)

from migrant_core.offline.unified_data_service import MigrantDataService

__all__ = [
    # Connection classification
    "ConnectionInfo",
    "ConnectionManager",
    "FetchMethod",
    "NetworkSnapshot",
    "NetworkType",
    "classify",
    # Speed probe
    "QualityTier",
    "SpeedProbe",
    "SpeedTestResult",
    # Method selection and fetching
    "FetchMethodSelector",
    "MethodSelection",
    "DataFetcher",
    "FetchResult",
    # Storage
    "InMemoryStore",
    "LocalDatabase",
    "open_store",
    # Appointment queue
    "AppointmentStatus",
    "PendingAppointment",
    "PendingAppointmentQueue",
    # Sync
    "SyncEvent",
    "SyncOrchestrator",
    "SyncState",
    "SyncStatus",
    "SyncTrigger",
    # Unified Service (Main API)
    "MigrantDataService",
]
