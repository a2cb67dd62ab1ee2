# =============================================================================
# migrant_core/offline/connection_manager.py
# Connection Classification and Network Change Subscription
# =============================================================================
"""
ConnectionManager - Classifies the platform network state into a fetch method.

Features:
- Pure classification of a network snapshot (no I/O)
- Platform push (update_snapshot) and polling (refresh) inputs
- Background polling thread for platforms without change events
- Subscription with idempotent unsubscribe
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    """Link type as reported by the platform."""
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    UNKNOWN = "unknown"


class FetchMethod(Enum):
    """Channel used to retrieve data."""
    API = "api"     # Direct network access
    SMS = "sms"     # Degraded store-and-forward channel


# Cellular generations and effective types that cannot carry API traffic
SLOW_GENERATIONS = {"2g"}
SLOW_EFFECTIVE_TYPES = {"2g", "slow-2g"}
FAST_GENERATIONS = {"3g", "4g", "5g"}


@dataclass(frozen=True)
class NetworkSnapshot:
    """Raw network state reported by the platform."""
    is_connected: bool
    type: NetworkType = NetworkType.UNKNOWN
    cellular_generation: Optional[str] = None
    effective_type: Optional[str] = None

    @classmethod
    def offline(cls) -> NetworkSnapshot:
        return cls(is_connected=False)


@dataclass
class ConnectionInfo:
    """Classified connection state. Produced fresh on every call."""
    is_connected: bool
    type: NetworkType
    fetch_method: FetchMethod
    cellular_generation: Optional[str] = None
    effective_type: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    error: Optional[str] = None

    @property
    def is_api_capable(self) -> bool:
        return self.is_connected and self.fetch_method == FetchMethod.API

    @property
    def status_label(self) -> str:
        """'online', 'limited' (connected but sms-only) or 'offline'."""
        if not self.is_connected:
            return "offline"
        return "online" if self.fetch_method == FetchMethod.API else "limited"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_connected": self.is_connected,
            "type": self.type.value,
            "cellular_generation": self.cellular_generation,
            "effective_type": self.effective_type,
            "fetch_method": self.fetch_method.value,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }


def classify(snapshot: NetworkSnapshot) -> ConnectionInfo:
    """
    Map a network snapshot to a fetch method.

    - not connected -> sms
    - wifi / ethernet -> api
    - cellular 2g, or effective type 2g / slow-2g -> sms
    - cellular 3g / 4g / 5g -> api
    - anything else connected -> api
    """
    generation = (snapshot.cellular_generation or "").lower() or None
    effective = (snapshot.effective_type or "").lower() or None

    if not snapshot.is_connected:
        method = FetchMethod.SMS
    elif snapshot.type == NetworkType.CELLULAR and (
        generation in SLOW_GENERATIONS or effective in SLOW_EFFECTIVE_TYPES
    ):
        method = FetchMethod.SMS
    else:
        method = FetchMethod.API

    return ConnectionInfo(
        is_connected=snapshot.is_connected,
        type=snapshot.type,
        fetch_method=method,
        cellular_generation=generation,
        effective_type=effective,
    )


def detect_network_snapshot(timeout: float = 3.0) -> NetworkSnapshot:
    """
    Default platform probe for desktop/server hosts.

    Checks reachability of well-known DNS resolvers. The link type is not
    observable this way and is reported as unknown.
    """
    hosts = [
        ("8.8.8.8", 53),        # Google DNS
        ("1.1.1.1", 53),        # Cloudflare DNS
        ("208.67.222.222", 53), # OpenDNS
    ]

    for host, port in hosts:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return NetworkSnapshot(is_connected=True, type=NetworkType.UNKNOWN)
        except OSError:
            continue

    return NetworkSnapshot.offline()


class ConnectionManager:
    """
    Holds the latest platform snapshot and classifies it on demand.

    Usage:
        manager = ConnectionManager(snapshot_provider=detect_network_snapshot)
        manager.initialize()
        info = manager.check_connection()
        unsubscribe = manager.subscribe(lambda info: print(info.fetch_method))
    """

    CHECK_INTERVAL = 30  # Seconds between polls of the snapshot provider

    def __init__(
        self,
        snapshot_provider: Optional[Callable[[], NetworkSnapshot]] = None,
        check_interval: Optional[float] = None,
    ):
        self._snapshot_provider = snapshot_provider
        self._check_interval = check_interval or self.CHECK_INTERVAL
        self._snapshot: Optional[NetworkSnapshot] = None
        self._callbacks: List[Callable[[ConnectionInfo], None]] = []
        self._callbacks_lock = threading.Lock()
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()
        self._initialized = False

    def initialize(self, start_monitoring: bool = False) -> None:
        """
        Take the first snapshot and optionally start background polling.

        Args:
            start_monitoring: Whether to poll the snapshot provider in a thread
        """
        if self._initialized:
            return

        self.refresh()
        if start_monitoring and self._snapshot_provider is not None:
            self.start_monitoring()

        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self.check_connection().status_label}")

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def check_connection(self) -> ConnectionInfo:
        """
        Classify the latest known snapshot. Never raises.

        An unknown or unreadable state is reported as disconnected/sms.
        """
        snapshot = self._snapshot
        if snapshot is None:
            info = classify(NetworkSnapshot.offline())
            info.error = "Network state not yet known"
            return info

        try:
            return classify(snapshot)
        except Exception as e:
            logger.error(f"Error checking network connection: {e}")
            return ConnectionInfo(
                is_connected=False,
                type=NetworkType.UNKNOWN,
                fetch_method=FetchMethod.SMS,
                error=str(e),
            )

    # =========================================================================
    # PLATFORM INPUTS
    # =========================================================================

    def update_snapshot(self, snapshot: NetworkSnapshot) -> None:
        """Record a platform-reported state; notifies subscribers on change."""
        changed = snapshot != self._snapshot
        self._snapshot = snapshot
        if changed:
            info = self.check_connection()
            logger.info(
                f"Network state changed: {info.type.value} "
                f"({info.status_label}, fetch via {info.fetch_method.value})"
            )
            self._notify_callbacks(info)

    def refresh(self) -> ConnectionInfo:
        """Poll the snapshot provider once (may block briefly)."""
        if self._snapshot_provider is not None:
            try:
                self.update_snapshot(self._snapshot_provider())
            except Exception as e:
                logger.warning(f"Network snapshot provider failed: {e}")
                self.update_snapshot(NetworkSnapshot.offline())
        return self.check_connection()

    def start_monitoring(self) -> None:
        """Start background polling of the snapshot provider."""
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="NetworkMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Network monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background polling."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
            self._monitor_thread = None
        logger.debug("Network monitoring stopped")

    def _monitoring_loop(self) -> None:
        while not self._stop_monitoring.wait(timeout=self._check_interval):
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Error in network check: {e}")

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def subscribe(self, callback: Callable[[ConnectionInfo], None]) -> Callable[[], None]:
        """
        Register a callback for network-state transitions.

        Returns:
            Unsubscribe function; safe to call more than once
        """
        with self._callbacks_lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._callbacks_lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def _notify_callbacks(self, info: ConnectionInfo) -> None:
        with self._callbacks_lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(info)
            except Exception as e:
                logger.error(f"Error in network callback: {e}")

    def dispose(self) -> None:
        self.stop_monitoring()
        with self._callbacks_lock:
            self._callbacks.clear()
        self._initialized = False
