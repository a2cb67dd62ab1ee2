# =============================================================================
# migrant_core/offline/speed_probe.py
# Downstream Throughput Probe
# =============================================================================
"""
SpeedProbe - one small, timeout-bounded download mapped to a quality tier.

The probe never raises: any failure yields recommended_method = sms with
the error attached to the result.
"""

from __future__ import annotations
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
import logging

import requests

from migrant_core.errors import MigrantHealthError, ProbeTimeoutError
from migrant_core.offline.connection_manager import FetchMethod

logger = logging.getLogger(__name__)


class QualityTier(Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


# (exclusive upper bound in KB/s, tier); the last tier is open-ended
SPEED_TIERS = [
    (50.0, QualityTier.POOR),
    (200.0, QualityTier.FAIR),
    (1000.0, QualityTier.GOOD),
]

SMS_THRESHOLD_KBPS = 50.0


def tier_for_speed(speed_kbps: float) -> QualityTier:
    for upper, tier in SPEED_TIERS:
        if speed_kbps < upper:
            return tier
    return QualityTier.EXCELLENT


def method_for_speed(speed_kbps: float) -> FetchMethod:
    return FetchMethod.SMS if speed_kbps < SMS_THRESHOLD_KBPS else FetchMethod.API


@dataclass
class SpeedTestResult:
    """Outcome of a single probe transfer."""
    speed_kbps: float
    elapsed_ms: int
    quality_tier: QualityTier
    recommended_method: FetchMethod
    size_kb: float = 0.0
    error: Optional[MigrantHealthError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def from_transfer(cls, size_kb: float, elapsed_ms: int) -> SpeedTestResult:
        """Compute throughput and tier for a completed transfer."""
        # Sub-millisecond transfers are clamped to 1ms
        elapsed_s = max(elapsed_ms, 1) / 1000.0
        speed = size_kb / elapsed_s
        return cls(
            speed_kbps=speed,
            elapsed_ms=elapsed_ms,
            quality_tier=tier_for_speed(speed),
            recommended_method=method_for_speed(speed),
            size_kb=size_kb,
        )

    @classmethod
    def failed(cls, error: MigrantHealthError, elapsed_ms: int = 0) -> SpeedTestResult:
        return cls(
            speed_kbps=0.0,
            elapsed_ms=elapsed_ms,
            quality_tier=QualityTier.POOR,
            recommended_method=FetchMethod.SMS,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "speed_kbps": round(self.speed_kbps, 1),
            "elapsed_ms": self.elapsed_ms,
            "size_kb": round(self.size_kb, 2),
            "quality_tier": self.quality_tier.value,
            "recommended_method": self.recommended_method.value,
            "error": str(self.error) if self.error else None,
        }


class SpeedProbe:
    """
    Measures downstream throughput with a single GET of a small file.

    Args:
        url: Probe target; should be a small static file
        timeout: Seconds before the transfer is abandoned
        session: requests session (injectable for tests)
        clock: Monotonic clock in seconds
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self._clock = clock

    def measure(self) -> SpeedTestResult:
        start = self._clock()

        try:
            response = self.session.get(
                self.url,
                headers={"Cache-Control": "no-cache"},
                timeout=self.timeout,
            )
            if not response.ok:
                raise MigrantHealthError(
                    f"Failed to fetch test file: HTTP {response.status_code}",
                    code="NET_003",
                    details={"url": self.url, "status_code": response.status_code},
                )
            size_kb = len(response.content) / 1024.0
        except requests.exceptions.Timeout:
            error = ProbeTimeoutError(
                f"Speed probe timed out after {self.timeout}s",
                url=self.url,
                timeout=self.timeout,
            )
            logger.warning(str(error))
            return SpeedTestResult.failed(error, self._elapsed_ms(start))
        except requests.exceptions.RequestException as e:
            error = MigrantHealthError(
                f"Speed probe failed: {e}",
                code="NET_003",
                details={"url": self.url},
            )
            logger.warning(str(error))
            return SpeedTestResult.failed(error, self._elapsed_ms(start))
        except MigrantHealthError as e:
            logger.warning(str(e))
            return SpeedTestResult.failed(e, self._elapsed_ms(start))

        result = SpeedTestResult.from_transfer(size_kb, self._elapsed_ms(start))
        logger.info(
            f"Speed probe: {result.speed_kbps:.1f} KB/s "
            f"({result.quality_tier.value}) -> {result.recommended_method.value}"
        )
        return result

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self._clock() - start) * 1000))
