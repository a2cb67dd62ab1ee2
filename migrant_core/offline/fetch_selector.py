# =============================================================================
# migrant_core/offline/fetch_selector.py
# Fetch Method Selection
# =============================================================================
"""
FetchMethodSelector - cheap type-based classification first, speed probe second.

A probe is only run when the classifier says the link can carry API
traffic; over a link already known to be sms-only it would waste time
and bandwidth.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

from migrant_core.offline.connection_manager import (
    ConnectionInfo,
    ConnectionManager,
    FetchMethod,
)
from migrant_core.offline.speed_probe import SpeedProbe, SpeedTestResult

logger = logging.getLogger(__name__)

SOURCE_CLASSIFIER = "classifier"
SOURCE_SPEED_PROBE = "speed_probe"


@dataclass
class MethodSelection:
    method: FetchMethod
    source: str
    connection: ConnectionInfo
    speed_test: Optional[SpeedTestResult] = None


class FetchMethodSelector:

    def __init__(self, connection_manager: ConnectionManager, speed_probe: SpeedProbe):
        self._connection_manager = connection_manager
        self._speed_probe = speed_probe

    def select_method(self) -> MethodSelection:
        connection = self._connection_manager.check_connection()

        if connection.fetch_method == FetchMethod.SMS:
            return MethodSelection(
                method=FetchMethod.SMS,
                source=SOURCE_CLASSIFIER,
                connection=connection,
            )

        speed_test = self._speed_probe.measure()
        logger.debug(
            f"Classifier suggested api; probe recommends {speed_test.recommended_method.value}"
        )
        return MethodSelection(
            method=speed_test.recommended_method,
            source=SOURCE_SPEED_PROBE,
            connection=connection,
            speed_test=speed_test,
        )
