# =============================================================================
# migrant_core/offline/data_fetcher.py
# Network-Aware Resource Fetching
# =============================================================================
"""
DataFetcher - retrieves a resource over the selected channel.

The api path is tried once. Any failure falls back to the sms channel
once, and the result is tagged with the channel that actually answered
so callers can tell authoritative data from degraded data.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
import logging

from migrant_core.api.prescription_connector import PrescriptionConnector
from migrant_core.api.sms_gateway import SmsGateway
from migrant_core.errors import ApiRequestFailedError, DegradedChannelFailedError
from migrant_core.offline.connection_manager import FetchMethod
from migrant_core.offline.fetch_selector import FetchMethodSelector

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    source: FetchMethod
    data: Any
    timestamp: datetime = field(default_factory=datetime.now)
    fallback_reason: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.source == FetchMethod.SMS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class DataFetcher:
    """
    Fetches backend resources by key, e.g. ``prescriptions/<user_id>``.

    Usage:
        fetcher = DataFetcher(selector, connector, SmsGateway())
        result = fetcher.fetch("prescriptions/u42")
        # During a batch sync, skip method selection:
        result = fetcher.fetch("prescriptions/u42", method=FetchMethod.API)
    """

    def __init__(
        self,
        selector: FetchMethodSelector,
        connector: PrescriptionConnector,
        sms_gateway: SmsGateway,
    ):
        self._selector = selector
        self._connector = connector
        self._sms_gateway = sms_gateway

    def fetch(self, resource_key: str, method: Optional[FetchMethod] = None) -> FetchResult:
        """
        Fetch one resource.

        Args:
            resource_key: Path relative to the API base URL
            method: Precomputed method; selected on demand when None

        Raises:
            DegradedChannelFailedError: if the sms channel is needed and fails
        """
        if method is None:
            method = self._selector.select_method().method

        if method == FetchMethod.API:
            try:
                data = self._connector.get_resource(resource_key)
                return FetchResult(source=FetchMethod.API, data=data)
            except ApiRequestFailedError as e:
                logger.warning(f"Error fetching {resource_key} from API, falling back to SMS: {e}")
                return self._fetch_from_sms(resource_key, fallback_reason=str(e))

        return self._fetch_from_sms(resource_key)

    def _fetch_from_sms(self, resource_key: str, fallback_reason: Optional[str] = None) -> FetchResult:
        try:
            data = self._sms_gateway.request(resource_key)
        except DegradedChannelFailedError:
            raise
        except Exception as e:
            raise DegradedChannelFailedError(
                f"Failed to fetch {resource_key} via SMS: {e}",
                resource_key=resource_key,
            )
        return FetchResult(source=FetchMethod.SMS, data=data, fallback_reason=fallback_reason)

    def fetch_prescriptions(self, user_id: str, method: Optional[FetchMethod] = None) -> FetchResult:
        return self.fetch(f"prescriptions/{user_id}", method=method)
