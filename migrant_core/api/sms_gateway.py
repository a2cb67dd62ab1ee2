"""
SMS Gateway
Degraded store-and-forward channel used when the link cannot carry API traffic
"""
from typing import Any, Dict
import logging

from migrant_core.errors import DegradedChannelFailedError

logger = logging.getLogger(__name__)


class SmsGateway:
    """
    Placeholder SMS channel.

    No SMS gateway protocol exists on the backend yet, so a successful
    request returns an acknowledgement payload with an empty item list.
    The channel keeps its own failure mode: a disabled gateway raises
    DegradedChannelFailedError instead of returning empty data.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def request(self, resource_key: str) -> Dict[str, Any]:
        if not self.enabled:
            raise DegradedChannelFailedError(
                "SMS channel is not available on this device",
                resource_key=resource_key,
            )

        resource = resource_key.split("/", 1)[0]
        logger.info(f"Fetching {resource_key} via SMS service")
        return {
            "message": f"{resource.capitalize()} fetched via SMS service",
            resource: [],
        }
