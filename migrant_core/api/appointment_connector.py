"""
Appointment API Connector
Submits appointment requests queued by the offline booking form
"""
from typing import Any, Dict

from .base_connector import BaseAPIConnector

# Queue bookkeeping that the backend does not store
LOCAL_ONLY_FIELDS = ("status", "created_at", "error_message", "attempts")


class AppointmentConnector(BaseAPIConnector):
    """Connector for POST /appointments"""

    def validate_payload(self, payload: Any) -> bool:
        if isinstance(payload, dict):
            return payload.get("success", True) is not False
        return False

    def submit_appointment(self, appointment: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit one appointment.

        Args:
            appointment: Queued appointment dict (local-only fields are stripped)

        Returns:
            Decoded backend response
        """
        body = {k: v for k, v in appointment.items() if k not in LOCAL_ONLY_FIELDS}
        # The client-generated id travels as an idempotency reference
        body["clientReference"] = body.pop("id", None)
        return self._make_request(endpoint="appointments", method="POST", data=body)
