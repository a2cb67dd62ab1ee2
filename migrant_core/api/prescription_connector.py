"""
Prescription API Connector
Fetches a patient's prescriptions from the health records backend
"""
from typing import Any

from .base_connector import BaseAPIConnector


class PrescriptionConnector(BaseAPIConnector):
    """
    Connector for GET /prescriptions/{user_id}

    Expected API Response Format:
    [
        {"medicine": "Amoxicillin", "dosage": "500mg", "prescribedBy": "..."},
        ...
    ]

    or the backend's envelope form {"success": true, "data": [...]}
    """

    def validate_payload(self, payload: Any) -> bool:
        if isinstance(payload, dict):
            if payload.get("success") is False:
                return False
            return "data" in payload or "prescriptions" in payload
        return isinstance(payload, list)

    def fetch_prescriptions(self, user_id: str) -> Any:
        return self.get_resource(f"prescriptions/{user_id}")

    def get_resource(self, resource_key: str) -> Any:
        """Fetch any resource path relative to the API base URL"""
        return self._make_request(endpoint=resource_key, method="GET")
