"""
Backend API Module
Connectors for the health records REST backend and the SMS fallback channel
"""

from .base_connector import BaseAPIConnector, APIConfig
from .config_manager import SyncSettings, load_settings
from .prescription_connector import PrescriptionConnector
from .appointment_connector import AppointmentConnector
from .sms_gateway import SmsGateway

__all__ = [
    # Base classes
    "BaseAPIConnector",
    "APIConfig",

    # Configuration
    "SyncSettings",
    "load_settings",

    # Connectors
    "PrescriptionConnector",
    "AppointmentConnector",
    "SmsGateway",
]
