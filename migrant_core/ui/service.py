"""
Data Service Provider
One MigrantDataService per Streamlit server process
"""
import logging

import streamlit as st

from migrant_core.api import load_settings
from migrant_core.offline import MigrantDataService

logger = logging.getLogger(__name__)


@st.cache_resource
def get_data_service() -> MigrantDataService:
    """
    Get the cached data service (shared across sessions and reruns).

    The service polls the network in the background and runs the
    periodic sync timer for as long as the server is up.
    """
    service = MigrantDataService(load_settings())
    service.initialize(start_monitoring=True, start_periodic=True)
    logger.info("Data service created")
    return service


def load_hospitals() -> dict:
    """
    Hospitals offered in the booking form, from the [hospitals] secrets table

    [hospitals]
    h-001 = "Central Clinic"
    """
    try:
        if "hospitals" in st.secrets:
            return {str(k): str(v) for k, v in st.secrets["hospitals"].items()}
    except Exception as e:
        logger.debug(f"Streamlit secrets unavailable: {e}")
    return {}


def get_user_id(service: MigrantDataService) -> str:
    """Signed-in user from session state, else the configured default"""
    return st.session_state.get("user_id") or service.settings.default_user_id
