# =============================================================================
# Welcome.py - Migrant Health client home
# Connection status, sync controls and prescriptions
# =============================================================================
"""
Home page.

Shows how the app is currently reaching the backend (api, sms or not at
all), lets the user trigger a sync or toggle background sync, and lists
prescriptions from the live backend or the last synced copy.
"""
from __future__ import annotations
import streamlit as st

from migrant_core.logging import setup_logging
from migrant_core.ui.service import get_data_service, get_user_id
from migrant_core.ui.sync_status import (
    render_network_badge,
    render_prescriptions,
    render_sync_status,
)

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================
st.set_page_config(
    page_title="Migrant Health",
    page_icon="🏥",
    layout="wide",
)

if "logging_configured" not in st.session_state:
    setup_logging()
    st.session_state["logging_configured"] = True

service = get_data_service()

# ============================================================================
# SIDEBAR
# ============================================================================
with st.sidebar:
    render_network_badge(service)
    user_id = st.text_input(
        "User ID",
        value=get_user_id(service),
        help="Prescriptions are synced for this user",
    )
    if user_id and user_id != st.session_state.get("user_id"):
        st.session_state["user_id"] = user_id
        service.set_user(user_id)

# ============================================================================
# MAIN CONTENT
# ============================================================================
st.title("🏥 Migrant Health")
st.caption("Works on weak connections: requests are saved on this device and sent when you're online.")

st.subheader("Sync")
render_sync_status(service)

st.markdown("---")
st.subheader("💊 Prescriptions")
render_prescriptions(service, get_user_id(service))
