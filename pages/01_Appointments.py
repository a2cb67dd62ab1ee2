# =============================================================================
# 01_Appointments.py - Appointment requests
# Offline-first booking form and the queue of unsent requests
# =============================================================================
from __future__ import annotations
import streamlit as st

from migrant_core.ui.service import get_data_service, load_hospitals
from migrant_core.ui.sync_status import (
    render_appointment_form,
    render_network_badge,
    render_pending_appointments,
)

st.set_page_config(page_title="Appointments - Migrant Health", page_icon="📅", layout="wide")

service = get_data_service()
HOSPITALS = load_hospitals()

with st.sidebar:
    render_network_badge(service)

st.title("📅 Appointments")

tab_book, tab_queue, tab_history = st.tabs(["Request", "Waiting to send", "History"])

with tab_book:
    render_appointment_form(service, HOSPITALS)

with tab_queue:
    render_pending_appointments(service)

with tab_history:
    render_pending_appointments(service, show_history=True)
