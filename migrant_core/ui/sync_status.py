"""
Sync Status UI Components
Network badge, sync controls, appointment queue and prescriptions views
"""
from typing import List, Optional

import pandas as pd
import streamlit as st

from migrant_core.errors import NetworkUnavailableError
from migrant_core.errors.handlers import ErrorContext, error_boundary
from migrant_core.offline import (
    AppointmentStatus,
    MigrantDataService,
    PendingAppointment,
    SyncStatus,
)


STATUS_ICONS = {
    "online": "🟢",
    "limited": "🟡",
    "offline": "🔴",
}

APPOINTMENT_ICONS = {
    AppointmentStatus.PENDING: "⏳",
    AppointmentStatus.PROCESSING: "🔄",
    AppointmentStatus.CONFIRMED: "✅",
    AppointmentStatus.FAILED: "❌",
}

APPOINTMENT_COLUMNS = ["Status", "Hospital", "Date", "Time", "Created", "Attempts", "Error"]


def appointments_frame(items: List[PendingAppointment]) -> pd.DataFrame:
    """Tabular view of appointments, newest first"""
    rows = []
    for item in sorted(items, key=lambda i: i.created_at, reverse=True):
        rows.append({
            "Status": f"{APPOINTMENT_ICONS[item.status]} {item.status.value}",
            "Hospital": item.hospital_name or item.hospital_id,
            "Date": item.patient.get("date", ""),
            "Time": item.patient.get("time", ""),
            "Created": item.created_at.strftime("%Y-%m-%d %H:%M"),
            "Attempts": item.attempts,
            "Error": item.error_message or "",
        })
    return pd.DataFrame(rows, columns=APPOINTMENT_COLUMNS)


@error_boundary(error_message="Could not read network status")
def render_network_badge(service: MigrantDataService):
    """Compact connection indicator for the sidebar"""
    info = service.check_connection()
    icon = STATUS_ICONS.get(info.status_label, "⚪")

    st.markdown(f"### {icon} {info.status_label.capitalize()}")
    st.caption(f"Link: {info.type.value} · fetch via {info.fetch_method.value.upper()}")
    if info.cellular_generation:
        st.caption(f"Cellular: {info.cellular_generation}")
    if info.error:
        st.caption(info.error)


@error_boundary(error_message="Could not render sync status")
def render_sync_status(service: MigrantDataService):
    """Last sync time, sync-now button and auto-sync toggle"""
    state = service.sync_state
    last = state.last_sync_time.strftime("%Y-%m-%d %H:%M") if state.last_sync_time else "Never"

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Last sync", last)
    with col2:
        st.metric("Pending appointments", len(service.get_pending_appointments()))
    with col3:
        st.metric("Storage", "Durable" if service.durable else "Session only")

    if not service.durable:
        st.warning("Local storage is unavailable. Offline data will be lost when the app restarts.")

    event = service.last_sync_event
    if event is not None and event.status == SyncStatus.ERROR:
        st.warning(f"Last sync failed: {getattr(event.error, 'message', event.error)}")

    col_sync, col_auto = st.columns([1, 1])
    with col_sync:
        sync_btn = st.button(
            "🔄 Sync now",
            key="sync_now_btn",
            type="primary",
            disabled=state.is_syncing,
            use_container_width=True,
        )
    with col_auto:
        auto_sync = st.toggle(
            "Auto-sync",
            value=service.is_auto_sync_enabled,
            key="auto_sync_toggle",
            help="Sync in the background every few minutes when online",
        )

    if auto_sync != service.is_auto_sync_enabled:
        service.set_auto_sync(auto_sync)

    if sync_btn:
        _run_manual_sync(service)


def _run_manual_sync(service: MigrantDataService):
    # Events seen while this call runs; the service is shared across sessions
    events = []
    remove_listener = service.add_sync_listener(events.append)
    try:
        with st.spinner("Syncing..."):
            completed = service.sync_now()
    except NetworkUnavailableError:
        st.warning("You're offline. Data will sync when you reconnect.")
        return
    finally:
        remove_listener()

    if completed:
        st.success("✅ Sync completed")
        return

    errors = [e for e in events if e.status == SyncStatus.ERROR]
    if errors:
        reason = getattr(errors[-1].error, "message", errors[-1].error)
        st.warning(f"Sync finished with errors: {reason}")
    else:
        st.info("A sync is already running")


@error_boundary(error_message="Could not load appointments")
def render_pending_appointments(service: MigrantDataService, show_history: bool = False):
    """Queued appointments (and optionally the full history)"""
    items = service.get_appointments() if show_history else service.get_pending_appointments()
    if not items:
        st.info("No appointments waiting to be sent" if not show_history else "No appointments yet")
        return

    st.dataframe(appointments_frame(items), use_container_width=True, hide_index=True)

    failed = [i for i in items if i.status == AppointmentStatus.FAILED]
    if failed:
        st.caption(f"{len(failed)} appointment(s) failed and will be retried when you reconnect or sync")


def render_appointment_form(service: MigrantDataService, hospitals: Optional[dict] = None):
    """
    Booking form. The request is stored locally first and submitted
    right away when the connection allows.

    Args:
        hospitals: Mapping of hospital id -> display name
    """
    hospitals = hospitals or {}

    with st.form("appointment_form", clear_on_submit=True):
        if hospitals:
            hospital_id = st.selectbox(
                "Hospital",
                options=list(hospitals.keys()),
                format_func=lambda h: hospitals[h],
            )
        else:
            hospital_id = st.text_input("Hospital ID")

        name = st.text_input("Full name")
        phone = st.text_input("Phone")
        col1, col2 = st.columns(2)
        with col1:
            date = st.date_input("Date")
        with col2:
            time = st.time_input("Time")
        reason = st.text_area("Reason for visit")

        submitted = st.form_submit_button("Request appointment", type="primary")

    if not submitted:
        return

    if not hospital_id or not name:
        st.error("Hospital and name are required")
        return

    with ErrorContext("Appointment request") as ctx:
        item = service.submit_appointment({
            "hospital_id": hospital_id,
            "hospital_name": hospitals.get(hospital_id, ""),
            "name": name,
            "phone": phone,
            "date": date.isoformat(),
            "time": time.strftime("%H:%M"),
            "reason": reason,
        })

    if ctx.failed:
        return

    if item.status == AppointmentStatus.CONFIRMED:
        st.success("✅ Appointment request sent")
    elif item.status == AppointmentStatus.FAILED:
        st.warning(f"Saved on this device; sending failed ({item.error_message}). It will be retried.")
    else:
        st.info("📥 Saved offline. It will be sent when you're back online.")


@error_boundary(error_message="Could not load prescriptions")
def render_prescriptions(service: MigrantDataService, user_id: str):
    """Live fetch with a cached fallback"""
    cached = service.get_cached_prescriptions()

    if st.button("Fetch latest prescriptions", key="fetch_prescriptions_btn"):
        with ErrorContext("Fetch prescriptions"):
            with st.spinner("Choosing the best channel..."):
                result = service.fetch_prescriptions(user_id)
            st.session_state["prescriptions_result"] = result.to_dict()
            if result.is_degraded:
                st.info("📱 Fetched via SMS. Showing limited data.")

    live = st.session_state.get("prescriptions_result")
    if live is not None:
        st.caption(f"Source: {live['source'].upper()} · {live['timestamp']}")
        st.json(live["data"], expanded=False)
    elif cached is not None:
        st.caption(f"Cached from last sync · {cached.get('lastUpdated', '')}")
        _render_prescription_table(cached.get("data"))
    else:
        st.info("No prescriptions synced yet")


def _render_prescription_table(data):
    rows = data
    if isinstance(data, dict):
        rows = data.get("data") or data.get("prescriptions") or []
    if rows:
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
    else:
        st.info("No prescriptions on record")
