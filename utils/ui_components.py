import logging
from datetime import datetime
from typing import List, Optional

import pandas as pd
import pytz
import streamlit as st

from constants.order_statuses import (
    ASSIGNMENT_STATUS_LABELS,
    DEFAULT_DISPLAY_TIMEZONE,
    UNREGISTERED_LOCATION_LABEL,
)
from constants.schemas import (
    ActionResult,
    Assignment,
    AssignmentDiagnostics,
    HistoryEntry,
    HistoryStats,
    LocationGroup,
)
from utils.location_summary import location_summary_to_dataframe
from utils.sku_matching import get_string_value, normalize_sku

logger = logging.getLogger(__name__)


def format_timestamp(value: Optional[datetime], timezone_name: str = DEFAULT_DISPLAY_TIMEZONE) -> str:
    """Format a timestamp in the warehouse timezone"""
    if value is None:
        return "-"
    tz = pytz.timezone(timezone_name)
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")


def render_header(worker_name: Optional[str] = None):
    """Render the application header"""
    st.title("📦 Order Preparation")
    if worker_name:
        st.caption(f"Signed in as **{worker_name}**")


def render_action_result(result: Optional[ActionResult]):
    """Show the outcome of the last action"""
    if result is None:
        return
    if result.success:
        st.success(result.message or "Done")
    else:
        error = result.message or result.error or "Action failed"
        if result.details and result.details not in error:
            error = f"{error}\n\nDetails: {result.details}"
        st.error(error)


def render_sync_status(state, timezone_name: str = DEFAULT_DISPLAY_TIMEZONE):
    """Render assignment count, last refresh time and the latest sync message"""
    cols = st.columns(3)
    with cols[0]:
        st.metric("📋 Active orders", len(state.assignments))
    with cols[1]:
        st.metric("🕒 Last refresh", format_timestamp(state.last_refresh, timezone_name))
    with cols[2]:
        st.metric("🔄 Sync", state.phase.value)

    if state.status_message:
        if state.status_message.startswith("❌"):
            st.error(state.status_message)
        else:
            st.info(state.status_message)


def render_order_card(assignment: Assignment, timezone_name: str = DEFAULT_DISPLAY_TIMEZONE):
    """Render the current order: reference, status, customer, flags and notes"""
    status_label = ASSIGNMENT_STATUS_LABELS.get(assignment.status, assignment.status)
    st.subheader(f"Order #{assignment.display_reference}")

    cols = st.columns(3)
    with cols[0]:
        st.metric("Status", status_label)
    with cols[1]:
        st.metric("Items", f"{assignment.items_count:g}")
    with cols[2]:
        st.metric("Assigned", format_timestamp(assignment.assigned_at, timezone_name))

    customer_name = assignment.order_data.customer_name
    if customer_name:
        st.markdown(f"**Customer:** {customer_name}")

    priority = assignment.priority
    if priority:
        marked = ""
        if priority.marked_by:
            marked = f" - marked by {priority.marked_by} at {format_timestamp(priority.marked_at, timezone_name)}"
        st.warning(f"⚡ High priority: {priority.reason or 'no reason given'}{marked}")
        if priority.notes:
            st.caption(priority.notes)

    gift_flag = assignment.gift_flag
    if gift_flag:
        st.info(f"🎁 Gift order: {gift_flag.reason or 'no reason given'}")
        if gift_flag.notes:
            st.caption(gift_flag.notes)

    tags = [get_string_value(tag) for tag in assignment.order_data.tags]
    tags = [tag for tag in tags if tag]
    if tags:
        st.markdown(" ".join(f"`{tag}`" for tag in tags))

    notes = get_string_value(assignment.order_data.notes)
    if notes:
        st.markdown(f"**Notes:** {notes}")


def render_order_items(assignment: Assignment, service):
    """Render the line items with their resolved storage locations"""
    rows = []
    for item in assignment.items:
        normalized_sku = normalize_sku(item.sku)
        location = service.get_location_for_sku(normalized_sku) if normalized_sku else None
        rows.append(
            {
                "SKU": normalized_sku or get_string_value(item.sku),
                "Name": item.display_name or normalized_sku,
                "Quantity": item.quantity_value,
                "Location": location.location if location else UNREGISTERED_LOCATION_LABEL,
                "Location Notes": (location.notes or "") if location else "",
            }
        )

    if not rows:
        st.info("This order has no line items")
        return

    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def render_location_summary(groups: List[LocationGroup], loading: bool = False, error: Optional[str] = None):
    """Render the pick list grouped by warehouse location"""
    st.markdown("#### 🗺️ Pick list by location")

    if loading:
        st.caption("Loading product locations...")
        return
    if error:
        st.error(f"Failed to load product locations: {error}")
    if not groups:
        st.caption("No items to pick")
        return

    for group in groups:
        st.markdown(f"**{group.location_label}** - {group.total_quantity:g} piece(s)")

    st.dataframe(location_summary_to_dataframe(groups), use_container_width=True, hide_index=True)


def render_history_table(history: List[HistoryEntry], timezone_name: str = DEFAULT_DISPLAY_TIMEZONE):
    """Render the worker's recent distinct orders"""
    if not history:
        st.info("No finished orders yet")
        return

    df = pd.DataFrame(
        [
            {
                "Order": entry.order_number or entry.order_id,
                "Status": ASSIGNMENT_STATUS_LABELS.get(entry.status, entry.status),
                "Finished": format_timestamp(entry.finished_at, timezone_name),
                "Duration (min)": entry.duration_minutes,
            }
            for entry in history
        ]
    )
    st.dataframe(df, use_container_width=True, hide_index=True)


def render_history_stats(stats: Optional[HistoryStats]):
    if stats is None:
        return
    cols = st.columns(5)
    cols[0].metric("Total", stats.total)
    cols[1].metric("Completed", stats.completed)
    cols[2].metric("Cancelled", stats.cancelled)
    cols[3].metric("Removed", stats.removed)
    cols[4].metric("Avg. duration (min)", f"{stats.average_duration:g}")


def render_assignment_diagnostics(diagnostics: AssignmentDiagnostics):
    """Render the auto-assignment diagnostics for the signed-in worker"""
    st.markdown(
        f"**Order type:** {diagnostics.user.order_type or '-'}  \n"
        f"**Wanted status:** {diagnostics.status_config.status_name} ({diagnostics.status_config.status_slug})  \n"
        f"**Status id:** {diagnostics.status_config.status_id or '-'}"
    )

    counts = diagnostics.orders_in_salla
    cols = st.columns(4)
    cols[0].metric("In Salla", counts.total)
    cols[1].metric("After payment filter", counts.after_payment_filter)
    cols[2].metric("Available", counts.available)
    cols[3].metric("Already assigned", counts.already_assigned)

    st.caption(
        f"Your active orders: {diagnostics.assignments.user_active_assignments} - "
        f"can take a new order: {'yes' if diagnostics.assignments.can_assign_more else 'no'}"
    )

    if diagnostics.sample_orders:
        st.dataframe(pd.DataFrame(diagnostics.sample_orders), use_container_width=True, hide_index=True)

    st.info(diagnostics.hint)
