import logging

import streamlit as st
from dotenv import load_dotenv

from utils.order_sync import TransitionAction
from utils.session import (
    end_session,
    get_display_timezone,
    get_order_sync_service,
    get_worker_identity,
    run_async,
)
from utils.ui_components import (
    render_action_result,
    render_assignment_diagnostics,
    render_header,
    render_location_summary,
    render_order_card,
    render_order_items,
    render_sync_status,
)

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)

# Set page configuration
st.set_page_config(
    page_title="📦 Order Preparation",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Initialize session state
if "last_action_result" not in st.session_state:
    st.session_state.last_action_result = None
if "initial_sync_done" not in st.session_state:
    st.session_state.initial_sync_done = False
if "confirm_action" not in st.session_state:
    st.session_state.confirm_action = None

CONFIRMATION_MESSAGES = {
    TransitionAction.MOVE_TO_UNDER_REVIEW: "The order moves to \"under review\" and leaves your list. Continue?",
    TransitionAction.MOVE_TO_RESERVATION: "The order moves to \"under review - reservation\" and leaves your list. Continue?",
    TransitionAction.COMPLETE: "The order is finished and you get the next available order. Make sure every step is done.",
}


def run_transition(service, action: TransitionAction):
    with st.spinner("Working..."):
        st.session_state.last_action_result = run_async(service.apply_transition(action))
    st.session_state.confirm_action = None
    st.rerun()


def render_sidebar(service):
    _, worker_name = get_worker_identity()
    with st.sidebar:
        st.subheader("⚙️ Session")
        if worker_name:
            st.caption(f"Worker: {worker_name}")

        service.state.auto_refresh_enabled = st.toggle(
            "Auto refresh",
            value=service.state.auto_refresh_enabled,
            help="Look for new orders every few seconds while your queue is empty",
        )

        if st.button("🔄 Refresh orders", use_container_width=True):
            with st.spinner("Refreshing orders..."):
                run_async(service.sync())
            st.rerun()

        if len(service.state.assignments) > 1:
            options = {assignment.id: f"#{assignment.display_reference}" for assignment in service.state.assignments}
            current_id = service.state.current_order.id if service.state.current_order else None
            selected_id = st.selectbox(
                "Assigned orders",
                list(options),
                index=list(options).index(current_id) if current_id in options else 0,
                format_func=lambda assignment_id: options[assignment_id],
            )
            if selected_id != current_id:
                run_async(service.select_order(selected_id))
                st.rerun()
            if st.button("⏭️ Skip order", use_container_width=True):
                run_async(service.skip_order())
                st.rerun()

        with st.expander("🩺 Assignment diagnostics"):
            if st.button("Load diagnostics", use_container_width=True):
                with st.spinner("Loading diagnostics..."):
                    run_async(service.load_diagnostics())
            if service.state.diagnostics_error:
                st.error(service.state.diagnostics_error)
            elif service.state.diagnostics is not None:
                render_assignment_diagnostics(service.state.diagnostics)

        if st.button("🚪 End session", use_container_width=True):
            end_session()
            st.session_state.initial_sync_done = False
            st.rerun()


def render_actions(service):
    """Render the transition buttons for the current order"""
    busy = service.state.pending_action is not None
    cols = st.columns(5)

    with cols[0]:
        if st.button("🛠️ Start preparation", disabled=busy, use_container_width=True):
            run_transition(service, TransitionAction.START_PREPARATION)
    with cols[1]:
        if st.button("🔍 Under review", disabled=busy, use_container_width=True):
            st.session_state.confirm_action = TransitionAction.MOVE_TO_UNDER_REVIEW
    with cols[2]:
        if st.button("🔒 Reservation", disabled=busy, use_container_width=True):
            st.session_state.confirm_action = TransitionAction.MOVE_TO_RESERVATION
    with cols[3]:
        if st.button("✅ Complete", disabled=busy, use_container_width=True, type="primary"):
            st.session_state.confirm_action = TransitionAction.COMPLETE
    with cols[4]:
        if st.button("♻️ Refresh items", disabled=busy, use_container_width=True):
            run_transition(service, TransitionAction.REFRESH_ITEMS)

    confirm_action = st.session_state.confirm_action
    if confirm_action is not None:
        st.warning(CONFIRMATION_MESSAGES[confirm_action])
        confirm_cols = st.columns(2)
        with confirm_cols[0]:
            if st.button("Confirm", type="primary", use_container_width=True):
                run_transition(service, confirm_action)
        with confirm_cols[1]:
            if st.button("Cancel", use_container_width=True):
                st.session_state.confirm_action = None
                st.rerun()


def main():
    """Order preparation page for a warehouse worker"""
    _, worker_name = get_worker_identity()
    render_header(worker_name)

    service = get_order_sync_service()
    if service is None:
        return

    timezone_name = get_display_timezone()

    # Every worker gets the oldest unassigned order when opening the page
    if not st.session_state.initial_sync_done:
        with st.spinner("Loading your orders..."):
            run_async(service.sync(auto_assign_if_empty=True))
        st.session_state.initial_sync_done = True

    render_sidebar(service)

    @st.fragment(run_every=service.auto_refresh_interval.total_seconds())
    def poll_for_orders():
        if service.auto_refresh_due():
            logger.info("Auto-refreshing orders...")
            result = run_async(service.auto_refresh())
            if result.assignments_count:
                st.rerun()

    poll_for_orders()

    render_sync_status(service.state, timezone_name)
    render_action_result(st.session_state.last_action_result)

    current_order = service.state.current_order
    if current_order is None:
        st.info("No orders assigned right now. New orders are picked up automatically.")
        return

    render_order_card(current_order, timezone_name)
    render_actions(service)

    st.divider()
    render_location_summary(
        service.location_summary,
        loading=service.state.loading_locations,
        error=service.state.location_error,
    )

    st.markdown("#### 🧾 Items")
    render_order_items(current_order, service)


if __name__ == "__main__":
    main()
