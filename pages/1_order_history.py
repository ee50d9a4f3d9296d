import logging

import streamlit as st

from utils.session import get_display_timezone, get_order_sync_service, run_async
from utils.ui_components import render_action_result, render_history_stats, render_history_table

logger = logging.getLogger(__name__)

st.set_page_config(page_title="🕘 Order History", layout="wide")

st.title("🕘 Recent Orders")
st.caption("Your most recent finished orders. Reopen one to bring it back to your preparation screen.")


def main():
    service = get_order_sync_service()
    if service is None:
        return

    timezone_name = get_display_timezone()

    if st.button("🔄 Reload history") or "history_loaded" not in st.session_state:
        with st.spinner("Loading history..."):
            result = run_async(service.load_history())
        st.session_state.history_loaded = True
        if not result.success:
            st.error(result.error)

    render_history_stats(service.state.history_stats)
    render_history_table(service.state.history, timezone_name)

    if not service.state.history:
        return

    st.markdown("#### ↩️ Reopen an order")
    options = [entry.order_number or entry.order_id for entry in service.state.history]
    order_number = st.selectbox("Order number", options)

    if st.button("Reopen order", type="primary", disabled=service.state.pending_action is not None):
        with st.spinner(f"Reopening order {order_number}..."):
            result = run_async(service.reopen_order(order_number))
        st.session_state.last_action_result = result
        render_action_result(result)
        if result.success:
            st.page_link("app.py", label="Go to the preparation screen", icon="📦")


if __name__ == "__main__":
    main()
