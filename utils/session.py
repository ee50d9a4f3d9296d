"""
Streamlit session wiring for the order-prep pages.

Streamlit reruns page scripts synchronously, so each session keeps one event
loop and one OrderSyncService and drives the service's coroutines on that loop.
"""

import asyncio
import logging
import os

import streamlit as st
from dotenv import load_dotenv

from constants.order_statuses import (
    DEFAULT_AUTO_REFRESH_SECONDS,
    DEFAULT_DISPLAY_TIMEZONE,
    DEFAULT_HISTORY_LIMIT,
)
from utils.order_assignments_api import OrderAssignmentsAPI
from utils.order_sync import OrderSyncService

logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()


def get_worker_identity():
    """Worker id and display name of this dashboard session"""
    return os.getenv("ORDER_PREP_USER_ID"), os.getenv("ORDER_PREP_USER_NAME", "")


def get_display_timezone() -> str:
    return os.getenv("ORDER_PREP_TIMEZONE", DEFAULT_DISPLAY_TIMEZONE)


def run_async(coro):
    """Run a coroutine on the session's event loop"""
    if "event_loop" not in st.session_state or st.session_state.event_loop.is_closed():
        st.session_state.event_loop = asyncio.new_event_loop()
    return st.session_state.event_loop.run_until_complete(coro)


def get_order_sync_service():
    """
    Return the session's OrderSyncService, creating it on first use.

    Returns:
        OrderSyncService or None when the worker or API is not configured
    """
    if st.session_state.get("order_sync_service") is not None:
        return st.session_state.order_sync_service

    worker_id, _ = get_worker_identity()
    if not worker_id:
        st.error("ORDER_PREP_USER_ID not found in environment variables")
        return None

    try:
        api = OrderAssignmentsAPI()
    except ValueError as e:
        logger.error(f"Order prep API is not configured: {str(e)}")
        st.error(str(e))
        return None

    service = OrderSyncService(
        api,
        worker_id,
        history_limit=int(os.getenv("ORDER_PREP_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT)),
        auto_refresh_seconds=int(os.getenv("ORDER_PREP_AUTO_REFRESH_SECONDS", DEFAULT_AUTO_REFRESH_SECONDS)),
    )
    st.session_state.order_sync_service = service
    logger.info(f"🌟 Order prep session started for worker {worker_id}")
    return service


def end_session():
    """Drop the session's service and close its loop (logout)"""
    st.session_state.order_sync_service = None
    loop = st.session_state.get("event_loop")
    if loop is not None and not loop.is_closed():
        loop.close()
    st.session_state.event_loop = None
