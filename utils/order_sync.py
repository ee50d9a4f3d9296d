"""
Order preparation sync and transition workflow.

OrderSyncService owns the worker's assignment list, the order currently on
screen and the product-location map for that order. Every remote call goes
through OrderAssignmentsAPI; every public coroutine catches failures at its
own boundary and reports them as SyncResult / ActionResult messages.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import pytz

from constants.order_statuses import (
    DEFAULT_AUTO_REFRESH_SECONDS,
    DEFAULT_HISTORY_LIMIT,
    MAX_AUTO_COMPLETE_REFRESHES,
    SALLA_STATUS_UNDER_REVIEW,
    SALLA_STATUS_UNDER_REVIEW_RESERVATION,
    STATUS_PREPARING,
    STATUS_UNDER_REVIEW,
    STATUS_UNDER_REVIEW_RESERVATION,
)
from constants.schemas import (
    ActionResult,
    Assignment,
    AssignmentDiagnostics,
    AssignmentSnapshot,
    HistoryEntry,
    HistoryStats,
    LocationGroup,
    SyncResult,
)
from utils.assignment_selection import dedupe_history, pick_next_current_order, sort_assignments
from utils.location_summary import build_location_summary
from utils.sku_matching import build_location_map, collect_order_sku_variants, get_location_for_sku

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    FETCHING = "fetching"
    AUTO_ASSIGNING = "auto_assigning"
    REFETCHING = "refetching"
    SETTLED = "settled"


class TransitionAction(str, Enum):
    START_PREPARATION = "start_preparation"
    MOVE_TO_UNDER_REVIEW = "move_to_under_review"
    MOVE_TO_RESERVATION = "move_to_reservation"
    COMPLETE = "complete"
    REFRESH_ITEMS = "refresh_items"


class OrderPrepState:
    """In-memory state of one worker session"""

    def __init__(self):
        self.assignments: List[Assignment] = []
        self.current_order: Optional[Assignment] = None
        self.phase = SyncPhase.IDLE
        self.last_refresh: Optional[datetime] = None
        self.status_message: Optional[str] = None
        self.pending_action: Optional[str] = None
        self.auto_refresh_enabled = True

        # Product locations for the current order
        self.location_map: Dict[str, Any] = {}
        self.location_skus: List[str] = []
        self.loading_locations = False
        self.location_error: Optional[str] = None

        self.history: List[HistoryEntry] = []
        self.history_stats: Optional[HistoryStats] = None
        self.history_error: Optional[str] = None

        self.diagnostics: Optional[AssignmentDiagnostics] = None
        self.diagnostics_error: Optional[str] = None


class OrderSyncService:
    """
    Keeps a worker's order-prep screen in step with the assignment API.

    A sync cycle validates stale assignments, fetches the worker's snapshot,
    auto-assigns a new order when the queue is empty and re-runs itself a
    bounded number of times when orders were completed elsewhere.
    """

    def __init__(self, api, worker_id: str, state: Optional[OrderPrepState] = None,
                 history_limit: int = DEFAULT_HISTORY_LIMIT,
                 auto_refresh_seconds: int = DEFAULT_AUTO_REFRESH_SECONDS):
        """
        Args:
            api: OrderAssignmentsAPI (or any object with the same coroutines)
            worker_id: Order-prep user id
            state: Existing session state to continue from
            history_limit: Number of distinct orders kept in the history view
            auto_refresh_seconds: Interval of the background refresh
        """
        self.api = api
        self.worker_id = worker_id
        self.state = state or OrderPrepState()
        self.history_limit = history_limit
        self.auto_refresh_interval = timedelta(seconds=auto_refresh_seconds)
        # Created on first sync so it belongs to the loop that runs the service
        self._sync_lock: Optional[asyncio.Lock] = None
        self._location_request_id = 0

    # --- Sync cycle ---

    async def sync(self, auto_assign_if_empty: bool = False,
                   preferred_order_number: Optional[str] = None) -> SyncResult:
        """
        Run one sync cycle and commit its result.

        Cycles are serialized: a caller arriving while a cycle is running
        waits for it and then runs its own.

        Args:
            auto_assign_if_empty: Ask for a new order when the worker has none
            preferred_order_number: Order to show if it is in the new snapshot

        Returns:
            SyncResult: Outcome and user-facing message
        """
        if self._sync_lock is None:
            self._sync_lock = asyncio.Lock()

        async with self._sync_lock:
            try:
                return await self._run_sync_cycle(auto_assign_if_empty, preferred_order_number)
            except Exception as e:
                logger.exception(f"❌ Sync failed for worker {self.worker_id}: {str(e)}")
                self.state.phase = SyncPhase.IDLE
                message = f"❌ Connection error: {str(e) or type(e).__name__}"
                self.state.status_message = message
                return SyncResult(
                    success=False,
                    message=message,
                    assignments_count=len(self.state.assignments),
                )

    async def _run_sync_cycle(self, auto_assign_if_empty: bool,
                              preferred_order_number: Optional[str]) -> SyncResult:
        auto_assign = auto_assign_if_empty
        conflict_refreshes = 0
        auto_assigned = 0
        message = None
        snapshot = AssignmentSnapshot()

        for _ in range(MAX_AUTO_COMPLETE_REFRESHES + 1):
            await self._validate_assignments()

            self.state.phase = SyncPhase.FETCHING
            snapshot = await self.api.fetch_snapshot(self.worker_id)

            if not snapshot.assignments and auto_assign:
                self.state.phase = SyncPhase.AUTO_ASSIGNING
                logger.info(f"🔄 No orders for worker {self.worker_id} - requesting auto-assignment")
                result = await self.api.auto_assign(self.worker_id)

                if result.assigned > 0:
                    auto_assigned += result.assigned
                    message = f"✅ {result.assigned} new order(s) assigned"
                    self.state.phase = SyncPhase.REFETCHING
                    snapshot = await self.api.fetch_snapshot(self.worker_id)
                else:
                    message = f"ℹ️ {result.message or 'No new orders available'}"

            # Orders completed elsewhere (label printed, etc.) left the queue empty
            if (
                snapshot.auto_completed_assignments
                and not snapshot.assignments
                and not auto_assign_if_empty
                and conflict_refreshes < MAX_AUTO_COMPLETE_REFRESHES
            ):
                conflict_refreshes += 1
                auto_assign = True
                logger.info(
                    f"🔄 {len(snapshot.auto_completed_assignments)} order(s) auto-completed - "
                    f"re-syncing with auto-assign (attempt {conflict_refreshes}/{MAX_AUTO_COMPLETE_REFRESHES})"
                )
                continue
            break

        if conflict_refreshes >= MAX_AUTO_COMPLETE_REFRESHES and not snapshot.assignments:
            logger.warning(
                f"Auto-completion refresh limit reached for worker {self.worker_id} - settling on empty queue"
            )

        self._commit_snapshot(snapshot, preferred_order_number, message)
        await self._refresh_locations_if_needed()

        return SyncResult(
            success=True,
            message=message,
            assignments_count=len(self.state.assignments),
            auto_assigned=auto_assigned,
            conflict_refreshes=conflict_refreshes,
        )

    async def _validate_assignments(self) -> None:
        self.state.phase = SyncPhase.VALIDATING
        try:
            await self.api.validate(self.worker_id)
        except Exception as e:
            logger.warning(f"Assignment validation failed for worker {self.worker_id}: {str(e)}")

    def _commit_snapshot(self, snapshot: AssignmentSnapshot, preferred_order_number: Optional[str],
                         message: Optional[str]) -> None:
        sorted_assignments = sort_assignments(snapshot.assignments)
        previous_current = self.state.current_order

        self.state.assignments = sorted_assignments
        self.state.current_order = pick_next_current_order(
            sorted_assignments, previous_current, preferred_order_number
        )
        self.state.last_refresh = datetime.now(pytz.utc)
        self.state.status_message = message
        self.state.phase = SyncPhase.SETTLED

        logger.info(
            f"✅ Synced {len(sorted_assignments)} assignment(s) for worker {self.worker_id}, "
            f"current order: {self.state.current_order.display_reference if self.state.current_order else None}"
        )

    # --- Selection ---

    async def select_order(self, assignment_id: str) -> bool:
        """Show a specific assignment from the current list"""
        for assignment in self.state.assignments:
            if assignment.id == assignment_id:
                self.state.current_order = assignment
                await self._refresh_locations_if_needed()
                return True
        return False

    async def skip_order(self) -> Optional[Assignment]:
        """Move to the next assignment that is not the one on screen"""
        current_id = self.state.current_order.id if self.state.current_order else None
        next_order = next(
            (assignment for assignment in self.state.assignments if assignment.id != current_id), None
        )
        self.state.current_order = next_order
        await self._refresh_locations_if_needed()
        return next_order

    # --- Product locations ---

    def current_order_skus(self) -> List[str]:
        if self.state.current_order is None:
            return []
        return collect_order_sku_variants(self.state.current_order.items)

    async def _refresh_locations_if_needed(self) -> None:
        if self.current_order_skus() != self.state.location_skus:
            await self.load_product_locations()

    async def load_product_locations(self) -> None:
        """
        Replace the location map with the locations of the current order's SKUs.

        A response is dropped when another load started after it or when the
        current order's SKU set changed while it was in flight.
        """
        skus = self.current_order_skus()
        self._location_request_id += 1
        request_id = self._location_request_id
        self.state.location_skus = skus

        if not skus:
            self.state.location_map = {}
            self.state.location_error = None
            self.state.loading_locations = False
            return

        self.state.location_map = {}
        self.state.loading_locations = True
        self.state.location_error = None

        try:
            result = await self.api.lookup_locations(skus)
        except Exception as e:
            logger.error(f"Failed to load product locations: {str(e)}")
            if request_id == self._location_request_id:
                self.state.location_map = {}
                self.state.location_error = str(e) or "Failed to load product locations"
                self.state.loading_locations = False
            return

        if request_id != self._location_request_id or skus != self.current_order_skus():
            logger.info("Discarding stale product locations response")
            return

        self.state.location_map = build_location_map(result.locations)
        self.state.loading_locations = False
        logger.info(f"Loaded {len(self.state.location_map)} product location(s) for {len(skus)} SKU variant(s)")

    def get_location_for_sku(self, sku: Any):
        return get_location_for_sku(sku, self.state.location_map)

    @property
    def location_summary(self) -> List[LocationGroup]:
        if self.state.loading_locations or self.state.current_order is None:
            return []
        return build_location_summary(self.state.current_order.items, self.state.location_map)

    # --- Transitions ---

    def _busy_result(self) -> Optional[ActionResult]:
        if self.state.pending_action:
            return ActionResult(
                success=False,
                error=f"⏳ {self.state.pending_action} is still in progress",
            )
        return None

    async def _run_action(self, action_name: str, handler) -> ActionResult:
        busy = self._busy_result()
        if busy:
            return busy

        self.state.pending_action = action_name
        try:
            return await handler()
        except Exception as e:
            logger.exception(f"❌ {action_name} failed: {str(e)}")
            return ActionResult(
                success=False,
                error=f"❌ {action_name} failed: {str(e) or type(e).__name__}",
                details=getattr(e, "details", None),
            )
        finally:
            self.state.pending_action = None

    def _require_current_order(self) -> Optional[ActionResult]:
        if self.state.current_order is None:
            return ActionResult(success=False, error="No order selected")
        return None

    async def start_preparation(self) -> ActionResult:
        invalid = self._require_current_order()
        if invalid:
            return invalid
        assignment = self.state.current_order

        async def handler():
            # The order is already "in progress" on Salla since assignment
            result = await self.api.update_status(assignment.id, STATUS_PREPARING, update_salla=False)
            if not result.success:
                return ActionResult(
                    success=False,
                    error=result.error or "Failed to start preparation",
                    details=result.details,
                )
            await self.sync()
            return ActionResult(success=True, message="🛠️ Preparation started")

        return await self._run_action(TransitionAction.START_PREPARATION.value, handler)

    async def move_to_under_review(self) -> ActionResult:
        return await self._hand_over(
            TransitionAction.MOVE_TO_UNDER_REVIEW, STATUS_UNDER_REVIEW, SALLA_STATUS_UNDER_REVIEW
        )

    async def move_to_reservation(self) -> ActionResult:
        return await self._hand_over(
            TransitionAction.MOVE_TO_RESERVATION,
            STATUS_UNDER_REVIEW_RESERVATION,
            SALLA_STATUS_UNDER_REVIEW_RESERVATION,
        )

    async def _hand_over(self, action: TransitionAction, status: str, salla_status: str) -> ActionResult:
        invalid = self._require_current_order()
        if invalid:
            return invalid
        assignment = self.state.current_order

        async def handler():
            update = await self.api.update_status(
                assignment.id, status, update_salla=True, salla_status=salla_status
            )
            if not update.success:
                # Never complete an order whose Salla status did not change
                logger.error(f"❌ Status update to {status} failed for {assignment.display_reference}: {update.error}")
                return ActionResult(
                    success=False,
                    error=update.error or "Failed to update order status",
                    details=update.details,
                )
            return await self._complete_assignment(assignment, "Failed to move to the next order")

        return await self._run_action(action.value, handler)

    async def complete_order(self) -> ActionResult:
        invalid = self._require_current_order()
        if invalid:
            return invalid
        assignment = self.state.current_order

        async def handler():
            return await self._complete_assignment(assignment, "Failed to complete order")

        return await self._run_action(TransitionAction.COMPLETE.value, handler)

    async def _complete_assignment(self, assignment: Assignment, failure_message: str) -> ActionResult:
        result = await self.api.complete_assignment(assignment.id)
        if not result.success:
            error = result.error or failure_message
            message = f"{error}\n\nDetails: {result.details}" if result.details else error
            logger.error(f"❌ Completing {assignment.display_reference} failed: {message}")
            return ActionResult(success=False, message=message, error=error, details=result.details)

        logger.info(f"✅ Completed order {assignment.display_reference}")
        self.state.current_order = None
        sync_result = await self.sync(auto_assign_if_empty=True)
        message = f"✅ Order {assignment.display_reference} completed"
        if sync_result.message:
            message = f"{message}\n{sync_result.message}"
        return ActionResult(success=True, message=message)

    async def reopen_order(self, order_number: str) -> ActionResult:
        """Bring a finished order back and make it the current order"""
        order_number = (order_number or "").strip()
        if not order_number:
            return ActionResult(success=False, error="Order number is required")

        async def handler():
            result = await self.api.reopen_assignment(order_number)
            if not result.success:
                return ActionResult(
                    success=False,
                    error=result.error or f"Failed to reopen order {order_number}",
                    details=result.details,
                )
            sync_result = await self.sync(preferred_order_number=order_number)
            if not sync_result.success:
                return ActionResult(success=False, error=sync_result.message)
            return ActionResult(success=True, message=f"✅ Order {order_number} reopened")

        return await self._run_action("reopen", handler)

    async def refresh_items(self) -> ActionResult:
        """Re-read the current order's line items from the store"""
        invalid = self._require_current_order()
        if invalid:
            return invalid
        assignment = self.state.current_order

        async def handler():
            result = await self.api.refresh_items(assignment.id)
            if not result.success:
                return ActionResult(
                    success=False,
                    error=result.error or "Failed to refresh items",
                    details=result.details,
                )
            await self.sync()
            return ActionResult(
                success=True,
                message=f"✅ Items refreshed - {result.items_count or 0} item(s)",
            )

        return await self._run_action(TransitionAction.REFRESH_ITEMS.value, handler)

    async def apply_transition(self, action: TransitionAction, assignment_id: Optional[str] = None) -> ActionResult:
        """Run a transition by name, optionally on a specific assignment"""
        # A rejected action must not switch the order on screen
        busy = self._busy_result()
        if busy:
            return busy
        if assignment_id is not None and not await self.select_order(assignment_id):
            return ActionResult(success=False, error=f"Assignment {assignment_id} is not in the current list")

        handlers = {
            TransitionAction.START_PREPARATION: self.start_preparation,
            TransitionAction.MOVE_TO_UNDER_REVIEW: self.move_to_under_review,
            TransitionAction.MOVE_TO_RESERVATION: self.move_to_reservation,
            TransitionAction.COMPLETE: self.complete_order,
            TransitionAction.REFRESH_ITEMS: self.refresh_items,
        }
        return await handlers[TransitionAction(action)]()

    # --- Auto refresh ---

    def auto_refresh_due(self, now: Optional[datetime] = None) -> bool:
        """Idle workers (no queue or nothing on screen) poll for new orders"""
        if not self.state.auto_refresh_enabled:
            return False
        if self.state.assignments and self.state.current_order is not None:
            return False
        if self.state.last_refresh is None:
            return True
        now = now or datetime.now(pytz.utc)
        return now - self.state.last_refresh >= self.auto_refresh_interval

    async def auto_refresh(self) -> SyncResult:
        return await self.sync(auto_assign_if_empty=True)

    # --- History ---

    async def load_history(self, limit: Optional[int] = None) -> ActionResult:
        limit = limit or self.history_limit
        try:
            result = await self.api.fetch_history(self.worker_id, limit)
        except Exception as e:
            logger.error(f"Failed to load order history: {str(e)}")
            self.state.history_error = str(e) or "Failed to load order history"
            return ActionResult(success=False, error=self.state.history_error)

        self.state.history = dedupe_history(result.history, limit)
        self.state.history_stats = result.stats or HistoryStats.from_entries(result.history)
        self.state.history_error = None
        return ActionResult(success=True, message=f"{len(self.state.history)} recent order(s)")

    # --- Diagnostics ---

    async def load_diagnostics(self) -> ActionResult:
        """Ask the server why new orders are (not) being assigned to this worker"""
        try:
            result = await self.api.fetch_debug(self.worker_id)
        except Exception as e:
            logger.error(f"Failed to load assignment diagnostics: {str(e)}")
            self.state.diagnostics = None
            self.state.diagnostics_error = str(e) or "Failed to load diagnostics"
            return ActionResult(success=False, error=self.state.diagnostics_error)

        self.state.diagnostics = result.debug
        self.state.diagnostics_error = None
        if result.debug is None:
            return ActionResult(success=True, message="No diagnostics returned")
        return ActionResult(success=True, message=result.debug.hint)
