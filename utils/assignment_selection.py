from datetime import datetime
from typing import List, Optional

from constants.order_statuses import DEFAULT_HISTORY_LIMIT
from constants.schemas import Assignment, HistoryEntry


def _assigned_timestamp(assignment: Assignment) -> float:
    if assignment.assigned_at is None:
        return 0.0
    if isinstance(assignment.assigned_at, datetime):
        return assignment.assigned_at.timestamp()
    return 0.0


def sort_assignments(assignments: List[Assignment]) -> List[Assignment]:
    """High priority first, then oldest assignment first (FIFO within a tier)"""
    return sorted(
        assignments,
        key=lambda assignment: (not assignment.is_high_priority, _assigned_timestamp(assignment)),
    )


def pick_next_current_order(
    sorted_assignments: List[Assignment],
    previous_current: Optional[Assignment],
    preferred_order_number: Optional[str] = None,
) -> Optional[Assignment]:
    """
    Choose which assignment is shown after a refresh.

    Args:
        sorted_assignments: Output of sort_assignments
        previous_current: Assignment shown before the refresh, if any
        preferred_order_number: Order number or id that must win when present
            (deep link, reopened order)

    Returns:
        Optional[Assignment]: The assignment to display, None when the list is empty
    """
    if not sorted_assignments:
        return None

    preferred = str(preferred_order_number).strip() if preferred_order_number else ""
    if preferred:
        for assignment in sorted_assignments:
            if preferred in (assignment.order_number, assignment.id, assignment.order_id):
                return assignment

    if previous_current is None:
        return sorted_assignments[0]

    for assignment in sorted_assignments:
        if assignment.id == previous_current.id:
            return assignment

    return sorted_assignments[0]


def dedupe_history(history: List[HistoryEntry], limit: int = DEFAULT_HISTORY_LIMIT) -> List[HistoryEntry]:
    """Distinct orders from the server history, in server order, at most `limit`"""
    if limit <= 0:
        return []

    seen = set()
    unique_entries = []
    for entry in history:
        key = entry.order_id or entry.order_number
        if not key or key in seen:
            continue
        seen.add(key)
        unique_entries.append(entry)
        if len(unique_entries) >= limit:
            break

    return unique_entries
