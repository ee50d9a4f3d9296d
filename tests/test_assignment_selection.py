#!/usr/bin/env python3
"""
Unit tests for assignment ordering, current-order selection and history dedup.
"""

import os
import sys
import unittest
from datetime import datetime, timedelta, timezone

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import Assignment, HistoryEntry
from utils.assignment_selection import dedupe_history, pick_next_current_order, sort_assignments

BASE_TIME = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)


def make_assignment(assignment_id, minutes=0, high_priority=False, order_number=None):
    return Assignment(
        id=assignment_id,
        orderId=f"order-{assignment_id}",
        orderNumber=order_number or f"10{assignment_id}",
        assignedAt=(BASE_TIME + timedelta(minutes=minutes)).isoformat(),
        isHighPriority=high_priority,
        orderData={'items': []},
    )


class TestSortAssignments(unittest.TestCase):

    def test_priority_then_oldest_first(self):
        normal_late = make_assignment('a', minutes=2)
        priority = make_assignment('b', minutes=5, high_priority=True)
        normal_early = make_assignment('c', minutes=1)

        result = sort_assignments([normal_late, priority, normal_early])

        self.assertEqual([a.id for a in result], ['b', 'c', 'a'])

    def test_stable_for_equal_keys(self):
        first = make_assignment('first', minutes=3)
        second = make_assignment('second', minutes=3)
        self.assertEqual([a.id for a in sort_assignments([first, second])], ['first', 'second'])
        self.assertEqual([a.id for a in sort_assignments([second, first])], ['second', 'first'])

    def test_missing_assigned_at_sorts_first(self):
        undated = Assignment(id='x', orderId='1', orderNumber='1')
        dated = make_assignment('y', minutes=1)
        self.assertEqual([a.id for a in sort_assignments([dated, undated])], ['x', 'y'])

    def test_does_not_mutate_input(self):
        items = [make_assignment('a', minutes=2), make_assignment('b', minutes=1)]
        sort_assignments(items)
        self.assertEqual([a.id for a in items], ['a', 'b'])


class TestPickNextCurrentOrder(unittest.TestCase):

    def setUp(self):
        self.assignments = sort_assignments([
            make_assignment('a', minutes=1),
            make_assignment('b', minutes=2),
            make_assignment('c', minutes=3, order_number='5005'),
        ])

    def test_empty_list(self):
        self.assertIsNone(pick_next_current_order([], self.assignments[0]))

    def test_first_when_nothing_selected(self):
        self.assertEqual(pick_next_current_order(self.assignments, None).id, 'a')

    def test_previous_selection_preserved(self):
        previous = make_assignment('b', minutes=2)
        self.assertEqual(pick_next_current_order(self.assignments, previous).id, 'b')

    def test_preserved_regardless_of_position(self):
        reordered = sort_assignments([
            make_assignment('b', minutes=9),
            make_assignment('a', minutes=1, high_priority=True),
        ])
        self.assertEqual(pick_next_current_order(reordered, make_assignment('b')).id, 'b')

    def test_falls_back_to_first_when_previous_gone(self):
        previous = make_assignment('gone')
        self.assertEqual(pick_next_current_order(self.assignments, previous).id, 'a')

    def test_preferred_order_number_wins(self):
        previous = make_assignment('b')
        self.assertEqual(pick_next_current_order(self.assignments, previous, '5005').id, 'c')
        self.assertEqual(pick_next_current_order(self.assignments, previous, 'c').id, 'c')

    def test_unknown_preferred_order_is_ignored(self):
        previous = make_assignment('b')
        self.assertEqual(pick_next_current_order(self.assignments, previous, '9999').id, 'b')
        self.assertEqual(pick_next_current_order(self.assignments, previous, '  ').id, 'b')


class TestDedupeHistory(unittest.TestCase):

    def _history(self):
        entries = []
        for index in range(12):
            entries.append(HistoryEntry(orderId=f"o{index}", orderNumber=f"n{index}"))
        # Three repeats of already seen orders
        entries.insert(2, HistoryEntry(orderId='o0', orderNumber='n0'))
        entries.insert(5, HistoryEntry(orderId='o1', orderNumber='n1'))
        entries.insert(9, HistoryEntry(orderId='o3', orderNumber='n3'))
        return entries

    def test_cap_and_first_seen_order(self):
        history = self._history()
        self.assertEqual(len(history), 15)

        result = dedupe_history(history, 10)

        self.assertEqual(len(result), 10)
        self.assertEqual([entry.order_id for entry in result], [f"o{index}" for index in range(10)])

    def test_fewer_unique_than_limit(self):
        history = self._history()
        result = dedupe_history(history, 50)
        self.assertEqual(len(result), 12)

    def test_order_number_used_when_order_id_missing(self):
        history = [
            HistoryEntry(orderNumber='n1'),
            HistoryEntry(orderNumber='n1'),
            HistoryEntry(orderId='o2'),
            HistoryEntry(),
        ]
        result = dedupe_history(history, 10)
        self.assertEqual([(e.order_id, e.order_number) for e in result], [(None, 'n1'), ('o2', None)])

    def test_non_positive_limit(self):
        self.assertEqual(dedupe_history(self._history(), 0), [])


if __name__ == '__main__':
    unittest.main()
