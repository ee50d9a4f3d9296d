#!/usr/bin/env python3
"""
Unit tests for payload models: history totals, diagnostics hints, model configuration.
"""

import inspect
import os
import sys
import unittest

from pydantic import BaseModel

# Add the parent directory to the path to access constants
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants import schemas
from constants.order_statuses import ASSIGNMENT_STATUS_LABELS
from constants.schemas import AssignmentDiagnostics, HistoryEntry, HistoryResult, HistoryStats


class TestHistoryStats(unittest.TestCase):

    def test_from_entries(self):
        entries = [
            HistoryEntry(orderId='1', status='completed', durationMinutes=7),
            HistoryEntry(orderId='2', status='completed', durationMinutes=8),
            HistoryEntry(orderId='3', status='removed'),
        ]
        stats = HistoryStats.from_entries(entries)
        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.completed, 2)
        self.assertEqual(stats.cancelled, 0)
        self.assertEqual(stats.removed, 1)
        self.assertEqual(stats.average_duration, 5)

    def test_empty_history(self):
        stats = HistoryStats.from_entries([])
        self.assertEqual(stats.total, 0)
        self.assertEqual(stats.average_duration, 0)

    def test_server_stats_parsed(self):
        result = HistoryResult(
            success=True,
            history=[],
            stats={'total': 3, 'completed': 2, 'cancelled': 1, 'removed': 0,
                   'totalDuration': 30, 'averageDuration': 10},
        )
        self.assertEqual(result.stats.total_duration, 30)
        self.assertEqual(result.stats.average_duration, 10)


class TestAssignmentDiagnosticsHint(unittest.TestCase):

    def _diagnostics(self, total, available, can_assign_more):
        return AssignmentDiagnostics(
            statusConfig={'statusName': 'Under review'},
            ordersInSalla={'total': total, 'available': available},
            assignments={'canAssignMore': can_assign_more},
        )

    def test_no_orders_in_store(self):
        self.assertIn('Under review', self._diagnostics(0, 0, True).hint)
        self.assertTrue(self._diagnostics(0, 0, True).hint.startswith('❌'))

    def test_all_orders_taken(self):
        self.assertIn('already assigned', self._diagnostics(5, 0, True).hint)

    def test_worker_still_busy(self):
        self.assertIn('active order', self._diagnostics(5, 2, False).hint)

    def test_worker_can_take_order(self):
        self.assertTrue(self._diagnostics(5, 2, True).hint.startswith('✅ 2 order(s)'))


class TestModelConfiguration(unittest.TestCase):

    def test_history_statuses_have_labels(self):
        for status in ('completed', 'cancelled', 'removed'):
            self.assertIn(status, ASSIGNMENT_STATUS_LABELS)

    def test_models_use_config_dict(self):
        models = [
            model for _, model in inspect.getmembers(schemas, inspect.isclass)
            if issubclass(model, BaseModel) and model is not BaseModel and model.__module__ == schemas.__name__
        ]
        self.assertTrue(models)
        for model in models:
            self.assertNotIn('Config', vars(model), model.__name__)


if __name__ == '__main__':
    unittest.main()
