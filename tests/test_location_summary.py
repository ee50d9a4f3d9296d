#!/usr/bin/env python3
"""
Unit tests for the pick-list location summary.
"""

import os
import sys
import unittest

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.order_statuses import NO_LOCATION_KEY, UNREGISTERED_LOCATION_LABEL
from constants.schemas import OrderData, ProductLocation
from utils.location_summary import build_location_summary, location_collation_key, location_summary_to_dataframe
from utils.sku_matching import build_location_map


class TestBuildLocationSummary(unittest.TestCase):
    """Grouping, totals and ordering of location buckets."""

    def setUp(self):
        self.location_map = build_location_map([
            ProductLocation(id='1', sku='X1', location='A-01'),
            ProductLocation(id='2', sku='SHOE-42', location='ب-02'),
            ProductLocation(id='3', sku='BAG-RED', location='أ-01'),
        ])

    def test_unresolved_items_go_to_last_bucket(self):
        items = [
            {'sku': 'Y2', 'name': 'Unknown', 'quantity': 1},
            {'sku': 'X1', 'name': 'Known', 'quantity': 2},
        ]
        groups = build_location_summary(items, self.location_map)

        self.assertEqual(len(groups), 2)
        self.assertEqual(groups[0].location_label, 'A-01')
        self.assertEqual(groups[0].items[0].sku, 'X1')
        self.assertEqual(groups[-1].key, NO_LOCATION_KEY)
        self.assertEqual(groups[-1].location_label, UNREGISTERED_LOCATION_LABEL)
        self.assertEqual(groups[-1].items[0].sku, 'Y2')

    def test_items_at_same_location_are_totalled(self):
        items = [
            {'sku': 'shoe-42', 'name': 'Shoe', 'quantity': 2},
            {'sku': 'SHOE-42', 'name': 'Shoe again', 'quantity': '3'},
        ]
        groups = build_location_summary(items, self.location_map)

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].total_quantity, 5)
        self.assertEqual(len(groups[0].items), 2)

    def test_items_without_sku_are_skipped(self):
        items = [{'sku': '', 'quantity': 4}, {'name': 'no sku'}, {'sku': 'X1', 'quantity': 1}]
        groups = build_location_summary(items, self.location_map)

        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].total_quantity, 1)

    def test_buckets_sorted_arabic_first(self):
        items = [
            {'sku': 'SHOE-42', 'quantity': 1},
            {'sku': 'NOPE-1', 'quantity': 1},
            {'sku': 'BAG-RED', 'quantity': 1},
            {'sku': 'X1', 'quantity': 1},
        ]
        groups = build_location_summary(items, self.location_map)

        self.assertEqual(
            [group.location_label for group in groups],
            ['أ-01', 'ب-02', 'A-01', UNREGISTERED_LOCATION_LABEL],
        )

    def test_latin_labels_compare_case_insensitively(self):
        location_map = build_location_map([
            ProductLocation(id='1', sku='AAA-1', location='C-01'),
            ProductLocation(id='2', sku='BBB-1', location='b-01'),
        ])
        items = [{'sku': 'AAA-1', 'quantity': 1}, {'sku': 'BBB-1', 'quantity': 1}]
        groups = build_location_summary(items, location_map)
        self.assertEqual([group.location_label for group in groups], ['b-01', 'C-01'])

    def test_name_falls_back_to_sku(self):
        groups = build_location_summary([{'sku': 'x1', 'quantity': 1}], self.location_map)
        self.assertEqual(groups[0].items[0].name, 'X1')

    def test_accepts_order_item_models(self):
        order_data = OrderData(items=[{'sku': 'X1', 'name': {'name': 'Cap'}, 'quantity': 2}])
        groups = build_location_summary(order_data.items, self.location_map)
        self.assertEqual(groups[0].items[0].name, 'Cap')
        self.assertEqual(groups[0].total_quantity, 2)

    def test_empty_location_map(self):
        groups = build_location_summary([{'sku': 'X1', 'quantity': 1}], {})
        self.assertEqual([group.key for group in groups], [NO_LOCATION_KEY])

    def test_collation_key_orders_arabic_letters_before_latin(self):
        labels = ['Z-9', 'ب-02', 'a-01', 'أ-01']
        self.assertEqual(sorted(labels, key=location_collation_key), ['أ-01', 'ب-02', 'a-01', 'Z-9'])

    def test_dataframe_has_one_row_per_item(self):
        items = [{'sku': 'X1', 'quantity': 1}, {'sku': 'Y2', 'quantity': 2}]
        df = location_summary_to_dataframe(build_location_summary(items, self.location_map))
        self.assertEqual(len(df), 2)
        self.assertEqual(list(df['SKU']), ['X1', 'Y2'])
        self.assertEqual(list(location_summary_to_dataframe([]).columns),
                         ['Location', 'SKU', 'Name', 'Quantity', 'Location Total'])


if __name__ == '__main__':
    unittest.main()
