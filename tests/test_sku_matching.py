#!/usr/bin/env python3
"""
Unit tests for SKU normalization, variant generation and location resolution.
"""

import os
import sys
import unittest

# Add the parent directory to the path to access utils
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from constants.schemas import ProductLocation
from utils.sku_matching import (
    build_location_map,
    collect_order_sku_variants,
    generate_sku_variants,
    get_location_for_sku,
    get_number_value,
    get_string_value,
    normalize_sku,
)


def make_location(sku, location, location_id=None):
    return ProductLocation(id=location_id or sku, sku=sku, location=location)


class TestNormalizeSku(unittest.TestCase):
    """normalize_sku / get_string_value coercion rules."""

    def test_strings_are_trimmed_and_upper_cased(self):
        self.assertEqual(normalize_sku('  abc-12x '), 'ABC-12X')

    def test_numbers_are_stringified(self):
        self.assertEqual(normalize_sku(12345), '12345')
        self.assertEqual(normalize_sku(12.0), '12')

    def test_wrapped_objects(self):
        self.assertEqual(normalize_sku({'name': 'tee-red'}), 'TEE-RED')
        self.assertEqual(normalize_sku({'label': 'cap'}), 'CAP')
        self.assertEqual(normalize_sku({'value': {'value': 'mug-1'}}), 'MUG-1')

    def test_missing_values_become_empty(self):
        self.assertEqual(normalize_sku(None), '')
        self.assertEqual(normalize_sku(''), '')
        self.assertEqual(normalize_sku(object()), '')

    def test_idempotent(self):
        for raw in ['abc', ' Ab-12 ', 'ßku-1', 'حقيبة-01', '  ', 'x_y.z']:
            once = normalize_sku(raw)
            self.assertEqual(normalize_sku(once), once)

    def test_dict_without_known_keys_dumps_json(self):
        self.assertEqual(get_string_value({'a': 1}), '{"a": 1}')


class TestGetNumberValue(unittest.TestCase):

    def test_number_coercion(self):
        self.assertEqual(get_number_value(3), 3)
        self.assertEqual(get_number_value('2.5'), 2.5)
        self.assertEqual(get_number_value('4 pcs'), 4)
        self.assertEqual(get_number_value({'value': '7'}), 7)
        self.assertEqual(get_number_value('abc'), 0)
        self.assertEqual(get_number_value(None), 0)
        self.assertEqual(get_number_value(True), 0)


class TestGenerateSkuVariants(unittest.TestCase):
    """generate_sku_variants segment and suffix stripping."""

    def test_full_sku_first_then_segments_and_stripped_forms(self):
        variants = generate_sku_variants('abc-123-red')
        self.assertEqual(variants[0], 'ABC-123-RED')
        self.assertIn('ABC', variants)
        self.assertIn('123', variants)
        self.assertIn('RED', variants)
        self.assertIn('ABC-123-', variants)

    def test_trailing_digits_stripped(self):
        variants = generate_sku_variants('TSHIRT42')
        self.assertEqual(variants, ['TSHIRT42', 'TSHIRT'])

    def test_trailing_letters_stripped(self):
        variants = generate_sku_variants('1234XL')
        self.assertEqual(variants, ['1234XL', '1234'])

    def test_short_variants_filtered(self):
        variants = generate_sku_variants('ab-12-xyz')
        self.assertNotIn('AB', variants)
        self.assertNotIn('12', variants)
        self.assertIn('XYZ', variants)

    def test_no_duplicates(self):
        variants = generate_sku_variants('ABC')
        self.assertEqual(variants, ['ABC'])

    def test_full_sku_always_included_when_long_enough(self):
        for raw in ['abc', 'A-B-C', '12345', 'sku.with.dots', 'x1y2z3']:
            self.assertIn(normalize_sku(raw), generate_sku_variants(raw))

    def test_empty_input(self):
        self.assertEqual(generate_sku_variants(None), [])
        self.assertEqual(generate_sku_variants('  '), [])
        self.assertEqual(generate_sku_variants('X1'), [])

    def test_collect_order_variants_unions_items(self):
        items = [{'sku': 'abc-1'}, {'sku': 'ABC-1'}, {'sku': 'def'}, {'sku': None}]
        self.assertEqual(collect_order_sku_variants(items), ['ABC-1', 'ABC', 'ABC-', 'DEF'])


class TestGetLocationForSku(unittest.TestCase):
    """Exact and fuzzy location resolution."""

    def setUp(self):
        self.location_map = build_location_map([
            make_location('ABC123', 'A-01'),
            make_location('ABC', 'B-02'),
            make_location('zz-900', 'C-03'),
        ])

    def test_exact_match_wins(self):
        self.assertEqual(get_location_for_sku('abc', self.location_map).location, 'B-02')

    def test_longest_substring_candidate_wins(self):
        self.assertEqual(get_location_for_sku('ABC1234', self.location_map).location, 'A-01')

    def test_tie_break_prefers_more_specific_stored_sku(self):
        location_map = build_location_map([
            make_location('AB', 'SHORT'),
            make_location('ABC123', 'LONG'),
        ])
        self.assertEqual(get_location_for_sku('ABC123X', location_map).location, 'LONG')

    def test_query_contained_in_stored_sku(self):
        self.assertEqual(get_location_for_sku('zz-9', self.location_map).location, 'C-03')

    def test_no_candidate(self):
        self.assertIsNone(get_location_for_sku('QQQ-1', self.location_map))

    def test_empty_and_short_queries(self):
        self.assertIsNone(get_location_for_sku('', self.location_map))
        self.assertIsNone(get_location_for_sku(None, self.location_map))
        self.assertIsNone(get_location_for_sku('AB', self.location_map))

    def test_short_query_still_resolves_on_exact_key(self):
        location_map = build_location_map([make_location('x1', 'SHELF-1')])
        self.assertEqual(get_location_for_sku('X1', location_map).location, 'SHELF-1')

    def test_deterministic(self):
        first = get_location_for_sku('ABC1234', self.location_map)
        for _ in range(5):
            self.assertIs(get_location_for_sku('ABC1234', self.location_map), first)

    def test_location_map_keys_are_normalized(self):
        self.assertIn('ZZ-900', self.location_map)


if __name__ == '__main__':
    unittest.main()
