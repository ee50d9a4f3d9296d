"""
SKU normalization and fuzzy location matching.

Order line items and the product-location table do not always agree on SKU
spelling (case, separators, size/colour suffixes), so lookups go through a
normalized form and a small set of derived variants.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from constants.order_statuses import MIN_SKU_VARIANT_LENGTH

logger = logging.getLogger(__name__)

_SEGMENT_SEPARATOR = re.compile(r"[^A-Z0-9]+")
_TRAILING_LETTERS = re.compile(r"[A-Z]+$")
_TRAILING_DIGITS = re.compile(r"[0-9]+$")
_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")


def get_string_value(value: Any) -> str:
    """
    Coerce a loosely typed payload value into display text.

    Objects coming from the store API often wrap the text as
    ``{"name": ...}``, ``{"label": ...}`` or ``{"value": ...}``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, dict):
        if isinstance(value.get("name"), str):
            return value["name"]
        if isinstance(value.get("label"), str):
            return value["label"]
        if value.get("value") is not None:
            return get_string_value(value["value"])
        try:
            return json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return ""
    return ""


def get_number_value(value: Any) -> float:
    """Coerce a quantity-like value to a number, 0 when it cannot be read"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        return float(match.group(0)) if match else 0
    if isinstance(value, dict) and value.get("value") is not None:
        return get_number_value(value["value"])
    return 0


def normalize_sku(value: Any) -> str:
    string_value = get_string_value(value)
    if not string_value:
        return ""
    return string_value.strip().upper()


def generate_sku_variants(value: Any) -> List[str]:
    """
    Derive the forms of a SKU worth sending to the location lookup.

    Returns the normalized SKU, each alphanumeric segment, and the SKU with a
    trailing letter or digit run removed, deduplicated in that order and
    without entries shorter than MIN_SKU_VARIANT_LENGTH.
    """
    normalized = normalize_sku(value)
    if not normalized:
        return []

    variants = [normalized]

    for segment in _SEGMENT_SEPARATOR.split(normalized):
        if segment:
            variants.append(segment)

    without_trailing_letters = _TRAILING_LETTERS.sub("", normalized)
    if without_trailing_letters and without_trailing_letters != normalized:
        variants.append(without_trailing_letters)

    without_trailing_digits = _TRAILING_DIGITS.sub("", normalized)
    if without_trailing_digits and without_trailing_digits != normalized:
        variants.append(without_trailing_digits)

    unique_variants = list(dict.fromkeys(variants))
    return [sku for sku in unique_variants if len(sku) >= MIN_SKU_VARIANT_LENGTH]


def collect_order_sku_variants(items: Iterable[Any]) -> List[str]:
    """Union of the SKU variants of every line item, first seen first"""
    variants = {}
    for item in items or []:
        sku = item.get("sku") if isinstance(item, dict) else getattr(item, "sku", None)
        for variant in generate_sku_variants(sku):
            variants.setdefault(variant, None)
    return list(variants)


def build_location_map(locations: Iterable[Any]) -> Dict[str, Any]:
    location_map = {}
    for location in locations or []:
        normalized_sku = normalize_sku(getattr(location, "sku", None))
        if normalized_sku:
            location_map[normalized_sku] = location
    return location_map


def get_location_for_sku(sku: Any, location_map: Dict[str, Any]) -> Optional[Any]:
    """
    Resolve the storage location of a SKU.

    An exact normalized key wins outright. Otherwise every stored SKU that
    contains the query, or is contained in it, is a candidate and the longest
    stored SKU is the most specific match. Queries shorter than
    MIN_SKU_VARIANT_LENGTH only resolve on an exact key.

    Args:
        sku: Raw SKU value from an order line item
        location_map: Mapping of normalized SKU -> ProductLocation

    Returns:
        The matching ProductLocation, or None
    """
    normalized_sku = normalize_sku(sku)
    if not normalized_sku:
        return None

    direct_match = location_map.get(normalized_sku)
    if direct_match is not None:
        return direct_match

    # Short queries are substrings of too many stored SKUs to mean anything
    if len(normalized_sku) < MIN_SKU_VARIANT_LENGTH:
        return None

    best_match = None
    best_match_length = 0

    for location in location_map.values():
        location_sku = normalize_sku(getattr(location, "sku", None))
        if not location_sku:
            continue

        if location_sku in normalized_sku or normalized_sku in location_sku:
            if best_match is None or len(location_sku) > best_match_length:
                best_match = location
                best_match_length = len(location_sku)

    return best_match
