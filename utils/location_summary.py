import logging
from typing import Any, Dict, Iterable, List

import icu
import pandas as pd

from constants.order_statuses import NO_LOCATION_KEY, UNREGISTERED_LOCATION_LABEL
from constants.schemas import LocationGroup, LocationGroupItem
from utils.sku_matching import (
    get_location_for_sku,
    get_number_value,
    get_string_value,
    normalize_sku,
)

logger = logging.getLogger(__name__)


# Warehouse labels are Arabic first, Latin shelf codes after
_LOCATION_COLLATOR = icu.Collator.createInstance(icu.Locale("ar"))


def location_collation_key(label: str) -> bytes:
    """Sort key for location labels under Arabic collation rules"""
    return _LOCATION_COLLATOR.getSortKey(label or "")


def build_location_summary(items: Iterable[Any], location_map: Dict[str, Any]) -> List[LocationGroup]:
    """
    Group an order's line items by warehouse location for picking.

    Args:
        items: Order line items (OrderItem models or raw dicts)
        location_map: Mapping of normalized SKU -> ProductLocation

    Returns:
        List[LocationGroup]: One group per location, alphabetical, with the
        unregistered bucket last
    """
    groups: Dict[str, LocationGroup] = {}

    for item in items or []:
        raw = item if isinstance(item, dict) else item.model_dump()
        normalized_sku = normalize_sku(raw.get("sku"))
        if not normalized_sku:
            continue

        location_info = get_location_for_sku(normalized_sku, location_map)
        location_key = location_info.location if location_info and location_info.location else NO_LOCATION_KEY
        location_label = location_key if location_key != NO_LOCATION_KEY else UNREGISTERED_LOCATION_LABEL

        if location_key not in groups:
            groups[location_key] = LocationGroup(key=location_key, location_label=location_label)

        quantity = get_number_value(raw.get("quantity"))
        group = groups[location_key]
        group.items.append(
            LocationGroupItem(
                sku=normalized_sku,
                name=get_string_value(raw.get("name")) or normalized_sku,
                quantity=quantity,
            )
        )
        group.total_quantity += quantity

    return sorted(
        groups.values(),
        key=lambda group: (group.key == NO_LOCATION_KEY, location_collation_key(group.location_label)),
    )


def location_summary_to_dataframe(groups: List[LocationGroup]) -> pd.DataFrame:
    """Flatten location groups into one row per item for table display"""
    rows = []
    for group in groups:
        for item in group.items:
            rows.append(
                {
                    "Location": group.location_label,
                    "SKU": item.sku,
                    "Name": item.name,
                    "Quantity": item.quantity,
                    "Location Total": group.total_quantity,
                }
            )
    return pd.DataFrame(rows, columns=["Location", "SKU", "Name", "Quantity", "Location Total"])
