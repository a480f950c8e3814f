"""Parse Vendlive transaction exports into sale and product rows.

The export is a CSV whose first line is sometimes an empty row of commas.
Columns are located by header name so extra or reordered columns are fine.
Rows without a product id cannot be tied to a SKU and are dropped.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..core.barcodes import split_barcode_list
from ..core.clock import to_iso

MIN_VALUES = 10
STATUS_SUCCESS = "Success"
CHARGED_DECLINED = "Payment Declined"
CHARGED_FREE_VEND = "Free Vend"

COLUMNS = {
    "transaction_id": "transaction_id",
    "timestamp": "timestamp",
    "product_id": "product__id",
    "name": "name",
    "category": "product__category__name",
    "vend_status": "vend_status",
    "charged": "order_sale__charged",
    "price": "price",
    "cost_price": "cost_price",
    "default_price": "product_price_default",
    "barcode": "product_universal_product_codes",
    "venue": "location__venue__name",
    "machine": "machine__friendly_name",
}

_DATE_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})")


@dataclass
class VendliveParseResult:
    sales: List[Dict[str, object]] = field(default_factory=list)
    products: List[Dict[str, object]] = field(default_factory=list)


def parse_vendlive_date(value: Optional[str]) -> Optional[datetime]:
    """``DD/MM/YYYY HH:MM`` (single-digit day, month and hour allowed)."""

    if not value:
        return None
    match = _DATE_RE.search(value)
    if not match:
        return None
    day, month, year, hour, minute = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute)
    except ValueError:
        return None


def _to_float(value: Optional[str]) -> float:
    if not value:
        return 0.0
    try:
        return float(value.strip().replace("£", "").replace(",", ""))
    except ValueError:
        return 0.0


def _epoch_ms(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp() * 1000)


def parse_vendlive_csv(text: str) -> VendliveParseResult:
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    result = VendliveParseResult()
    if len(rows) < 2:
        return result

    # Blank rows, including the leading row of bare commas, are already dropped.
    headers = [cell.strip() for cell in rows[0]]
    index = {key: (headers.index(name) if name in headers else None) for key, name in COLUMNS.items()}

    def cell(values: List[str], key: str) -> str:
        position = index[key]
        if position is None or position >= len(values):
            return ""
        return values[position].strip()

    seen: set[str] = set()
    products: Dict[str, Dict[str, object]] = {}
    for values in rows[1:]:
        if len(values) < MIN_VALUES:
            continue
        if cell(values, "vend_status") != STATUS_SUCCESS:
            continue
        charged = cell(values, "charged")
        if charged == CHARGED_DECLINED:
            continue
        timestamp = parse_vendlive_date(cell(values, "timestamp"))
        if timestamp is None:
            continue

        product_id = cell(values, "product_id")
        if not product_id:
            continue
        transaction_id = cell(values, "transaction_id")
        sale_id = f"{transaction_id}-{product_id}-{_epoch_ms(timestamp)}"
        if sale_id in seen:
            continue
        seen.add(sale_id)

        name = cell(values, "name") or None
        category = cell(values, "category") or None
        price = _to_float(cell(values, "price"))
        cost_price = _to_float(cell(values, "cost_price"))
        free_vend = charged == CHARGED_FREE_VEND
        result.sales.append(
            {
                "id": sale_id,
                "transaction_id": transaction_id,
                "timestamp": to_iso(timestamp),
                "sku": product_id,
                "product_name": name,
                "category": category,
                "quantity": 1,
                "charged": 0.0 if free_vend else price,
                "cost_price": cost_price,
                "payment_method": "free_vend" if free_vend else None,
                "location_name": cell(values, "venue") or None,
                "machine_name": cell(values, "machine") or None,
                "is_free_vend": free_vend,
            }
        )
        if product_id and name and product_id not in products:
            products[product_id] = {
                "sku": product_id,
                "name": name,
                "category": category,
                "unit_cost": cost_price,
                "sale_price": _to_float(cell(values, "default_price")) or price,
                "barcode": next(iter(split_barcode_list(cell(values, "barcode"))), None),
                "units_per_box": 1,
            }
    result.products = list(products.values())
    return result


__all__ = ["VendliveParseResult", "parse_vendlive_csv", "parse_vendlive_date"]
