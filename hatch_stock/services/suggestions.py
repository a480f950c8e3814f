"""Reorder suggestions for a location.

WHAT:
    Compares each allowed product's recorded location stock with its
    configured maximum and proposes a box-rounded order quantity.

WHEN:
    Before placing a supplier order for a machine or shelf.

HOW:
    A product qualifies when a maximum is configured and the shortage is at
    least ``SUGGESTION_SHORTAGE_THRESHOLD`` percent of it. Quantities round up
    to whole boxes, so the suggestion never orders less than the shortage.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud.catalog import allowed_products, require_location
from ..crud.orders import create_order
from ..crud.stock import get_location_config, get_location_stock
from ..models.orders import Order

PRIORITY_CRITICAL = "critical"
PRIORITY_WARNING = "warning"


def suggest_order_items(
    db: Session,
    location_id: int,
    threshold_percent: float | None = None,
) -> List[Dict[str, Any]]:
    location = require_location(db, location_id)
    threshold = settings.SUGGESTION_SHORTAGE_THRESHOLD if threshold_percent is None else threshold_percent
    stock = get_location_stock(db, location_id)
    config = get_location_config(db, location_id)

    suggestions: List[Dict[str, Any]] = []
    for product in allowed_products(db, location):
        thresholds = config.get(product.sku, {})
        max_stock = thresholds.get("max_stock") or 0
        if max_stock <= 0:
            continue
        min_stock = thresholds.get("min_stock")
        current = stock.get(product.sku, 0)
        shortage = max_stock - current
        shortage_percentage = shortage / max_stock * 100
        if shortage_percentage < threshold:
            continue

        units_per_box = max(product.units_per_box or 1, 1)
        boxes_needed = math.ceil(shortage / units_per_box)
        priority = PRIORITY_CRITICAL if min_stock is not None and current <= min_stock else PRIORITY_WARNING
        suggestions.append(
            {
                "sku": product.sku,
                "name": product.name,
                "category": product.category,
                "current_stock": current,
                "min_stock": min_stock,
                "max_stock": max_stock,
                "shortage": shortage,
                "shortage_percentage": round(shortage_percentage, 1),
                "units_per_box": units_per_box,
                "boxes_needed": boxes_needed,
                "order_qty": boxes_needed * units_per_box,
                "unit_price": product.unit_cost or 0.0,
                "priority": priority,
            }
        )

    suggestions.sort(key=lambda s: (s["priority"] != PRIORITY_CRITICAL, -s["shortage_percentage"]))
    return suggestions


def create_order_from_suggestions(
    db: Session,
    location_id: int,
    supplier_id: int | None = None,
    delivery_method: str | None = None,
    delivery_to: str | None = None,
    notes: str | None = None,
) -> Order | None:
    """Turn the current suggestions into a pending order. ``None`` when nothing is short."""

    suggestions = suggest_order_items(db, location_id)
    if not suggestions:
        return None
    return create_order(
        db,
        {
            "supplier_id": supplier_id,
            "delivery_method": delivery_method,
            "delivery_to": delivery_to,
            "notes": notes,
            "items": [
                {"sku": s["sku"], "quantity": s["order_qty"], "unit_price": s["unit_price"]}
                for s in suggestions
            ],
        },
    )
