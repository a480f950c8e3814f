"""Shrinkage: stock lost between counts, from negative stock-check variances."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ..core.clock import parse_iso
from ..crud.movements import SHRINKAGE_REASONS
from ..models.catalog import Location, Product
from ..models.movements import StockCheck


def _unit_cost(product: Product | None) -> float:
    if product is None:
        return 0.0
    return product.unit_cost or product.sale_price or 0.0


def _variance(item: Dict[str, Any]) -> int:
    if item.get("variance") is not None:
        return int(item["variance"])
    return int(item.get("counted") or 0) - int(item.get("expected") or 0)


def shrinkage_report(
    checks: Iterable[StockCheck],
    products: Iterable[Product],
    locations: Iterable[Location],
) -> Dict[str, Any]:
    product_map = {product.sku: product for product in products}
    location_names = {location.id: location.name for location in locations}

    total_units = 0
    total_cost = 0.0
    events = 0
    by_location: Dict[int, Dict[str, Any]] = {}
    by_product: Dict[str, Dict[str, Any]] = {}
    by_reason = {reason: {"count": 0, "units": 0, "cost": 0.0} for reason in SHRINKAGE_REASONS}
    by_month: Dict[str, Dict[str, Any]] = {}

    for check in checks:
        loc = by_location.setdefault(
            check.location_id,
            {
                "location_id": check.location_id,
                "name": location_names.get(check.location_id, "Unknown"),
                "shrinkage_units": 0,
                "shrinkage_cost": 0.0,
                "check_count": 0,
                "variance_events": 0,
            },
        )
        loc["check_count"] += 1

        stamp = parse_iso(check.created_at)
        month_key = stamp.strftime("%Y-%m") if stamp else "unknown"
        month = by_month.setdefault(month_key, {"month": month_key, "units": 0, "cost": 0.0, "checks": 0})
        month["checks"] += 1

        for item in check.items:
            variance = _variance(item)
            if variance >= 0:
                continue
            sku = str(item.get("sku"))
            units = -variance
            product = product_map.get(sku)
            cost = units * _unit_cost(product)
            reason = item.get("reason") or "unknown"

            total_units += units
            total_cost += cost
            events += 1

            loc["shrinkage_units"] += units
            loc["shrinkage_cost"] += cost
            loc["variance_events"] += 1

            prod = by_product.setdefault(
                sku,
                {
                    "sku": sku,
                    "name": product.name if product else sku,
                    "category": (product.category if product else None) or "Unknown",
                    "shrinkage_units": 0,
                    "shrinkage_cost": 0.0,
                    "occurrences": 0,
                },
            )
            prod["shrinkage_units"] += units
            prod["shrinkage_cost"] += cost
            prod["occurrences"] += 1

            if reason in by_reason:
                by_reason[reason]["count"] += 1
                by_reason[reason]["units"] += units
                by_reason[reason]["cost"] += cost

            month["units"] += units
            month["cost"] += cost

    def _by_cost(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sorted(rows, key=lambda row: row["shrinkage_cost"], reverse=True)

    return {
        "total_units": total_units,
        "total_cost": round(total_cost, 2),
        "variance_events": events,
        "by_location": _by_cost(by_location.values()),
        "by_product": _by_cost(by_product.values()),
        "by_reason": by_reason,
        "trend": [by_month[key] for key in sorted(by_month)],
    }


__all__ = ["shrinkage_report"]
