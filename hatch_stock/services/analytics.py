from __future__ import annotations

from collections import defaultdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping

from ..core.clock import parse_iso

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal(100)


def _to_decimal(value: Any) -> Decimal:
    """Best-effort conversion of stored amounts to Decimal for currency math."""

    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace("£", "").replace(",", "")
        if not cleaned:
            return Decimal("0")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0")
    return Decimal("0")


def _quantize(value: Decimal) -> float:
    return float(value.quantize(TWOPLACES, rounding=ROUND_HALF_UP))


class _Totals:
    __slots__ = ("revenue", "cost", "units", "transactions")

    def __init__(self) -> None:
        self.revenue = Decimal("0")
        self.cost = Decimal("0")
        self.units = 0
        self.transactions = 0

    def add(self, sale: Mapping[str, Any]) -> None:
        self.revenue += _to_decimal(sale.get("charged"))
        self.cost += _to_decimal(sale.get("cost_price"))
        self.units += int(sale.get("quantity") or 0)
        self.transactions += 1

    def as_dict(self) -> Dict[str, Any]:
        profit = self.revenue - self.cost
        margin = profit / self.revenue * HUNDRED if self.revenue else Decimal("0")
        return {
            "revenue": _quantize(self.revenue),
            "cost": _quantize(self.cost),
            "profit": _quantize(profit),
            "margin": _quantize(margin),
            "units": self.units,
            "transactions": self.transactions,
        }


def summary(sales: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Overall revenue, cost, profit and margin for ``sales``."""

    totals = _Totals()
    for sale in sales:
        totals.add(sale)
    result = totals.as_dict()
    result["average_transaction"] = (
        _quantize(totals.revenue / totals.transactions) if totals.transactions else 0.0
    )
    return result


def _group(sales: Iterable[Mapping[str, Any]], key) -> Dict[Any, _Totals]:
    groups: Dict[Any, _Totals] = defaultdict(_Totals)
    for sale in sales:
        groups[key(sale)].add(sale)
    return groups


def by_product(sales: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    names: Dict[str, str] = {}

    def key(sale: Mapping[str, Any]) -> str:
        sku = str(sale.get("sku") or "")
        if sale.get("product_name") and sku not in names:
            names[sku] = str(sale["product_name"])
        return sku

    groups = _group(sales, key)
    rows = [{"sku": sku, "name": names.get(sku, sku), **totals.as_dict()} for sku, totals in groups.items()]
    return sorted(rows, key=lambda row: row["revenue"], reverse=True)


def by_category(sales: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    groups = _group(sales, lambda sale: sale.get("category") or "Uncategorised")
    rows = [{"category": category, **totals.as_dict()} for category, totals in groups.items()]
    return sorted(rows, key=lambda row: row["revenue"], reverse=True)


def by_day(sales: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    def day(sale: Mapping[str, Any]) -> str:
        stamp = parse_iso(sale.get("timestamp"))
        return stamp.date().isoformat() if stamp else "unknown"

    groups = _group(sales, day)
    return [{"date": date, **groups[date].as_dict()} for date in sorted(groups)]


__all__ = ["by_category", "by_day", "by_product", "summary"]
