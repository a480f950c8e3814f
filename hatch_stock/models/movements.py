"""Append-only movement logs: removals, restocks and stock checks.

Each record keeps its line items as a JSON list in a text column, the same
snapshot the driver or counter submitted.
"""

from __future__ import annotations

import json

from sqlalchemy import Column, ForeignKey, Integer, Text

from ..db.session import Base


class ItemsBlobMixin:
    items_blob = Column("items", Text, nullable=False, default="[]")

    @property
    def items(self) -> list[dict[str, object]]:
        raw = self.items_blob
        if not raw:
            return []
        try:
            decoded = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return []
        if not isinstance(decoded, list):
            return []
        return [dict(item) for item in decoded if isinstance(item, dict)]

    @items.setter
    def items(self, value: list[dict[str, object]] | None) -> None:
        self.items_blob = json.dumps([dict(item) for item in value or []])


class StockRemoval(ItemsBlobMixin, Base):
    """Stock taken out of a warehouse, either onto a route or written off ad hoc."""

    __tablename__ = "stock_removals"

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    route_id = Column(Integer, nullable=True)
    route_name = Column(Text, nullable=True)
    target_location_id = Column(Integer, nullable=True)
    is_adhoc = Column(Integer, nullable=False, default=0)
    taken_by = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False, index=True)


class RestockRecord(ItemsBlobMixin, Base):
    __tablename__ = "restock_records"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    performed_by = Column(Text, nullable=True)
    photo_url = Column(Text, nullable=True)
    photo_override = Column(Integer, nullable=False, default=0)
    stock_check_id = Column(Integer, ForeignKey("stock_checks.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False, index=True)


class StockCheck(ItemsBlobMixin, Base):
    """A physical count. Items carry expected, counted, variance and reason."""

    __tablename__ = "stock_checks"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    performed_by = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False, index=True)

    @property
    def total_variance(self) -> int:
        return sum(int(item.get("variance") or 0) for item in self.items)


__all__ = ["RestockRecord", "StockCheck", "StockRemoval"]
