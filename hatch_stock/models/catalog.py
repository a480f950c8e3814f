"""Catalog records referenced by SKU or id from every other table.

Stock, order and sale rows point at products by SKU without a foreign key so a
deleted product leaves its history readable.
"""

from __future__ import annotations

import json

from sqlalchemy import Column, Float, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ..db.session import Base

LOCATION_TYPES = ("vending", "retail", "display", "storage", "other")


class Product(Base):
    __tablename__ = "products"

    sku = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=True, index=True)
    unit_cost = Column(Float, nullable=True)
    sale_price = Column(Float, nullable=True)
    units_per_box = Column(Integer, nullable=False, default=1)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    barcode = Column(Text, nullable=True, index=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    supplier = relationship("Supplier", lazy="joined")


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    contact = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)


class Location(Base):
    """A vending machine, shop shelf or other place stock is sold from."""

    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False, index=True)
    type = Column(Text, nullable=False, default="vending")
    address = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)

    assignments = relationship(
        "LocationAssignment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LocationAssignment.id",
    )

    @property
    def assigned_items(self) -> list[str]:
        return [assignment.sku for assignment in self.assignments]


class LocationAssignment(Base):
    __tablename__ = "location_assignments"
    __table_args__ = (UniqueConstraint("location_id", "sku", name="uq_location_assignment"),)

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False)


class RestockRoute(Base):
    """Named, ordered run of locations a driver restocks in one trip."""

    __tablename__ = "restock_routes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    location_ids_blob = Column("location_ids", Text, nullable=True)
    created_at = Column(Text, nullable=False)

    @property
    def location_ids(self) -> list[int]:
        if not self.location_ids_blob:
            return []
        try:
            decoded = json.loads(self.location_ids_blob)
        except (TypeError, json.JSONDecodeError):
            return []
        return [int(value) for value in decoded if isinstance(value, (int, str)) and str(value).isdigit()]

    @location_ids.setter
    def location_ids(self, value: list[int] | None) -> None:
        self.location_ids_blob = json.dumps([int(v) for v in value]) if value else None


__all__ = [
    "LOCATION_TYPES",
    "Location",
    "LocationAssignment",
    "Product",
    "RestockRoute",
    "Supplier",
    "Warehouse",
]
