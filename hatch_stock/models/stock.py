from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, Text, UniqueConstraint

from ..db.session import Base


class WarehouseStock(Base):
    """On-hand quantity of one SKU in one warehouse. Never negative."""

    __tablename__ = "warehouse_stock"
    __table_args__ = (UniqueConstraint("warehouse_id", "sku", name="uq_warehouse_stock"),)

    id = Column(Integer, primary_key=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(Text, nullable=False)


class LocationStock(Base):
    """Recorded quantity of one SKU at one location. Never negative."""

    __tablename__ = "location_stock"
    __table_args__ = (UniqueConstraint("location_id", "sku", name="uq_location_stock"),)

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(Text, nullable=False)


class LocationConfig(Base):
    """Per-location min/max thresholds. Either bound may be unset."""

    __tablename__ = "location_config"
    __table_args__ = (UniqueConstraint("location_id", "sku", name="uq_location_config"),)

    id = Column(Integer, primary_key=True)
    location_id = Column(Integer, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False)
    min_stock = Column(Integer, nullable=True)
    max_stock = Column(Integer, nullable=True)

    def as_dict(self) -> dict[str, int | None]:
        return {"min_stock": self.min_stock, "max_stock": self.max_stock}


class StockBatch(Base):
    """A received lot, kept for expiry and damage tracking."""

    __tablename__ = "stock_batches"

    id = Column(Integer, primary_key=True, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    remaining_qty = Column(Integer, nullable=False)
    expiry_date = Column(Text, nullable=True, index=True)
    has_damage = Column(Integer, nullable=False, default=0)
    damage_notes = Column(Text, nullable=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    received_at = Column(Text, nullable=False)


__all__ = ["LocationConfig", "LocationStock", "StockBatch", "WarehouseStock"]
