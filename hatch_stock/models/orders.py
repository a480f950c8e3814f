from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.session import Base

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_RECEIVED = "received"
ORDER_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_RECEIVED)


class Order(Base):
    """Purchase order placed with a supplier. ``pending`` until received once."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    delivery_method = Column(Text, nullable=True)
    delivery_to = Column(Text, nullable=True)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    notes = Column(Text, nullable=True)
    invoice_ref = Column(Text, nullable=True)
    invoice_image_url = Column(Text, nullable=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    status = Column(Text, nullable=False, default=ORDER_STATUS_PENDING, index=True)
    created_at = Column(Text, nullable=False, index=True)
    updated_at = Column(Text, nullable=False)
    received_at = Column(Text, nullable=True)
    received_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=True)

    supplier = relationship("Supplier", lazy="joined")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    @property
    def supplier_name(self) -> str | None:
        return self.supplier.name if self.supplier else None

    @property
    def is_pending(self) -> bool:
        return self.status == ORDER_STATUS_PENDING


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False, default=0.0)

    order = relationship("Order", back_populates="items")

    @property
    def line_total(self) -> float:
        return self.quantity * (self.unit_price or 0.0)


__all__ = [
    "ORDER_STATUSES",
    "ORDER_STATUS_PENDING",
    "ORDER_STATUS_RECEIVED",
    "Order",
    "OrderItem",
]
