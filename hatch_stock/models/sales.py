from __future__ import annotations

from sqlalchemy import Column, Float, Integer, Text

from ..db.session import Base


class Sale(Base):
    """One point-of-sale vend. The id comes from the POS export and is the dedupe key."""

    __tablename__ = "sales"

    id = Column(Text, primary_key=True)
    sku = Column(Text, nullable=False, index=True)
    product_name = Column(Text, nullable=True)
    category = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    charged = Column(Float, nullable=False, default=0.0)
    cost_price = Column(Float, nullable=True)
    payment_method = Column(Text, nullable=True)
    location_name = Column(Text, nullable=True, index=True)
    machine_name = Column(Text, nullable=True)
    timestamp = Column(Text, nullable=False, index=True)


class SalesImport(Base):
    __tablename__ = "sales_imports"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(Text, nullable=False)
    records_added = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    records_total = Column(Integer, nullable=False, default=0)
    imported_at = Column(Text, nullable=False, index=True)


__all__ = ["Sale", "SalesImport"]
