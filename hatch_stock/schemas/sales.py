from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SaleIn(BaseModel):
    id: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    product_name: Optional[str] = None
    category: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    charged: float = 0.0
    cost_price: Optional[float] = None
    payment_method: Optional[str] = None
    location_name: Optional[str] = None
    machine_name: Optional[str] = None
    timestamp: str


class SalesImportIn(BaseModel):
    filename: str = "manual import"
    sales: List[SaleIn]


class VendliveImportIn(BaseModel):
    filename: str = "vendlive.csv"
    content: str
    import_products: bool = True


class SalesImportResult(BaseModel):
    records_added: int
    records_skipped: int
    records_total: int
    new_products: List[str] = []
    products_imported: Optional[int] = None


class SaleOut(BaseModel):
    id: str
    sku: str
    product_name: Optional[str]
    category: Optional[str]
    quantity: int
    charged: float
    cost_price: Optional[float]
    payment_method: Optional[str]
    location_name: Optional[str]
    machine_name: Optional[str]
    timestamp: str


class SalesImportOut(BaseModel):
    id: int
    filename: str
    records_added: int
    records_skipped: int
    records_total: int
    imported_at: str

    class Config:
        from_attributes = True


class ReconcileIn(BaseModel):
    """Location-name to location-id mapping; names mapped to ``None`` are skipped."""

    location_map: Dict[str, Optional[int]]
    start: Optional[str] = None
    end: Optional[str] = None


class ReconcileResult(BaseModel):
    applied: List[dict]
    skipped_locations: List[str]
