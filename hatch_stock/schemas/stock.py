from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class WarehouseStockUpdate(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int
    is_delta: bool = True


class BulkWarehouseStockUpdate(BaseModel):
    updates: List[dict]


class BulkUpdateResult(BaseModel):
    updated: int
    errors: List[dict] = []


class LocationStockUpdate(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int


class LocationStockMap(BaseModel):
    """``{sku: quantity}``; ``replace`` drops every SKU not listed."""

    quantities: Dict[str, int]
    replace: bool = False


class LocationConfigIn(BaseModel):
    sku: str = Field(min_length=1)
    min_stock: Optional[int] = Field(default=None, ge=0)
    max_stock: Optional[int] = Field(default=None, ge=0)


class LocationStockLine(BaseModel):
    sku: str
    name: Optional[str]
    category: Optional[str]
    quantity: int
    min_stock: Optional[int]
    max_stock: Optional[int]
    status: str


class BatchIn(BaseModel):
    warehouse_id: int
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    expiry_date: Optional[str] = None
    has_damage: bool = False
    damage_notes: Optional[str] = None


class BatchUpdate(BaseModel):
    remaining_qty: Optional[int] = Field(default=None, ge=0)
    expiry_date: Optional[str] = None
    has_damage: Optional[bool] = None
    damage_notes: Optional[str] = None


class BatchOut(BaseModel):
    id: int
    warehouse_id: int
    sku: str
    quantity: int
    remaining_qty: int
    expiry_date: Optional[str]
    has_damage: bool
    damage_notes: Optional[str]
    order_id: Optional[int]
    received_at: str
    expiry_status: Optional[str] = None
    days_until_expiry: Optional[int] = None

    class Config:
        from_attributes = True


class ExpiringBatchesOut(BaseModel):
    expired: List[BatchOut] = []
    critical: List[BatchOut] = []
    warning: List[BatchOut] = []
