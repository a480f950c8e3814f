from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class OrderItemIn(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: float = Field(default=0.0, ge=0)


class OrderBase(BaseModel):
    supplier_id: Optional[int] = None
    delivery_method: Optional[str] = None
    delivery_to: Optional[str] = None
    delivery_fee: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    invoice_ref: Optional[str] = None
    invoice_image_url: Optional[str] = None


class OrderCreate(OrderBase):
    items: List[OrderItemIn] = Field(min_length=1)


class OrderUpdate(OrderBase):
    items: Optional[List[OrderItemIn]] = None


class OrderItemOut(BaseModel):
    id: int
    sku: str
    quantity: int
    unit_price: float
    line_total: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    supplier_id: Optional[int]
    supplier_name: Optional[str] = None
    delivery_method: Optional[str]
    delivery_to: Optional[str]
    delivery_fee: float
    notes: Optional[str]
    invoice_ref: Optional[str]
    invoice_image_url: Optional[str]
    total_amount: float
    status: str
    created_at: str
    updated_at: str
    received_at: Optional[str]
    received_warehouse_id: Optional[int]
    items: List[OrderItemOut] = []

    class Config:
        from_attributes = True


class ReceivedItemIn(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    expiry_date: Optional[str] = None
    has_damage: bool = False
    damage_notes: Optional[str] = None


class ReceiveOrderIn(BaseModel):
    warehouse_id: int
    items: Optional[List[ReceivedItemIn]] = None


class SuggestionOut(BaseModel):
    sku: str
    name: str
    category: Optional[str]
    current_stock: int
    min_stock: Optional[int]
    max_stock: int
    shortage: int
    shortage_percentage: float
    units_per_box: int
    boxes_needed: int
    order_qty: int
    unit_price: float
    priority: str


class OrderFromSuggestionsIn(BaseModel):
    location_id: int
    supplier_id: Optional[int] = None
    delivery_method: Optional[str] = None
    delivery_to: Optional[str] = None
    notes: Optional[str] = None
