from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ProductBase(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit_cost: Optional[float] = Field(default=None, ge=0)
    sale_price: Optional[float] = Field(default=None, ge=0)
    units_per_box: Optional[int] = Field(default=None, ge=1)
    supplier_id: Optional[int] = None
    barcode: Optional[str] = None


class ProductCreate(ProductBase):
    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)


class ProductUpdate(ProductBase):
    pass


class ProductOut(BaseModel):
    sku: str
    name: str
    category: Optional[str]
    unit_cost: Optional[float]
    sale_price: Optional[float]
    units_per_box: int
    supplier_id: Optional[int]
    barcode: Optional[str]
    created_at: str
    updated_at: str

    class Config:
        from_attributes = True


class SkuCheckOut(BaseModel):
    exists: bool
    conflict: bool
    existing_name: Optional[str] = None


class ProductImportRequest(BaseModel):
    products: List[dict]


class ImportErrorOut(BaseModel):
    sku: Optional[str]
    error: str


class ProductImportResult(BaseModel):
    created: int
    updated: int
    errors: List[ImportErrorOut] = []


class SupplierIn(BaseModel):
    name: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class SupplierOut(BaseModel):
    id: int
    name: str
    contact: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    created_at: str

    class Config:
        from_attributes = True


class WarehouseIn(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None


class WarehouseOut(BaseModel):
    id: int
    name: str
    address: Optional[str]
    created_at: str

    class Config:
        from_attributes = True


class LocationIn(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    address: Optional[str] = None
    assigned_items: Optional[List[str]] = None


class AssignedItemsIn(BaseModel):
    skus: List[str] = []


class LocationOut(BaseModel):
    id: int
    name: str
    type: str
    address: Optional[str]
    assigned_items: List[str] = []
    created_at: str

    class Config:
        from_attributes = True


class RouteIn(BaseModel):
    name: Optional[str] = None
    location_ids: Optional[List[int]] = None


class RouteOut(BaseModel):
    id: int
    name: str
    location_ids: List[int] = []
    locations: List[LocationOut] = []
    created_at: str

    class Config:
        from_attributes = True
