from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class MovementItem(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class RemovalIn(BaseModel):
    warehouse_id: int
    is_adhoc: bool = False
    route_id: Optional[int] = None
    target_location_id: Optional[int] = None
    taken_by: Optional[str] = None
    notes: Optional[str] = None
    items: List[MovementItem] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_target(self) -> "RemovalIn":
        if not self.is_adhoc and self.route_id is None:
            raise ValueError("route_id is required unless the removal is ad hoc")
        return self


class RemovalOut(BaseModel):
    id: int
    warehouse_id: int
    route_id: Optional[int]
    route_name: Optional[str]
    target_location_id: Optional[int]
    is_adhoc: bool
    taken_by: Optional[str]
    notes: Optional[str]
    items: List[dict]
    created_at: str

    class Config:
        from_attributes = True


class RestockIn(BaseModel):
    location_id: int
    performed_by: Optional[str] = None
    photo_url: Optional[str] = None
    photo_override: bool = False
    stock_check_id: Optional[int] = None
    notes: Optional[str] = None
    items: List[MovementItem] = Field(min_length=1)


class RestockOut(BaseModel):
    id: int
    location_id: int
    performed_by: Optional[str]
    photo_url: Optional[str]
    photo_override: bool
    stock_check_id: Optional[int]
    notes: Optional[str]
    items: List[dict]
    created_at: str

    class Config:
        from_attributes = True


class StockCheckItem(BaseModel):
    sku: str = Field(min_length=1)
    counted: int = Field(ge=0)
    expected: Optional[int] = None
    reason: Optional[str] = None


class StockCheckIn(BaseModel):
    location_id: int
    performed_by: Optional[str] = None
    items: List[StockCheckItem] = Field(min_length=1)


class StockCheckOut(BaseModel):
    id: int
    location_id: int
    performed_by: Optional[str]
    items: List[dict]
    total_variance: int
    created_at: str

    class Config:
        from_attributes = True
