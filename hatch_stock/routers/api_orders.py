from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.orders import create_order, delete_order, list_orders, receive_order, require_order, update_order
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.orders import (
    OrderCreate,
    OrderFromSuggestionsIn,
    OrderOut,
    OrderUpdate,
    ReceiveOrderIn,
    SuggestionOut,
)
from ..services.suggestions import create_order_from_suggestions, suggest_order_items

router = APIRouter(prefix="/api/v1/orders", tags=["orders"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[OrderOut])
def api_list(
    status: Optional[str] = None,
    supplier_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_orders(db, status=status, supplier_id=supplier_id, start=start, end=end)


# Declared before "/{order_id}" so the literal path wins.
@router.get("/suggestions", response_model=list[SuggestionOut])
def api_suggestions(location_id: int, db: Session = Depends(get_db)):
    return suggest_order_items(db, location_id)


@router.post("/from-suggestions", response_model=Optional[OrderOut])
def api_from_suggestions(payload: OrderFromSuggestionsIn, db: Session = Depends(get_db)):
    return create_order_from_suggestions(db, **payload.model_dump())


@router.get("/{order_id}", response_model=OrderOut)
def api_get(order_id: int, db: Session = Depends(get_db)):
    return require_order(db, order_id)


@router.post("", response_model=OrderOut, status_code=201)
def api_create(payload: OrderCreate, db: Session = Depends(get_db)):
    return create_order(db, payload.model_dump())


@router.patch("/{order_id}", response_model=OrderOut)
def api_update(order_id: int, payload: OrderUpdate, db: Session = Depends(get_db)):
    return update_order(db, require_order(db, order_id), payload.model_dump(exclude_unset=True))


@router.delete("/{order_id}")
def api_delete(order_id: int, db: Session = Depends(get_db)):
    delete_order(db, require_order(db, order_id))
    return {"status": "deleted"}


@router.post("/{order_id}/receive", response_model=OrderOut)
def api_receive(order_id: int, payload: ReceiveOrderIn, db: Session = Depends(get_db)):
    items = [item.model_dump() for item in payload.items] if payload.items else None
    return receive_order(db, order_id, items, payload.warehouse_id)
