from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.catalog import (
    allowed_products,
    create_location,
    delete_location,
    list_locations,
    require_location,
    set_assigned_items,
    update_location,
)
from ..crud.movements import restock_history, stock_check_history
from ..crud.stock import (
    get_location_config,
    location_stock_report,
    merge_location_stock,
    replace_location_stock,
    set_location_config,
    set_location_stock,
)
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.catalog import AssignedItemsIn, LocationIn, LocationOut, ProductOut
from ..schemas.movements import RestockOut, StockCheckOut
from ..schemas.stock import LocationConfigIn, LocationStockLine, LocationStockMap, LocationStockUpdate

router = APIRouter(prefix="/api/v1/locations", tags=["locations"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[LocationOut])
def api_list(type: Optional[str] = None, db: Session = Depends(get_db)):
    return list_locations(db, location_type=type)


@router.get("/{location_id}", response_model=LocationOut)
def api_get(location_id: int, db: Session = Depends(get_db)):
    return require_location(db, location_id)


@router.post("", response_model=LocationOut, status_code=201)
def api_create(payload: LocationIn, db: Session = Depends(get_db)):
    return create_location(db, payload.model_dump())


@router.patch("/{location_id}", response_model=LocationOut)
def api_update(location_id: int, payload: LocationIn, db: Session = Depends(get_db)):
    location = require_location(db, location_id)
    data = payload.model_dump(exclude_unset=True)
    assigned = data.pop("assigned_items", None)
    location = update_location(db, location, data)
    if assigned is not None:
        location = set_assigned_items(db, location, assigned)
    return location


@router.delete("/{location_id}")
def api_delete(location_id: int, db: Session = Depends(get_db)):
    delete_location(db, require_location(db, location_id))
    return {"status": "deleted"}


@router.put("/{location_id}/assigned-items", response_model=LocationOut)
def api_assign(location_id: int, payload: AssignedItemsIn, db: Session = Depends(get_db)):
    return set_assigned_items(db, require_location(db, location_id), payload.skus)


@router.get("/{location_id}/products", response_model=list[ProductOut])
def api_allowed_products(location_id: int, db: Session = Depends(get_db)):
    return allowed_products(db, require_location(db, location_id))


@router.get("/{location_id}/stock", response_model=list[LocationStockLine])
def api_stock(location_id: int, db: Session = Depends(get_db)):
    return location_stock_report(db, require_location(db, location_id))


@router.put("/{location_id}/stock")
def api_set_stock(location_id: int, payload: LocationStockUpdate, db: Session = Depends(get_db)):
    quantity = set_location_stock(db, location_id, payload.sku, payload.quantity)
    return {"location_id": location_id, "sku": payload.sku, "quantity": quantity}


@router.post("/{location_id}/stock")
def api_write_stock(location_id: int, payload: LocationStockMap, db: Session = Depends(get_db)):
    """Write a ``{sku: qty}`` map. ``replace`` clears SKUs missing from the map."""

    if payload.replace:
        return replace_location_stock(db, location_id, payload.quantities)
    return merge_location_stock(db, location_id, payload.quantities)


@router.get("/{location_id}/config")
def api_config(location_id: int, db: Session = Depends(get_db)):
    require_location(db, location_id)
    return get_location_config(db, location_id)


@router.put("/{location_id}/config")
def api_set_config(location_id: int, payload: LocationConfigIn, db: Session = Depends(get_db)):
    config = set_location_config(db, location_id, payload.sku, payload.min_stock, payload.max_stock)
    return {"sku": payload.sku, **config}


@router.get("/{location_id}/restocks", response_model=list[RestockOut])
def api_restocks(location_id: int, limit: int = 50, db: Session = Depends(get_db)):
    require_location(db, location_id)
    return restock_history(db, location_id, limit=limit)


@router.get("/{location_id}/stock-checks", response_model=list[StockCheckOut])
def api_stock_checks(location_id: int, limit: int = 50, db: Session = Depends(get_db)):
    require_location(db, location_id)
    return stock_check_history(db, location_id, limit=limit)
