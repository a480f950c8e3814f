from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.catalog import create_warehouse, delete_warehouse, list_warehouses, require_warehouse, update_warehouse
from ..crud.stock import bulk_set_warehouse_stock, get_warehouse_stock, set_warehouse_stock
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.catalog import WarehouseIn, WarehouseOut
from ..schemas.stock import BulkUpdateResult, BulkWarehouseStockUpdate, WarehouseStockUpdate

router = APIRouter(prefix="/api/v1/warehouses", tags=["warehouses"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[WarehouseOut])
def api_list(db: Session = Depends(get_db)):
    return list_warehouses(db)


@router.get("/{warehouse_id}", response_model=WarehouseOut)
def api_get(warehouse_id: int, db: Session = Depends(get_db)):
    return require_warehouse(db, warehouse_id)


@router.post("", response_model=WarehouseOut, status_code=201)
def api_create(payload: WarehouseIn, db: Session = Depends(get_db)):
    return create_warehouse(db, payload.model_dump())


@router.patch("/{warehouse_id}", response_model=WarehouseOut)
def api_update(warehouse_id: int, payload: WarehouseIn, db: Session = Depends(get_db)):
    return update_warehouse(db, require_warehouse(db, warehouse_id), payload.model_dump(exclude_unset=True))


@router.delete("/{warehouse_id}")
def api_delete(warehouse_id: int, db: Session = Depends(get_db)):
    delete_warehouse(db, require_warehouse(db, warehouse_id))
    return {"status": "deleted"}


@router.get("/{warehouse_id}/stock")
def api_stock(warehouse_id: int, db: Session = Depends(get_db)):
    require_warehouse(db, warehouse_id)
    return get_warehouse_stock(db, warehouse_id).get(warehouse_id, {})


@router.put("/{warehouse_id}/stock")
def api_set_stock(warehouse_id: int, payload: WarehouseStockUpdate, db: Session = Depends(get_db)):
    quantity = set_warehouse_stock(db, warehouse_id, payload.sku, payload.quantity, is_delta=payload.is_delta)
    return {"warehouse_id": warehouse_id, "sku": payload.sku, "quantity": quantity}


@router.post("/{warehouse_id}/stock/bulk", response_model=BulkUpdateResult)
def api_bulk_stock(warehouse_id: int, payload: BulkWarehouseStockUpdate, db: Session = Depends(get_db)):
    return bulk_set_warehouse_stock(db, warehouse_id, payload.updates)
