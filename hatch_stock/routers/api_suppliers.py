from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..crud.catalog import create_supplier, delete_supplier, get_supplier, list_suppliers, update_supplier
from ..crud.orders import list_orders
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.catalog import SupplierIn, SupplierOut
from ..schemas.orders import OrderOut

router = APIRouter(prefix="/api/v1/suppliers", tags=["suppliers"], dependencies=[Depends(require_api_key)])


def _require(db: Session, supplier_id: int):
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        raise NotFoundError(f"supplier {supplier_id} not found")
    return supplier


@router.get("", response_model=list[SupplierOut])
def api_list(db: Session = Depends(get_db)):
    return list_suppliers(db)


@router.get("/{supplier_id}", response_model=SupplierOut)
def api_get(supplier_id: int, db: Session = Depends(get_db)):
    return _require(db, supplier_id)


@router.get("/{supplier_id}/orders", response_model=list[OrderOut])
def api_orders(supplier_id: int, db: Session = Depends(get_db)):
    _require(db, supplier_id)
    return list_orders(db, supplier_id=supplier_id)


@router.post("", response_model=SupplierOut, status_code=201)
def api_create(payload: SupplierIn, db: Session = Depends(get_db)):
    return create_supplier(db, payload.model_dump())


@router.patch("/{supplier_id}", response_model=SupplierOut)
def api_update(supplier_id: int, payload: SupplierIn, db: Session = Depends(get_db)):
    return update_supplier(db, _require(db, supplier_id), payload.model_dump(exclude_unset=True))


@router.delete("/{supplier_id}")
def api_delete(supplier_id: int, db: Session = Depends(get_db)):
    delete_supplier(db, _require(db, supplier_id))
    return {"status": "deleted"}
