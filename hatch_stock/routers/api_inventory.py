"""Stock movement endpoints.

WHAT: Warehouse stock overview, received batches and expiry buckets, and the
      three recorded movements: removals, restocks and stock checks.
WHEN: Called by the warehouse and driver screens whenever stock moves.
HOW:  Removals pick their target variant from the payload: ``is_adhoc`` means
      a write-off, otherwise the removal is routed to ``route_id``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.clock import utcnow
from ..crud.batches import (
    batch_expiry,
    earliest_expiry,
    expiring_batches,
    list_batches,
    receive_batch,
    update_batch,
)
from ..crud.movements import (
    Adhoc,
    Routed,
    list_removals,
    list_stock_checks,
    record_removal,
    record_restock,
    submit_stock_check,
)
from ..crud.stock import get_warehouse_stock
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..models.stock import StockBatch
from ..schemas.movements import RemovalIn, RemovalOut, RestockIn, RestockOut, StockCheckIn, StockCheckOut
from ..schemas.stock import BatchIn, BatchOut, BatchUpdate, ExpiringBatchesOut

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"], dependencies=[Depends(require_api_key)])


def _batch_out(batch: StockBatch, now=None) -> BatchOut:
    out = BatchOut.model_validate(batch)
    expiry = batch_expiry(batch, now)
    out.expiry_status = expiry["status"]
    out.days_until_expiry = expiry["days_until_expiry"]
    return out


@router.get("/warehouse-stock")
def api_warehouse_stock(warehouse_id: Optional[int] = None, db: Session = Depends(get_db)):
    return get_warehouse_stock(db, warehouse_id)


# ---------- Batches ----------


@router.get("/batches", response_model=list[BatchOut])
def api_batches(
    warehouse_id: Optional[int] = None,
    sku: Optional[str] = None,
    has_remaining: bool = False,
    db: Session = Depends(get_db),
):
    now = utcnow()
    return [_batch_out(batch, now) for batch in list_batches(db, warehouse_id, sku, has_remaining)]


@router.get("/batches/expiring", response_model=ExpiringBatchesOut)
def api_expiring(days: int = 30, db: Session = Depends(get_db)):
    now = utcnow()
    buckets = expiring_batches(db, days=days, now=now)
    return {key: [_batch_out(batch, now) for batch in batches] for key, batches in buckets.items()}


@router.get("/batches/earliest-expiry")
def api_earliest_expiry(sku: str, warehouse_id: Optional[int] = None, db: Session = Depends(get_db)):
    return {"sku": sku, "warehouse_id": warehouse_id, "expiry_date": earliest_expiry(db, sku, warehouse_id)}


@router.post("/batches", response_model=BatchOut, status_code=201)
def api_receive_batch(payload: BatchIn, db: Session = Depends(get_db)):
    batch = receive_batch(
        db,
        payload.warehouse_id,
        payload.sku,
        payload.quantity,
        expiry_date=payload.expiry_date,
        has_damage=payload.has_damage,
        damage_notes=payload.damage_notes,
    )
    return _batch_out(batch)


@router.patch("/batches/{batch_id}", response_model=BatchOut)
def api_update_batch(batch_id: int, payload: BatchUpdate, db: Session = Depends(get_db)):
    return _batch_out(update_batch(db, batch_id, payload.model_dump(exclude_unset=True)))


# ---------- Movements ----------


@router.post("/removals", response_model=RemovalOut, status_code=201)
def api_remove(payload: RemovalIn, db: Session = Depends(get_db)):
    target = Adhoc() if payload.is_adhoc else Routed(payload.route_id, payload.target_location_id)
    return record_removal(
        db,
        payload.warehouse_id,
        target,
        [item.model_dump() for item in payload.items],
        taken_by=payload.taken_by,
        notes=payload.notes,
    )


@router.get("/removals", response_model=list[RemovalOut])
def api_removals(
    warehouse_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return list_removals(db, warehouse_id=warehouse_id, start=start, end=end, limit=limit)


@router.post("/restocks", response_model=RestockOut, status_code=201)
def api_restock(payload: RestockIn, db: Session = Depends(get_db)):
    return record_restock(
        db,
        payload.location_id,
        [item.model_dump() for item in payload.items],
        performed_by=payload.performed_by,
        photo_url=payload.photo_url,
        stock_check_id=payload.stock_check_id,
        notes=payload.notes,
        photo_override=payload.photo_override,
    )


@router.post("/stock-checks", response_model=StockCheckOut, status_code=201)
def api_stock_check(payload: StockCheckIn, db: Session = Depends(get_db)):
    return submit_stock_check(
        db,
        payload.location_id,
        [item.model_dump() for item in payload.items],
        performed_by=payload.performed_by,
    )


@router.get("/stock-checks", response_model=list[StockCheckOut])
def api_stock_checks(
    location_id: Optional[int] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return list_stock_checks(db, start=start, end=end, location_id=location_id)
