"""Received lots and their expiry dates.

Batches are informational: they record what arrived and when it expires, but
warehouse quantities live in the stock ledger and removals do not draw batches
down. ``remaining_qty`` is maintained by hand through ``update_batch``.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import utcnow, utcnow_iso
from ..core.config import settings
from ..core.errors import NotFoundError, ValidationError
from ..core.logging import log_event
from ..core.stock_status import ExpiryStatus, days_until, expiry_status, parse_expiry
from ..models.stock import StockBatch
from .catalog import require_warehouse

logger = logging.getLogger(__name__)


def _expiry_text(value: object) -> str | None:
    try:
        parsed = parse_expiry(value)  # type: ignore[arg-type]
    except ValueError as exc:
        raise ValidationError("expiry_date must be an ISO date", details={"expiry_date": value}) from exc
    return parsed.date().isoformat() if parsed else None


def _add_batch(
    db: Session,
    warehouse_id: int,
    sku: str,
    quantity: int,
    *,
    expiry_date: object = None,
    has_damage: bool = False,
    damage_notes: str | None = None,
    order_id: int | None = None,
) -> StockBatch:
    """Stage a batch row without committing."""

    if quantity <= 0:
        raise ValidationError("batch quantity must be positive", details={"sku": sku, "quantity": quantity})
    batch = StockBatch(
        warehouse_id=warehouse_id,
        sku=sku,
        quantity=quantity,
        remaining_qty=quantity,
        expiry_date=_expiry_text(expiry_date),
        has_damage=1 if has_damage else 0,
        damage_notes=damage_notes,
        order_id=order_id,
        received_at=utcnow_iso(),
    )
    db.add(batch)
    db.flush()
    return batch


def receive_batch(
    db: Session,
    warehouse_id: int,
    sku: str,
    qty: int,
    expiry_date: object = None,
    has_damage: bool = False,
    damage_notes: str | None = None,
    order_id: int | None = None,
) -> StockBatch:
    require_warehouse(db, warehouse_id)
    batch = _add_batch(
        db,
        warehouse_id,
        sku,
        qty,
        expiry_date=expiry_date,
        has_damage=has_damage,
        damage_notes=damage_notes,
        order_id=order_id,
    )
    db.commit()
    db.refresh(batch)
    log_event(logger, "batch.received", batch_id=batch.id, warehouse_id=warehouse_id, sku=sku, quantity=batch.quantity)
    return batch


def list_batches(
    db: Session,
    warehouse_id: int | None = None,
    sku: str | None = None,
    has_remaining: bool = False,
) -> list[StockBatch]:
    """Batches ordered by expiry; undated batches sort last."""

    stmt = select(StockBatch)
    if warehouse_id is not None:
        stmt = stmt.where(StockBatch.warehouse_id == warehouse_id)
    if sku:
        stmt = stmt.where(StockBatch.sku == sku)
    if has_remaining:
        stmt = stmt.where(StockBatch.remaining_qty > 0)
    stmt = stmt.order_by(StockBatch.expiry_date.is_(None), StockBatch.expiry_date, StockBatch.id)
    return list(db.execute(stmt).scalars().all())


def get_batch(db: Session, batch_id: int) -> StockBatch | None:
    return db.get(StockBatch, batch_id)


def require_batch(db: Session, batch_id: int) -> StockBatch:
    batch = get_batch(db, batch_id)
    if not batch:
        raise NotFoundError(f"batch {batch_id} not found")
    return batch


def update_batch(db: Session, batch_id: int, payload: dict) -> StockBatch:
    batch = require_batch(db, batch_id)
    if "remaining_qty" in payload and payload["remaining_qty"] is not None:
        remaining = int(payload["remaining_qty"])
        if remaining < 0 or remaining > batch.quantity:
            raise ValidationError(
                f"remaining_qty must be between 0 and {batch.quantity}",
                details={"remaining_qty": remaining},
            )
        batch.remaining_qty = remaining
    if "expiry_date" in payload:
        batch.expiry_date = _expiry_text(payload["expiry_date"])
    if "has_damage" in payload:
        batch.has_damage = 1 if payload["has_damage"] else 0
    if "damage_notes" in payload:
        batch.damage_notes = payload["damage_notes"]
    db.commit()
    db.refresh(batch)
    return batch


def delete_batch(db: Session, batch_id: int) -> None:
    batch = require_batch(db, batch_id)
    db.delete(batch)
    db.commit()


def batch_expiry(batch: StockBatch, now: datetime | None = None) -> dict[str, object]:
    now = now or utcnow()
    status = expiry_status(
        batch.expiry_date,
        now,
        critical_days=settings.EXPIRY_CRITICAL_DAYS,
        warning_days=settings.EXPIRY_WARNING_DAYS,
    )
    return {
        "status": status.value if status else None,
        "days_until_expiry": days_until(batch.expiry_date, now) if batch.expiry_date else None,
    }


def expiring_batches(db: Session, days: int = 30, now: datetime | None = None) -> dict[str, list[StockBatch]]:
    """Batches with stock left that expire within ``days``, bucketed by urgency."""

    now = now or utcnow()
    buckets: dict[str, list[StockBatch]] = {"expired": [], "critical": [], "warning": []}
    for batch in list_batches(db, has_remaining=True):
        if not batch.expiry_date:
            continue
        remaining_days = days_until(batch.expiry_date, now)
        if remaining_days > days:
            continue
        status = expiry_status(
            batch.expiry_date,
            now,
            critical_days=settings.EXPIRY_CRITICAL_DAYS,
            warning_days=max(days, settings.EXPIRY_CRITICAL_DAYS),
        )
        if status is ExpiryStatus.EXPIRED:
            buckets["expired"].append(batch)
        elif status is ExpiryStatus.CRITICAL:
            buckets["critical"].append(batch)
        else:
            buckets["warning"].append(batch)
    return buckets


def earliest_expiry(db: Session, sku: str, warehouse_id: int | None = None) -> str | None:
    """Soonest expiry among the SKU's batches that still hold stock."""

    stmt = select(StockBatch.expiry_date).where(
        StockBatch.sku == sku,
        StockBatch.remaining_qty > 0,
        StockBatch.expiry_date.is_not(None),
    )
    if warehouse_id is not None:
        stmt = stmt.where(StockBatch.warehouse_id == warehouse_id)
    stmt = stmt.order_by(StockBatch.expiry_date).limit(1)
    return db.execute(stmt).scalars().first()
