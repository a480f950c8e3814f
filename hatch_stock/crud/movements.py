"""Movement recorder.

WHAT:
    Removals (warehouse -> route or write-off), restocks (delivery into a
    location) and stock checks (physical count that overwrites location stock).

WHY:
    Every quantity change outside manual adjustments and order receipts goes
    through here so each one leaves an append-only record.

HOW:
    Each operation validates its input, then writes the ledger rows and the
    record inside one ``atomic`` block. A removal never credits a location;
    the matching increase only happens when a restock is recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import parse_iso, to_iso, utcnow_iso
from ..core.errors import NotFoundError, ValidationError
from ..core.logging import log_event
from ..db.session import atomic
from ..models.movements import RestockRecord, StockCheck, StockRemoval
from .catalog import require_location, require_route, require_warehouse
from .stock import (
    _apply_location_quantity,
    _apply_warehouse_delta,
    _current_location_quantity,
    _to_int,
)

logger = logging.getLogger(__name__)

SHRINKAGE_REASONS = ("theft", "swap", "damaged", "malfunction", "unknown")
DEFAULT_REASON = "unknown"


@dataclass(frozen=True)
class Adhoc:
    """Write-off, tasting or sample: stock leaves the warehouse for no location."""


@dataclass(frozen=True)
class Routed:
    route_id: int
    location_id: int | None = None


RemovalTarget = Union[Adhoc, Routed]


def _line_items(items: Iterable[Mapping[str, object]], *, allow_zero: bool = False) -> list[dict[str, object]]:
    """Normalise ``{sku, quantity}`` lines, merging repeats of the same SKU."""

    merged: dict[str, int] = {}
    for item in items or []:
        sku = str(item.get("sku") or "").strip()
        if not sku:
            raise ValidationError("every item needs a sku")
        quantity = _to_int(item.get("quantity"), f"quantity for {sku}")
        if quantity < 0 or (quantity == 0 and not allow_zero):
            raise ValidationError(f"quantity for {sku} must be positive", details={"sku": sku})
        merged[sku] = merged.get(sku, 0) + quantity
    if not merged:
        raise ValidationError("at least one item is required")
    return [{"sku": sku, "quantity": qty} for sku, qty in merged.items()]


def _window(stmt, column, start: object, end: object):
    start_dt = parse_iso(start)  # type: ignore[arg-type]
    end_dt = parse_iso(end)  # type: ignore[arg-type]
    if start_dt:
        stmt = stmt.where(column >= to_iso(start_dt))
    if end_dt:
        stmt = stmt.where(column <= to_iso(end_dt))
    return stmt


# ---------- Removals ----------


def record_removal(
    db: Session,
    warehouse_id: int,
    target: RemovalTarget,
    items: Iterable[Mapping[str, object]],
    taken_by: str | None = None,
    notes: str | None = None,
) -> StockRemoval:
    require_warehouse(db, warehouse_id)
    lines = _line_items(items)

    route_id = route_name = location_id = None
    if isinstance(target, Routed):
        route = require_route(db, target.route_id)
        route_id, route_name = route.id, route.name
        if target.location_id is not None:
            location_id = require_location(db, target.location_id).id
    elif not isinstance(target, Adhoc):
        raise ValidationError("removal target must be Adhoc or Routed")

    with atomic(db, "stock removal"):
        for line in lines:
            line["warehouse_remaining"] = _apply_warehouse_delta(db, warehouse_id, line["sku"], -line["quantity"])
        removal = StockRemoval(
            warehouse_id=warehouse_id,
            route_id=route_id,
            route_name=route_name,
            target_location_id=location_id,
            is_adhoc=1 if isinstance(target, Adhoc) else 0,
            taken_by=taken_by,
            notes=notes,
            created_at=utcnow_iso(),
        )
        removal.items = lines
        db.add(removal)
    db.refresh(removal)
    log_event(
        logger,
        "removal.recorded",
        removal_id=removal.id,
        warehouse_id=warehouse_id,
        route_id=route_id,
        adhoc=bool(removal.is_adhoc),
        units=sum(line["quantity"] for line in lines),
    )
    return removal


def list_removals(
    db: Session,
    warehouse_id: int | None = None,
    start: object = None,
    end: object = None,
    limit: int = 100,
) -> list[StockRemoval]:
    stmt = select(StockRemoval)
    if warehouse_id is not None:
        stmt = stmt.where(StockRemoval.warehouse_id == warehouse_id)
    stmt = _window(stmt, StockRemoval.created_at, start, end)
    stmt = stmt.order_by(StockRemoval.created_at.desc(), StockRemoval.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


# ---------- Restocks ----------


def record_restock(
    db: Session,
    location_id: int,
    items: Iterable[Mapping[str, object]],
    performed_by: str | None = None,
    photo_url: str | None = None,
    stock_check_id: int | None = None,
    notes: str | None = None,
    photo_override: bool = False,
) -> RestockRecord:
    """Add delivered quantities to the location. A photo or an explicit override is mandatory."""

    require_location(db, location_id)
    if stock_check_id is not None:
        require_stock_check(db, stock_check_id)
    photo_url = (photo_url or "").strip() or None
    if not photo_url and not photo_override:
        raise ValidationError("a restock photo is required unless photo_override is set")
    lines = _line_items(items)

    with atomic(db, "restock"):
        for line in lines:
            current = _current_location_quantity(db, location_id, line["sku"])
            line["location_quantity"] = _apply_location_quantity(db, location_id, line["sku"], current + line["quantity"])
        record = RestockRecord(
            location_id=location_id,
            performed_by=performed_by,
            photo_url=photo_url,
            photo_override=1 if photo_override else 0,
            stock_check_id=stock_check_id,
            notes=notes,
            created_at=utcnow_iso(),
        )
        record.items = lines
        db.add(record)
    db.refresh(record)
    log_event(
        logger,
        "restock.recorded",
        restock_id=record.id,
        location_id=location_id,
        units=sum(line["quantity"] for line in lines),
        photo_override=photo_override,
    )
    return record


def restock_history(db: Session, location_id: int, limit: int = 50) -> list[RestockRecord]:
    stmt = (
        select(RestockRecord)
        .where(RestockRecord.location_id == location_id)
        .order_by(RestockRecord.created_at.desc(), RestockRecord.id.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


# ---------- Stock checks ----------


def _reason(value: object) -> str:
    reason = str(value or DEFAULT_REASON).strip().lower()
    if reason not in SHRINKAGE_REASONS:
        raise ValidationError(
            f"reason must be one of {', '.join(SHRINKAGE_REASONS)}",
            details={"reason": reason},
        )
    return reason


def submit_stock_check(
    db: Session,
    location_id: int,
    items: Iterable[Mapping[str, object]],
    performed_by: str | None = None,
) -> StockCheck:
    """Record a count and overwrite location stock with the counted values.

    ``expected`` falls back to the quantity on record. A reason is stored only
    for negative variances.
    """

    require_location(db, location_id)
    counts: dict[str, dict[str, object]] = {}
    for item in items or []:
        sku = str(item.get("sku") or "").strip()
        if not sku:
            raise ValidationError("every item needs a sku")
        counted = _to_int(item.get("counted"), f"counted for {sku}")
        if counted < 0:
            raise ValidationError(f"counted for {sku} cannot be negative", details={"sku": sku})
        expected = item.get("expected")
        counts[sku] = {
            "expected": None if expected is None else _to_int(expected, f"expected for {sku}"),
            "counted": counted,
            "reason": item.get("reason"),
        }
    if not counts:
        raise ValidationError("at least one item is required")

    lines: list[dict[str, object]] = []
    with atomic(db, "stock check"):
        for sku, entry in counts.items():
            expected = entry["expected"]
            if expected is None:
                expected = _current_location_quantity(db, location_id, sku)
            variance = entry["counted"] - expected
            lines.append(
                {
                    "sku": sku,
                    "expected": expected,
                    "counted": entry["counted"],
                    "variance": variance,
                    "reason": _reason(entry["reason"]) if variance < 0 else None,
                }
            )
            _apply_location_quantity(db, location_id, sku, entry["counted"])
        check = StockCheck(location_id=location_id, performed_by=performed_by, created_at=utcnow_iso())
        check.items = lines
        db.add(check)
    db.refresh(check)
    log_event(
        logger,
        "stock_check.submitted",
        stock_check_id=check.id,
        location_id=location_id,
        skus=len(lines),
        total_variance=check.total_variance,
    )
    return check


def require_stock_check(db: Session, check_id: int) -> StockCheck:
    check = db.get(StockCheck, check_id)
    if not check:
        raise NotFoundError(f"stock check {check_id} not found")
    return check


def stock_check_history(db: Session, location_id: int, limit: int = 50) -> list[StockCheck]:
    stmt = (
        select(StockCheck)
        .where(StockCheck.location_id == location_id)
        .order_by(StockCheck.created_at.desc(), StockCheck.id.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def list_stock_checks(
    db: Session,
    start: object = None,
    end: object = None,
    location_id: int | None = None,
) -> list[StockCheck]:
    stmt = select(StockCheck)
    if location_id is not None:
        stmt = stmt.where(StockCheck.location_id == location_id)
    stmt = _window(stmt, StockCheck.created_at, start, end)
    return list(db.execute(stmt.order_by(StockCheck.created_at, StockCheck.id)).scalars().all())


__all__ = [
    "Adhoc",
    "RemovalTarget",
    "Routed",
    "SHRINKAGE_REASONS",
    "list_removals",
    "list_stock_checks",
    "record_removal",
    "record_restock",
    "require_stock_check",
    "restock_history",
    "stock_check_history",
    "submit_stock_check",
]
