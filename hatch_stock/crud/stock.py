"""Stock ledger.

WHAT:
    Current quantities per (warehouse, sku) and per (location, sku), plus the
    per-location min/max thresholds that drive stock status.

WHEN:
    Written by manual adjustments, order receipts, removals, restocks and
    stock checks. Read by reports and order suggestions.

HOW:
    The ``_apply_*`` helpers mutate rows without committing so the movement
    and order modules can compose several of them inside one ``atomic`` block.
    Quantities are clamped at zero; a clamp is logged, never raised.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..core.clock import utcnow_iso
from ..core.errors import ValidationError
from ..core.logging import log_event
from ..core.stock_status import get_stock_status
from ..db.session import atomic
from ..models.catalog import Location, Product
from ..models.stock import LocationConfig, LocationStock, WarehouseStock
from .catalog import require_location, require_warehouse

logger = logging.getLogger(__name__)


def _to_int(value: object, field: str = "quantity") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a whole number", details={field: value}) from exc
    if not number.is_integer():
        raise ValidationError(f"{field} must be a whole number", details={field: value})
    return int(number)


def _warehouse_row(db: Session, warehouse_id: int, sku: str) -> WarehouseStock | None:
    stmt = select(WarehouseStock).where(WarehouseStock.warehouse_id == warehouse_id, WarehouseStock.sku == sku)
    return db.execute(stmt).scalars().first()


def _location_row(db: Session, location_id: int, sku: str) -> LocationStock | None:
    stmt = select(LocationStock).where(LocationStock.location_id == location_id, LocationStock.sku == sku)
    return db.execute(stmt).scalars().first()


def _clamped(requested: int, *, scope: str, owner_id: int, sku: str) -> int:
    if requested >= 0:
        return requested
    log_event(
        logger,
        "stock.clamped",
        logging.DEBUG,
        scope=scope,
        owner_id=owner_id,
        sku=sku,
        requested=requested,
    )
    return 0


def _apply_warehouse_delta(db: Session, warehouse_id: int, sku: str, delta: int) -> int:
    """Add ``delta`` to the warehouse row, creating it on first touch. Returns the new quantity."""

    row = _warehouse_row(db, warehouse_id, sku)
    current = row.quantity if row else 0
    new_qty = _clamped(current + delta, scope="warehouse", owner_id=warehouse_id, sku=sku)
    now = utcnow_iso()
    if row is None:
        row = WarehouseStock(warehouse_id=warehouse_id, sku=sku, quantity=new_qty, updated_at=now)
        db.add(row)
    else:
        row.quantity = new_qty
        row.updated_at = now
    db.flush()
    return new_qty


def _apply_location_quantity(db: Session, location_id: int, sku: str, quantity: int) -> int:
    """Set the location row to an absolute quantity. Returns the stored value."""

    row = _location_row(db, location_id, sku)
    new_qty = _clamped(quantity, scope="location", owner_id=location_id, sku=sku)
    now = utcnow_iso()
    if row is None:
        row = LocationStock(location_id=location_id, sku=sku, quantity=new_qty, updated_at=now)
        db.add(row)
    else:
        row.quantity = new_qty
        row.updated_at = now
    db.flush()
    return new_qty


def _current_location_quantity(db: Session, location_id: int, sku: str) -> int:
    row = _location_row(db, location_id, sku)
    return row.quantity if row else 0


# ---------- Warehouse stock ----------


def get_warehouse_stock(db: Session, warehouse_id: int | None = None) -> dict[int, dict[str, int]]:
    stmt = select(WarehouseStock).order_by(WarehouseStock.warehouse_id, WarehouseStock.sku)
    if warehouse_id is not None:
        stmt = stmt.where(WarehouseStock.warehouse_id == warehouse_id)
    result: dict[int, dict[str, int]] = {}
    for row in db.execute(stmt).scalars().all():
        result.setdefault(row.warehouse_id, {})[row.sku] = row.quantity
    return result


def warehouse_quantity(db: Session, warehouse_id: int, sku: str) -> int:
    row = _warehouse_row(db, warehouse_id, sku)
    return row.quantity if row else 0


def set_warehouse_stock(
    db: Session,
    warehouse_id: int,
    sku: str,
    quantity: object,
    *,
    is_delta: bool = True,
) -> int:
    """Adjust (``is_delta``) or overwrite a warehouse quantity. The result is never negative."""

    require_warehouse(db, warehouse_id)
    amount = _to_int(quantity)
    with atomic(db, "warehouse stock update"):
        if is_delta:
            new_qty = _apply_warehouse_delta(db, warehouse_id, sku, amount)
        else:
            new_qty = _apply_warehouse_delta(db, warehouse_id, sku, amount - warehouse_quantity(db, warehouse_id, sku))
    log_event(
        logger,
        "warehouse_stock.updated",
        warehouse_id=warehouse_id,
        sku=sku,
        quantity=new_qty,
        is_delta=is_delta,
    )
    return new_qty


def bulk_set_warehouse_stock(db: Session, warehouse_id: int, updates: Iterable[Mapping[str, object]]) -> dict[str, object]:
    """Apply many adjustments in one transaction. Invalid lines are reported and skipped."""

    require_warehouse(db, warehouse_id)
    updated = 0
    errors: list[dict[str, object]] = []
    with atomic(db, "bulk warehouse stock update"):
        for update in updates:
            sku = str(update.get("sku") or "").strip()
            if not sku:
                errors.append({"sku": None, "error": "sku is required"})
                continue
            try:
                amount = _to_int(update.get("quantity"))
            except ValidationError as exc:
                errors.append({"sku": sku, "error": exc.message})
                continue
            if update.get("is_delta", True):
                _apply_warehouse_delta(db, warehouse_id, sku, amount)
            else:
                _apply_warehouse_delta(db, warehouse_id, sku, amount - warehouse_quantity(db, warehouse_id, sku))
            updated += 1
    log_event(logger, "warehouse_stock.bulk_updated", warehouse_id=warehouse_id, updated=updated, errors=len(errors))
    return {"updated": updated, "errors": errors}


# ---------- Location stock ----------


def get_location_stock(db: Session, location_id: int) -> dict[str, int]:
    stmt = select(LocationStock).where(LocationStock.location_id == location_id).order_by(LocationStock.sku)
    return {row.sku: row.quantity for row in db.execute(stmt).scalars().all()}


def set_location_stock(db: Session, location_id: int, sku: str, quantity: object) -> int:
    require_location(db, location_id)
    amount = _to_int(quantity)
    with atomic(db, "location stock update"):
        new_qty = _apply_location_quantity(db, location_id, sku, amount)
    log_event(logger, "location_stock.updated", location_id=location_id, sku=sku, quantity=new_qty)
    return new_qty


def merge_location_stock(db: Session, location_id: int, quantities: Mapping[str, object]) -> dict[str, int]:
    """Overwrite the given SKUs. SKUs not mentioned keep their quantity."""

    require_location(db, location_id)
    parsed = {sku: _to_int(qty, f"quantity for {sku}") for sku, qty in quantities.items()}
    with atomic(db, "location stock merge"):
        for sku, qty in parsed.items():
            _apply_location_quantity(db, location_id, sku, qty)
    return get_location_stock(db, location_id)


def replace_location_stock(db: Session, location_id: int, quantities: Mapping[str, object]) -> dict[str, int]:
    """Make the location hold exactly ``quantities``; every other SKU row is removed."""

    require_location(db, location_id)
    parsed = {sku: _to_int(qty, f"quantity for {sku}") for sku, qty in quantities.items()}
    with atomic(db, "location stock replace"):
        stmt = delete(LocationStock).where(LocationStock.location_id == location_id)
        if parsed:
            stmt = stmt.where(LocationStock.sku.not_in(list(parsed)))
        db.execute(stmt)
        for sku, qty in parsed.items():
            _apply_location_quantity(db, location_id, sku, qty)
    log_event(logger, "location_stock.replaced", location_id=location_id, skus=len(parsed))
    return get_location_stock(db, location_id)


# ---------- Location thresholds ----------


def _threshold(value: object, field: str) -> int | None:
    if value is None or value == "":
        return None
    number = _to_int(value, field)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: number})
    return number


def get_location_config(db: Session, location_id: int) -> dict[str, dict[str, int | None]]:
    stmt = select(LocationConfig).where(LocationConfig.location_id == location_id).order_by(LocationConfig.sku)
    return {row.sku: row.as_dict() for row in db.execute(stmt).scalars().all()}


def set_location_config(
    db: Session,
    location_id: int,
    sku: str,
    min_stock: object = None,
    max_stock: object = None,
) -> dict[str, int | None]:
    """Upsert thresholds for one SKU. ``max_stock`` below ``min_stock`` is stored as given."""

    require_location(db, location_id)
    min_value = _threshold(min_stock, "min_stock")
    max_value = _threshold(max_stock, "max_stock")
    with atomic(db, "location config update"):
        stmt = select(LocationConfig).where(LocationConfig.location_id == location_id, LocationConfig.sku == sku)
        row = db.execute(stmt).scalars().first()
        if row is None:
            row = LocationConfig(location_id=location_id, sku=sku)
            db.add(row)
        row.min_stock = min_value
        row.max_stock = max_value
        db.flush()
        config = row.as_dict()
    return config


def location_stock_report(db: Session, location: Location) -> list[dict[str, object]]:
    """One line per SKU that is stocked, configured or assigned at the location."""

    stock = get_location_stock(db, location.id)
    config = get_location_config(db, location.id)
    skus = list(dict.fromkeys([*location.assigned_items, *stock.keys(), *config.keys()]))
    products = {}
    if skus:
        products = {p.sku: p for p in db.execute(select(Product).where(Product.sku.in_(skus))).unique().scalars().all()}

    report = []
    for sku in sorted(skus):
        product = products.get(sku)
        thresholds = config.get(sku, {"min_stock": None, "max_stock": None})
        quantity = stock.get(sku, 0)
        report.append(
            {
                "sku": sku,
                "name": product.name if product else None,
                "category": product.category if product else None,
                "quantity": quantity,
                "min_stock": thresholds["min_stock"],
                "max_stock": thresholds["max_stock"],
                "status": get_stock_status(quantity, thresholds).value,
            }
        )
    return report


__all__ = [
    "bulk_set_warehouse_stock",
    "get_location_config",
    "get_location_stock",
    "get_warehouse_stock",
    "location_stock_report",
    "merge_location_stock",
    "replace_location_stock",
    "set_location_config",
    "set_location_stock",
    "set_warehouse_stock",
    "warehouse_quantity",
]
