"""Imported point-of-sale records and the optional stock reconciliation they drive."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import parse_iso, to_iso, utcnow_iso
from ..core.errors import ValidationError
from ..core.logging import log_event
from ..db.session import atomic
from ..models.catalog import Location, Product
from ..models.sales import Sale, SalesImport
from .stock import _apply_location_quantity, _current_location_quantity, _to_int

logger = logging.getLogger(__name__)

IMPORT_CHUNK = 500


def _existing_ids(db: Session, ids: list[str]) -> set[str]:
    found: set[str] = set()
    for offset in range(0, len(ids), IMPORT_CHUNK):
        chunk = ids[offset : offset + IMPORT_CHUNK]
        found.update(db.execute(select(Sale.id).where(Sale.id.in_(chunk))).scalars().all())
    return found


def _timestamp(value: object) -> str:
    try:
        parsed = parse_iso(value)  # type: ignore[arg-type]
    except ValueError as exc:
        raise ValidationError("sale timestamp must be ISO-8601", details={"timestamp": value}) from exc
    if parsed is None:
        raise ValidationError("sale timestamp is required")
    return to_iso(parsed)


def _float_or_none(value: object) -> float | None:
    if value is None or value == "":
        return None
    return float(value)  # type: ignore[arg-type]


def import_sales(db: Session, records: Iterable[Mapping[str, object]], filename: str) -> dict[str, object]:
    """Store unseen sales and log the import.

    Records whose id already exists, or repeats an earlier record in the same
    call, are skipped. A sale for an unknown SKU creates the product when the
    record names it.
    """

    records = list(records)
    ids = [str(record.get("id") or "").strip() for record in records]
    if any(not sale_id for sale_id in ids):
        raise ValidationError("every sale needs an id")
    known = _existing_ids(db, list(dict.fromkeys(ids)))

    added = skipped = 0
    new_products: list[str] = []
    with atomic(db, f"sales import {filename}"):
        for sale_id, record in zip(ids, records):
            if sale_id in known:
                skipped += 1
                continue
            sku = str(record.get("sku") or "").strip()
            if not sku:
                raise ValidationError("every sale needs a sku", details={"id": sale_id})
            name = str(record.get("product_name") or "").strip() or None
            category = record.get("category") or None
            if name and sku not in new_products and db.get(Product, sku) is None:
                now = utcnow_iso()
                db.add(
                    Product(
                        sku=sku,
                        name=name,
                        category=category,
                        unit_cost=_float_or_none(record.get("cost_price")),
                        sale_price=_float_or_none(record.get("sale_price")),
                        units_per_box=1,
                        barcode=record.get("barcode") or None,
                        created_at=now,
                        updated_at=now,
                    )
                )
                db.flush()
                new_products.append(sku)
            db.add(
                Sale(
                    id=sale_id,
                    sku=sku,
                    product_name=name,
                    category=category,
                    quantity=_to_int(record.get("quantity") or 1, "quantity"),
                    charged=_float_or_none(record.get("charged")) or 0.0,
                    cost_price=_float_or_none(record.get("cost_price")),
                    payment_method=record.get("payment_method"),
                    location_name=record.get("location_name"),
                    machine_name=record.get("machine_name"),
                    timestamp=_timestamp(record.get("timestamp")),
                )
            )
            known.add(sale_id)
            added += 1
        db.add(
            SalesImport(
                filename=filename,
                records_added=added,
                records_skipped=skipped,
                records_total=len(records),
                imported_at=utcnow_iso(),
            )
        )
    log_event(
        logger,
        "sales.imported",
        filename=filename,
        added=added,
        skipped=skipped,
        new_products=len(new_products),
    )
    return {
        "records_added": added,
        "records_skipped": skipped,
        "records_total": len(records),
        "new_products": new_products,
    }


def list_sales(
    db: Session,
    start: object = None,
    end: object = None,
    sku: str | None = None,
    limit: int | None = 1000,
) -> list[dict[str, object]]:
    """Sales newest first. ``category`` falls back to the product's category."""

    stmt = select(Sale, Product.category).outerjoin(Product, Product.sku == Sale.sku)
    start_dt, end_dt = parse_iso(start), parse_iso(end)  # type: ignore[arg-type]
    if start_dt:
        stmt = stmt.where(Sale.timestamp >= to_iso(start_dt))
    if end_dt:
        stmt = stmt.where(Sale.timestamp <= to_iso(end_dt))
    if sku:
        stmt = stmt.where(Sale.sku == sku)
    stmt = stmt.order_by(Sale.timestamp.desc()).limit(limit)

    rows = []
    for sale, product_category in db.execute(stmt).all():
        rows.append(
            {
                "id": sale.id,
                "sku": sale.sku,
                "product_name": sale.product_name,
                "category": sale.category or product_category,
                "quantity": sale.quantity,
                "charged": sale.charged,
                "cost_price": sale.cost_price,
                "payment_method": sale.payment_method,
                "location_name": sale.location_name,
                "machine_name": sale.machine_name,
                "timestamp": sale.timestamp,
            }
        )
    return rows


def list_imports(db: Session, limit: int = 50) -> list[SalesImport]:
    stmt = select(SalesImport).order_by(SalesImport.imported_at.desc(), SalesImport.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


def summarize_sales_by_location(sales: Iterable[Mapping[str, object]]) -> dict[str, dict[str, int]]:
    """``{location_name: {sku: units}}`` for sales that carry a location."""

    totals: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for sale in sales:
        location_name = sale.get("location_name")
        sku = sale.get("sku")
        if not location_name or not sku:
            continue
        totals[str(location_name)][str(sku)] += int(sale.get("quantity") or 0)
    return {name: dict(skus) for name, skus in totals.items()}


def reconcile_stock_from_sales(
    db: Session,
    sales_by_location_name: Mapping[str, Mapping[str, int]],
    location_map: Mapping[str, int | None],
) -> dict[str, object]:
    """Subtract sold units from mapped locations. Unmapped names are skipped."""

    applied: list[dict[str, object]] = []
    skipped: list[str] = []
    with atomic(db, "sales reconciliation"):
        for location_name, skus in sales_by_location_name.items():
            location_id = location_map.get(location_name)
            if location_id is None or db.get(Location, location_id) is None:
                skipped.append(location_name)
                continue
            for sku, sold in skus.items():
                current = _current_location_quantity(db, location_id, sku)
                new_qty = _apply_location_quantity(db, location_id, sku, current - int(sold))
                applied.append(
                    {
                        "location_id": location_id,
                        "location_name": location_name,
                        "sku": sku,
                        "sold": int(sold),
                        "quantity": new_qty,
                    }
                )
    log_event(logger, "sales.reconciled", applied=len(applied), skipped_locations=len(skipped))
    return {"applied": applied, "skipped_locations": skipped}


__all__ = [
    "import_sales",
    "list_imports",
    "list_sales",
    "reconcile_stock_from_sales",
    "summarize_sales_by_location",
]
