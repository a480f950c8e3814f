"""Catalog CRUD: products, suppliers, warehouses, locations and restock routes."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from ..core.barcodes import barcode_aliases, normalize_barcode
from ..core.clock import utcnow_iso
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..models.catalog import (
    LOCATION_TYPES,
    Location,
    LocationAssignment,
    Product,
    RestockRoute,
    Supplier,
    Warehouse,
)

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("name", "category", "unit_cost", "sale_price", "units_per_box", "supplier_id", "barcode")


def _clean_text(value: object) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _require_name(payload: dict, label: str = "name") -> str:
    name = _clean_text(payload.get(label))
    if not name:
        raise ValidationError(f"{label} is required")
    return name


def _to_price(value: object, field: str) -> float | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, str):
        value = value.strip().replace("£", "").replace("$", "").replace(",", "")
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if price < 0:
        raise ValidationError(f"{field} cannot be negative")
    return price


def _to_units_per_box(value: object) -> int:
    if value is None or value == "":
        return 1
    try:
        units = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("units_per_box must be a whole number") from exc
    if units < 1:
        raise ValidationError("units_per_box must be at least 1")
    return units


def _apply_product_fields(product: Product, payload: dict) -> None:
    for key in PRODUCT_FIELDS:
        if key not in payload:
            continue
        value = payload[key]
        if key == "name":
            name = _clean_text(value)
            if not name:
                raise ValidationError("name is required")
            product.name = name
        elif key in ("unit_cost", "sale_price"):
            setattr(product, key, _to_price(value, key))
        elif key == "units_per_box":
            product.units_per_box = _to_units_per_box(value)
        elif key == "barcode":
            product.barcode = normalize_barcode(value)
        elif key == "category":
            product.category = _clean_text(value)
        else:
            product.supplier_id = value


# ---------- Products ----------


def list_products(db: Session, search: str | None = None, category: str | None = None) -> list[Product]:
    stmt = select(Product)
    term = _clean_text(search)
    if term:
        pattern = f"%{term.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Product.name).like(pattern),
                func.lower(Product.sku).like(pattern),
                func.lower(Product.category).like(pattern),
            )
        )
    if category:
        stmt = stmt.where(Product.category == category)
    return list(db.execute(stmt.order_by(Product.name)).unique().scalars().all())


def get_product(db: Session, sku: str) -> Product | None:
    return db.get(Product, sku)


def require_product(db: Session, sku: str) -> Product:
    product = get_product(db, sku)
    if not product:
        raise NotFoundError(f"product {sku} not found")
    return product


def find_product_by_barcode(db: Session, barcode: str | None) -> Product | None:
    for candidate in barcode_aliases(barcode):
        match = db.execute(select(Product).where(Product.barcode == candidate)).unique().scalars().first()
        if match:
            return match
    return None


def create_product(db: Session, payload: dict) -> Product:
    sku = _clean_text(payload.get("sku"))
    if not sku:
        raise ValidationError("sku is required")
    _require_name(payload)
    if get_product(db, sku):
        raise ConflictError(f"product {sku} already exists", details={"sku": sku})

    now = utcnow_iso()
    product = Product(sku=sku, units_per_box=1, created_at=now, updated_at=now)
    _apply_product_fields(product, payload)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def update_product(db: Session, product: Product, payload: dict) -> Product:
    """Update in place. Unknown keys and ``sku`` are ignored."""

    _apply_product_fields(product, payload)
    product.updated_at = utcnow_iso()
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product: Product) -> None:
    # Stock, order and sale rows keep the SKU as plain text.
    db.delete(product)
    db.commit()


def check_sku_conflict(db: Session, sku: str, name: str | None = None) -> dict[str, object]:
    existing = get_product(db, sku)
    if not existing:
        return {"exists": False, "conflict": False, "existing_name": None}
    conflict = existing.name.lower() != (name or "").strip().lower()
    return {"exists": True, "conflict": conflict, "existing_name": existing.name}


def import_products(db: Session, rows: Iterable[dict]) -> dict[str, object]:
    """Upsert products by SKU. Row failures are reported, never raised."""

    created = 0
    updated = 0
    errors: list[dict[str, str | None]] = []
    for row in rows:
        sku = _clean_text(row.get("sku"))
        try:
            if not sku:
                raise ValidationError("sku is required")
            # Validate on a scratch instance so a bad row never half-updates a product.
            _apply_product_fields(Product(sku=sku), row)
        except ValidationError as exc:
            errors.append({"sku": sku, "error": exc.message})
            continue

        product = get_product(db, sku)
        now = utcnow_iso()
        if product is None:
            if not _clean_text(row.get("name")):
                errors.append({"sku": sku, "error": "name is required"})
                continue
            product = Product(sku=sku, units_per_box=1, created_at=now, updated_at=now)
            _apply_product_fields(product, row)
            db.add(product)
            db.flush()
            created += 1
        else:
            _apply_product_fields(product, row)
            product.updated_at = now
            updated += 1
    db.commit()
    logger.info(
        "products.imported",
        extra={"extra_data": {"created": created, "updated": updated, "errors": len(errors)}},
    )
    return {"created": created, "updated": updated, "errors": errors}


# ---------- Suppliers ----------


def list_suppliers(db: Session) -> list[Supplier]:
    return list(db.execute(select(Supplier).order_by(Supplier.name)).scalars().all())


def get_supplier(db: Session, supplier_id: int) -> Supplier | None:
    return db.get(Supplier, supplier_id)


def create_supplier(db: Session, payload: dict) -> Supplier:
    supplier = Supplier(
        name=_require_name(payload),
        contact=_clean_text(payload.get("contact")),
        email=_clean_text(payload.get("email")),
        phone=_clean_text(payload.get("phone")),
        address=_clean_text(payload.get("address")),
        created_at=utcnow_iso(),
    )
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def update_supplier(db: Session, supplier: Supplier, payload: dict) -> Supplier:
    if "name" in payload:
        supplier.name = _require_name(payload)
    for field in ("contact", "email", "phone", "address"):
        if field in payload:
            setattr(supplier, field, _clean_text(payload.get(field)))
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier: Supplier) -> None:
    db.delete(supplier)
    db.commit()


# ---------- Warehouses ----------


def list_warehouses(db: Session) -> list[Warehouse]:
    return list(db.execute(select(Warehouse).order_by(Warehouse.name)).scalars().all())


def get_warehouse(db: Session, warehouse_id: int) -> Warehouse | None:
    return db.get(Warehouse, warehouse_id)


def require_warehouse(db: Session, warehouse_id: int) -> Warehouse:
    warehouse = get_warehouse(db, warehouse_id)
    if not warehouse:
        raise NotFoundError(f"warehouse {warehouse_id} not found")
    return warehouse


def create_warehouse(db: Session, payload: dict) -> Warehouse:
    warehouse = Warehouse(
        name=_require_name(payload),
        address=_clean_text(payload.get("address")),
        created_at=utcnow_iso(),
    )
    db.add(warehouse)
    db.commit()
    db.refresh(warehouse)
    return warehouse


def update_warehouse(db: Session, warehouse: Warehouse, payload: dict) -> Warehouse:
    if "name" in payload:
        warehouse.name = _require_name(payload)
    if "address" in payload:
        warehouse.address = _clean_text(payload.get("address"))
    db.commit()
    db.refresh(warehouse)
    return warehouse


def delete_warehouse(db: Session, warehouse: Warehouse) -> None:
    db.delete(warehouse)
    db.commit()


# ---------- Locations ----------


def _location_type(value: object) -> str:
    location_type = (_clean_text(value) or "vending").lower()
    if location_type not in LOCATION_TYPES:
        raise ValidationError(
            f"type must be one of {', '.join(LOCATION_TYPES)}",
            details={"type": location_type},
        )
    return location_type


def _unique_skus(skus: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for sku in skus:
        cleaned = _clean_text(sku)
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def list_locations(db: Session, location_type: str | None = None) -> list[Location]:
    stmt = select(Location).order_by(Location.name)
    if location_type:
        stmt = stmt.where(Location.type == location_type)
    return list(db.execute(stmt).scalars().all())


def get_location(db: Session, location_id: int) -> Location | None:
    return db.get(Location, location_id)


def require_location(db: Session, location_id: int) -> Location:
    location = get_location(db, location_id)
    if not location:
        raise NotFoundError(f"location {location_id} not found")
    return location


def create_location(db: Session, payload: dict) -> Location:
    location = Location(
        name=_require_name(payload),
        type=_location_type(payload.get("type")),
        address=_clean_text(payload.get("address")),
        created_at=utcnow_iso(),
    )
    location.assignments = [LocationAssignment(sku=sku) for sku in _unique_skus(payload.get("assigned_items") or [])]
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def update_location(db: Session, location: Location, payload: dict) -> Location:
    if "name" in payload:
        location.name = _require_name(payload)
    if "type" in payload:
        location.type = _location_type(payload.get("type"))
    if "address" in payload:
        location.address = _clean_text(payload.get("address"))
    db.commit()
    db.refresh(location)
    return location


def set_assigned_items(db: Session, location: Location, skus: Iterable[str]) -> Location:
    """Replace the location's assignment set. An empty list re-allows every product."""

    db.execute(delete(LocationAssignment).where(LocationAssignment.location_id == location.id))
    for sku in _unique_skus(skus):
        db.add(LocationAssignment(location_id=location.id, sku=sku))
    db.commit()
    db.expire(location)
    db.refresh(location)
    return location


def delete_location(db: Session, location: Location) -> None:
    db.delete(location)
    db.commit()


def allowed_products(db: Session, location: Location) -> list[Product]:
    """Products the location may stock: its assignments, or everything when none are set."""

    assigned = location.assigned_items
    stmt = select(Product).order_by(Product.name)
    if assigned:
        stmt = stmt.where(Product.sku.in_(assigned))
    return list(db.execute(stmt).unique().scalars().all())


# ---------- Restock routes ----------


def list_routes(db: Session) -> list[RestockRoute]:
    return list(db.execute(select(RestockRoute).order_by(RestockRoute.name)).scalars().all())


def get_route(db: Session, route_id: int) -> RestockRoute | None:
    return db.get(RestockRoute, route_id)


def require_route(db: Session, route_id: int) -> RestockRoute:
    route = get_route(db, route_id)
    if not route:
        raise NotFoundError(f"route {route_id} not found")
    return route


def route_locations(db: Session, route: RestockRoute) -> list[Location]:
    """The route's locations in driving order; ids that no longer exist are dropped."""

    ids = route.location_ids
    if not ids:
        return []
    found = {loc.id: loc for loc in db.execute(select(Location).where(Location.id.in_(ids))).scalars().all()}
    return [found[location_id] for location_id in ids if location_id in found]


def create_route(db: Session, payload: dict) -> RestockRoute:
    route = RestockRoute(name=_require_name(payload), created_at=utcnow_iso())
    route.location_ids = payload.get("location_ids") or []
    db.add(route)
    db.commit()
    db.refresh(route)
    return route


def update_route(db: Session, route: RestockRoute, payload: dict) -> RestockRoute:
    if "name" in payload:
        route.name = _require_name(payload)
    if "location_ids" in payload:
        route.location_ids = payload.get("location_ids") or []
    db.commit()
    db.refresh(route)
    return route


def delete_route(db: Session, route: RestockRoute) -> None:
    db.delete(route)
    db.commit()
