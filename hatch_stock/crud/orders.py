from __future__ import annotations

import logging
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import parse_iso, to_iso, utcnow_iso
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..core.logging import log_event
from ..db.session import atomic
from ..models.orders import ORDER_STATUS_PENDING, ORDER_STATUS_RECEIVED, ORDER_STATUSES, Order, OrderItem
from .batches import _add_batch
from .catalog import get_supplier, require_warehouse
from .stock import _apply_warehouse_delta, _to_int

logger = logging.getLogger(__name__)

HEADER_FIELDS = ("supplier_id", "delivery_method", "delivery_to", "notes", "invoice_ref", "invoice_image_url")


def _money(value: object, field: str) -> float:
    if value is None or value == "":
        return 0.0
    try:
        amount = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: value}) from exc
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: amount})
    return amount


def _order_lines(items: Iterable[Mapping[str, object]] | None) -> list[OrderItem]:
    lines = []
    for item in items or []:
        sku = str(item.get("sku") or "").strip()
        if not sku:
            raise ValidationError("every order item needs a sku")
        quantity = _to_int(item.get("quantity"), f"quantity for {sku}")
        if quantity <= 0:
            raise ValidationError(f"quantity for {sku} must be positive", details={"sku": sku})
        lines.append(OrderItem(sku=sku, quantity=quantity, unit_price=_money(item.get("unit_price"), "unit_price")))
    if not lines:
        raise ValidationError("an order needs at least one item")
    return lines


def order_total(items: Iterable[OrderItem], delivery_fee: float) -> float:
    return round(sum(item.quantity * (item.unit_price or 0.0) for item in items) + (delivery_fee or 0.0), 2)


def create_order(db: Session, payload: dict) -> Order:
    lines = _order_lines(payload.get("items"))
    supplier_id = payload.get("supplier_id")
    if supplier_id is not None and not get_supplier(db, supplier_id):
        raise NotFoundError(f"supplier {supplier_id} not found")
    delivery_fee = _money(payload.get("delivery_fee"), "delivery_fee")

    now = utcnow_iso()
    order = Order(
        delivery_fee=delivery_fee,
        status=ORDER_STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )
    for field in HEADER_FIELDS:
        setattr(order, field, payload.get(field))
    order.items = lines
    order.total_amount = order_total(lines, delivery_fee)
    db.add(order)
    db.commit()
    db.refresh(order)
    log_event(logger, "order.created", order_id=order.id, supplier_id=supplier_id, total=order.total_amount)
    return order


def get_order(db: Session, order_id: int) -> Order | None:
    return db.get(Order, order_id)


def require_order(db: Session, order_id: int) -> Order:
    order = get_order(db, order_id)
    if not order:
        raise NotFoundError(f"order {order_id} not found")
    return order


def list_orders(
    db: Session,
    status: str | None = None,
    supplier_id: int | None = None,
    start: object = None,
    end: object = None,
) -> list[Order]:
    stmt = select(Order)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        stmt = stmt.where(Order.status == status)
    if supplier_id is not None:
        stmt = stmt.where(Order.supplier_id == supplier_id)
    start_dt, end_dt = parse_iso(start), parse_iso(end)  # type: ignore[arg-type]
    if start_dt:
        stmt = stmt.where(Order.created_at >= to_iso(start_dt))
    if end_dt:
        stmt = stmt.where(Order.created_at <= to_iso(end_dt))
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
    return list(db.execute(stmt).unique().scalars().all())


def update_order(db: Session, order: Order, payload: dict) -> Order:
    """Edit a pending order. Item lines, when given, replace the existing ones."""

    if not order.is_pending:
        raise ConflictError(f"order {order.id} is {order.status} and can no longer be edited")
    if "supplier_id" in payload and payload["supplier_id"] is not None and not get_supplier(db, payload["supplier_id"]):
        raise NotFoundError(f"supplier {payload['supplier_id']} not found")
    lines = _order_lines(payload["items"]) if payload.get("items") is not None else None

    for field in HEADER_FIELDS:
        if field in payload:
            setattr(order, field, payload[field])
    if "delivery_fee" in payload:
        order.delivery_fee = _money(payload["delivery_fee"], "delivery_fee")
    if lines is not None:
        order.items = lines
    order.total_amount = order_total(order.items, order.delivery_fee)
    order.updated_at = utcnow_iso()
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, order: Order) -> None:
    """Delete a pending order. Received orders stay as the record behind their batches."""

    if not order.is_pending:
        raise ConflictError(f"order {order.id} is {order.status} and cannot be deleted")
    db.delete(order)
    db.commit()


def receive_order(
    db: Session,
    order_id: int,
    items: Iterable[Mapping[str, object]] | None,
    warehouse_id: int,
) -> Order:
    """Book a pending order into a warehouse.

    ``items`` carries what actually arrived (``sku``, ``quantity`` and optional
    ``expiry_date``, ``has_damage``, ``damage_notes``); when omitted the order
    lines are received as placed. Each line becomes a batch and a warehouse
    stock increment. The whole receipt commits or rolls back together.
    """

    order = require_order(db, order_id)
    if not order.is_pending:
        raise ConflictError(
            f"order {order_id} has already been received",
            details={"order_id": order_id, "status": order.status},
        )
    require_warehouse(db, warehouse_id)

    received = list(items) if items else [{"sku": line.sku, "quantity": line.quantity} for line in order.items]
    lines = []
    for item in received:
        sku = str(item.get("sku") or "").strip()
        if not sku:
            raise ValidationError("every received item needs a sku")
        quantity = _to_int(item.get("quantity"), f"quantity for {sku}")
        if quantity <= 0:
            raise ValidationError(f"quantity for {sku} must be positive", details={"sku": sku})
        lines.append((sku, quantity, item))
    if not lines:
        raise ValidationError("at least one received item is required")

    with atomic(db, f"receive order {order_id}"):
        for sku, quantity, item in lines:
            _add_batch(
                db,
                warehouse_id,
                sku,
                quantity,
                expiry_date=item.get("expiry_date"),
                has_damage=bool(item.get("has_damage")),
                damage_notes=item.get("damage_notes"),
                order_id=order.id,
            )
            _apply_warehouse_delta(db, warehouse_id, sku, quantity)
        now = utcnow_iso()
        order.status = ORDER_STATUS_RECEIVED
        order.received_at = now
        order.received_warehouse_id = warehouse_id
        order.updated_at = now
    db.refresh(order)
    log_event(
        logger,
        "order.received",
        order_id=order.id,
        warehouse_id=warehouse_id,
        lines=len(lines),
        units=sum(quantity for _, quantity, _ in lines),
    )
    return order


__all__ = [
    "create_order",
    "delete_order",
    "get_order",
    "list_orders",
    "order_total",
    "receive_order",
    "require_order",
    "update_order",
]
