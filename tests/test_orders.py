import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite://")

from hatch_stock.core.errors import ConflictError, OperationFailed, ValidationError
from hatch_stock.crud import orders as orders_crud
from hatch_stock.crud.batches import (
    earliest_expiry,
    expiring_batches,
    list_batches,
    receive_batch,
    update_batch,
)
from hatch_stock.crud.catalog import create_location, create_product, create_supplier, create_warehouse, set_assigned_items
from hatch_stock.crud.orders import (
    create_order,
    delete_order,
    get_order,
    list_orders,
    receive_order,
    require_order,
    update_order,
)
from hatch_stock.crud.stock import merge_location_stock, set_location_config, set_warehouse_stock, warehouse_quantity
from hatch_stock.db.session import Base
from hatch_stock.models import catalog as catalog_model  # noqa: F401
from hatch_stock.models import movements as movements_model  # noqa: F401
from hatch_stock.models import orders as orders_model  # noqa: F401
from hatch_stock.models import sales as sales_model  # noqa: F401
from hatch_stock.models import stock as stock_model  # noqa: F401
from hatch_stock.models.stock import StockBatch
from hatch_stock.services.suggestions import create_order_from_suggestions, suggest_order_items


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def warehouse(db_session):
    return create_warehouse(db_session, {"name": "Main Warehouse"})


@pytest.fixture()
def supplier(db_session):
    return create_supplier(db_session, {"name": "Costco Wholesale"})


def _batch_count(db_session):
    return db_session.execute(select(func.count()).select_from(StockBatch)).scalar_one()


# ---------- Order lifecycle ----------


def test_create_order_totals_lines_and_fee(db_session, supplier):
    order = create_order(
        db_session,
        {
            "supplier_id": supplier.id,
            "delivery_fee": 4.5,
            "items": [
                {"sku": "A-1", "quantity": 12, "unit_price": 1.25},
                {"sku": "B-2", "quantity": 6, "unit_price": 2.0},
            ],
        },
    )
    assert order.status == "pending"
    assert order.total_amount == pytest.approx(12 * 1.25 + 6 * 2.0 + 4.5)
    assert order.supplier_name == "Costco Wholesale"
    assert [item.line_total for item in order.items] == [pytest.approx(15.0), pytest.approx(12.0)]


def test_create_order_needs_items(db_session):
    with pytest.raises(ValidationError):
        create_order(db_session, {"items": []})
    with pytest.raises(ValidationError):
        create_order(db_session, {"items": [{"sku": "A-1", "quantity": 0}]})


def test_receive_order_creates_batch_and_stock(db_session, warehouse):
    set_warehouse_stock(db_session, warehouse.id, "A-1", 3)
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 10, "unit_price": 1.0}]})

    received = receive_order(db_session, order.id, [{"sku": "A-1", "quantity": 10}], warehouse.id)

    assert received.status == "received"
    assert received.received_at is not None
    assert received.received_warehouse_id == warehouse.id
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 13
    batches = list_batches(db_session, warehouse_id=warehouse.id, sku="A-1")
    assert len(batches) == 1
    assert batches[0].remaining_qty == 10
    assert batches[0].order_id == order.id


def test_receive_defaults_to_order_lines(db_session, warehouse):
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 4}, {"sku": "B-2", "quantity": 2}]})
    receive_order(db_session, order.id, None, warehouse.id)
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 4
    assert warehouse_quantity(db_session, warehouse.id, "B-2") == 2


def test_double_receive_is_rejected(db_session, warehouse):
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 5}]})
    receive_order(db_session, order.id, None, warehouse.id)
    with pytest.raises(ConflictError):
        receive_order(db_session, order.id, None, warehouse.id)
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 5
    assert _batch_count(db_session) == 1


def test_failed_receive_leaves_no_partial_state(db_session, warehouse):
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 5}, {"sku": "B-2", "quantity": 5}]})
    with pytest.raises(ValidationError):
        receive_order(
            db_session,
            order.id,
            [
                {"sku": "A-1", "quantity": 5, "expiry_date": "2030-01-01"},
                {"sku": "B-2", "quantity": 5, "expiry_date": "not-a-date"},
            ],
            warehouse.id,
        )
    assert require_order(db_session, order.id).status == "pending"
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 0
    assert _batch_count(db_session) == 0


def test_database_failure_mid_receive_is_operation_failed(db_session, warehouse, monkeypatch):
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 5}, {"sku": "B-2", "quantity": 5}]})
    real_apply = orders_crud._apply_warehouse_delta
    calls = []

    def flaky_apply(db, warehouse_id, sku, delta):
        calls.append(sku)
        if len(calls) == 2:
            raise SQLAlchemyError("disk full")
        return real_apply(db, warehouse_id, sku, delta)

    monkeypatch.setattr(orders_crud, "_apply_warehouse_delta", flaky_apply)
    with pytest.raises(OperationFailed):
        receive_order(db_session, order.id, None, warehouse.id)

    assert require_order(db_session, order.id).status == "pending"
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 0
    assert _batch_count(db_session) == 0


def test_update_only_while_pending(db_session, warehouse):
    order = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 5, "unit_price": 2.0}]})
    updated = update_order(db_session, order, {"delivery_fee": 3.0, "items": [{"sku": "A-1", "quantity": 1, "unit_price": 2.0}]})
    assert updated.total_amount == pytest.approx(5.0)
    assert len(updated.items) == 1

    receive_order(db_session, order.id, None, warehouse.id)
    with pytest.raises(ConflictError):
        update_order(db_session, require_order(db_session, order.id), {"notes": "too late"})


def test_only_pending_orders_can_be_deleted(db_session, warehouse):
    pending = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 1}]})
    received = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 3}]})
    receive_order(db_session, received.id, None, warehouse.id)

    delete_order(db_session, pending)
    assert get_order(db_session, pending.id) is None

    with pytest.raises(ConflictError):
        delete_order(db_session, require_order(db_session, received.id))
    assert list_batches(db_session, sku="A-1")[0].order_id == received.id


def test_list_orders_by_status(db_session, warehouse):
    first = create_order(db_session, {"items": [{"sku": "A-1", "quantity": 1}]})
    create_order(db_session, {"items": [{"sku": "B-2", "quantity": 1}]})
    receive_order(db_session, first.id, None, warehouse.id)
    assert [o.id for o in list_orders(db_session, status="received")] == [first.id]
    assert len(list_orders(db_session, status="pending")) == 1
    with pytest.raises(ValidationError):
        list_orders(db_session, status="cancelled")


# ---------- Batches ----------


def test_batch_expiry_buckets_and_earliest(db_session, warehouse):
    now = datetime(2025, 3, 10, 9, 0)
    receive_batch(db_session, warehouse.id, "A-1", 10, expiry_date=(now - timedelta(days=1)).date().isoformat())
    receive_batch(db_session, warehouse.id, "A-1", 10, expiry_date=(now + timedelta(days=5)).date().isoformat())
    receive_batch(db_session, warehouse.id, "A-1", 10, expiry_date=(now + timedelta(days=20)).date().isoformat())
    far = receive_batch(db_session, warehouse.id, "A-1", 10, expiry_date=(now + timedelta(days=90)).date().isoformat())
    receive_batch(db_session, warehouse.id, "B-2", 10)

    buckets = expiring_batches(db_session, days=30, now=now)
    assert [len(buckets[key]) for key in ("expired", "critical", "warning")] == [1, 1, 1]
    assert far not in buckets["warning"]

    assert earliest_expiry(db_session, "A-1", warehouse.id) == "2025-03-09"
    assert earliest_expiry(db_session, "B-2") is None


def test_batches_are_not_consumed_by_removals_and_remaining_is_bounded(db_session, warehouse):
    batch = receive_batch(db_session, warehouse.id, "A-1", 10)
    assert warehouse_quantity(db_session, warehouse.id, "A-1") == 0
    with pytest.raises(ValidationError):
        update_batch(db_session, batch.id, {"remaining_qty": 11})
    assert update_batch(db_session, batch.id, {"remaining_qty": 0}).remaining_qty == 0
    assert earliest_expiry(db_session, "A-1") is None
    with pytest.raises(ValidationError):
        receive_batch(db_session, warehouse.id, "A-1", 0)


# ---------- Suggestions ----------


@pytest.fixture()
def machine(db_session):
    location = create_location(db_session, {"name": "Office Lobby"})
    create_product(db_session, {"sku": "BB-1", "name": "Barebells", "units_per_box": 6, "unit_cost": 1.5})
    return location


def test_suggestion_rounds_up_to_whole_boxes(db_session, machine):
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=10)
    merge_location_stock(db_session, machine.id, {"BB-1": 4})

    [suggestion] = suggest_order_items(db_session, machine.id)
    assert suggestion["shortage"] == 6
    assert suggestion["shortage_percentage"] == pytest.approx(60.0)
    assert suggestion["boxes_needed"] == 1
    assert suggestion["order_qty"] == 6
    assert suggestion["priority"] == "warning"
    assert suggestion["unit_price"] == pytest.approx(1.5)


def test_small_shortage_is_not_suggested(db_session, machine):
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=10)
    merge_location_stock(db_session, machine.id, {"BB-1": 8})
    assert suggest_order_items(db_session, machine.id) == []


def test_unconfigured_max_is_skipped(db_session, machine):
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=None)
    assert suggest_order_items(db_session, machine.id) == []


def test_suggestions_sort_critical_first_then_shortage(db_session, machine):
    create_product(db_session, {"sku": "OJ-1", "name": "Orange Juice"})
    create_product(db_session, {"sku": "TK-1", "name": "Tikka"})
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=10)
    set_location_config(db_session, machine.id, "OJ-1", min_stock=3, max_stock=10)
    set_location_config(db_session, machine.id, "TK-1", min_stock=1, max_stock=10)
    merge_location_stock(db_session, machine.id, {"BB-1": 4, "OJ-1": 3, "TK-1": 2})

    suggestions = suggest_order_items(db_session, machine.id)
    assert [(s["sku"], s["priority"]) for s in suggestions] == [
        ("OJ-1", "critical"),
        ("TK-1", "warning"),
        ("BB-1", "warning"),
    ]
    assert suggestions[0]["order_qty"] == 7


def test_suggestions_respect_assignments(db_session, machine):
    create_product(db_session, {"sku": "OJ-1", "name": "Orange Juice"})
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=10)
    set_location_config(db_session, machine.id, "OJ-1", min_stock=2, max_stock=10)
    set_assigned_items(db_session, machine, ["OJ-1"])
    assert [s["sku"] for s in suggest_order_items(db_session, machine.id)] == ["OJ-1"]


def test_order_from_suggestions(db_session, machine, supplier):
    set_location_config(db_session, machine.id, "BB-1", min_stock=2, max_stock=10)
    order = create_order_from_suggestions(db_session, machine.id, supplier_id=supplier.id)
    assert order.status == "pending"
    assert [(item.sku, item.quantity) for item in order.items] == [("BB-1", 12)]
    assert order.total_amount == pytest.approx(18.0)

    merge_location_stock(db_session, machine.id, {"BB-1": 10})
    assert create_order_from_suggestions(db_session, machine.id) is None
