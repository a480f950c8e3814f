import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite://")

from hatch_stock.core.errors import NotFoundError, ValidationError
from hatch_stock.crud.catalog import create_location, create_route, create_warehouse
from hatch_stock.crud.movements import (
    Adhoc,
    Routed,
    list_removals,
    list_stock_checks,
    record_removal,
    record_restock,
    restock_history,
    stock_check_history,
    submit_stock_check,
)
from hatch_stock.crud.stock import get_location_stock, merge_location_stock, set_warehouse_stock, warehouse_quantity
from hatch_stock.db.session import Base
from hatch_stock.models import catalog as catalog_model  # noqa: F401
from hatch_stock.models import movements as movements_model  # noqa: F401
from hatch_stock.models import orders as orders_model  # noqa: F401
from hatch_stock.models import sales as sales_model  # noqa: F401
from hatch_stock.models import stock as stock_model  # noqa: F401
from hatch_stock.models.movements import StockRemoval


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
def estate(db_session):
    warehouse = create_warehouse(db_session, {"name": "Main Warehouse"})
    lobby = create_location(db_session, {"name": "Office Lobby"})
    station = create_location(db_session, {"name": "Train Station"})
    route = create_route(db_session, {"name": "Morning Route", "location_ids": [lobby.id, station.id]})
    set_warehouse_stock(db_session, warehouse.id, "BB-1", 20)
    set_warehouse_stock(db_session, warehouse.id, "OJ-1", 5)
    return {"warehouse": warehouse, "lobby": lobby, "station": station, "route": route}


def _total(db_session, estate, sku):
    return warehouse_quantity(db_session, estate["warehouse"].id, sku) + sum(
        get_location_stock(db_session, estate[name].id).get(sku, 0) for name in ("lobby", "station")
    )


# ---------- Removals ----------


def test_routed_removal_decrements_warehouse_only(db_session, estate):
    removal = record_removal(
        db_session,
        estate["warehouse"].id,
        Routed(estate["route"].id, estate["lobby"].id),
        [{"sku": "BB-1", "quantity": 6}],
        taken_by="Sam",
    )
    assert warehouse_quantity(db_session, estate["warehouse"].id, "BB-1") == 14
    assert get_location_stock(db_session, estate["lobby"].id) == {}
    assert removal.route_name == "Morning Route"
    assert removal.target_location_id == estate["lobby"].id
    assert removal.is_adhoc == 0
    assert removal.items[0]["sku"] == "BB-1"
    assert removal.items[0]["quantity"] == 6


def test_removal_then_restock_preserves_total(db_session, estate):
    before = _total(db_session, estate, "BB-1")
    record_removal(db_session, estate["warehouse"].id, Routed(estate["route"].id), [{"sku": "BB-1", "quantity": 8}])
    record_restock(
        db_session,
        estate["lobby"].id,
        [{"sku": "BB-1", "quantity": 8}],
        photo_url="https://example.test/shelf.jpg",
    )
    assert _total(db_session, estate, "BB-1") == before


def test_adhoc_removal_is_floored(db_session, estate):
    removal = record_removal(db_session, estate["warehouse"].id, Adhoc(), [{"sku": "OJ-1", "quantity": 9}], notes="tasting")
    assert warehouse_quantity(db_session, estate["warehouse"].id, "OJ-1") == 0
    assert removal.is_adhoc == 1
    assert removal.route_id is None
    assert removal.items[0]["warehouse_remaining"] == 0


def test_removal_merges_repeated_skus(db_session, estate):
    removal = record_removal(
        db_session,
        estate["warehouse"].id,
        Adhoc(),
        [{"sku": "BB-1", "quantity": 2}, {"sku": "BB-1", "quantity": 3}],
    )
    assert removal.items == [{"sku": "BB-1", "quantity": 5, "warehouse_remaining": 15}]


def test_removal_validation_writes_nothing(db_session, estate):
    with pytest.raises(ValidationError):
        record_removal(db_session, estate["warehouse"].id, Adhoc(), [])
    with pytest.raises(ValidationError):
        record_removal(
            db_session,
            estate["warehouse"].id,
            Adhoc(),
            [{"sku": "BB-1", "quantity": 2}, {"sku": "OJ-1", "quantity": 0}],
        )
    with pytest.raises(NotFoundError):
        record_removal(db_session, estate["warehouse"].id, Routed(999), [{"sku": "BB-1", "quantity": 1}])
    assert warehouse_quantity(db_session, estate["warehouse"].id, "BB-1") == 20
    assert db_session.execute(select(func.count()).select_from(StockRemoval)).scalar_one() == 0


def test_list_removals_newest_first(db_session, estate):
    first = record_removal(db_session, estate["warehouse"].id, Adhoc(), [{"sku": "BB-1", "quantity": 1}])
    second = record_removal(db_session, estate["warehouse"].id, Adhoc(), [{"sku": "BB-1", "quantity": 1}])
    assert [r.id for r in list_removals(db_session, warehouse_id=estate["warehouse"].id)] == [second.id, first.id]
    assert list_removals(db_session, warehouse_id=999) == []


# ---------- Restocks ----------


def test_restock_requires_photo_or_override(db_session, estate):
    with pytest.raises(ValidationError):
        record_restock(db_session, estate["lobby"].id, [{"sku": "BB-1", "quantity": 4}])
    assert get_location_stock(db_session, estate["lobby"].id) == {}

    record = record_restock(db_session, estate["lobby"].id, [{"sku": "BB-1", "quantity": 4}], photo_override=True)
    assert record.photo_override == 1
    assert get_location_stock(db_session, estate["lobby"].id) == {"BB-1": 4}


def test_restock_adds_to_existing_quantity(db_session, estate):
    merge_location_stock(db_session, estate["lobby"].id, {"BB-1": 3})
    record_restock(
        db_session,
        estate["lobby"].id,
        [{"sku": "BB-1", "quantity": 5}, {"sku": "OJ-1", "quantity": 2}],
        performed_by="Alex",
        photo_url="shelf.jpg",
    )
    assert get_location_stock(db_session, estate["lobby"].id) == {"BB-1": 8, "OJ-1": 2}
    history = restock_history(db_session, estate["lobby"].id)
    assert len(history) == 1
    assert history[0].performed_by == "Alex"


# ---------- Stock checks ----------


def test_restock_links_only_existing_stock_checks(db_session, estate):
    lobby_id = estate["lobby"].id
    with pytest.raises(NotFoundError):
        record_restock(db_session, lobby_id, [{"sku": "BB-1", "quantity": 2}], photo_override=True, stock_check_id=999)
    assert get_location_stock(db_session, lobby_id) == {}

    check = submit_stock_check(db_session, lobby_id, [{"sku": "BB-1", "counted": 1}])
    record = record_restock(
        db_session, lobby_id, [{"sku": "BB-1", "quantity": 2}], photo_override=True, stock_check_id=check.id
    )
    assert record.stock_check_id == check.id
    assert get_location_stock(db_session, lobby_id) == {"BB-1": 3}


def test_stock_check_overwrites_location_stock(db_session, estate):
    merge_location_stock(db_session, estate["lobby"].id, {"BB-1": 10, "OJ-1": 4})
    check = submit_stock_check(
        db_session,
        estate["lobby"].id,
        [
            {"sku": "BB-1", "counted": 7, "reason": "theft"},
            {"sku": "OJ-1", "counted": 6, "reason": "theft"},
        ],
        performed_by="Alex",
    )
    lines = {line["sku"]: line for line in check.items}
    assert lines["BB-1"] == {"sku": "BB-1", "expected": 10, "counted": 7, "variance": -3, "reason": "theft"}
    assert lines["OJ-1"]["variance"] == 2
    assert lines["OJ-1"]["reason"] is None
    assert check.total_variance == -1
    assert get_location_stock(db_session, estate["lobby"].id) == {"BB-1": 7, "OJ-1": 6}


def test_stock_check_resubmission_has_zero_variance(db_session, estate):
    merge_location_stock(db_session, estate["station"].id, {"BB-1": 9})
    submit_stock_check(db_session, estate["station"].id, [{"sku": "BB-1", "counted": 5}])
    second = submit_stock_check(db_session, estate["station"].id, [{"sku": "BB-1", "counted": 5}])
    assert second.items[0]["variance"] == 0
    assert get_location_stock(db_session, estate["station"].id) == {"BB-1": 5}


def test_negative_variance_defaults_to_unknown_reason(db_session, estate):
    check = submit_stock_check(db_session, estate["lobby"].id, [{"sku": "BB-1", "expected": 4, "counted": 1}])
    assert check.items[0]["reason"] == "unknown"


def test_stock_check_rejects_unknown_reason_without_writing(db_session, estate):
    merge_location_stock(db_session, estate["lobby"].id, {"BB-1": 4, "OJ-1": 4})
    with pytest.raises(ValidationError):
        submit_stock_check(
            db_session,
            estate["lobby"].id,
            [{"sku": "BB-1", "counted": 1}, {"sku": "OJ-1", "counted": 0, "reason": "aliens"}],
        )
    assert get_location_stock(db_session, estate["lobby"].id) == {"BB-1": 4, "OJ-1": 4}
    assert stock_check_history(db_session, estate["lobby"].id) == []


def test_list_stock_checks_filters_by_location(db_session, estate):
    submit_stock_check(db_session, estate["lobby"].id, [{"sku": "BB-1", "counted": 1}])
    submit_stock_check(db_session, estate["station"].id, [{"sku": "BB-1", "counted": 1}])
    assert len(list_stock_checks(db_session)) == 2
    only_lobby = list_stock_checks(db_session, location_id=estate["lobby"].id)
    assert [check.location_id for check in only_lobby] == [estate["lobby"].id]
