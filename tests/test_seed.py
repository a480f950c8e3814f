import os
import random
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite://")

from hatch_stock.crud.catalog import list_locations, list_products, list_routes, route_locations
from hatch_stock.crud.stock import get_location_config, get_location_stock, get_warehouse_stock
from hatch_stock.db.seed import parse_args, seed
from hatch_stock.db.session import Base
from hatch_stock.models import catalog as catalog_model  # noqa: F401
from hatch_stock.models import movements as movements_model  # noqa: F401
from hatch_stock.models import orders as orders_model  # noqa: F401
from hatch_stock.models import sales as sales_model  # noqa: F401
from hatch_stock.models import stock as stock_model  # noqa: F401


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


def test_seed_builds_demo_estate(db_session):
    summary = seed(db_session, random.Random(7))
    assert summary == {"warehouses": 1, "locations": 3, "suppliers": 2, "products": 5, "routes": 1}

    assert len(list_products(db_session)) == 5
    [warehouse_stock] = get_warehouse_stock(db_session).values()
    assert all(20 <= qty <= 69 for qty in warehouse_stock.values())

    locations = list_locations(db_session)
    for location in locations:
        assert all(2 <= qty <= 11 for qty in get_location_stock(db_session, location.id).values())
        config = get_location_config(db_session, location.id)
        assert {tuple(v.values()) for v in config.values()} == {(3, 10)}

    [route] = list_routes(db_session)
    assert [loc.name for loc in route_locations(db_session, route)][0] == "Office Building A - Lobby"


def test_seed_args():
    args = parse_args(["--random-seed", "3", "--force"])
    assert args.random_seed == 3
    assert args.force is True
    assert parse_args([]).log_level == "INFO"
