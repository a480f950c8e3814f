import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite://")

from hatch_stock.db.migrate import run_migrations
from hatch_stock.models.catalog import Location, Product
from hatch_stock.models.movements import StockCheck
from hatch_stock.services.shrinkage import shrinkage_report


def _check(location_id, created_at, items):
    check = StockCheck(location_id=location_id, created_at=created_at)
    check.items = items
    return check


@pytest.fixture()
def catalog():
    products = [
        Product(sku="BB-1", name="Barebells", category="Snacks", unit_cost=1.2),
        Product(sku="OJ-1", name="Press Orange", category="Drinks", unit_cost=None, sale_price=3.0),
    ]
    locations = [Location(id=1, name="Office Lobby"), Location(id=2, name="Train Station")]
    return products, locations


def test_shrinkage_counts_only_negative_variance(catalog):
    products, locations = catalog
    checks = [
        _check(
            1,
            "2025-02-14T10:00:00Z",
            [
                {"sku": "BB-1", "expected": 10, "counted": 7, "variance": -3, "reason": "theft"},
                {"sku": "OJ-1", "expected": 2, "counted": 4, "variance": 2, "reason": None},
            ],
        ),
        _check(
            2,
            "2025-03-02T10:00:00Z",
            [
                {"sku": "OJ-1", "expected": 5, "counted": 4, "variance": -1, "reason": "damaged"},
                {"sku": "XX-9", "expected": 2, "counted": 0, "reason": None},
            ],
        ),
    ]
    report = shrinkage_report(checks, products, locations)

    assert report["total_units"] == 6
    assert report["total_cost"] == pytest.approx(3 * 1.2 + 3.0)
    assert report["variance_events"] == 3
    assert report["by_reason"]["theft"]["units"] == 3
    assert report["by_reason"]["damaged"]["cost"] == pytest.approx(3.0)
    assert report["by_reason"]["unknown"]["units"] == 2

    by_location = {row["location_id"]: row for row in report["by_location"]}
    assert by_location[1]["name"] == "Office Lobby"
    assert by_location[1]["check_count"] == 1
    assert by_location[2]["shrinkage_units"] == 3

    by_product = {row["sku"]: row for row in report["by_product"]}
    assert by_product["XX-9"]["shrinkage_cost"] == 0.0
    assert by_product["XX-9"]["category"] == "Unknown"
    assert [row["month"] for row in report["trend"]] == ["2025-02", "2025-03"]


def test_shrinkage_with_no_checks(catalog):
    products, locations = catalog
    report = shrinkage_report([], products, locations)
    assert report["total_units"] == 0
    assert report["by_location"] == []
    assert report["trend"] == []
    assert set(report["by_reason"]) == {"theft", "swap", "damaged", "malfunction", "unknown"}


# ---------- Schema upgrades ----------


def _columns(engine, table):
    with engine.connect() as conn:
        return {row["name"] for row in conn.execute(text(f"PRAGMA table_info({table})")).mappings()}


def test_migrations_add_missing_columns_once():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE products (sku TEXT PRIMARY KEY, name TEXT NOT NULL, category TEXT, "
                "unit_cost REAL, sale_price REAL, created_at TEXT NOT NULL, updated_at TEXT NOT NULL)"
            )
        )
        conn.execute(
            text(
                "INSERT INTO products (sku, name, created_at, updated_at) "
                "VALUES ('BB-1', 'Barebells', '2024-01-01T00:00:00Z', '2024-01-01T00:00:00Z')"
            )
        )

    added = run_migrations(engine)
    assert set(added) == {"products.units_per_box", "products.supplier_id", "products.barcode"}
    assert {"units_per_box", "supplier_id", "barcode"} <= _columns(engine, "products")

    with engine.connect() as conn:
        assert conn.execute(text("SELECT units_per_box FROM products WHERE sku = 'BB-1'")).scalar_one() == 1
        indexes = {row[1] for row in conn.execute(text("PRAGMA index_list(products)"))}
    assert "ix_products_barcode" in indexes

    assert run_migrations(engine) == []
