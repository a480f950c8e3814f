"""
seed.py

Purpose:
  Fill an empty database with a small demo estate: one warehouse, three
  locations, two suppliers, five products, stock, thresholds and a route.

Examples:
  python -m hatch_stock.db.seed
  python -m hatch_stock.db.seed --random-seed 7
  DB_URL=sqlite:///./demo.db python -m hatch_stock.db.seed --force

Exit codes:
  0 = seeded (or already seeded and left alone)
  1 = handled application error
"""

from __future__ import annotations

import argparse
import logging
import random
import sys

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import StockError
from ..core.logging import configure_logging, log_event
from ..crud.catalog import (
    create_location,
    create_product,
    create_route,
    create_supplier,
    create_warehouse,
)
from ..crud.stock import merge_location_stock, set_location_config, set_warehouse_stock
from ..models.catalog import Product
from .session import SessionLocal

logger = logging.getLogger(__name__)

WAREHOUSE = {"name": "Main Warehouse", "address": "Unit 1, Business Park"}
LOCATIONS = (
    {"name": "Office Building A - Lobby", "type": "vending"},
    {"name": "Train Station - Platform 1", "type": "vending"},
    {"name": "Gym Reception", "type": "retail"},
)
SUPPLIERS = (
    {"name": "Costco Wholesale", "email": "orders@costco.com", "phone": "0800 123 4567"},
    {"name": "Booker Wholesale", "email": "trade@booker.co.uk", "phone": "0800 987 6543"},
)
PRODUCTS = (
    {"sku": "BB-SALTY-001", "name": "Barebells Salty Peanut", "category": "Snacks", "unit_cost": 1.50, "sale_price": 2.50},
    {"sku": "BB-CHOC-001", "name": "Barebells Chocolate", "category": "Snacks", "unit_cost": 1.50, "sale_price": 2.50},
    {"sku": "FRIVE-TIKKA-001", "name": "Frive Chicken Tikka Masala", "category": "Meals", "unit_cost": 2.80, "sale_price": 4.50},
    {"sku": "PRESS-OJ-001", "name": "Press Orange Juice", "category": "Drinks", "unit_cost": 1.20, "sale_price": 2.00},
    {"sku": "TONY-MILK-001", "name": "Tony's Chocolonely Milk", "category": "Snacks", "unit_cost": 2.00, "sale_price": 3.50},
)
MIN_STOCK = 3
MAX_STOCK = 10


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed the stock database with demo data.")
    p.add_argument("--random-seed", type=int, default=None, help="Seed for the generated stock quantities.")
    p.add_argument("--force", action="store_true", help="Seed even when products already exist.")
    p.add_argument("--log-level", default="INFO")
    return p.parse_args(argv)


def seed(db: Session, rng: random.Random) -> dict[str, int]:
    warehouse = create_warehouse(db, WAREHOUSE)
    locations = [create_location(db, {**loc, "assigned_items": [p["sku"] for p in PRODUCTS]}) for loc in LOCATIONS]
    suppliers = [create_supplier(db, supplier) for supplier in SUPPLIERS]
    products = [create_product(db, {**product, "supplier_id": suppliers[0].id}) for product in PRODUCTS]

    for product in products:
        set_warehouse_stock(db, warehouse.id, product.sku, rng.randint(20, 69), is_delta=False)
    for location in locations:
        merge_location_stock(db, location.id, {p.sku: rng.randint(2, 11) for p in products})
        for product in products:
            set_location_config(db, location.id, product.sku, MIN_STOCK, MAX_STOCK)

    create_route(db, {"name": "Morning Route", "location_ids": [loc.id for loc in locations]})
    return {
        "warehouses": 1,
        "locations": len(locations),
        "suppliers": len(suppliers),
        "products": len(products),
        "routes": 1,
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    db = SessionLocal()
    try:
        existing = db.execute(select(func.count()).select_from(Product)).scalar_one()
        if existing and not args.force:
            log_event(logger, "seed.skipped", products=existing)
            return 0
        summary = seed(db, random.Random(args.random_seed))
    except StockError as exc:
        logger.error("seed.failed", extra={"extra_data": {"error": exc.message}})
        return 1
    finally:
        db.close()
    log_event(logger, "seed.completed", **summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
