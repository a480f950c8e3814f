"""Idempotent, additive schema upgrades for existing SQLite databases.

``Base.metadata.create_all`` builds fresh tables; this module only adds the
columns and indexes that later releases introduced, so a database created by
an older build keeps its rows. Nothing is ever dropped.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# table -> {column: SQL type/default}
ADDED_COLUMNS: dict[str, dict[str, str]] = {
    "products": {
        "units_per_box": "INTEGER DEFAULT 1 NOT NULL",
        "supplier_id": "INTEGER",
        "barcode": "TEXT",
    },
    "stock_removals": {
        "target_location_id": "INTEGER",
        "is_adhoc": "INTEGER DEFAULT 0 NOT NULL",
        "notes": "TEXT",
    },
    "restock_records": {
        "photo_override": "INTEGER DEFAULT 0 NOT NULL",
        "stock_check_id": "INTEGER",
    },
    "stock_batches": {
        "order_id": "INTEGER",
    },
    "orders": {
        "invoice_image_url": "TEXT",
        "received_warehouse_id": "INTEGER",
    },
    "sales_imports": {
        "records_skipped": "INTEGER DEFAULT 0 NOT NULL",
    },
}

ADDED_INDEXES: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("products", "ix_products_barcode", ("barcode",)),
    ("stock_batches", "ix_stock_batches_order_id", ("order_id",)),
)


def _is_sqlite(engine: Engine) -> bool:
    return engine.dialect.name == "sqlite"


def _column_names(engine: Engine, table: str) -> set[str]:
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()
    return {row["name"] for row in rows}


def _add_column(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str]) -> None:
    cols_sql = ", ".join(cols)
    with engine.begin() as conn:
        conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def run_migrations(engine: Engine) -> list[str]:
    """Bring an SQLite schema up to date. Returns the ``table.column`` names added."""

    if not _is_sqlite(engine):
        return []

    added: list[str] = []
    existing_tables: set[str] = set()
    for table, columns in ADDED_COLUMNS.items():
        present = _column_names(engine, table)
        if not present:
            # Table absent; create_all owns it.
            continue
        existing_tables.add(table)
        for name, dtype in columns.items():
            if name not in present:
                _add_column(engine, table, f"{name} {dtype}")
                added.append(f"{table}.{name}")

    for table, name, cols in ADDED_INDEXES:
        if table in existing_tables:
            _create_index_if_not_exists(engine, table, name, cols)

    if added:
        logger.info("schema.migrated", extra={"extra_data": {"columns": added}})
    return added
