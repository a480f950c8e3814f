import os
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DB_URL", "sqlite://")

from hatch_stock.core.barcodes import barcode_aliases, normalize_barcode, split_barcode_list
from hatch_stock.core.stock_status import (
    ExpiryStatus,
    StockStatus,
    days_until,
    expiry_status,
    get_stock_status,
    parse_expiry,
)

NOW = datetime(2025, 3, 10, 12, 0, 0)


@pytest.mark.parametrize(
    "quantity,config,expected",
    [
        (2, {"min_stock": 3, "max_stock": 10}, StockStatus.LOW),
        (3, {"min_stock": 3, "max_stock": 10}, StockStatus.LOW),
        (4, {"min_stock": 3, "max_stock": 10}, StockStatus.WARNING),
        (5, {"min_stock": 4, "max_stock": 10}, StockStatus.WARNING),
        (7, {"min_stock": 3, "max_stock": 10}, StockStatus.OK),
        (10, {"min_stock": 3, "max_stock": 10}, StockStatus.FULL),
        (12, {"min_stock": None, "max_stock": 10}, StockStatus.FULL),
        (0, {}, StockStatus.OK),
        (0, None, StockStatus.OK),
    ],
)
def test_stock_status_classification(quantity, config, expected):
    assert get_stock_status(quantity, config) is expected


def test_low_takes_precedence_over_full_when_thresholds_cross():
    # max below min is stored as given; low still wins.
    assert get_stock_status(2, {"min_stock": 5, "max_stock": 1}) is StockStatus.LOW


def test_stock_status_values_are_plain_strings():
    assert StockStatus.WARNING.value == "warning"
    assert StockStatus("full") is StockStatus.FULL


def test_expiry_five_days_out_is_critical():
    assert expiry_status(NOW + timedelta(days=5), NOW) is ExpiryStatus.CRITICAL


def test_expiry_forty_days_out_is_ok_and_twenty_is_warning():
    assert expiry_status(NOW + timedelta(days=40), NOW) is ExpiryStatus.OK
    assert expiry_status(NOW + timedelta(days=20), NOW) is ExpiryStatus.WARNING


def test_expiry_yesterday_is_expired():
    assert expiry_status(NOW - timedelta(days=1), NOW) is ExpiryStatus.EXPIRED


def test_expiry_boundaries():
    assert expiry_status(NOW + timedelta(days=7), NOW) is ExpiryStatus.CRITICAL
    assert expiry_status(NOW + timedelta(days=30), NOW) is ExpiryStatus.WARNING
    assert expiry_status(NOW + timedelta(days=31), NOW) is ExpiryStatus.OK


def test_expiry_missing_date_has_no_status():
    assert expiry_status(None, NOW) is None
    assert expiry_status("", NOW) is None


def test_days_until_rounds_partial_days_up():
    assert days_until("2025-03-11", NOW) == 1
    assert days_until(date(2025, 3, 10), NOW) == 0
    assert days_until(NOW + timedelta(hours=1), NOW) == 1


def test_parse_expiry_accepts_iso_strings_and_aware_datetimes():
    assert parse_expiry("2025-04-01") == datetime(2025, 4, 1)
    assert parse_expiry("2025-04-01T10:30:00Z") == datetime(2025, 4, 1, 10, 30)
    aware = datetime(2025, 4, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert parse_expiry(aware) == datetime(2025, 4, 1, 10, 0)


def test_barcode_normalization():
    assert normalize_barcode("012345678905") == "0012345678905"
    assert normalize_barcode("  5000112637922 ") == "5000112637922"
    assert normalize_barcode("") is None
    assert "012345678905" in barcode_aliases("012345678905")
    assert split_barcode_list("111;222, 333|444") == ["111", "222", "333", "444"]
