"""Stock level and expiry classification shared by every view.

Both classifiers are pure: they take quantities/dates and return an enum
member, so dashboards, location pages and reports all agree on the answer.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Mapping

WARNING_MULTIPLIER = 1.5
EXPIRY_CRITICAL_DAYS = 7
EXPIRY_WARNING_DAYS = 30
ONE_DAY = timedelta(days=1)


class StockStatus(str, Enum):
    OK = "ok"
    LOW = "low"
    WARNING = "warning"
    FULL = "full"


class ExpiryStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    EXPIRED = "expired"


def _threshold(config: Mapping[str, object] | None, key: str) -> int | None:
    if not config:
        return None
    value = config.get(key)
    if value is None:
        return None
    return int(value)


def get_stock_status(quantity: int, config: Mapping[str, object] | None) -> StockStatus:
    """Classify ``quantity`` against a ``{"min_stock", "max_stock"}`` config.

    Precedence is LOW, then WARNING, then FULL, defaulting to OK. WARNING covers
    quantities above the minimum but within 1.5x of it.
    """

    min_stock = _threshold(config, "min_stock")
    max_stock = _threshold(config, "max_stock")

    if min_stock is not None and quantity <= min_stock:
        return StockStatus.LOW
    if min_stock is not None and quantity <= min_stock * WARNING_MULTIPLIER:
        return StockStatus.WARNING
    if max_stock is not None and quantity >= max_stock:
        return StockStatus.FULL
    return StockStatus.OK


def parse_expiry(value: date | datetime | str | None) -> datetime | None:
    """Coerce an expiry value into a naive UTC datetime (midnight for plain dates)."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    try:
        return parse_expiry(datetime.fromisoformat(text))
    except ValueError:
        return datetime.combine(date.fromisoformat(text[:10]), datetime.min.time())


def days_until(expiry: date | datetime | str, now: datetime) -> int:
    expiry_dt = parse_expiry(expiry)
    delta = expiry_dt - parse_expiry(now)
    return math.ceil(delta / ONE_DAY)


def expiry_status(
    expiry: date | datetime | str | None,
    now: datetime,
    *,
    critical_days: int = EXPIRY_CRITICAL_DAYS,
    warning_days: int = EXPIRY_WARNING_DAYS,
) -> ExpiryStatus | None:
    """Return the urgency bucket for ``expiry`` or ``None`` when no date is set."""

    if parse_expiry(expiry) is None:
        return None
    remaining = days_until(expiry, now)
    if remaining < 0:
        return ExpiryStatus.EXPIRED
    if remaining <= critical_days:
        return ExpiryStatus.CRITICAL
    if remaining <= warning_days:
        return ExpiryStatus.WARNING
    return ExpiryStatus.OK


__all__ = [
    "ExpiryStatus",
    "StockStatus",
    "days_until",
    "expiry_status",
    "get_stock_status",
    "parse_expiry",
]
