"""Date and time helpers shared by the aggregation services."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime | date]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes; every timestamp the portal stores is
    UTC, so naive values are tagged rather than converted. Plain dates map to
    midnight UTC.
    """

    if value is None:
        return None
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_hours(value: Decimal | float | int | None) -> str:
    """Render an hours amount without trailing zeros (``Decimal("2.50")`` -> ``2.5``)."""

    amount = Decimal(str(value or 0))
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return format(amount.normalize(), "f")
