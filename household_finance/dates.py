from __future__ import annotations

from calendar import monthrange
from datetime import date


def add_months(start_date: date, months: int, anchor_day: int | None = None) -> date:
    """Shift ``start_date`` by whole months, clamping to the last day of the month."""
    total_month = start_date.month - 1 + months
    year = start_date.year + total_month // 12
    month = total_month % 12 + 1
    last_day = monthrange(year, month)[1]
    day = min(anchor_day or start_date.day, last_day)
    return date(year, month, day)


def months_between(start_date: date, end_date: date) -> int:
    """Whole calendar months from ``start_date`` to ``end_date``, ignoring days."""
    return (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
