from __future__ import annotations

import datetime as _dt
import logging
from typing import Any

logger = logging.getLogger(__name__)


def parse_date(value: Any) -> _dt.date | None:
    """
    Best-effort conversion of a stored value into a date.

    Accepts date/datetime objects, ISO ``YYYY-MM-DD`` strings, ISO datetimes and
    ``YYYY-MM`` month strings (normalized to the first of the month). Anything
    else, including empty strings, yields None instead of raising.
    """

    if value is None:
        return None
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = normalize_month(value.strip())
    try:
        return _dt.date.fromisoformat(text[:10])
    except ValueError:
        logger.debug("Ignoring unparseable date %r", value)
        return None


def normalize_month(text: str) -> str:
    """'YYYY-MM' -> 'YYYY-MM-01'; other strings are returned unchanged."""
    return f"{text}-01" if len(text) == 7 else text


def days_between(start: _dt.date, end: _dt.date) -> int:
    """Whole days from start to end (exclusive end); negative when end precedes start."""
    return (end - start).days


def day_offset(day: _dt.date | None, epoch: _dt.date) -> int:
    """Non-negative day offset of `day` from the project epoch; None maps to day 0."""
    if day is None:
        return 0
    return max(0, days_between(epoch, day))


def add_days(day: _dt.date, days: int) -> _dt.date:
    return day + _dt.timedelta(days=days)
