"""Date normalisation used for validation, query strings and fingerprints."""

from __future__ import annotations

import datetime as dt
from typing import Optional


def as_datetime(value: object) -> Optional[dt.datetime]:
    """Return a naive datetime for ``value`` or None when it is not a date.

    Plain dates become midnight. Aware datetimes are converted to UTC first.
    """
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    return None


def to_json(value: dt.date) -> str:
    normalized = as_datetime(value)
    if normalized is None:
        raise TypeError(f"Expected a date, got {type(value).__name__}")
    return normalized.isoformat(timespec="seconds")
