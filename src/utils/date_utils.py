"""Date helpers shared across intelligence and dashboard layers."""

from __future__ import annotations

from datetime import date, datetime

import pandas as pd


def to_timestamp(value: pd.Timestamp | datetime | date | str) -> pd.Timestamp:
    """Convert an input value to a timezone-naive pandas Timestamp (UTC wall time)."""
    ts = pd.Timestamp(value)
    if ts.tz is not None:
        ts = ts.tz_convert(None)
    return ts


def to_iso_date(value: object) -> str | None:
    """Return YYYY-MM-DD for a parseable date-like value, else None."""
    if isinstance(value, bool) or not isinstance(value, (str, datetime, date, pd.Timestamp)):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = to_timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.date().isoformat()


def iso_datetime_at_midnight(value: str) -> str | None:
    """Expand a YYYY-MM-DD input into the API's midnight UTC datetime form."""
    text = str(value or '').strip()
    if not text:
        return None
    return f'{text[:10]}T00:00:00.000Z'


def today_iso(today: date | None = None) -> str:
    """Return today's date (or the provided one) as YYYY-MM-DD."""
    return (today or date.today()).isoformat()
