# app/utils/dates.py
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

import pandas as pd


def coerce_date(value) -> Optional[date]:
    """
    Accept a date, datetime, pandas Timestamp or "YYYY-MM-DD[...]" string.
    Returns None for anything that does not parse to a calendar day.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def shift_years(d: date, years: int) -> date:
    """Same calendar day `years` away; Feb 29 falls back to Feb 28."""
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        return d.replace(year=d.year + years, day=28)


def previous_day(d: date) -> date:
    return d - timedelta(days=1)


__all__ = ["coerce_date", "previous_day", "shift_years"]
