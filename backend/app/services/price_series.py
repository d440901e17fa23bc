from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional

import pandas as pd

from app.schemas.reconcile import InvalidParameterError, PricePoint


def date_range(start_date: date, end_date: date) -> List[date]:
    """Every calendar day in [start_date, end_date], ascending."""
    if start_date > end_date:
        raise InvalidParameterError(
            f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
        )
    return [ts.date() for ts in pd.date_range(start=start_date, end=end_date, freq="D")]


def forward_fill(points: Iterable[PricePoint], start_date: date, end_date: date) -> List[PricePoint]:
    """
    Densify a sparse price series over [start_date, end_date].

    Exact observations are emitted untouched; gaps repeat the most recent prior
    observation with `filled=True`. Days before the first observation (leading
    gap) are left out rather than zero-filled. Observations dated before
    `start_date` count as prior observations.
    """
    days = date_range(start_date, end_date)

    # stable sort: for duplicate days the later input row wins
    by_day: Dict[date, PricePoint] = {}
    for p in sorted(points, key=lambda p: p.date):
        by_day[p.date] = p

    last_known: Optional[PricePoint] = None
    for d in sorted(by_day):
        if d >= start_date:
            break
        last_known = by_day[d]

    out: List[PricePoint] = []
    for day in days:
        observed = by_day.get(day)
        if observed is not None:
            out.append(observed)
            last_known = observed
        elif last_known is not None:
            out.append(PricePoint(date=day, price=last_known.price, filled=True))
    return out


def index_by_date(points: Iterable[PricePoint]) -> Dict[date, PricePoint]:
    return {p.date: p for p in points}


def merge_series(*series: Iterable[PricePoint]) -> List[PricePoint]:
    """Union of several series; later series override earlier ones on the same day."""
    merged: Dict[date, PricePoint] = {}
    for s in series:
        for p in s:
            merged[p.date] = p
    return [merged[d] for d in sorted(merged)]


__all__ = ["date_range", "forward_fill", "index_by_date", "merge_series"]
