# app/services/price_fetch.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, select, union
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.prediction import PredictionResult
from app.models.price import PriceObservation
from app.schemas.reconcile import InvalidParameterError, PricePoint
from app.utils.dates import coerce_date, shift_years
from app.utils.numeric import coerce_float

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoricalPrices:
    recent: List[PricePoint] = field(default_factory=list)
    last_year: List[PricePoint] = field(default_factory=list)


def _price_rows_to_points(rows, *, sku_id: str) -> List[PricePoint]:
    points: List[PricePoint] = []
    skipped = 0
    for row in rows:
        d = coerce_date(row.date)
        price = coerce_float(row.price)
        if d is None or price is None or price < 0:
            skipped += 1
            continue
        points.append(PricePoint(date=d, price=price))
    if skipped:
        logger.warning("price_fetch: skipped %d unusable price row(s) for sku=%s", skipped, sku_id)
    return points


def _select_prices(db: Session, sku_id: str, conds) -> List[PricePoint]:
    stmt = (
        select(PriceObservation.date, PriceObservation.price)
        .where(and_(PriceObservation.sku_id == sku_id, *conds))
        .order_by(PriceObservation.date.asc(), PriceObservation.id.asc())
    )
    return _price_rows_to_points(db.execute(stmt).all(), sku_id=sku_id)


def fetch_historical_prices(
    db: Session,
    sku_id: str,
    as_of: date,
    *,
    lookback_days: Optional[int] = None,
    last_year_window_days: Optional[int] = None,
) -> HistoricalPrices:
    """
    Prices strictly before `as_of`: the recent lookback window plus the
    same-season window one year earlier.
    """
    settings = get_settings()
    lookback = settings.HISTORY_LOOKBACK_DAYS if lookback_days is None else lookback_days
    ly_window = settings.LAST_YEAR_WINDOW_DAYS if last_year_window_days is None else last_year_window_days
    if lookback < 1 or ly_window < 0:
        raise InvalidParameterError("lookback_days must be >= 1 and last_year_window_days >= 0")

    recent = _select_prices(
        db,
        sku_id,
        [PriceObservation.date >= as_of - timedelta(days=lookback), PriceObservation.date < as_of],
    )

    ly_end = shift_years(as_of, -1)
    ly_start = ly_end - timedelta(days=ly_window)
    last_year = _select_prices(
        db,
        sku_id,
        [PriceObservation.date >= ly_start, PriceObservation.date <= ly_end, PriceObservation.date < as_of],
    )
    return HistoricalPrices(recent=recent, last_year=last_year)


def fetch_future_prices(db: Session, sku_id: str, start_date: date, end_date: date) -> List[PricePoint]:
    """Observed prices in [start_date, end_date]; only populated once the window is history."""
    if start_date > end_date:
        raise InvalidParameterError("start_date must not be after end_date")
    return _select_prices(
        db,
        sku_id,
        [PriceObservation.date >= start_date, PriceObservation.date <= end_date],
    )


def _prediction_row_to_dict(row) -> Dict[str, Any]:
    return {
        "sku_id": row.sku_id,
        "prediction_date": row.prediction_date,
        "target_date": row.target_date,
        "prediction_step": row.prediction_step,
        "prediction_probability": row.prediction_probability,
    }


def _select_predictions(db: Session, conds, order_by) -> List[Dict[str, Any]]:
    stmt = (
        select(
            PredictionResult.sku_id,
            PredictionResult.prediction_date,
            PredictionResult.target_date,
            PredictionResult.prediction_step,
            PredictionResult.prediction_probability,
        )
        .where(and_(*conds))
        .order_by(*order_by, PredictionResult.id.asc())
    )
    return [_prediction_row_to_dict(r) for r in db.execute(stmt).all()]


def fetch_predictions(db: Session, sku_id: str, prediction_date: date, max_step: int) -> List[Dict[str, Any]]:
    """
    Raw `result` rows issued on `prediction_date` with 1 <= step <= max_step.
    Rows are returned unvalidated; the label derivator owns the data-quality policy.
    """
    if max_step < 1:
        raise InvalidParameterError(f"max_step must be a positive integer, got {max_step}")
    return _select_predictions(
        db,
        [
            PredictionResult.sku_id == sku_id,
            PredictionResult.prediction_date == prediction_date,
            PredictionResult.prediction_step >= 1,
            PredictionResult.prediction_step <= max_step,
        ],
        [PredictionResult.prediction_step.asc()],
    )


def fetch_predictions_for_range(
    db: Session, sku_id: str, start_date: date, end_date: date
) -> List[Dict[str, Any]]:
    """Raw rows targeting [start_date, end_date], whatever day they were issued."""
    if start_date > end_date:
        raise InvalidParameterError("start_date must not be after end_date")
    return _select_predictions(
        db,
        [
            PredictionResult.sku_id == sku_id,
            PredictionResult.target_date >= start_date,
            PredictionResult.target_date <= end_date,
        ],
        [PredictionResult.target_date.asc(), PredictionResult.prediction_date.asc()],
    )


def list_prediction_dates(db: Session, sku_id: str, limit: Optional[int] = None) -> List[date]:
    """Distinct issue dates available for a SKU, newest first."""
    stmt = (
        select(PredictionResult.prediction_date)
        .where(PredictionResult.sku_id == sku_id, PredictionResult.prediction_date.is_not(None))
        .distinct()
        .order_by(PredictionResult.prediction_date.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return [d for d in (coerce_date(v) for v in db.execute(stmt).scalars().all()) if d is not None]


def list_sku_ids(db: Session) -> List[str]:
    stmt = union(
        select(PriceObservation.sku_id),
        select(PredictionResult.sku_id),
    )
    return sorted({str(v) for v in db.execute(stmt).scalars().all() if v is not None})


__all__ = [
    "HistoricalPrices",
    "fetch_future_prices",
    "fetch_historical_prices",
    "fetch_predictions",
    "fetch_predictions_for_range",
    "list_prediction_dates",
    "list_sku_ids",
]
