"""
Prediction validation runs: fetch, normalize, reconcile, aggregate.

A single run produces everything the dashboard renders for one SKU; a batch
run repeats it per SKU and isolates failures so one bad SKU never sinks the
rest of the batch.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from app.config import get_settings
from app.observability.instrument import log_job
from app.observability.metrics import VALIDATION_RUNS, VALIDATION_SKIPPED_RECORDS
from app.schemas.reconcile import (
    AccuracyBucket,
    AccuracyStats,
    ComparisonRecord,
    DataQualityWarning,
    InvalidParameterError,
    PricePoint,
    points_to_dicts,
)
from app.services.accuracy import aggregate, pooled_accuracy
from app.services.label_derivation import (
    coerce_predictions,
    derive_comparisons,
    validate_thresholds,
)
from app.services.price_fetch import (
    fetch_future_prices,
    fetch_historical_prices,
    fetch_predictions,
    fetch_predictions_for_range,
)
from app.services.price_series import forward_fill, merge_series
from app.utils.numeric import coerce_whole_int

logger = logging.getLogger(__name__)

MODE_ISSUED = "issued"  # rows issued on the prediction date
MODE_WINDOW = "window"  # rows targeting the window, any issue date
MODES = (MODE_ISSUED, MODE_WINDOW)

_SKU_SPLIT = re.compile(r"[,;\s]+")


@dataclass(frozen=True)
class ValidationReport:
    sku_id: str
    prediction_date: date
    prediction_step: int
    probability_threshold: float
    change_threshold: float
    mode: str
    comparisons: List[ComparisonRecord] = field(default_factory=list)
    stats: AccuracyStats = field(default_factory=AccuracyStats)
    warnings: List[DataQualityWarning] = field(default_factory=list)
    daily_predictions: List[Dict[str, Any]] = field(default_factory=list)
    recent_prices: List[PricePoint] = field(default_factory=list)
    last_year_prices: List[PricePoint] = field(default_factory=list)
    prediction_rows: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku_id": self.sku_id,
            "prediction_date": self.prediction_date.isoformat(),
            "prediction_step": self.prediction_step,
            "probability_threshold": self.probability_threshold,
            "change_threshold": self.change_threshold,
            "mode": self.mode,
            "comparisons": [c.to_dict() for c in self.comparisons],
            "stats": self.stats.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "daily_predictions": list(self.daily_predictions),
            "recent_prices": points_to_dicts(self.recent_prices),
            "last_year_prices": points_to_dicts(self.last_year_prices),
            "prediction_rows": self.prediction_rows,
        }


@dataclass(frozen=True)
class SkuOutcome:
    sku_id: str
    accuracy: Optional[float] = None
    stats: Optional[AccuracyStats] = None
    comparisons: List[ComparisonRecord] = field(default_factory=list)
    warnings: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sku_id": self.sku_id,
            "accuracy": self.accuracy,
            "stats": self.stats.to_dict() if self.stats is not None else None,
            "comparisons": [c.to_dict() for c in self.comparisons],
            "warnings": self.warnings,
            "error": self.error,
        }


@dataclass(frozen=True)
class BatchReport:
    prediction_date: date
    prediction_step: int
    probability_threshold: float
    change_threshold: float
    mode: str
    outcomes: List[SkuOutcome] = field(default_factory=list)
    overall: AccuracyBucket = field(default_factory=AccuracyBucket)

    @property
    def highest(self) -> Optional[SkuOutcome]:
        scored = [o for o in self.outcomes if o.accuracy is not None]
        return scored[0] if scored else None

    @property
    def lowest(self) -> Optional[SkuOutcome]:
        scored = [o for o in self.outcomes if o.accuracy is not None]
        return scored[-1] if scored else None

    def to_dict(self) -> Dict[str, Any]:
        highest, lowest = self.highest, self.lowest
        return {
            "prediction_date": self.prediction_date.isoformat(),
            "prediction_step": self.prediction_step,
            "probability_threshold": self.probability_threshold,
            "change_threshold": self.change_threshold,
            "mode": self.mode,
            "sku_ids": [o.sku_id for o in self.outcomes],
            "outcomes": [o.to_dict() for o in self.outcomes],
            "overall_accuracy": self.overall.accuracy,
            "overall": self.overall.to_dict(),
            "highest": {"sku_id": highest.sku_id, "accuracy": highest.accuracy} if highest else None,
            "lowest": {"sku_id": lowest.sku_id, "accuracy": lowest.accuracy} if lowest else None,
            "failed": [o.sku_id for o in self.outcomes if o.error],
        }


def parse_sku_ids(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Split on commas, semicolons and whitespace; drop blanks and duplicates, keep order."""
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = _SKU_SPLIT.split(raw)
    else:
        parts = []
        for item in raw:
            parts.extend(_SKU_SPLIT.split(str(item)))
    seen: Dict[str, None] = {}
    for p in parts:
        p = p.strip()
        if p and p not in seen:
            seen[p] = None
    return list(seen)


def _validate_step(prediction_step) -> int:
    if prediction_step is None:
        prediction_step = get_settings().DEFAULT_PREDICTION_STEP
    step = coerce_whole_int(prediction_step)
    if step is None or step < 1:
        raise InvalidParameterError(f"prediction_step must be a positive integer, got {prediction_step!r}")
    return step


def _validate_mode(mode: str) -> str:
    if mode not in MODES:
        raise InvalidParameterError(f"mode must be one of {', '.join(MODES)}, got {mode!r}")
    return mode


def reconcile(
    prediction_rows: Sequence[Any],
    prices: Sequence[PricePoint],
    probability_threshold: float,
    change_threshold: float,
) -> tuple[List[ComparisonRecord], List[DataQualityWarning], AccuracyStats]:
    """
    Run the three engine stages over already-fetched rows.

    The fill window starts the day before the earliest target and stops at the
    latest real observation, so target dates past known data stay unknown.
    """
    records, warnings = coerce_predictions(prediction_rows)
    targets = [r.target_date for r in records]
    filled: List[PricePoint] = []
    if targets and prices:
        start = min(targets) - timedelta(days=1)
        end = min(max(targets), max(p.date for p in prices))
        if start <= end:
            filled = forward_fill(prices, start, end)

    comparisons, _ = derive_comparisons(records, filled, probability_threshold, change_threshold)
    return comparisons, warnings, aggregate(comparisons)


def _daily_predictions(comparisons: Sequence[ComparisonRecord]) -> List[Dict[str, Any]]:
    """Effective prediction per target date, for the probability chart."""
    return [
        {
            "date": c.date.isoformat(),
            "prediction_date": c.prediction_date.isoformat() if c.prediction_date else None,
            "prediction_step": (c.date - c.prediction_date).days if c.prediction_date else None,
            "probability": c.probability,
            "predicted_label": c.predicted_label.value,
        }
        for c in comparisons
    ]


def _fetch_prediction_rows(db: Session, sku_id: str, prediction_date: date, step: int, mode: str):
    if mode == MODE_WINDOW:
        return fetch_predictions_for_range(db, sku_id, prediction_date, prediction_date + timedelta(days=step))
    return fetch_predictions(db, sku_id, prediction_date, step)


@log_job("validation.single", context=("sku_id", "prediction_date"))
def run_validation(
    db: Session,
    *,
    sku_id: str,
    prediction_date: date,
    prediction_step: Optional[int] = None,
    probability_threshold: Optional[float] = None,
    change_threshold: Optional[float] = None,
    mode: str = MODE_ISSUED,
) -> ValidationReport:
    settings = get_settings()
    if not sku_id or not str(sku_id).strip():
        raise InvalidParameterError("sku_id is required")
    sku_id = str(sku_id).strip()
    step = _validate_step(prediction_step)
    mode = _validate_mode(mode)
    y, x = validate_thresholds(
        settings.DEFAULT_PROBABILITY_THRESHOLD if probability_threshold is None else probability_threshold,
        settings.DEFAULT_CHANGE_THRESHOLD if change_threshold is None else change_threshold,
    )

    rows = _fetch_prediction_rows(db, sku_id, prediction_date, step, mode)
    history = fetch_historical_prices(db, sku_id, prediction_date)
    future = fetch_future_prices(db, sku_id, prediction_date, prediction_date + timedelta(days=step))

    comparisons, warnings, stats = reconcile(rows, merge_series(history.recent, future), y, x)

    if warnings:
        VALIDATION_SKIPPED_RECORDS.inc(len(warnings))
    VALIDATION_RUNS.labels(mode=mode, outcome="scored" if stats.accuracy is not None else "unscored").inc()

    return ValidationReport(
        sku_id=sku_id,
        prediction_date=prediction_date,
        prediction_step=step,
        probability_threshold=y,
        change_threshold=x,
        mode=mode,
        comparisons=comparisons,
        stats=stats,
        warnings=warnings,
        daily_predictions=_daily_predictions(comparisons),
        recent_prices=history.recent,
        last_year_prices=history.last_year,
        prediction_rows=len(rows),
    )


def _outcome_sort_key(o: SkuOutcome):
    # accuracy descending, unscored SKUs last, ties by SKU id
    return (o.accuracy is None, -(o.accuracy or 0.0), o.sku_id)


@log_job("validation.batch", context=("prediction_date",))
def run_batch_validation(
    db: Session,
    *,
    sku_ids: Union[str, Iterable[str]],
    prediction_date: date,
    prediction_step: Optional[int] = None,
    probability_threshold: Optional[float] = None,
    change_threshold: Optional[float] = None,
    mode: str = MODE_WINDOW,
) -> BatchReport:
    settings = get_settings()
    skus = parse_sku_ids(sku_ids)
    if not skus:
        raise InvalidParameterError("at least one sku_id is required")
    if len(skus) > settings.MAX_BATCH_SKUS:
        raise InvalidParameterError(f"batch size {len(skus)} exceeds MAX_BATCH_SKUS={settings.MAX_BATCH_SKUS}")
    step = _validate_step(prediction_step)
    mode = _validate_mode(mode)
    y, x = validate_thresholds(
        settings.BATCH_PROBABILITY_THRESHOLD if probability_threshold is None else probability_threshold,
        settings.BATCH_CHANGE_THRESHOLD if change_threshold is None else change_threshold,
    )

    outcomes: List[SkuOutcome] = []
    for sku in skus:
        try:
            report = run_validation(
                db,
                sku_id=sku,
                prediction_date=prediction_date,
                prediction_step=step,
                probability_threshold=y,
                change_threshold=x,
                mode=mode,
            )
        except Exception as ex:
            db.rollback()
            logger.exception("validation.batch: sku=%s failed", sku)
            VALIDATION_RUNS.labels(mode=mode, outcome="failed").inc()
            outcomes.append(SkuOutcome(sku_id=sku, error=f"{type(ex).__name__}: {ex}"))
            continue
        outcomes.append(
            SkuOutcome(
                sku_id=sku,
                accuracy=report.stats.accuracy,
                stats=report.stats,
                comparisons=report.comparisons,
                warnings=len(report.warnings),
            )
        )

    outcomes.sort(key=_outcome_sort_key)
    return BatchReport(
        prediction_date=prediction_date,
        prediction_step=step,
        probability_threshold=y,
        change_threshold=x,
        mode=mode,
        outcomes=outcomes,
        overall=pooled_accuracy(o.stats for o in outcomes),
    )


__all__ = [
    "BatchReport",
    "MODES",
    "MODE_ISSUED",
    "MODE_WINDOW",
    "SkuOutcome",
    "ValidationReport",
    "parse_sku_ids",
    "reconcile",
    "run_batch_validation",
    "run_validation",
]
