from __future__ import annotations

import logging
import math
from dataclasses import asdict, is_dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from app.schemas.reconcile import (
    ComparisonRecord,
    DataQualityWarning,
    InvalidParameterError,
    Label,
    PredictionRecord,
    PricePoint,
    Verdict,
)
from app.services.price_series import index_by_date
from app.utils.dates import coerce_date, previous_day
from app.utils.numeric import coerce_float, coerce_whole_int, safe_divide

logger = logging.getLogger(__name__)

RowLike = Union[PredictionRecord, Mapping[str, Any]]


class MalformedRecord(ValueError):
    """Raised by `coerce_prediction` for a row that cannot be used."""


def validate_thresholds(probability_threshold, change_threshold) -> Tuple[float, float]:
    y = coerce_float(probability_threshold)
    if y is None or not 0.0 <= y <= 1.0:
        raise InvalidParameterError(
            f"probability_threshold must be a number within [0, 1], got {probability_threshold!r}"
        )
    x = coerce_float(change_threshold)
    if x is None or x <= 0.0:
        raise InvalidParameterError(f"change_threshold must be a number > 0, got {change_threshold!r}")
    return y, x


def _row_to_dict(row: RowLike) -> Dict[str, Any]:
    if is_dataclass(row) and not isinstance(row, type):
        return asdict(row)
    return dict(row)


def coerce_prediction(row: RowLike) -> PredictionRecord:
    """Turn a raw `result` row (or a PredictionRecord) into a validated record."""
    data = _row_to_dict(row)

    target = coerce_date(data.get("target_date"))
    if target is None:
        raise MalformedRecord("missing or unparseable target_date")

    raw_prob = data.get("prediction_probability", data.get("probability"))
    prob = coerce_float(raw_prob)
    if prob is None:
        raise MalformedRecord(f"non-numeric probability {raw_prob!r}")
    if not 0.0 <= prob <= 1.0:
        raise MalformedRecord(f"probability {prob} outside [0, 1]")

    issued = coerce_date(data.get("prediction_date"))
    raw_step = data.get("prediction_step")
    step = coerce_whole_int(raw_step)
    if step is None and raw_step is not None:
        raise MalformedRecord(f"non-integral prediction_step {raw_step!r}")
    if issued is None and step is not None:
        issued = date.fromordinal(target.toordinal() - step)
    if issued is None:
        raise MalformedRecord("missing prediction_date and prediction_step")
    if step is None:
        step = (target - issued).days
    elif (target - issued).days != step:
        raise MalformedRecord(
            f"prediction_step {step} disagrees with {issued.isoformat()} -> {target.isoformat()}"
        )
    if step < 1:
        raise MalformedRecord(f"prediction_step {step} is not a positive number of days")

    return PredictionRecord(
        sku_id=str(data.get("sku_id") or ""),
        prediction_date=issued,
        target_date=target,
        prediction_step=step,
        probability=prob,
    )


def coerce_predictions(rows: Iterable[RowLike]) -> Tuple[List[PredictionRecord], List[DataQualityWarning]]:
    records: List[PredictionRecord] = []
    warnings: List[DataQualityWarning] = []
    for idx, row in enumerate(rows):
        try:
            records.append(coerce_prediction(row))
        except (MalformedRecord, TypeError, ValueError, OverflowError) as ex:
            try:
                raw = _row_to_dict(row)
            except (TypeError, ValueError):
                raw = {"value": repr(row)}
            warnings.append(DataQualityWarning(index=idx, reason=str(ex), record=_jsonable(raw)))
    if warnings:
        logger.warning("label_derivation: skipped %d malformed prediction row(s)", len(warnings))
    return records, warnings


def _jsonable(raw: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in raw.items():
        if isinstance(v, date):
            out[str(k)] = v.isoformat()
        elif isinstance(v, float) and not math.isfinite(v):
            out[str(k)] = repr(v)
        elif v is None or isinstance(v, (str, int, float, bool)):
            out[str(k)] = v
        else:
            out[str(k)] = repr(v)
    return out


def select_effective_predictions(records: Iterable[PredictionRecord]) -> List[PredictionRecord]:
    """
    One record per target date: the latest prediction_date wins.
    On identical prediction_date the record that came last in input order wins.
    Result is ascending by target date.
    """
    chosen: Dict[date, PredictionRecord] = {}
    for rec in sorted(records, key=lambda r: (r.target_date, r.prediction_date)):
        chosen[rec.target_date] = rec
    return [chosen[d] for d in sorted(chosen)]


def predicted_label(probability: float, probability_threshold: float) -> Label:
    # strict: a probability equal to the threshold does not predict a change
    return Label.CHANGED if probability > probability_threshold else Label.UNCHANGED


def _actual(
    prices: Mapping[date, PricePoint], target: date, change_threshold: float
) -> Tuple[Label, Optional[float], Optional[float], Optional[float]]:
    current = prices.get(target)
    previous = prices.get(previous_day(target))
    current_price = current.price if current is not None else None
    previous_price = previous.price if previous is not None else None
    if current_price is None or previous_price is None:
        return Label.UNKNOWN, current_price, previous_price, None

    ratio = safe_divide(abs(current_price - previous_price), previous_price)
    if ratio is None:
        return Label.UNKNOWN, current_price, previous_price, None
    label = Label.CHANGED if ratio > change_threshold else Label.UNCHANGED
    return label, current_price, previous_price, ratio


def derive_comparisons(
    predictions: Iterable[RowLike],
    actual_prices: Iterable[PricePoint],
    probability_threshold: float,
    change_threshold: float,
) -> Tuple[List[ComparisonRecord], List[DataQualityWarning]]:
    """
    Reconcile predictions with observed prices, one record per target date.

    `actual_prices` must already be forward-filled (or complete); this function
    only looks prices up. Malformed prediction rows are skipped and returned as
    warnings; they never abort the run.
    """
    y, x = validate_thresholds(probability_threshold, change_threshold)

    records, warnings = coerce_predictions(predictions)
    prices = index_by_date(actual_prices)

    out: List[ComparisonRecord] = []
    for rec in select_effective_predictions(records):
        predicted = predicted_label(rec.probability, y)
        actual, current_price, previous_price, ratio = _actual(prices, rec.target_date, x)
        out.append(
            ComparisonRecord(
                date=rec.target_date,
                predicted_label=predicted,
                actual_label=actual,
                is_correct=Verdict.compare(predicted, actual),
                probability=rec.probability,
                prediction_date=rec.prediction_date,
                actual_price=current_price,
                previous_price=previous_price,
                actual_price_change_ratio=ratio,
            )
        )
    return out, warnings


__all__ = [
    "MalformedRecord",
    "coerce_prediction",
    "coerce_predictions",
    "derive_comparisons",
    "predicted_label",
    "select_effective_predictions",
    "validate_thresholds",
]
