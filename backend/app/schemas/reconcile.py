# app/schemas/reconcile.py
"""
Value objects shared by the reconciliation engine.

Every object here is created fresh per validation call and never mutated.
"Unknown" is a first-class state: `Label.UNKNOWN` and `Verdict.UNKNOWN` are
what insufficient data looks like, never False/0/None.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


class InvalidParameterError(ValueError):
    """A caller broke a function contract (threshold range, date order, ...)."""


class Label(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    UNKNOWN = "unknown"

    @property
    def known(self) -> bool:
        return self is not Label.UNKNOWN


class Verdict(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNKNOWN = "unknown"

    @property
    def known(self) -> bool:
        return self is not Verdict.UNKNOWN

    @classmethod
    def compare(cls, predicted: Label, actual: Label) -> "Verdict":
        if not actual.known:
            return cls.UNKNOWN
        return cls.CORRECT if predicted is actual else cls.INCORRECT

    def as_bool(self) -> Optional[bool]:
        """JSON-friendly view: True / False / None (unknown)."""
        if self is Verdict.UNKNOWN:
            return None
        return self is Verdict.CORRECT


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: float
    filled: bool = False  # synthesized by forward-fill


@dataclass(frozen=True)
class PredictionRecord:
    sku_id: str
    prediction_date: date
    target_date: date
    prediction_step: int
    probability: float


@dataclass(frozen=True)
class ComparisonRecord:
    date: date
    predicted_label: Label
    actual_label: Label
    is_correct: Verdict
    probability: float
    prediction_date: Optional[date] = None
    actual_price: Optional[float] = None
    previous_price: Optional[float] = None
    actual_price_change_ratio: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "prediction_date": self.prediction_date.isoformat() if self.prediction_date else None,
            "probability": self.probability,
            "predicted_label": self.predicted_label.value,
            "actual_label": self.actual_label.value,
            "verdict": self.is_correct.value,
            "is_correct": self.is_correct.as_bool(),
            "actual_price": self.actual_price,
            "previous_price": self.previous_price,
            "actual_price_change_ratio": self.actual_price_change_ratio,
        }


@dataclass(frozen=True)
class DataQualityWarning:
    index: int  # position of the offending row in the caller's input
    reason: str
    record: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "reason": self.reason, "record": dict(self.record)}


@dataclass(frozen=True)
class AccuracyBucket:
    total_compared: int = 0
    correct_count: int = 0
    accuracy: Optional[float] = None  # None means "not computable", not 0%

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_compared": self.total_compared,
            "correct_count": self.correct_count,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class AccuracyStats:
    total_compared: int = 0
    correct_count: int = 0
    accuracy: Optional[float] = None
    changed: AccuracyBucket = field(default_factory=AccuracyBucket)
    unchanged: AccuracyBucket = field(default_factory=AccuracyBucket)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_compared": self.total_compared,
            "correct_count": self.correct_count,
            "accuracy": self.accuracy,
            "segments": {
                Label.CHANGED.value: self.changed.to_dict(),
                Label.UNCHANGED.value: self.unchanged.to_dict(),
            },
        }


def points_to_dicts(points: List[PricePoint]) -> List[Dict[str, Any]]:
    return [{"date": p.date.isoformat(), "price": p.price, "filled": p.filled} for p in points]


__all__ = [
    "AccuracyBucket",
    "AccuracyStats",
    "ComparisonRecord",
    "DataQualityWarning",
    "InvalidParameterError",
    "Label",
    "PredictionRecord",
    "PricePoint",
    "Verdict",
    "points_to_dicts",
]
