from __future__ import annotations

from typing import Iterable, List, Optional

from app.schemas.reconcile import (
    AccuracyBucket,
    AccuracyStats,
    ComparisonRecord,
    Label,
    Verdict,
)
from app.utils.numeric import safe_divide


def _bucket(records: List[ComparisonRecord]) -> AccuracyBucket:
    total = len(records)
    correct = sum(1 for r in records if r.is_correct is Verdict.CORRECT)
    return AccuracyBucket(
        total_compared=total,
        correct_count=correct,
        accuracy=safe_divide(correct, total),
    )


def aggregate(comparisons: Iterable[ComparisonRecord]) -> AccuracyStats:
    """
    Accuracy over the comparisons whose verdict is known, overall and split by
    predicted label. `accuracy` stays None when nothing is comparable.
    """
    known = [r for r in comparisons if r.is_correct.known]
    overall = _bucket(known)
    return AccuracyStats(
        total_compared=overall.total_compared,
        correct_count=overall.correct_count,
        accuracy=overall.accuracy,
        changed=_bucket([r for r in known if r.predicted_label is Label.CHANGED]),
        unchanged=_bucket([r for r in known if r.predicted_label is Label.UNCHANGED]),
    )


def pooled_accuracy(stats: Iterable[Optional[AccuracyStats]]) -> AccuracyBucket:
    """Pool correct/total across several runs (e.g. every SKU of a batch)."""
    total = 0
    correct = 0
    for s in stats:
        if s is None:
            continue
        total += s.total_compared
        correct += s.correct_count
    return AccuracyBucket(total_compared=total, correct_count=correct, accuracy=safe_divide(correct, total))


__all__ = ["aggregate", "pooled_accuracy"]
