# app/services/export.py
from __future__ import annotations

from typing import Iterable, List

import pandas as pd

from app.schemas.reconcile import ComparisonRecord

CSV_HEADER = [
    "date",
    "prediction_date",
    "probability",
    "predicted_label",
    "actual_label",
    "is_correct",
    "actual_price",
    "previous_price",
    "actual_price_change_ratio",
]


def comparisons_to_frame(records: Iterable[ComparisonRecord]) -> pd.DataFrame:
    rows: List[dict] = []
    for r in records:
        d = r.to_dict()
        verdict = d.pop("verdict")
        # unknown stays an empty cell, never "false"
        d["is_correct"] = {"correct": "true", "incorrect": "false"}.get(verdict)
        rows.append(d)
    return pd.DataFrame(rows, columns=CSV_HEADER)


def comparisons_to_csv(records: Iterable[ComparisonRecord]) -> str:
    """
    Serialize comparison records with the fixed header order the dashboard downloads.
    """
    frame = comparisons_to_frame(records)
    return frame.to_csv(index=False, na_rep="", lineterminator="\n")


__all__ = ["CSV_HEADER", "comparisons_to_csv", "comparisons_to_frame"]
