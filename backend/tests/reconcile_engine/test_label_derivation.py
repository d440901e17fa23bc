from __future__ import annotations

import json
from datetime import date

import pytest

from app.schemas.common import ok
from app.schemas.reconcile import (
    InvalidParameterError,
    Label,
    PredictionRecord,
    PricePoint,
    Verdict,
)
from app.services.label_derivation import (
    coerce_prediction,
    derive_comparisons,
    MalformedRecord,
    select_effective_predictions,
)

D0 = date(2025, 1, 9)
D1 = date(2025, 1, 10)


def _pred(target=D1, prob=0.7, issued=date(2025, 1, 5), step=None, sku="SKU001"):
    return PredictionRecord(
        sku_id=sku,
        prediction_date=issued,
        target_date=target,
        prediction_step=step if step is not None else (target - issued).days,
        probability=prob,
    )


def _one(predictions, prices, y=0.5, x=0.05):
    comparisons, warnings = derive_comparisons(predictions, prices, y, x)
    assert len(comparisons) == 1
    return comparisons[0], warnings


def test_flat_price_with_high_probability_is_incorrect():
    rec, warnings = _one([_pred(prob=0.7)], [PricePoint(D0, 100.0), PricePoint(D1, 100.0)])
    assert warnings == []
    assert rec.predicted_label is Label.CHANGED
    assert rec.actual_price_change_ratio == 0.0
    assert rec.actual_label is Label.UNCHANGED
    assert rec.is_correct is Verdict.INCORRECT
    assert rec.is_correct.as_bool() is False


def test_ten_percent_move_with_high_probability_is_correct():
    rec, _ = _one([_pred(prob=0.7)], [PricePoint(D0, 100.0), PricePoint(D1, 110.0)])
    assert rec.actual_price_change_ratio == pytest.approx(0.10)
    assert rec.actual_label is Label.CHANGED
    assert rec.is_correct is Verdict.CORRECT
    assert rec.actual_price == 110.0
    assert rec.previous_price == 100.0


def test_price_drop_counts_as_change():
    rec, _ = _one([_pred(prob=0.9)], [PricePoint(D0, 100.0), PricePoint(D1, 80.0)])
    assert rec.actual_price_change_ratio == pytest.approx(0.20)
    assert rec.actual_label is Label.CHANGED


def test_missing_previous_day_price_is_unknown_not_false():
    rec, _ = _one([_pred(prob=0.7)], [PricePoint(D1, 110.0)])
    assert rec.actual_label is Label.UNKNOWN
    assert rec.is_correct is Verdict.UNKNOWN
    assert rec.is_correct.as_bool() is None
    assert rec.actual_price == 110.0
    assert rec.actual_price_change_ratio is None


def test_missing_target_price_is_unknown():
    rec, _ = _one([_pred(prob=0.2)], [PricePoint(D0, 100.0)])
    assert rec.actual_label is Label.UNKNOWN
    assert rec.actual_price is None


def test_zero_previous_price_is_unknown():
    rec, _ = _one([_pred()], [PricePoint(D0, 0.0), PricePoint(D1, 5.0)])
    assert rec.actual_label is Label.UNKNOWN
    assert rec.is_correct is Verdict.UNKNOWN


def test_probability_equal_to_threshold_predicts_unchanged():
    rec, _ = _one([_pred(prob=0.5)], [PricePoint(D0, 100.0), PricePoint(D1, 100.0)], y=0.5)
    assert rec.predicted_label is Label.UNCHANGED
    assert rec.is_correct is Verdict.CORRECT


def test_ratio_equal_to_change_threshold_is_unchanged():
    rec, _ = _one([_pred(prob=0.1)], [PricePoint(D0, 100.0), PricePoint(D1, 125.0)], x=0.25)
    assert rec.actual_price_change_ratio == 0.25
    assert rec.actual_label is Label.UNCHANGED


def test_latest_prediction_date_wins():
    target = date(2025, 1, 10)
    early = _pred(target=target, prob=0.3, issued=date(2025, 1, 1))
    late = _pred(target=target, prob=0.8, issued=date(2025, 1, 5))
    rec, _ = _one([late, early], [PricePoint(D0, 100.0), PricePoint(D1, 100.0)])
    assert rec.probability == 0.8
    assert rec.prediction_date == date(2025, 1, 5)
    assert rec.predicted_label is Label.CHANGED


def test_same_prediction_date_last_input_wins():
    first = _pred(prob=0.1)
    second = _pred(prob=0.9)
    chosen = select_effective_predictions([first, second])
    assert chosen == [second]
    chosen = select_effective_predictions([second, first])
    assert chosen == [first]


def test_output_is_ascending_and_keeps_every_target_date():
    preds = [
        _pred(target=date(2025, 1, 12), prob=0.6),
        _pred(target=date(2025, 1, 10), prob=0.6),
        _pred(target=date(2025, 3, 1), prob=0.6),  # far outside any price data
    ]
    comparisons, _ = derive_comparisons(preds, [PricePoint(D0, 1.0), PricePoint(D1, 1.0)], 0.5, 0.05)
    assert [c.date for c in comparisons] == [date(2025, 1, 10), date(2025, 1, 12), date(2025, 3, 1)]
    assert comparisons[-1].actual_label is Label.UNKNOWN


def test_raw_rows_are_accepted_and_malformed_rows_become_warnings():
    rows = [
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-10",
         "prediction_step": 5, "prediction_probability": "0.75"},
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": None,
         "prediction_step": 6, "prediction_probability": 0.4},
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-12",
         "prediction_step": 7, "prediction_probability": "abc"},
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-13",
         "prediction_step": 8, "prediction_probability": 1.7},
    ]
    comparisons, warnings = derive_comparisons(rows, [PricePoint(D0, 100.0), PricePoint(D1, 108.0)], 0.5, 0.05)

    assert [c.date for c in comparisons] == [D1]
    assert comparisons[0].probability == 0.75
    assert comparisons[0].is_correct is Verdict.CORRECT
    assert [w.index for w in warnings] == [1, 2, 3]
    assert "target_date" in warnings[0].reason
    assert "probability" in warnings[1].reason
    assert "outside" in warnings[2].reason
    assert warnings[1].record["prediction_probability"] == "abc"


def test_step_that_contradicts_its_dates_is_malformed():
    rows = [
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-03-01",
         "prediction_step": 1, "prediction_probability": 0.9},
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-10",
         "prediction_step": 2.5, "prediction_probability": 0.9},
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-10",
         "prediction_step": 5.0, "prediction_probability": 0.9},
    ]
    comparisons, warnings = derive_comparisons(rows, [], 0.5, 0.05)

    assert [(c.date, c.prediction_date) for c in comparisons] == [(D1, date(2025, 1, 5))]
    assert [w.index for w in warnings] == [0, 1]
    assert "disagrees" in warnings[0].reason
    assert "non-integral" in warnings[1].reason


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_probability_warning_is_json_safe(bad):
    rows = [
        {"sku_id": "SKU001", "prediction_date": "2025-01-05", "target_date": "2025-01-09",
         "prediction_step": 4, "prediction_probability": bad},
        _pred(),
    ]
    comparisons, warnings = derive_comparisons(rows, [], 0.5, 0.05)
    assert len(comparisons) == 1
    assert len(warnings) == 1

    record = warnings[0].to_dict()["record"]
    assert record["prediction_probability"] == repr(bad)
    response = ok(data={"warnings": [w.to_dict() for w in warnings]})
    body = json.loads(response.body)
    assert body["data"]["warnings"][0]["record"]["prediction_probability"] == repr(bad)


def test_non_mapping_row_is_a_warning_not_a_crash():
    comparisons, warnings = derive_comparisons([42, _pred()], [], 0.5, 0.05)
    assert len(comparisons) == 1
    assert len(warnings) == 1 and warnings[0].index == 0


def test_coerce_prediction_derives_issue_date_from_step():
    rec = coerce_prediction({"target_date": "2025-01-10", "prediction_step": 3, "probability": 0.2})
    assert rec.prediction_date == date(2025, 1, 7)
    with pytest.raises(MalformedRecord):
        coerce_prediction({"target_date": "2025-01-10", "probability": 0.2})


@pytest.mark.parametrize(
    "y, x",
    [(-0.1, 0.05), (1.5, 0.05), (0.5, 0.0), (0.5, -1.0), ("high", 0.05), (0.5, None)],
)
def test_contract_violations_raise(y, x):
    with pytest.raises(InvalidParameterError):
        derive_comparisons([_pred()], [], y, x)


def test_tri_state_invariant_holds_for_every_record():
    preds = [_pred(target=date(2025, 1, d), prob=p) for d, p in [(10, 0.9), (11, 0.1), (12, 0.6), (14, 0.2)]]
    prices = [PricePoint(date(2025, 1, d), v) for d, v in [(9, 10.0), (10, 11.0), (11, 11.0), (12, 11.1)]]
    comparisons, _ = derive_comparisons(preds, prices, 0.5, 0.05)
    for c in comparisons:
        if c.actual_label.known:
            assert c.is_correct.known
            assert (c.is_correct is Verdict.CORRECT) == (c.predicted_label is c.actual_label)
        else:
            assert c.is_correct is Verdict.UNKNOWN
