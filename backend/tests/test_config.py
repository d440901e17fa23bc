from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import Settings


def test_threshold_defaults():
    s = Settings(DATABASE_URL=None, TEST_DATABASE_URL=None)
    assert s.DEFAULT_PROBABILITY_THRESHOLD == 0.5
    assert s.DEFAULT_CHANGE_THRESHOLD == 0.05
    assert s.BATCH_PROBABILITY_THRESHOLD == 0.6
    assert s.BATCH_CHANGE_THRESHOLD == 0.1


def test_thresholds_read_from_environment(monkeypatch):
    monkeypatch.setenv("DEFAULT_PROBABILITY_THRESHOLD", "0.7")
    monkeypatch.setenv("BATCH_CHANGE_THRESHOLD", "0.2")
    s = Settings()
    assert s.DEFAULT_PROBABILITY_THRESHOLD == 0.7
    assert s.BATCH_CHANGE_THRESHOLD == 0.2


@pytest.mark.parametrize(
    "override",
    [
        {"DEFAULT_PROBABILITY_THRESHOLD": 1.5},
        {"BATCH_PROBABILITY_THRESHOLD": -0.1},
        {"DEFAULT_CHANGE_THRESHOLD": 0},
        {"DEFAULT_PREDICTION_STEP": 0},
    ],
)
def test_invalid_thresholds_rejected(override):
    with pytest.raises(ValidationError):
        Settings(**override)
