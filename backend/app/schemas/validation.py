# app/schemas/validation.py
from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

ModeLiteral = Literal["issued", "window"]


class BatchValidationIn(BaseModel):
    sku_ids: Union[List[str], str] = Field(
        ..., description="SKU ids as a list, or one string separated by commas, semicolons or whitespace"
    )
    prediction_date: date
    prediction_step: Optional[int] = Field(None, description="Forecast horizon in days; defaults to DEFAULT_PREDICTION_STEP")
    probability_threshold: Optional[float] = Field(
        None, description="Y; defaults to BATCH_PROBABILITY_THRESHOLD"
    )
    change_threshold: Optional[float] = Field(None, description="X; defaults to BATCH_CHANGE_THRESHOLD")
    mode: ModeLiteral = "window"


__all__ = ["BatchValidationIn", "ModeLiteral"]
