# app/utils/numeric.py
from __future__ import annotations

import math
from typing import Optional, Union

Number = Union[int, float]


def coerce_float(value) -> Optional[float]:
    """
    Best-effort float conversion that returns None when the value cannot be parsed
    or is not finite (NaN/inf never make it into a price or a probability).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def coerce_whole_int(value) -> Optional[int]:
    """
    Integer conversion that refuses to truncate: 3, 3.0 and "3" parse, 2.7 does not.
    """
    as_float = coerce_float(value)
    if as_float is None or not as_float.is_integer():
        return None
    return int(as_float)


def safe_divide(numerator, denominator) -> Optional[float]:
    """
    Divide while guarding against None/zero/invalid values.
    """
    if numerator is None or denominator in (None, 0):
        return None
    try:
        return float(numerator) / float(denominator)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


__all__ = ["coerce_float", "coerce_whole_int", "safe_divide"]
