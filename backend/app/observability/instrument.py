from __future__ import annotations

import functools
import time
from typing import Any, Callable, Iterable, TypeVar

import structlog

F = TypeVar("F", bound=Callable[..., Any])

logger = structlog.get_logger("job")


def _result_size(res: Any) -> int | None:
    for attr in ("comparisons", "outcomes"):
        inner = getattr(res, attr, None)
        if inner is not None:
            return len(inner)
    if isinstance(res, (list, tuple, set, dict)):
        return len(res)
    return None


def log_job(name: str, *, context: Iterable[str] = ()) -> Callable[[F], F]:
    """
    Decorator to measure job duration and emit structured logs.

    `context` names keyword arguments copied onto every log line (e.g. sku_id).
    """
    context_keys = tuple(context)

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            fields = {"job": name}
            for key in context_keys:
                value = kwargs.get(key)
                if value is not None:
                    fields[key] = value.isoformat() if hasattr(value, "isoformat") else value
            start = time.perf_counter()
            logger.info("job.start", **fields)
            try:
                result = func(*args, **kwargs)
            except Exception:
                duration = (time.perf_counter() - start) * 1000
                logger.exception("job.error", duration_ms=round(duration, 2), **fields)
                raise
            duration = (time.perf_counter() - start) * 1000
            logger.info(
                "job.completed",
                duration_ms=round(duration, 2),
                result_size=_result_size(result),
                **fields,
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
