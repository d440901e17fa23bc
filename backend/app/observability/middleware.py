from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi import status as http
from fastapi.responses import JSONResponse

from app.schemas.common import fail, meta_now
from app.schemas.reconcile import InvalidParameterError

from .metrics import record_latency, REQUEST_COUNTER, REQUEST_LATENCY

logger = structlog.get_logger("http")


async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=str(request.url.path),
    )
    try:
        response = await call_next(request)
    except Exception:
        duration = (time.perf_counter() - start) * 1000
        _record(request, duration, "500")
        logger.exception(
            "request.error",
            status_code=500,
            duration_ms=round(duration, 2),
        )
        structlog.contextvars.clear_contextvars()
        raise

    duration = (time.perf_counter() - start) * 1000
    _record(request, duration, str(response.status_code))
    logger.info(
        "request.completed",
        status_code=response.status_code,
        duration_ms=round(duration, 2),
    )
    response.headers["X-Request-Id"] = request_id
    structlog.contextvars.clear_contextvars()
    return response


def _record(request: Request, duration_ms: float, status: str) -> None:
    record_latency(request.url.path, duration_ms)
    REQUEST_COUNTER.labels(
        path=request.url.path,
        method=request.method,
        status=status,
    ).inc()
    REQUEST_LATENCY.labels(path=request.url.path, method=request.method).observe(
        duration_ms / 1000
    )


def register_request_middleware(app: FastAPI) -> None:
    app.middleware("http")(request_context_middleware)


def invalid_parameter_handler(request: Request, exc: InvalidParameterError) -> JSONResponse:
    logger.info("request.invalid_parameter", error=str(exc))
    return fail(
        code="INVALID_PARAMETER",
        message=str(exc),
        status_code=http.HTTP_422_UNPROCESSABLE_ENTITY,
        meta=meta_now(),
    )


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "request.unhandled_exception",
        exc_type=type(exc).__name__,
        error=str(exc),
    )
    payload: dict[str, str] = {"detail": "Internal Server Error"}
    if request_id:
        payload["request_id"] = request_id
    return JSONResponse(status_code=500, content=payload)
