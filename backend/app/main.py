# app/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

# Import router objects explicitly to avoid module name collisions
from app.routers.health import router as health_router
from app.routers.skus import router as skus_router
from app.routers.validation import router as validation_router
from app.db.session import get_engine
from app.db.base import Base
from app.observability.logging import configure_logging
from app.observability.middleware import (
    invalid_parameter_handler,
    register_request_middleware,
    unhandled_exception_handler,
)
from app.observability.metrics import router as observability_router
from app.schemas.common import API_VERSION
from app.schemas.reconcile import InvalidParameterError
from app.config import get_settings

configure_logging()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Price Change Prediction Validator", version=API_VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=86400
    )

    if settings.TRUSTED_HOSTS:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.TRUSTED_HOSTS)

    register_request_middleware(app)
    app.add_exception_handler(InvalidParameterError, invalid_parameter_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Dev/e2e SQLite databases need the tables; Postgres ones belong to the hosted backend
    @app.on_event("startup")
    def _ensure_tables() -> None:
        engine = get_engine()
        if engine.dialect.name != "sqlite":
            return
        try:
            Base.metadata.create_all(bind=engine)
        except Exception as ex:
            logging.getLogger(__name__).exception("Failed to create tables on startup: %s", ex)

    app.include_router(health_router)
    app.include_router(observability_router)
    app.include_router(skus_router)
    app.include_router(validation_router)

    return app


app = create_app()
