import os
import sys
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure backend/ is importable as the top-level "app" package even when pytest runs from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))
TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

# Ensure the application runs in test/sqlite mode *before* importing any app modules
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

# Import the DB session module first so we can patch it before the app is imported
import app.db.session as app_db_session  # type: ignore

# --- Use a single in-memory SQLite DB for the whole test session ---
ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    future=True,
)
SessionTesting = sessionmaker(bind=ENGINE, autocommit=False, autoflush=False, future=True)

# --- Ensure tests and app code share the SAME in-memory engine/sessionmaker ---
setattr(app_db_session, "ENGINE", ENGINE)
setattr(app_db_session, "engine", ENGINE)
app_db_session.SessionLocal = SessionTesting
app_db_session.get_engine = lambda: ENGINE            # type: ignore
app_db_session.get_sessionmaker = lambda: SessionTesting  # type: ignore

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.prediction import PredictionResult
from app.models.price import PriceObservation

Base.metadata.create_all(bind=ENGINE)


@pytest.fixture(scope="function")
def reset_db():
    with ENGINE.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f'DELETE FROM "{table.name}"'))
    yield


@pytest.fixture(scope="function")
def db(reset_db):
    session = SessionTesting()

    def _override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(scope="function")
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seed_prices(db):
    """Insert (date, price) observations for a SKU. Dates may be date or ISO strings."""

    def _seed(sku_id: str, rows):
        for d, price in rows:
            db.add(
                PriceObservation(
                    sku_id=sku_id,
                    date=date.fromisoformat(d) if isinstance(d, str) else d,
                    price=price,
                )
            )
        db.commit()

    return _seed


@pytest.fixture
def seed_predictions(db):
    """Insert result rows: (prediction_date, target_date, step, probability)."""

    def _seed(sku_id: str, rows):
        for issued, target, step, prob in rows:
            db.add(
                PredictionResult(
                    sku_id=sku_id,
                    prediction_date=date.fromisoformat(issued) if isinstance(issued, str) else issued,
                    target_date=date.fromisoformat(target) if isinstance(target, str) else target,
                    prediction_step=step,
                    prediction_probability=prob,
                )
            )
        db.commit()

    return _seed
