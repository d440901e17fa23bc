# backend/app/config.py
from functools import lru_cache
from typing import List

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # environment: "dev" for running the app locally, "test" for pytest
    ENV: str = "dev"

    DATABASE_URL: str | None = None
    TEST_DATABASE_URL: str | None = None
    DB_REQUIRE_SSL: bool = True

    LOG_LEVEL: str = "INFO"

    # --- HTTP ---
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )
    TRUSTED_HOSTS: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "testserver",
            "test",
        ]
    )

    # --- Validation defaults ---
    # Y: probability above which a forecast counts as "predicts change".
    DEFAULT_PROBABILITY_THRESHOLD: float = 0.5
    # X: day-over-day delta ratio above which a price counts as "changed".
    DEFAULT_CHANGE_THRESHOLD: float = 0.05
    # The batch page ships with its own pair; X is fixed at model training time.
    BATCH_PROBABILITY_THRESHOLD: float = 0.6
    BATCH_CHANGE_THRESHOLD: float = 0.1
    DEFAULT_PREDICTION_STEP: int = 7

    HISTORY_LOOKBACK_DAYS: int = 90
    LAST_YEAR_WINDOW_DAYS: int = 30
    MAX_BATCH_SKUS: int = 200

    @model_validator(mode="after")
    def _check_thresholds(self):
        for name in ("DEFAULT_PROBABILITY_THRESHOLD", "BATCH_PROBABILITY_THRESHOLD"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        for name in ("DEFAULT_CHANGE_THRESHOLD", "BATCH_CHANGE_THRESHOLD"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")
        if self.DEFAULT_PREDICTION_STEP < 1:
            raise ValueError("DEFAULT_PREDICTION_STEP must be a positive integer")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
