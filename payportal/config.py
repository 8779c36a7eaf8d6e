"""
PayPortal — Application Configuration
All settings loaded from environment variables via pydantic-settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./payportal.db"

    # ── Auth ──────────────────────────────────────────────────────────────────
    JWT_SECRET: str = "CHANGE_ME_JWT_SECRET_256_BIT"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60

    # ── Payments ──────────────────────────────────────────────────────────────
    SUPPORTED_CURRENCIES: List[str] = [
        "USD",
        "EUR",
        "GBP",
        "ZAR",
        "JPY",
        "AUD",
        "CAD",
        "CHF",
    ]
    PAYMENT_PROVIDER: str = "SWIFT"

    # ── Settlement network ────────────────────────────────────────────────────
    SETTLEMENT_TIMEOUT_SECONDS: float = 30.0
    # Shared secret the settlement network presents on confirmation callbacks
    SETTLEMENT_CALLBACK_SECRET: str = "CHANGE_ME_SETTLEMENT_SECRET"

    # ── Application Settings ──────────────────────────────────────────────────
    ENVIRONMENT: str = "development"  # development | staging | production
    APP_TITLE: str = "PayPortal"
    APP_VERSION: str = "1.0.0"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    LOG_LEVEL: str = "INFO"

    DEBUG: bool = False

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown LOG_LEVEL {v!r}")
        return level

    @field_validator("SETTLEMENT_TIMEOUT_SECONDS")
    @classmethod
    def validate_settlement_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("SETTLEMENT_TIMEOUT_SECONDS must be positive")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton — safe for FastAPI Depends()."""
    return Settings()


# Module-level convenience alias
settings = get_settings()
