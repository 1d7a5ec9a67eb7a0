import os
from datetime import date

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load .env for local dev; deployed environments use real env vars
load_dotenv(override=False)


def _bool(name: str, default: bool) -> bool:
    """
    Helper to parse boolean environment variables.
    Accepts: 1, true, yes, on (case-insensitive).
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _norm_db_url(url: str | None) -> str | None:
    """
    Normalize database URL to use async drivers for SQLAlchemy.

    Ensures ``postgres`` URLs use ``asyncpg`` and plain ``sqlite`` URLs use
    ``aiosqlite``. URLs already specifying an async driver are returned as-is.
    """
    if not url:
        return None
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    if url.startswith("sqlite://"):
        url = "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return url


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Uses pydantic for validation and parsing.
    """

    DATABASE_URL: str = Field(..., description="Database URL")
    TIMEZONE: str = Field("UTC", description="Gym-local timezone used for 'now'")
    CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins allowed to call the API from a browser",
    )

    # Program setup
    PROGRAM_START_DATE: date = Field(
        date(2025, 1, 6), description="Monday on which program week 1 starts"
    )
    PROGRAM_WEEKS: int = Field(8, ge=1, description="Program length in weeks")
    DUAL_CATEGORY_DAYS: list[int] = Field(
        default_factory=lambda: [5, 6],
        description="ISO weekdays on which members choose UPPER or LOWER per booking",
    )
    PRIMARY_LOWER_CIRCUIT: str = Field(
        "Leg Circuit Complex", description="Supplemental always listed first for LOWER"
    )
    DEFAULT_CAPACITY: int = Field(8, ge=1, description="Capacity when none is given")

    # Error alerts
    ALERT_WEBHOOK_URL: str | None = Field(None, description="Webhook receiving error logs")
    FF_ADMIN_ALERTS: bool = Field(
        default_factory=lambda: _bool("FF_ADMIN_ALERTS", False),
        description="Admin alerts feature flag",
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL environment variable is required")
        return _norm_db_url(v)

    @field_validator("DUAL_CATEGORY_DAYS")
    @classmethod
    def validate_dual_days(cls, v):
        bad = [d for d in v if d < 1 or d > 7]
        if bad:
            raise ValueError(f"DUAL_CATEGORY_DAYS must be ISO weekdays 1-7, got {bad}")
        return v


SETTINGS = Config()  # pyright: ignore[reportCallIssue]
