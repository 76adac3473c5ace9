# huddle/core/config.py
from datetime import time
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or `.env`) at runtime.

    These settings drive:
    - DB connection
    - Internal API key for /internal endpoints
    - Logging
    - The availability slot grid
    - Attendance session timing and code shape
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Huddle Scheduler"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./huddle.db",
        description="SQLAlchemy-compatible async database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    # --- Logging ---
    LOG_LEVEL: str = Field(default="INFO", description="Root log level.")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Format string passed to logging.basicConfig.",
    )

    # --- Availability grid ---
    SLOT_DAY_START: time = Field(
        default=time(9, 0),
        description="Wall-clock start of the daily coordination window.",
    )
    SLOT_DAY_END: time = Field(
        default=time(23, 0),
        description="Wall-clock end (exclusive) of the daily coordination window.",
    )
    SLOT_MINUTES: int = Field(
        default=30,
        gt=0,
        description="Granularity of a single slot in minutes.",
    )

    # --- Attendance ---
    ATTENDANCE_TTL_SECONDS: int = Field(
        default=180,
        gt=0,
        description="How long an attendance code stays valid after the owner starts a session.",
    )
    ATTENDANCE_CODE_LENGTH: int = Field(
        default=6,
        gt=0,
        description="Number of characters in a generated attendance code.",
    )
    ATTENDANCE_SWEEP_INTERVAL_SECONDS: float = Field(
        default=5.0,
        ge=0,
        description=(
            "Period of the background sweep that finalizes expired attendance "
            "sessions. 0 disables the in-process sweep (use the internal endpoint)."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
