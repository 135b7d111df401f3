"""
SheetServer — Application Configuration
=========================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before the app starts.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Attributes are grouped by concern for readability.
    """

    # ── Label Store Database ──────────────────────────────────────────────
    # What: Async SQLAlchemy URL for the label_mappings table
    # Format: sqlite+aiosqlite:///./file.db or postgresql+asyncpg://user:pw@host/db
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sheetserver.db",
        description="Async database URL holding label mappings"
    )

    # What: Connection pool sizing (ignored for SQLite URLs)
    db_pool_size: int = Field(default=20, ge=5, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # ── Spreadsheet Engine ────────────────────────────────────────────────
    # What: Pixel sizes used by the in-memory engine for columns/rows without an override
    default_column_width: float = Field(default=100.0, gt=0)
    default_row_height: float = Field(default=30.0, gt=0)

    # What: Upper bound on the number of cells a single range load may touch
    # One engine load call is made per reference, so this caps request cost.
    max_batch_cells: int = Field(default=10_000, ge=1, le=1_000_000)

    # What: Largest `count` honoured by the similarities endpoint; bigger values are clamped
    similarities_max_count: int = Field(default=100, ge=1, le=10_000)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs (parsed by cors_origins_list)
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # What: Per-IP sliding window rate limit
    rate_limit_requests: int = Field(default=1000, ge=10, le=100000)
    rate_limit_window: int = Field(default=60, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def is_sqlite(self) -> bool:
        """True when the label store runs on SQLite (no connection pool sizing)."""
        return self.database_url.startswith("sqlite")

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Checks each required field and raises ValueError with guidance.
        """
        errors = []
        if not self.database_url:
            errors.append("DATABASE_URL is not set.")
        elif "+" not in self.database_url.split("://", 1)[0]:
            errors.append(
                "DATABASE_URL must name an async driver, "
                "e.g. sqlite+aiosqlite:// or postgresql+asyncpg://"
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance — imported throughout the application
settings = Settings()
