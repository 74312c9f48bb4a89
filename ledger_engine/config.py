"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Pydantic Settings resolves each field in this order:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Usage:
    from ledger_engine.config import settings
    print(settings.MAX_ATTEMPTS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the ledger engine."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Ledger Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local use; point at postgresql+asyncpg://... in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/ledger.db"

    # Upper bound for a single unit of work against the store. Also used as
    # SQLite's busy timeout so lock waits give up in the same window.
    STORE_TIMEOUT_SECONDS: float = 5.0

    # --- Fund movement retries ---
    # A unit of work that loses a balance compare-and-swap is retried from
    # scratch, with exponential backoff between attempts.
    MAX_ATTEMPTS: int = 10
    RETRY_BASE_DELAY_SECONDS: float = 0.01
    RETRY_MAX_DELAY_SECONDS: float = 0.25

    # --- History paging ---
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    MAX_PAGE: int = 1_000_000

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
