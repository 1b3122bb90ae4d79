"""
Strongly typed configuration using pydantic-settings.

All settings are validated at startup and loaded from:
1. Default values defined here
2. .env file (if present)
3. Environment variables (highest priority)

Environment variable naming:
- StoreSettings: STORE_DB_PATH, STORE_BUSY_TIMEOUT_S
- LedgerSettings: LEDGER_EVENT_SIMILARITY_THRESHOLD, LEDGER_CUMULATIVE_BALANCE_CHECK, etc.
- ObservabilitySettings: ENVIRONMENT, LOG_LEVEL (no prefix)
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class StoreSettings(BaseSettings):
    """SQLite store settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    db_path: Path = Field(default=Path("data/betbook.db"), description="SQLite database file")
    busy_timeout_s: float = Field(default=30.0, ge=1.0, description="Wait on a locked database")
    wal: bool = Field(default=True, description="Use write-ahead logging")


class LedgerSettings(BaseSettings):
    """Ledger engine behaviour."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    # Event dedup
    event_similarity_threshold: float = Field(
        default=0.4, ge=0.0, le=1.0,
        description="Trigram similarity an existing event must exceed to be reused"
    )

    # Balance checks
    cumulative_balance_check: bool = Field(
        default=True,
        description="Count earlier legs of the same request against a shared bankroll"
    )

    # Decimal arithmetic
    decimal_precision: int = Field(default=50, ge=28, le=100)
    money_places: int = Field(
        default=2, ge=0, le=10,
        description="Decimals a cashout share is rounded to; the last leg takes the remainder"
    )


class ObservabilitySettings(BaseSettings):
    """Logging and metrics settings."""

    model_config = SettingsConfigDict(env_prefix="")  # Direct: ENVIRONMENT, LOG_LEVEL

    environment: str = Field(default="development", pattern="^(development|staging|production)$")
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    log_format: str = Field(default="console", pattern="^(console|json)$")
    enable_metrics: bool = Field(default=True)


class Settings(BaseSettings):
    """
    Root settings aggregating all subsections.

    Usage:
        from betledger.config import settings

        settings.store.db_path
        settings.ledger.event_similarity_threshold
        settings.observability.log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    store: StoreSettings = Field(default_factory=StoreSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    # CLI user when --user is not given
    default_user: str = Field(default="local", min_length=1)
