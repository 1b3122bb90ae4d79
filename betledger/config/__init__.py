"""
Configuration module with strongly typed settings.

Usage:
    from betledger.config import settings

    print(settings.store.db_path)
    print(settings.ledger.cumulative_balance_check)
"""
from .settings import (
    Settings,
    StoreSettings,
    LedgerSettings,
    ObservabilitySettings,
)

# Singleton instance - validates on import
settings = Settings()

__all__ = [
    "settings",
    "Settings",
    "StoreSettings",
    "LedgerSettings",
    "ObservabilitySettings",
]
