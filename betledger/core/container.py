"""
Service Container - Simple dependency injection for swappable implementations.

Usage:
    from betledger.core import ServiceContainer

    # Get default implementations
    db = ServiceContainer.get_database()
    engine = ServiceContainer.get_engine()

    # Register custom implementations
    ServiceContainer.register_database(Database("/tmp/test.db"))
"""
from typing import Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from betledger.ledger.engine import LedgerEngine
    from betledger.store.database import Database

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Simple dependency injection container.

    Provides lazy initialization of default implementations
    and allows swapping to alternative implementations.
    """

    _database: Optional["Database"] = None
    _engine: Optional["LedgerEngine"] = None

    @classmethod
    def get_database(cls) -> "Database":
        """Get the configured database, creating its schema on first use."""
        if cls._database is None:
            from betledger.store import open_database
            cls._database = open_database()
            logger.debug("Initialized default SQLite Database")
        return cls._database

    @classmethod
    def get_engine(cls) -> "LedgerEngine":
        """Get the ledger engine bound to the configured database."""
        if cls._engine is None:
            from betledger.ledger.engine import LedgerEngine
            cls._engine = LedgerEngine(cls.get_database())
            logger.debug("Initialized default LedgerEngine")
        return cls._engine

    @classmethod
    def register_database(cls, database: "Database") -> None:
        """Register a custom database; drops any engine bound to the old one."""
        cls._database = database
        cls._engine = None
        logger.info(f"Registered database: {database.db_path}")

    @classmethod
    def register_engine(cls, engine: "LedgerEngine") -> None:
        """Register a custom engine implementation."""
        cls._engine = engine
        logger.info(f"Registered engine: {type(engine).__name__}")

    @classmethod
    def reset(cls) -> None:
        """Reset to defaults (for testing)."""
        cls._database = None
        cls._engine = None
