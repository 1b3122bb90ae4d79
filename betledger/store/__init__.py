"""
Store module - SQLite persistence and the unit-of-work boundary.
"""
from .database import Database, open_database
from .repositories import UnitOfWork

__all__ = [
    "Database",
    "open_database",
    "UnitOfWork",
]
