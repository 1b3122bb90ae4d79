"""
Core module - Protocols, containers, and abstractions.
"""
from .protocols import EventCatalog
from .container import ServiceContainer

__all__ = [
    "EventCatalog",
    "ServiceContainer",
]
