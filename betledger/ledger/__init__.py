"""
Ledger module - money arithmetic, settlement rules and event resolution.

The engine lives in ``betledger.ledger.engine``; it is not re-exported here
because the store imports ``betledger.ledger.money`` at load time.
"""
from .money import money_context, to_decimal, format_money
from .calculations import price_operation, plan_settlement, derive_status
from .events import EventResolver, similarity

__all__ = [
    "money_context",
    "to_decimal",
    "format_money",
    "price_operation",
    "plan_settlement",
    "derive_status",
    "EventResolver",
    "similarity",
]
