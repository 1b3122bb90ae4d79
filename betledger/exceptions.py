"""
Custom exceptions for the betbook ledger.
"""
from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for all custom errors."""
    pass


# Input Errors
class ValidationError(LedgerError):
    """Raised when a request is malformed (bad odds, stake, missing field)."""
    pass


class DuplicateBankrollError(ValidationError):
    """Raised when a user already has a bankroll at the same bookmaker."""
    def __init__(self, bookmaker_name: str = None):
        self.bookmaker_name = bookmaker_name
        super().__init__("Bankroll already exists.")


class LedgerRuleError(ValidationError):
    """Base exception for requests that break a settlement or pricing rule."""
    pass


class MissingOddsError(LedgerRuleError):
    """Raised when odds are required for every leg but one is absent."""
    def __init__(self):
        super().__init__("Provide odds for all legs or set multiple odds.")


class MissingReturnError(LedgerRuleError):
    """Raised when a cashout has no (or a negative) return amount."""
    def __init__(self, message: str = "Actual return must be provided for cashout."):
        super().__init__(message)


class MissingWinningLegError(LedgerRuleError):
    """Raised when an arbitrage/matched win does not name one of its legs."""
    def __init__(self):
        super().__init__(
            "Arbitrage and matched operations need the winning leg (winning_leg_id)."
        )


class EmptyOperationError(LedgerRuleError):
    """Raised when settling an operation without legs."""
    def __init__(self):
        super().__init__("Operation has no bets.")


class NotEditableError(LedgerRuleError):
    """Raised when editing an operation that is no longer pending."""
    def __init__(self):
        super().__init__("Only pending operations can be edited.")


# Lookup Errors
class NotFoundError(LedgerError):
    """Raised when an id does not resolve or is not owned by the caller."""
    def __init__(self, entity: str = "Record", entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found.")


class InvalidBankrollError(NotFoundError):
    """Raised when one or more referenced bankrolls are unknown or foreign."""
    def __init__(self):
        self.entity = "Bankroll"
        self.entity_id = None
        LedgerError.__init__(self, "One or more bankrolls are invalid.")


# Balance Errors
class InsufficientBalanceError(LedgerError):
    """Raised when a stake exceeds the bankroll balance at check time."""
    def __init__(
        self,
        bankroll_id: str = None,
        required: Decimal = None,
        available: Decimal = None,
    ):
        self.bankroll_id = bankroll_id
        self.required = required
        self.available = available
        super().__init__("Insufficient bankroll balance.")


# Infrastructure Errors
class StorageError(LedgerError):
    """Raised when the transactional store fails; nothing was committed."""
    pass
