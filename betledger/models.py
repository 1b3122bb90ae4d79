"""Data models for the betbook ledger."""
import sqlite3
from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class OperationType(str, Enum):
    """Structure of a betting decision."""
    SIMPLE = "SIMPLE"
    ARBITRAGE = "ARBITRAGE"
    MATCHED = "MATCHED"

    @property
    def single_winner(self) -> bool:
        """Exactly one leg can win (surebet / matched structures)."""
        return self in (OperationType.ARBITRAGE, OperationType.MATCHED)


class BetStatus(str, Enum):
    """Lifecycle states shared by operations and legs."""
    PENDING = "PENDING"
    WON = "WON"
    LOST = "LOST"
    VOID = "VOID"
    CASHED_OUT = "CASHED_OUT"


@dataclass
class Bankroll:
    id: str
    user_id: str
    bookmaker_name: str
    currency: str
    current_balance: Decimal
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Bankroll":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            bookmaker_name=row["bookmaker_name"],
            currency=row["currency"],
            current_balance=row["current_balance"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class Event:
    id: str
    name: str
    event_date: date
    sport: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Event":
        return cls(
            id=row["id"],
            name=row["name"],
            event_date=date.fromisoformat(row["event_date"]),
            sport=row["sport"],
            created_at=row["created_at"],
        )


@dataclass
class Bet:
    """One leg of an operation."""
    id: str
    operation_id: str
    bankroll_id: str
    event_id: Optional[str]
    selection: str
    odds: Decimal
    stake: Decimal
    status: BetStatus = BetStatus.PENDING
    result_value: Optional[Decimal] = None  # gross amount returned, not profit
    league: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    # Display fields, filled by joined queries
    bookmaker_name: Optional[str] = None
    match_name: Optional[str] = None
    event_date: Optional[date] = None
    sport: Optional[str] = None

    @property
    def settled_value(self) -> Decimal:
        """Result value with unset treated as zero."""
        return self.result_value if self.result_value is not None else Decimal(0)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Bet":
        keys = row.keys()
        event_date = row["event_date"] if "event_date" in keys else None
        return cls(
            id=row["id"],
            operation_id=row["operation_id"],
            bankroll_id=row["bankroll_id"],
            event_id=row["event_id"],
            selection=row["selection"],
            odds=row["odds"],
            stake=row["stake"],
            status=BetStatus(row["status"]),
            result_value=row["result_value"],
            league=row["league"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            bookmaker_name=row["bookmaker_name"] if "bookmaker_name" in keys else None,
            match_name=row["match_name"] if "match_name" in keys else None,
            event_date=date.fromisoformat(event_date) if event_date else None,
            sport=row["sport"] if "sport" in keys else None,
        )


@dataclass
class Operation:
    """A betting decision grouping one or more legs."""
    id: str
    user_id: str
    type: OperationType
    total_stake: Decimal
    expected_return: Optional[Decimal] = None
    actual_return: Optional[Decimal] = None
    roi: Optional[Decimal] = None
    status: BetStatus = BetStatus.PENDING
    matched_odds: Optional[Decimal] = None
    description: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    legs: List[Bet] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Operation":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            type=OperationType(row["type"]),
            total_stake=row["total_stake"],
            expected_return=row["expected_return"],
            actual_return=row["actual_return"],
            roi=row["roi"],
            status=BetStatus(row["status"]),
            matched_odds=row["matched_odds"],
            description=row["description"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


def _stringify(value):
    if isinstance(value, dict):
        return {k: _stringify(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, date)):
        return str(value)
    return value


def to_plain(obj) -> Dict:
    """Convert a model dataclass to JSON-friendly primitives."""
    return _stringify(asdict(obj))
