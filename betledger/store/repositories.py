"""
Table repositories bound to a single unit-of-work connection.

Repositories never open, commit or roll back transactions themselves; the
``Database.unit_of_work()`` that created them owns the boundary.
"""
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from betledger.exceptions import DuplicateBankrollError, NotFoundError
from betledger.models import Bankroll, Bet, BetStatus, Event, Operation, OperationType


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> str:
    return datetime.now().isoformat()


class BankrollRepository:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(
        self,
        user_id: str,
        bookmaker_name: str,
        currency: str,
        initial_balance: Decimal,
    ) -> Bankroll:
        now = _now()
        bankroll = Bankroll(
            id=_new_id(),
            user_id=user_id,
            bookmaker_name=bookmaker_name,
            currency=currency,
            current_balance=initial_balance,
            created_at=now,
            updated_at=now,
        )
        try:
            self.conn.execute("""
                INSERT INTO bankrolls (id, user_id, bookmaker_name, currency, current_balance, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                bankroll.id, user_id, bookmaker_name, currency,
                initial_balance, now, now,
            ))
        except sqlite3.IntegrityError:
            raise DuplicateBankrollError(bookmaker_name)
        return bankroll

    def get(self, bankroll_id: str, user_id: Optional[str] = None) -> Optional[Bankroll]:
        if user_id is None:
            row = self.conn.execute(
                "SELECT * FROM bankrolls WHERE id = ?", (bankroll_id,)
            ).fetchone()
        else:
            row = self.conn.execute(
                "SELECT * FROM bankrolls WHERE id = ? AND user_id = ?", (bankroll_id, user_id)
            ).fetchone()
        return Bankroll.from_row(row) if row else None

    def get_many(self, bankroll_ids: Iterable[str], user_id: str) -> Dict[str, Bankroll]:
        """Bankrolls among ``bankroll_ids`` owned by ``user_id``, keyed by id."""
        ids = list(dict.fromkeys(bankroll_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.conn.execute(
            f"SELECT * FROM bankrolls WHERE user_id = ? AND id IN ({placeholders})",
            (user_id, *ids),
        ).fetchall()
        return {row["id"]: Bankroll.from_row(row) for row in rows}

    def list_for_user(self, user_id: str) -> List[Bankroll]:
        rows = self.conn.execute(
            "SELECT * FROM bankrolls WHERE user_id = ? ORDER BY bookmaker_name ASC",
            (user_id,),
        ).fetchall()
        return [Bankroll.from_row(row) for row in rows]

    def adjust_balance(self, bankroll_id: str, delta: Decimal) -> None:
        """Relative increment (negative to decrement); never overwrites the balance."""
        cursor = self.conn.execute("""
            UPDATE bankrolls
            SET current_balance = decimal_add(current_balance, ?), updated_at = ?
            WHERE id = ?
        """, (delta, _now(), bankroll_id))
        if cursor.rowcount != 1:
            raise NotFoundError("Bankroll", bankroll_id)


class EventRepository:
    """Global event catalog; rows are shared by every user's legs."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def find_on_date(self, event_date: date) -> List[Event]:
        rows = self.conn.execute(
            "SELECT * FROM events WHERE event_date = ? ORDER BY created_at ASC",
            (event_date.isoformat(),),
        ).fetchall()
        return [Event.from_row(row) for row in rows]

    def create(self, name: str, event_date: date, sport: Optional[str] = None) -> Event:
        event = Event(
            id=_new_id(),
            name=name,
            event_date=event_date,
            sport=sport,
            created_at=_now(),
        )
        self.conn.execute("""
            INSERT INTO events (id, name, event_date, sport, created_at)
            VALUES (?, ?, ?, ?, ?)
        """, (event.id, name, event_date.isoformat(), sport, event.created_at))
        return event


_BET_SELECT = """
    SELECT b.*, br.bookmaker_name AS bookmaker_name,
           e.name AS match_name, e.event_date AS event_date, e.sport AS sport
    FROM bets b
    JOIN bankrolls br ON br.id = b.bankroll_id
    LEFT JOIN events e ON e.id = b.event_id
"""


class BetRepository:
    _UPDATABLE = {
        "bankroll_id", "event_id", "selection", "league",
        "odds", "stake", "status", "result_value",
    }

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def create(
        self,
        operation_id: str,
        bankroll_id: str,
        event_id: Optional[str],
        selection: str,
        odds: Decimal,
        stake: Decimal,
        league: Optional[str] = None,
    ) -> Bet:
        now = _now()
        bet = Bet(
            id=_new_id(),
            operation_id=operation_id,
            bankroll_id=bankroll_id,
            event_id=event_id,
            selection=selection,
            odds=odds,
            stake=stake,
            league=league,
            created_at=now,
            updated_at=now,
        )
        self.conn.execute("""
            INSERT INTO bets (id, operation_id, bankroll_id, event_id, selection, league,
                              odds, stake, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            bet.id, operation_id, bankroll_id, event_id, selection, league,
            odds, stake, BetStatus.PENDING.value, now, now,
        ))
        return bet

    def get_owned(self, bet_id: str, user_id: str) -> Optional[Bet]:
        """Bet whose parent operation belongs to ``user_id``."""
        row = self.conn.execute(
            _BET_SELECT + """
            JOIN operations o ON o.id = b.operation_id
            WHERE b.id = ? AND o.user_id = ?
            """,
            (bet_id, user_id),
        ).fetchone()
        return Bet.from_row(row) if row else None

    def list_for_operation(self, operation_id: str) -> List[Bet]:
        rows = self.conn.execute(
            _BET_SELECT + " WHERE b.operation_id = ? ORDER BY b.created_at ASC, b.rowid ASC",
            (operation_id,),
        ).fetchall()
        return [Bet.from_row(row) for row in rows]

    def count_for_operation(self, operation_id: str) -> int:
        return self.conn.execute(
            "SELECT COUNT(*) FROM bets WHERE operation_id = ?", (operation_id,)
        ).fetchone()[0]

    def update(self, bet_id: str, **fields) -> None:
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update bet columns: {sorted(unknown)}")
        if not fields:
            return
        values = [v.value if isinstance(v, BetStatus) else v for v in fields.values()]
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self.conn.execute(
            f"UPDATE bets SET {assignments}, updated_at = ? WHERE id = ?",
            (*values, _now(), bet_id),
        )

    def delete(self, bet_id: str) -> None:
        self.conn.execute("DELETE FROM bets WHERE id = ?", (bet_id,))

    def delete_for_operation(self, operation_id: str) -> None:
        self.conn.execute("DELETE FROM bets WHERE operation_id = ?", (operation_id,))


class OperationRepository:
    _UPDATABLE = {
        "status", "total_stake", "expected_return", "actual_return",
        "roi", "description",
    }

    def __init__(self, conn: sqlite3.Connection, bets: BetRepository):
        self.conn = conn
        self.bets = bets

    def create(
        self,
        user_id: str,
        op_type: OperationType,
        total_stake: Decimal,
        expected_return: Decimal,
        matched_odds: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Operation:
        now = _now()
        operation = Operation(
            id=_new_id(),
            user_id=user_id,
            type=op_type,
            total_stake=total_stake,
            expected_return=expected_return,
            matched_odds=matched_odds,
            description=description,
            created_at=now,
            updated_at=now,
        )
        self.conn.execute("""
            INSERT INTO operations (id, user_id, type, status, total_stake, expected_return,
                                    matched_odds, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            operation.id, user_id, op_type.value, BetStatus.PENDING.value,
            total_stake, expected_return, matched_odds, description, now, now,
        ))
        return operation

    def get(self, operation_id: str, user_id: Optional[str] = None) -> Optional[Operation]:
        """Operation with its legs; scoped to ``user_id`` when given."""
        if user_id is None:
            row = self.conn.execute(
                "SELECT * FROM operations WHERE id = ?", (operation_id,)
            ).fetchone()
        else:
            row = self.conn.execute(
                "SELECT * FROM operations WHERE id = ? AND user_id = ?", (operation_id, user_id)
            ).fetchone()
        if not row:
            return None
        operation = Operation.from_row(row)
        operation.legs = self.bets.list_for_operation(operation.id)
        return operation

    def list_for_user(self, user_id: str) -> List[Operation]:
        rows = self.conn.execute(
            "SELECT * FROM operations WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        ).fetchall()
        operations = []
        for row in rows:
            operation = Operation.from_row(row)
            operation.legs = self.bets.list_for_operation(operation.id)
            operations.append(operation)
        return operations

    def update(self, operation_id: str, **fields) -> None:
        unknown = set(fields) - self._UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update operation columns: {sorted(unknown)}")
        if not fields:
            return
        values = [v.value if isinstance(v, BetStatus) else v for v in fields.values()]
        assignments = ", ".join(f"{name} = ?" for name in fields)
        self.conn.execute(
            f"UPDATE operations SET {assignments}, updated_at = ? WHERE id = ?",
            (*values, _now(), operation_id),
        )

    def delete(self, operation_id: str) -> None:
        self.conn.execute("DELETE FROM operations WHERE id = ?", (operation_id,))


@dataclass
class UnitOfWork:
    """Repositories sharing one open transaction."""
    conn: sqlite3.Connection
    bankrolls: BankrollRepository = field(init=False)
    events: EventRepository = field(init=False)
    bets: BetRepository = field(init=False)
    operations: OperationRepository = field(init=False)

    def __post_init__(self):
        self.bankrolls = BankrollRepository(self.conn)
        self.events = EventRepository(self.conn)
        self.bets = BetRepository(self.conn)
        self.operations = OperationRepository(self.conn, self.bets)
