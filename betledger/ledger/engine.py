"""
Ledger engine: the only code allowed to move bankroll balances.

Each public method is one contract and runs as one unit of work: it reads,
validates ownership and balances, writes, and commits as a whole or not at
all. Balance changes are always relative increments; a leg's stake is taken
from its bankroll when the leg is created and its result value is paid back
(as a delta against the previous result value) whenever it changes.
"""
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from betledger.config.settings import LedgerSettings
from betledger.exceptions import (
    InsufficientBalanceError,
    InvalidBankrollError,
    LedgerError,
    NotEditableError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from betledger.ledger.aggregates import recompute_operation
from betledger.ledger.calculations import (
    LegQuote,
    leg_odds,
    leg_result_value,
    plan_settlement,
    price_operation,
)
from betledger.ledger.events import EventResolver
from betledger.ledger.money import money_context
from betledger.models import Bankroll, BetStatus, Operation, OperationType
from betledger.schemas import (
    BankrollCreate,
    DescriptionUpdate,
    LegStatusUpdate,
    OperationEdit,
    SettleRequest,
)
from betledger.store.database import Database
from betledger.store.repositories import UnitOfWork
from betledger.utils.observability import Logger, MetricsRegistry, get_metrics

logger = Logger(__name__)


class StakeBook:
    """
    Balances available to the legs of a single request.

    Starts from the balances read at the beginning of the unit of work. In
    cumulative mode every reservation is remembered, so two legs drawing on
    the same bankroll must fit in its balance together; otherwise each leg is
    checked on its own against the starting balance.
    """

    def __init__(self, bankrolls: Dict[str, Bankroll], cumulative: bool = True):
        self.available = {bid: b.current_balance for bid, b in bankrolls.items()}
        self.cumulative = cumulative

    def reserve(self, bankroll_id: str, amount: Decimal) -> None:
        available = self.available.get(bankroll_id)
        if available is None:
            raise InvalidBankrollError()
        if available < amount:
            raise InsufficientBalanceError(bankroll_id, amount, available)
        if self.cumulative:
            self.available[bankroll_id] = available - amount

    def release(self, bankroll_id: str, amount: Decimal) -> None:
        if self.cumulative and bankroll_id in self.available:
            self.available[bankroll_id] += amount


class LedgerEngine:
    """
    Bankroll / operation / bet state transitions.

    Usage:
        engine = LedgerEngine(Database("data/betbook.db"))
        operation = engine.create_operation(user_id, parse_operation(payload))
        engine.settle_operation(user_id, SettleRequest(operation_id=operation.id, status="WON"))
    """

    def __init__(
        self,
        database: Database,
        ledger_settings: Optional[LedgerSettings] = None,
        resolver: Optional[EventResolver] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        if ledger_settings is None:
            from betledger.config import settings
            ledger_settings = settings.ledger
        self.db = database
        self.settings = ledger_settings
        self.resolver = resolver or EventResolver(ledger_settings.event_similarity_threshold)
        self.metrics = metrics or get_metrics()

    # ------------------------------------------------------------------
    # Unit-of-work plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _contract(self, action: str, user_id: str, readonly: bool = False, **ctx):
        """One public contract: decimal context, one transaction, metrics and logs."""
        if not user_id:
            raise ValidationError("User id is required.")
        start = time.perf_counter()
        try:
            with money_context(self.settings.decimal_precision):
                with self.db.unit_of_work(readonly=readonly) as uow:
                    yield uow
        except LedgerError as e:
            self.metrics.failures.labels(action=action, error_type=type(e).__name__).inc()
            if isinstance(e, StorageError):
                logger.log_error(f"{action}_failed", exc_info=e, user_id=user_id, **ctx)
            else:
                logger.log_warning(
                    f"{action}_rejected", error=str(e), error_type=type(e).__name__,
                    user_id=user_id, **ctx
                )
            raise
        else:
            self.metrics.operations.labels(action=action).inc()
        finally:
            self.metrics.unit_of_work_latency.labels(action=action).observe(
                time.perf_counter() - start
            )

    def _owned_bankrolls(self, uow: UnitOfWork, user_id: str, bankroll_ids: Iterable[str]) -> Dict[str, Bankroll]:
        requested = set(bankroll_ids)
        bankrolls = uow.bankrolls.get_many(requested, user_id)
        if len(bankrolls) != len(requested):
            raise InvalidBankrollError()
        return bankrolls

    @staticmethod
    def _owned_operation(uow: UnitOfWork, user_id: str, operation_id: str) -> Operation:
        operation = uow.operations.get(operation_id, user_id)
        if operation is None:
            raise NotFoundError("Operation", operation_id)
        return operation

    # ------------------------------------------------------------------
    # Bankrolls
    # ------------------------------------------------------------------

    def create_bankroll(self, user_id: str, request: BankrollCreate) -> Bankroll:
        with self._contract("create_bankroll", user_id, bookmaker=request.bookmaker_name) as uow:
            bankroll = uow.bankrolls.create(
                user_id=user_id,
                bookmaker_name=request.bookmaker_name,
                currency=request.currency,
                initial_balance=request.initial_balance,
            )
        logger.log_event(
            "bankroll_created", bankroll_id=bankroll.id, user_id=user_id,
            bookmaker=bankroll.bookmaker_name, balance=str(bankroll.current_balance),
        )
        return bankroll

    def list_bankrolls(self, user_id: str) -> List[Bankroll]:
        with self._contract("list_bankrolls", user_id, readonly=True) as uow:
            return uow.bankrolls.list_for_user(user_id)

    def get_bankroll(self, user_id: str, bankroll_id: str) -> Bankroll:
        with self._contract("get_bankroll", user_id, readonly=True) as uow:
            bankroll = uow.bankrolls.get(bankroll_id, user_id)
            if bankroll is None:
                raise NotFoundError("Bankroll", bankroll_id)
            return bankroll

    # ------------------------------------------------------------------
    # Operations: reads
    # ------------------------------------------------------------------

    def list_operations(self, user_id: str) -> List[Operation]:
        with self._contract("list_operations", user_id, readonly=True) as uow:
            return uow.operations.list_for_user(user_id)

    def get_operation(self, user_id: str, operation_id: str) -> Operation:
        with self._contract("get_operation", user_id, readonly=True) as uow:
            return self._owned_operation(uow, user_id, operation_id)

    # ------------------------------------------------------------------
    # Operations: creation
    # ------------------------------------------------------------------

    def create_operation(self, user_id: str, request) -> Operation:
        """
        Reserve stakes and record a new pending operation.

        Args:
            user_id: Caller, must own every referenced bankroll
            request: A validated SimpleOperation, ArbitrageOperation or MatchedOperation

        Returns:
            The created operation with its legs
        """
        op_type = request.operation_type
        matched_odds = request.matched_odds if op_type is not OperationType.SIMPLE else None

        with self._contract("create_operation", user_id, type=op_type.value) as uow:
            bankrolls = self._owned_bankrolls(uow, user_id, (leg.bankroll_id for leg in request.legs))

            book = StakeBook(bankrolls, self.settings.cumulative_balance_check)
            for leg in request.legs:
                book.reserve(leg.bankroll_id, leg.stake)

            stake_total, expected = price_operation(
                op_type,
                [LegQuote(stake=leg.stake, odds=leg.odds) for leg in request.legs],
                matched_odds,
            )

            operation = uow.operations.create(
                user_id=user_id,
                op_type=op_type,
                total_stake=stake_total,
                expected_return=expected,
                matched_odds=matched_odds,
                description=request.description,
            )

            for leg in request.legs:
                event_id = self.resolver.resolve(uow.events, leg.match_name, leg.event_date, leg.sport)
                bet = uow.bets.create(
                    operation_id=operation.id,
                    bankroll_id=leg.bankroll_id,
                    event_id=event_id,
                    selection=leg.selection,
                    odds=leg_odds(leg.odds, leg.stake, matched_odds),
                    stake=leg.stake,
                    league=leg.league,
                )
                uow.bankrolls.adjust_balance(leg.bankroll_id, -leg.stake)
                operation.legs.append(bet)

        logger.log_event(
            "operation_created", operation_id=operation.id, user_id=user_id,
            type=op_type.value, legs=len(operation.legs),
            total_stake=str(stake_total), expected_return=str(expected),
        )
        return operation

    # ------------------------------------------------------------------
    # Operations: pending edit
    # ------------------------------------------------------------------

    def edit_pending_operation(self, user_id: str, request: OperationEdit) -> Operation:
        """
        Change legs of a pending operation and reconcile stake differences.

        Legs are matched by id; legs not mentioned are left as they are.
        """
        with self._contract("edit_operation", user_id, operation_id=request.operation_id) as uow:
            leg_ids = [leg.id for leg in request.legs]
            if len(set(leg_ids)) != len(leg_ids):
                raise ValidationError("Each leg can only be edited once per request.")

            operation = self._owned_operation(uow, user_id, request.operation_id)
            if operation.status is not BetStatus.PENDING or any(
                leg.status is not BetStatus.PENDING for leg in operation.legs
            ):
                raise NotEditableError()

            bankrolls = self._owned_bankrolls(uow, user_id, (leg.bankroll_id for leg in request.legs))
            book = StakeBook(bankrolls, self.settings.cumulative_balance_check)
            existing = {leg.id: leg for leg in operation.legs}

            for leg in request.legs:
                current = existing.get(leg.id)
                if current is None:
                    raise NotFoundError("Leg", leg.id)

                if current.bankroll_id == leg.bankroll_id:
                    delta = leg.stake - current.stake
                    if delta > 0:
                        book.reserve(leg.bankroll_id, delta)
                        uow.bankrolls.adjust_balance(leg.bankroll_id, -delta)
                    elif delta < 0:
                        book.release(leg.bankroll_id, -delta)
                        uow.bankrolls.adjust_balance(leg.bankroll_id, -delta)
                else:
                    uow.bankrolls.adjust_balance(current.bankroll_id, current.stake)
                    book.release(current.bankroll_id, current.stake)
                    book.reserve(leg.bankroll_id, leg.stake)
                    uow.bankrolls.adjust_balance(leg.bankroll_id, -leg.stake)

                event_id = self.resolver.resolve(uow.events, leg.match_name, leg.event_date, leg.sport)
                uow.bets.update(
                    leg.id,
                    selection=leg.selection,
                    odds=leg.odds,
                    stake=leg.stake,
                    bankroll_id=leg.bankroll_id,
                    league=leg.league,
                    event_id=event_id,
                )

            refreshed = uow.bets.list_for_operation(operation.id)
            stake_total, expected = price_operation(
                operation.type,
                [LegQuote(stake=b.stake, odds=b.odds) for b in refreshed],
                operation.matched_odds,
            )
            uow.operations.update(
                operation.id,
                description=request.description,
                total_stake=stake_total,
                expected_return=expected,
            )
            operation = self._owned_operation(uow, user_id, operation.id)

        logger.log_event(
            "operation_edited", operation_id=operation.id, user_id=user_id,
            legs_edited=len(request.legs), total_stake=str(stake_total),
        )
        return operation

    def update_description(self, user_id: str, request: DescriptionUpdate) -> Operation:
        with self._contract("update_description", user_id, operation_id=request.operation_id) as uow:
            operation = self._owned_operation(uow, user_id, request.operation_id)
            uow.operations.update(operation.id, description=request.description)
            operation.description = request.description
        return operation

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_operation(self, user_id: str, request: SettleRequest) -> Operation:
        """
        Resolve every leg for a final status and pay out the differences.

        Only legs whose result value or status actually changes are written,
        so settling twice with the same input moves no money.
        """
        status = request.bet_status
        with self._contract(
            "settle_operation", user_id, operation_id=request.operation_id, status=status.value
        ) as uow:
            operation = self._owned_operation(uow, user_id, request.operation_id)
            plan = plan_settlement(
                operation.type,
                operation.legs,
                status,
                actual_return=request.actual_return,
                winning_leg_id=request.winning_leg_id,
                money_places=self.settings.money_places,
            )

            legs = {leg.id: leg for leg in operation.legs}
            changed = 0
            for result in plan.leg_results:
                leg = legs[result.bet_id]
                delta = result.result_value - leg.settled_value
                if delta == 0 and leg.status is result.status:
                    continue
                uow.bets.update(leg.id, status=result.status, result_value=result.result_value)
                if delta != 0:
                    uow.bankrolls.adjust_balance(leg.bankroll_id, delta)
                leg.status = result.status
                leg.result_value = result.result_value
                changed += 1

            uow.operations.update(
                operation.id,
                status=plan.status,
                total_stake=plan.total_stake,
                actual_return=plan.actual_return,
                roi=plan.roi,
            )
            operation.status = plan.status
            operation.total_stake = plan.total_stake
            operation.actual_return = plan.actual_return
            operation.roi = plan.roi

        self.metrics.settled_return.inc(float(plan.actual_return))
        logger.log_event(
            "operation_settled", operation_id=operation.id, user_id=user_id,
            status=status.value, actual_return=str(plan.actual_return),
            roi=str(plan.roi), legs_changed=changed,
        )
        return operation

    def update_leg_status(self, user_id: str, request: LegStatusUpdate) -> Operation:
        """Settle a single leg ad hoc, then recompute its operation's rollups."""
        status = request.bet_status
        with self._contract("update_leg_status", user_id, bet_id=request.bet_id, status=status.value) as uow:
            bet = uow.bets.get_owned(request.bet_id, user_id)
            if bet is None:
                raise NotFoundError("Bet", request.bet_id)

            new_value = leg_result_value(bet, status, request.result_value)
            delta = new_value - bet.settled_value
            uow.bets.update(bet.id, status=status, result_value=new_value)
            if delta != 0:
                uow.bankrolls.adjust_balance(bet.bankroll_id, delta)

            operation = recompute_operation(uow, bet.operation_id)

        logger.log_event(
            "leg_status_updated", bet_id=bet.id, operation_id=bet.operation_id,
            status=status.value, result_value=str(new_value), delta=str(delta),
        )
        return operation

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_leg(self, user_id: str, bet_id: str) -> Optional[Operation]:
        """
        Remove one leg and refund ``stake - result_value`` to its bankroll.

        Returns the recomputed operation, or None when the last leg was removed
        and the operation went with it.
        """
        with self._contract("delete_leg", user_id, bet_id=bet_id) as uow:
            bet = uow.bets.get_owned(bet_id, user_id)
            if bet is None:
                raise NotFoundError("Bet", bet_id)

            refund = bet.stake - bet.settled_value
            uow.bets.delete(bet.id)
            if refund != 0:
                uow.bankrolls.adjust_balance(bet.bankroll_id, refund)

            if uow.bets.count_for_operation(bet.operation_id) == 0:
                uow.operations.delete(bet.operation_id)
                operation = None
            else:
                operation = recompute_operation(uow, bet.operation_id)

        logger.log_event(
            "leg_deleted", bet_id=bet_id, operation_id=bet.operation_id,
            refund=str(refund), operation_deleted=operation is None,
        )
        return operation

    def delete_operation(self, user_id: str, operation_id: str) -> None:
        """Refund every leg's ``stake - result_value`` and remove the operation."""
        with self._contract("delete_operation", user_id, operation_id=operation_id) as uow:
            operation = self._owned_operation(uow, user_id, operation_id)
            for leg in operation.legs:
                refund = leg.stake - leg.settled_value
                if refund != 0:
                    uow.bankrolls.adjust_balance(leg.bankroll_id, refund)
            uow.bets.delete_for_operation(operation.id)
            uow.operations.delete(operation.id)

        logger.log_event("operation_deleted", operation_id=operation_id, user_id=user_id, legs=len(operation.legs))
