"""
Pure ledger arithmetic.

Nothing here touches the store. Callers run these inside ``money_context()``
so every result is exact at the configured decimal precision.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from betledger.exceptions import (
    EmptyOperationError,
    MissingOddsError,
    MissingReturnError,
    MissingWinningLegError,
    ValidationError,
)
from betledger.ledger.money import DEFAULT_MONEY_PLACES, ONE, ZERO, split_proportionally
from betledger.models import Bet, BetStatus, OperationType


@dataclass
class LegQuote:
    """Stake and (possibly missing) odds of one leg, as priced at creation."""
    stake: Decimal
    odds: Optional[Decimal] = None


@dataclass
class LegResult:
    bet_id: str
    result_value: Decimal
    status: BetStatus


@dataclass
class SettlementPlan:
    """Outcome of settling an operation, before anything is written."""
    status: BetStatus
    total_stake: Decimal
    actual_return: Decimal
    roi: Decimal
    leg_results: List[LegResult] = field(default_factory=list)


def total_stake(stakes: Iterable[Decimal]) -> Decimal:
    return sum(stakes, ZERO)


def parlay_return(quotes: Iterable[Tuple[Decimal, Decimal]]) -> Decimal:
    """Independent legs: each leg's odds apply to its own stake."""
    return sum((stake * odds for stake, odds in quotes), ZERO)


def combined_odds(odds: Iterable[Decimal]) -> Decimal:
    """Sequential multiplier: the product of every leg's odds."""
    product = ONE
    for value in odds:
        product *= value
    return product


def price_operation(
    op_type: OperationType,
    quotes: Sequence[LegQuote],
    matched_odds: Optional[Decimal] = None,
) -> Tuple[Decimal, Decimal]:
    """
    Total stake and expected return of a new or edited operation.

    SIMPLE always adds up stake x odds per leg. ARBITRAGE and MATCHED use the
    explicit combined odds when given. Without it ARBITRAGE stays additive,
    while MATCHED multiplies the total stake by the product of all leg odds,
    which then must all be present.
    """
    stake_total = total_stake(q.stake for q in quotes)

    if op_type is not OperationType.SIMPLE and matched_odds is not None:
        return stake_total, stake_total * matched_odds

    if any(q.odds is None for q in quotes):
        raise MissingOddsError()

    if op_type is OperationType.MATCHED:
        return stake_total, stake_total * combined_odds(q.odds for q in quotes)

    return stake_total, parlay_return((q.stake, q.odds) for q in quotes)


def leg_odds(odds: Optional[Decimal], stake: Decimal, matched_odds: Optional[Decimal]) -> Decimal:
    """Odds stored on a leg: its own, else the combined odds for a staked leg, else 1."""
    if odds is not None:
        return odds
    if matched_odds is not None and stake > 0:
        return matched_odds
    return ONE


def compute_roi(actual_return: Decimal, stake_total: Decimal) -> Decimal:
    if stake_total > 0:
        return (actual_return - stake_total) / stake_total
    return ZERO


def plan_settlement(
    op_type: OperationType,
    legs: Sequence[Bet],
    status: BetStatus,
    actual_return: Optional[Decimal] = None,
    winning_leg_id: Optional[str] = None,
    money_places: int = DEFAULT_MONEY_PLACES,
) -> SettlementPlan:
    """
    Resolve every leg of an operation for a final status.

    Result values are gross amounts paid back to the leg's bankroll. A cashout
    is split by stake into amounts with ``money_places`` decimals that add up
    to the declared return exactly.
    """
    if status is BetStatus.PENDING:
        raise ValidationError("An operation cannot be settled as PENDING.")
    if not legs:
        raise EmptyOperationError()

    stake_total = total_stake(leg.stake for leg in legs)
    results: List[LegResult] = []

    if status is BetStatus.VOID:
        results = [LegResult(leg.id, leg.stake, BetStatus.VOID) for leg in legs]
        resolved = stake_total

    elif status is BetStatus.LOST:
        results = [LegResult(leg.id, ZERO, BetStatus.LOST) for leg in legs]
        resolved = ZERO

    elif status is BetStatus.CASHED_OUT:
        if actual_return is None or actual_return < 0:
            raise MissingReturnError()
        shares = split_proportionally(actual_return, [leg.stake for leg in legs], money_places)
        results = [LegResult(leg.id, share, BetStatus.CASHED_OUT) for leg, share in zip(legs, shares)]
        resolved = actual_return

    elif op_type.single_winner:
        if not winning_leg_id or winning_leg_id not in {leg.id for leg in legs}:
            raise MissingWinningLegError()
        resolved = ZERO
        for leg in legs:
            if leg.id == winning_leg_id:
                win_value = leg.stake * leg.odds
                results.append(LegResult(leg.id, win_value, BetStatus.WON))
                resolved = win_value
            else:
                results.append(LegResult(leg.id, ZERO, BetStatus.LOST))

    else:
        results = [LegResult(leg.id, leg.stake * leg.odds, BetStatus.WON) for leg in legs]
        resolved = sum((r.result_value for r in results), ZERO)

    return SettlementPlan(
        status=status,
        total_stake=stake_total,
        actual_return=resolved,
        roi=compute_roi(resolved, stake_total),
        leg_results=results,
    )


def leg_result_value(leg: Bet, status: BetStatus, result_value: Optional[Decimal] = None) -> Decimal:
    """Result of a single leg moved to ``status`` outside full settlement."""
    if status is BetStatus.WON:
        return leg.stake * leg.odds
    if status is BetStatus.LOST:
        return ZERO
    if status is BetStatus.VOID:
        return leg.stake
    if status is BetStatus.CASHED_OUT:
        if result_value is None or result_value < 0:
            raise MissingReturnError("Result value is required for cashout.")
        return result_value
    raise ValidationError("A leg cannot be moved back to PENDING.")


def derive_status(statuses: Sequence[BetStatus]) -> BetStatus:
    """
    Operation status implied by its legs.

    Any pending leg keeps the operation pending. Otherwise a loss dominates,
    then a cashout; all-void is VOID and anything else counts as a win.
    """
    if not statuses or BetStatus.PENDING in statuses:
        return BetStatus.PENDING
    if BetStatus.LOST in statuses:
        return BetStatus.LOST
    if BetStatus.CASHED_OUT in statuses:
        return BetStatus.CASHED_OUT
    if all(s is BetStatus.VOID for s in statuses):
        return BetStatus.VOID
    return BetStatus.WON
