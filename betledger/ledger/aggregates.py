"""
Operation rollups derived from the current legs.

Used after paths that change legs one at a time (ad-hoc status change, leg
deletion) instead of going through full settlement.
"""
from decimal import Decimal
from typing import Optional

from betledger.ledger.calculations import compute_roi, derive_status, parlay_return, total_stake
from betledger.ledger.money import ZERO
from betledger.models import BetStatus, Operation
from betledger.store.repositories import UnitOfWork


def recompute_operation(uow: UnitOfWork, operation_id: str) -> Optional[Operation]:
    """
    Recompute and persist totals, expected/actual return, ROI and status.

    Expected return is always the additive stake x odds sum here. Actual
    return and ROI stay null while any leg is pending.
    """
    operation = uow.operations.get(operation_id)
    if operation is None:
        return None

    legs = operation.legs
    stake_total = total_stake(leg.stake for leg in legs)
    expected = parlay_return((leg.stake, leg.odds) for leg in legs)
    status = derive_status([leg.status for leg in legs])

    actual_return: Optional[Decimal] = None
    roi: Optional[Decimal] = None
    if status is not BetStatus.PENDING:
        actual_return = sum((leg.settled_value for leg in legs), ZERO)
        roi = compute_roi(actual_return, stake_total)

    uow.operations.update(
        operation_id,
        total_stake=stake_total,
        expected_return=expected,
        actual_return=actual_return,
        roi=roi,
        status=status,
    )

    operation.total_stake = stake_total
    operation.expected_return = expected
    operation.actual_return = actual_return
    operation.roi = roi
    operation.status = status
    return operation
