"""
E2E test for balance conservation.

Runs a seeded random sequence of creates, settlements, edits, single-leg
updates and deletions, and checks after every step that each bankroll holds
exactly its starting balance minus open stakes plus applied result values.
"""
import random
import pytest
from decimal import Decimal

from betledger.exceptions import LedgerError
from betledger.ledger.money import money_context
from betledger.models import BetStatus
from betledger.schemas import LegStatusUpdate, OperationEdit, SettleRequest

USER = "user-1"
START = Decimal("5000")


def expected_balances(engine, bankroll_ids):
    """Start balance - sum(stake) + sum(result_value) over every stored leg."""
    expected = {bid: START for bid in bankroll_ids}
    for operation in engine.list_operations(USER):
        for leg in operation.legs:
            expected[leg.bankroll_id] += leg.settled_value - leg.stake
    return expected


def actual_balances(engine, bankroll_ids):
    return {bid: engine.get_bankroll(USER, bid).current_balance for bid in bankroll_ids}


@pytest.mark.e2e
@pytest.mark.slow
@pytest.mark.parametrize("seed", [7, 42, 2024])
def test_random_sequence_conserves_money(seed, engine, make_bankroll, leg_payload, create_operation):
    rng = random.Random(seed)
    bankroll_ids = [make_bankroll(name, str(START)).id for name in ("Bet365", "Pinnacle", "Betfair")]

    def random_leg(selection):
        return leg_payload(
            rng.choice(bankroll_ids),
            stake=str(Decimal(rng.randint(1, 400)) / 4),
            odds=str(Decimal(rng.randint(105, 450)) / 100),
            selection=selection,
            match_name=rng.choice(["Real Madrid vs Barcelona", "Inter vs Milan", "Ajax vs PSV"]),
        )

    for _ in range(60):
        operations = engine.list_operations(USER)
        action = rng.choice(["create", "create", "settle", "leg", "edit", "delete_leg", "delete_op"])

        try:
            if action == "create" or not operations:
                if rng.random() < 0.5:
                    create_operation("SIMPLE", [random_leg("Home")])
                else:
                    create_operation("ARBITRAGE", [random_leg("Home"), random_leg("Away")])

            elif action == "settle":
                operation = rng.choice(operations)
                status = rng.choice(["WON", "LOST", "VOID", "CASHED_OUT"])
                engine.settle_operation(USER, SettleRequest(
                    operation_id=operation.id,
                    status=status,
                    actual_return=str(rng.randint(0, 500)) if status == "CASHED_OUT" else None,
                    winning_leg_id=rng.choice(operation.legs).id,
                ))

            elif action == "leg":
                leg = rng.choice(rng.choice(operations).legs)
                status = rng.choice(["WON", "LOST", "VOID", "CASHED_OUT"])
                engine.update_leg_status(USER, LegStatusUpdate(
                    bet_id=leg.id,
                    status=status,
                    result_value=str(rng.randint(0, 200)) if status == "CASHED_OUT" else None,
                ))

            elif action == "edit":
                pending = [op for op in operations if op.status is BetStatus.PENDING]
                if pending:
                    operation = rng.choice(pending)
                    legs = [{
                        "id": leg.id,
                        "match_name": leg.match_name,
                        "selection": leg.selection,
                        "event_date": leg.event_date.isoformat(),
                        "bankroll_id": rng.choice(bankroll_ids),
                        "odds": str(leg.odds),
                        "stake": str(Decimal(rng.randint(0, 400)) / 4),
                    } for leg in operation.legs]
                    engine.edit_pending_operation(
                        USER, OperationEdit.model_validate({"operation_id": operation.id, "legs": legs})
                    )

            elif action == "delete_leg":
                engine.delete_leg(USER, rng.choice(rng.choice(operations).legs).id)

            else:
                engine.delete_operation(USER, rng.choice(operations).id)

        except LedgerError:
            # rejected requests must not move money either
            pass

        with money_context():
            actual = actual_balances(engine, bankroll_ids)
            expected = expected_balances(engine, bankroll_ids)
        assert actual == expected, action

    for operation in engine.list_operations(USER):
        if operation.total_stake > 0 and operation.status is BetStatus.CASHED_OUT and all(
            leg.status is BetStatus.CASHED_OUT for leg in operation.legs
        ):
            assert sum(leg.result_value for leg in operation.legs) == operation.actual_return
