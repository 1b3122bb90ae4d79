"""
Integration tests for pending edits, description updates and deletion refunds.
"""
import pytest
from decimal import Decimal

from betledger.exceptions import (
    InsufficientBalanceError,
    NotEditableError,
    NotFoundError,
    ValidationError,
)
from betledger.models import BetStatus
from betledger.schemas import DescriptionUpdate, LegStatusUpdate, OperationEdit, SettleRequest

USER = "user-1"
OTHER_USER = "user-2"


def edit_leg(bet, **overrides):
    """Edit payload for a stored leg, unchanged unless overridden."""
    payload = {
        "id": bet.id,
        "match_name": bet.match_name or "Real Madrid vs Barcelona",
        "selection": bet.selection,
        "event_date": "2026-05-01",
        "bankroll_id": bet.bankroll_id,
        "odds": str(bet.odds),
        "stake": str(bet.stake),
    }
    payload.update(overrides)
    return payload


def edit(engine, operation_id, legs, description=None, user_id=USER):
    request = OperationEdit.model_validate({
        "operation_id": operation_id, "description": description, "legs": legs,
    })
    return engine.edit_pending_operation(user_id, request)


@pytest.mark.integration
class TestEditPendingOperation:

    def test_raise_stake_same_bankroll(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="1000")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100", odds="2.00")])
        stored = engine.get_operation(USER, operation.id)

        updated = edit(engine, operation.id, [edit_leg(stored.legs[0], stake="150")], description="bigger")

        assert balance(bankroll.id) == Decimal("850")
        assert updated.total_stake == Decimal("150")
        assert updated.expected_return == Decimal("300")
        assert updated.description == "bigger"
        assert updated.legs[0].stake == Decimal("150")

    def test_lower_stake_refunds(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="1000")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100")])
        stored = engine.get_operation(USER, operation.id)

        edit(engine, operation.id, [edit_leg(stored.legs[0], stake="30", odds="3.00")])

        assert balance(bankroll.id) == Decimal("970")
        assert engine.get_operation(USER, operation.id).expected_return == Decimal("90")

    def test_move_leg_to_other_bankroll(self, engine, make_bankroll, leg_payload, create_operation, balance):
        a = make_bankroll("Bet365", "1000")
        b = make_bankroll("Pinnacle", "1000")
        operation = create_operation("SIMPLE", [leg_payload(a.id, stake="100")])
        stored = engine.get_operation(USER, operation.id)

        updated = edit(engine, operation.id, [edit_leg(stored.legs[0], bankroll_id=b.id, stake="120")])

        assert balance(a.id) == Decimal("1000")
        assert balance(b.id) == Decimal("880")
        assert updated.legs[0].bankroll_id == b.id
        assert updated.legs[0].bookmaker_name == "Pinnacle"

    def test_move_needs_balance_on_target(self, engine, make_bankroll, leg_payload, create_operation, balance):
        a = make_bankroll("Bet365", "1000")
        b = make_bankroll("Pinnacle", "50")
        operation = create_operation("SIMPLE", [leg_payload(a.id, stake="100")])
        stored = engine.get_operation(USER, operation.id)

        with pytest.raises(InsufficientBalanceError):
            edit(engine, operation.id, [edit_leg(stored.legs[0], bankroll_id=b.id)])

        assert balance(a.id) == Decimal("900")
        assert balance(b.id) == Decimal("50")

    def test_stake_increase_beyond_balance(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="150")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100")])
        stored = engine.get_operation(USER, operation.id)

        with pytest.raises(InsufficientBalanceError):
            edit(engine, operation.id, [edit_leg(stored.legs[0], stake="200")])

        assert balance(bankroll.id) == Decimal("50")
        assert engine.get_operation(USER, operation.id).total_stake == Decimal("100")

    def test_rename_match_resolves_new_event(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)])
        stored = engine.get_operation(USER, operation.id)

        updated = edit(engine, operation.id, [edit_leg(stored.legs[0], match_name="Bayern Munich vs Dortmund")])

        assert updated.legs[0].event_id != stored.legs[0].event_id
        assert updated.legs[0].match_name == "Bayern Munich vs Dortmund"

    def test_matched_edit_keeps_combined_odds(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation(
            "MATCHED", [leg_payload(bankroll.id, stake="10", odds=None)], matched_odds="4"
        )
        stored = engine.get_operation(USER, operation.id)

        updated = edit(engine, operation.id, [edit_leg(stored.legs[0], stake="20")])

        assert updated.expected_return == Decimal("80")

    def test_settled_operation_not_editable(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)])
        engine.settle_operation(USER, SettleRequest(operation_id=operation.id, status="LOST"))
        stored = engine.get_operation(USER, operation.id)

        with pytest.raises(NotEditableError):
            edit(engine, operation.id, [edit_leg(stored.legs[0], stake="1")])

    def test_partially_settled_not_editable(self, engine, make_bankroll, leg_payload, create_operation):
        a = make_bankroll("Bet365")
        b = make_bankroll("Pinnacle")
        operation = create_operation("ARBITRAGE", [
            leg_payload(a.id, selection="Home"), leg_payload(b.id, selection="Away"),
        ])
        engine.update_leg_status(USER, LegStatusUpdate(bet_id=operation.legs[0].id, status="VOID"))
        stored = engine.get_operation(USER, operation.id)

        with pytest.raises(NotEditableError):
            edit(engine, operation.id, [edit_leg(stored.legs[1], stake="1")])

    def test_unknown_leg(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)])
        stored = engine.get_operation(USER, operation.id)

        with pytest.raises(NotFoundError, match="Leg not found"):
            edit(engine, operation.id, [edit_leg(stored.legs[0], id="nope")])

    def test_duplicate_leg_in_request(self, engine, make_bankroll, leg_payload, create_operation, balance, metrics):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)])
        leg = engine.get_operation(USER, operation.id).legs[0]
        duplicated = [edit_leg(leg, stake="10"), edit_leg(leg, stake="20")]

        with pytest.raises(ValidationError, match="only be edited once"):
            edit(engine, operation.id, duplicated)

        assert balance(bankroll.id) == Decimal("900")
        assert metrics.registry.get_sample_value(
            "ledger_failures_total", {"action": "edit_operation", "error_type": "ValidationError"}
        ) == 1.0

        with pytest.raises(ValidationError, match="User id is required"):
            edit(engine, operation.id, duplicated, user_id="")

    def test_other_user_cannot_edit(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)])
        leg = engine.get_operation(USER, operation.id).legs[0]

        with pytest.raises(NotFoundError):
            edit(engine, operation.id, [edit_leg(leg)], user_id=OTHER_USER)

    def test_update_description(self, engine, make_bankroll, leg_payload, create_operation):
        bankroll = make_bankroll()
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id)], description="old")

        engine.update_description(USER, DescriptionUpdate(operation_id=operation.id, description="  new "))
        assert engine.get_operation(USER, operation.id).description == "new"

        engine.update_description(USER, DescriptionUpdate(operation_id=operation.id, description=""))
        assert engine.get_operation(USER, operation.id).description is None


@pytest.mark.integration
class TestDeletion:

    def test_delete_pending_operation_refunds(self, engine, make_bankroll, leg_payload, create_operation, balance):
        a = make_bankroll("Bet365", "1000")
        b = make_bankroll("Pinnacle", "1000")
        operation = create_operation("ARBITRAGE", [
            leg_payload(a.id, stake="60", selection="Home"),
            leg_payload(b.id, stake="40", selection="Away"),
        ])

        engine.delete_operation(USER, operation.id)

        assert balance(a.id) == Decimal("1000")
        assert balance(b.id) == Decimal("1000")
        with pytest.raises(NotFoundError):
            engine.get_operation(USER, operation.id)

    def test_delete_won_operation_takes_winnings_back(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="1000")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100", odds="2.00")])
        engine.settle_operation(USER, SettleRequest(operation_id=operation.id, status="WON"))
        assert balance(bankroll.id) == Decimal("1100")

        engine.delete_operation(USER, operation.id)

        assert balance(bankroll.id) == Decimal("1000")

    def test_delete_one_leg_recomputes(self, engine, make_bankroll, leg_payload, create_operation, balance):
        a = make_bankroll("Bet365", "1000")
        b = make_bankroll("Pinnacle", "1000")
        operation = create_operation("ARBITRAGE", [
            leg_payload(a.id, stake="60", odds="2.10", selection="Home"),
            leg_payload(b.id, stake="40", odds="2.50", selection="Away"),
        ])
        leg_b = next(leg for leg in operation.legs if leg.bankroll_id == b.id)

        updated = engine.delete_leg(USER, leg_b.id)

        assert balance(b.id) == Decimal("1000")
        assert balance(a.id) == Decimal("940")
        assert updated.total_stake == Decimal("60")
        assert updated.expected_return == Decimal("126")
        assert updated.status is BetStatus.PENDING
        assert len(engine.get_operation(USER, operation.id).legs) == 1

    def test_delete_settled_leg_refunds_net(self, engine, make_bankroll, leg_payload, create_operation, balance):
        a = make_bankroll("Bet365", "1000")
        b = make_bankroll("Pinnacle", "1000")
        operation = create_operation("ARBITRAGE", [
            leg_payload(a.id, stake="60", odds="2.10", selection="Home"),
            leg_payload(b.id, stake="40", odds="2.50", selection="Away"),
        ])
        leg_a = next(leg for leg in operation.legs if leg.bankroll_id == a.id)
        engine.update_leg_status(USER, LegStatusUpdate(bet_id=leg_a.id, status="WON"))
        assert balance(a.id) == Decimal("1066")

        updated = engine.delete_leg(USER, leg_a.id)

        # refund = stake - result = 60 - 126
        assert balance(a.id) == Decimal("1000")
        assert updated.status is BetStatus.PENDING

    def test_delete_last_leg_removes_operation(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="1000")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100")])

        result = engine.delete_leg(USER, operation.legs[0].id)

        assert result is None
        assert balance(bankroll.id) == Decimal("1000")
        assert engine.list_operations(USER) == []

    def test_delete_foreign_records(self, engine, make_bankroll, leg_payload, create_operation, balance):
        bankroll = make_bankroll(balance="1000")
        operation = create_operation("SIMPLE", [leg_payload(bankroll.id, stake="100")])

        with pytest.raises(NotFoundError):
            engine.delete_operation(OTHER_USER, operation.id)
        with pytest.raises(NotFoundError):
            engine.delete_leg(OTHER_USER, operation.legs[0].id)

        assert balance(bankroll.id) == Decimal("900")
