"""
Integration tests for caller-facing actions and their error mapping.
"""
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from betledger import actions
from betledger.exceptions import StorageError

USER = "user-1"


@pytest.fixture
def bankroll_id(engine):
    result = actions.create_bankroll(
        USER, {"bookmaker_name": "Bet365", "currency": "eur", "initial_balance": "1000"}, engine=engine
    )
    assert result.ok
    return result.data["id"]


def simple_payload(bankroll_id, stake="100", odds="2.00"):
    return {
        "type": "SIMPLE",
        "legs": [{
            "match_name": "Real Madrid vs Barcelona",
            "selection": "Real Madrid",
            "event_date": "2026-05-01",
            "bankroll_id": bankroll_id,
            "stake": stake,
            "odds": odds,
        }],
    }


@pytest.mark.integration
class TestActions:

    def test_create_bankroll(self, engine, bankroll_id):
        result = actions.list_bankrolls(USER, engine=engine)
        assert result.ok
        assert result.data[0]["id"] == bankroll_id
        assert result.data[0]["currency"] == "EUR"
        assert result.data[0]["current_balance"] == "1000"

    def test_duplicate_bankroll_message(self, engine, bankroll_id):
        result = actions.create_bankroll(
            USER, {"bookmaker_name": "Bet365", "currency": "EUR", "initial_balance": "5"}, engine=engine
        )
        assert not result.ok
        assert result.message == "Bankroll already exists."

    def test_create_and_settle(self, engine, bankroll_id):
        created = actions.create_operation(USER, simple_payload(bankroll_id), engine=engine)
        assert created.ok
        assert created.message == "Operation created successfully."
        operation_id = created.data["operation_id"]

        settled = actions.settle_operation(USER, {"operation_id": operation_id, "status": "WON"}, engine=engine)
        assert settled.ok
        assert settled.data["status"] == "WON"
        assert Decimal(settled.data["actual_return"]) == Decimal("200")

        shown = actions.get_operation(USER, operation_id, engine=engine)
        assert shown.data["legs"][0]["status"] == "WON"
        assert Decimal(actions.list_bankrolls(USER, engine=engine).data[0]["current_balance"]) == Decimal("1100")

    def test_validation_message_names_field(self, engine, bankroll_id):
        result = actions.create_operation(USER, simple_payload(bankroll_id, odds="1.00"), engine=engine)
        assert not result.ok
        assert result.message.startswith("SIMPLE.legs.0.odds:")
        assert "greater than 1" in result.message

    def test_model_level_message(self, engine, bankroll_id):
        payload = simple_payload(bankroll_id, stake="0")
        payload["type"] = "MATCHED"
        result = actions.create_operation(USER, payload, engine=engine)
        assert not result.ok
        assert result.message.endswith("Provide a stake for at least one leg.")

    def test_insufficient_balance_message(self, engine, bankroll_id):
        result = actions.create_operation(USER, simple_payload(bankroll_id, stake="5000"), engine=engine)
        assert not result.ok
        assert result.message == "Insufficient bankroll balance."

    def test_not_found_message(self, engine):
        result = actions.settle_operation(USER, {"operation_id": "missing", "status": "LOST"}, engine=engine)
        assert not result.ok
        assert result.message == "Operation not found."

    def test_description_and_deletes(self, engine, bankroll_id):
        operation_id = actions.create_operation(USER, simple_payload(bankroll_id), engine=engine).data["operation_id"]

        described = actions.update_operation_description(USER, operation_id, "note", engine=engine)
        assert described.ok
        assert described.data["description"] == "note"

        bet_id = actions.get_operation(USER, operation_id, engine=engine).data["legs"][0]["id"]
        deleted = actions.delete_leg(USER, bet_id, engine=engine)
        assert deleted.ok
        assert deleted.message == "Bet deleted successfully."
        assert deleted.data is None
        assert actions.list_operations(USER, engine=engine).data == []

    def test_storage_error_is_generic(self):
        engine = MagicMock()
        engine.settle_operation.side_effect = StorageError("database is locked")

        result = actions.settle_operation(USER, {"operation_id": "op-1", "status": "WON"}, engine=engine)

        assert not result.ok
        assert result.message == "Failed to settle operation."

    def test_unexpected_error_is_generic(self):
        engine = MagicMock()
        engine.delete_operation.side_effect = KeyError("boom")

        result = actions.delete_operation(USER, "op-1", engine=engine)

        assert not result.ok
        assert result.message == "Failed to delete operation."

    def test_default_engine_from_container(self, engine):
        from betledger.core import ServiceContainer
        ServiceContainer.register_engine(engine)

        result = actions.list_operations(USER)

        assert result.ok
        assert result.data == []
