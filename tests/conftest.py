# tests/conftest.py
import pytest
from decimal import Decimal

from betledger.config.settings import LedgerSettings
from betledger.core import ServiceContainer
from betledger.ledger.engine import LedgerEngine
from betledger.schemas import BankrollCreate, parse_operation
from betledger.store import open_database
from betledger.utils.observability import MetricsRegistry

USER = "user-1"
OTHER_USER = "user-2"


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "e2e: marks tests as end-to-end tests")


@pytest.fixture
def database(tmp_path):
    """Fresh SQLite ledger with schema."""
    return open_database(tmp_path / "ledger.db")


@pytest.fixture
def metrics():
    """Private metrics registry so counts start at zero."""
    return MetricsRegistry()


@pytest.fixture
def engine(database, metrics):
    return LedgerEngine(database, ledger_settings=LedgerSettings(), metrics=metrics)


@pytest.fixture(autouse=True)
def reset_container():
    ServiceContainer.reset()
    yield
    ServiceContainer.reset()


@pytest.fixture
def make_bankroll(engine):
    """Factory: bankroll for a user with a starting balance."""
    def _make(name="Bet365", balance="1000", currency="EUR", user_id=USER):
        return engine.create_bankroll(
            user_id,
            BankrollCreate(bookmaker_name=name, currency=currency, initial_balance=Decimal(balance)),
        )
    return _make


@pytest.fixture
def leg_payload():
    """Factory: raw leg dict as a caller would send it."""
    def _leg(bankroll_id, stake="100", odds="2.00", match_name="Real Madrid vs Barcelona",
             selection="Real Madrid", event_date="2026-05-01", **extra):
        leg = {
            "match_name": match_name,
            "selection": selection,
            "event_date": event_date,
            "sport": "Football",
            "bankroll_id": bankroll_id,
            "stake": stake,
            "odds": odds,
        }
        leg.update(extra)
        return leg
    return _leg


@pytest.fixture
def create_operation(engine):
    """Factory: validate a raw payload and create the operation."""
    def _create(op_type, legs, user_id=USER, **extra):
        payload = {"type": op_type, "legs": legs}
        payload.update(extra)
        return engine.create_operation(user_id, parse_operation(payload))
    return _create


@pytest.fixture
def balance(engine):
    """Current balance of a bankroll as stored."""
    def _balance(bankroll_id, user_id=USER):
        return engine.get_bankroll(user_id, bankroll_id).current_balance
    return _balance
