"""
Caller-facing actions over the ledger engine.

Each action takes raw input (dicts, strings), validates it, runs exactly one
engine contract and reports the outcome as an ``ActionResult``. User-facing
ledger errors are passed through verbatim; storage and unexpected failures
are logged and reported generically.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from betledger.core.container import ServiceContainer
from betledger.exceptions import LedgerError, StorageError
from betledger.models import to_plain
from betledger.schemas import (
    BankrollCreate,
    DescriptionUpdate,
    LegStatusUpdate,
    OperationEdit,
    SettleRequest,
    parse_operation,
)
from betledger.utils.observability import Logger

logger = Logger(__name__)


@dataclass
class ActionResult:
    ok: bool
    message: str
    data: Optional[Any] = None


def validation_message(error: PydanticValidationError) -> str:
    """First validation issue as ``field.path: message``."""
    issues = error.errors()
    if not issues:
        return "Invalid input."
    issue = issues[0]
    message = issue.get("msg", "Invalid input.")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    loc = ".".join(str(part) for part in issue.get("loc", ()))
    return f"{loc}: {message}" if loc else message


def _run(action: str, success: str, failure: str, func: Callable[[], Any]) -> ActionResult:
    try:
        data = func()
    except PydanticValidationError as e:
        return ActionResult(ok=False, message=validation_message(e))
    except StorageError as e:
        logger.log_error(f"{action}_failed", exc_info=e, error=str(e))
        return ActionResult(ok=False, message=failure)
    except LedgerError as e:
        return ActionResult(ok=False, message=str(e))
    except Exception as e:
        logger.log_error(f"{action}_failed", exc_info=e, error=str(e))
        return ActionResult(ok=False, message=failure)
    return ActionResult(ok=True, message=success, data=data)


def _engine(engine):
    return engine if engine is not None else ServiceContainer.get_engine()


# --- Bankrolls ---

def create_bankroll(user_id: str, payload: Dict, engine=None) -> ActionResult:
    def run():
        bankroll = _engine(engine).create_bankroll(user_id, BankrollCreate.model_validate(payload))
        return to_plain(bankroll)

    return _run("create_bankroll", "Bankroll created successfully.", "Failed to create bankroll.", run)


def list_bankrolls(user_id: str, engine=None) -> ActionResult:
    def run():
        return [to_plain(b) for b in _engine(engine).list_bankrolls(user_id)]

    return _run("list_bankrolls", "OK", "Failed to load bankrolls.", run)


# --- Operations ---

def create_operation(user_id: str, payload: Dict, engine=None) -> ActionResult:
    def run():
        operation = _engine(engine).create_operation(user_id, parse_operation(payload))
        return {"operation_id": operation.id}

    return _run("create_operation", "Operation created successfully.", "Failed to create operation.", run)


def list_operations(user_id: str, engine=None) -> ActionResult:
    def run():
        return [to_plain(op) for op in _engine(engine).list_operations(user_id)]

    return _run("list_operations", "OK", "Failed to load operations.", run)


def get_operation(user_id: str, operation_id: str, engine=None) -> ActionResult:
    def run():
        return to_plain(_engine(engine).get_operation(user_id, operation_id))

    return _run("get_operation", "OK", "Failed to load operation.", run)


def edit_pending_operation(user_id: str, payload: Dict, engine=None) -> ActionResult:
    def run():
        operation = _engine(engine).edit_pending_operation(user_id, OperationEdit.model_validate(payload))
        return to_plain(operation)

    return _run("edit_operation", "Operation updated successfully.", "Failed to update operation.", run)


def update_operation_description(user_id: str, operation_id: str, description: Optional[str], engine=None) -> ActionResult:
    def run():
        request = DescriptionUpdate(operation_id=operation_id, description=description)
        return to_plain(_engine(engine).update_description(user_id, request))

    return _run("update_description", "Operation updated successfully.", "Failed to update operation.", run)


def settle_operation(user_id: str, payload: Dict, engine=None) -> ActionResult:
    def run():
        operation = _engine(engine).settle_operation(user_id, SettleRequest.model_validate(payload))
        return to_plain(operation)

    return _run("settle_operation", "Operation settled successfully.", "Failed to settle operation.", run)


def update_leg_status(user_id: str, payload: Dict, engine=None) -> ActionResult:
    def run():
        operation = _engine(engine).update_leg_status(user_id, LegStatusUpdate.model_validate(payload))
        return to_plain(operation) if operation else None

    return _run("update_leg_status", "Bet updated successfully.", "Failed to update bet.", run)


def delete_leg(user_id: str, bet_id: str, engine=None) -> ActionResult:
    def run():
        operation = _engine(engine).delete_leg(user_id, bet_id)
        return to_plain(operation) if operation else None

    return _run("delete_leg", "Bet deleted successfully.", "Failed to delete bet.", run)


def delete_operation(user_id: str, operation_id: str, engine=None) -> ActionResult:
    def run():
        _engine(engine).delete_operation(user_id, operation_id)

    return _run("delete_operation", "Operation deleted successfully.", "Failed to delete operation.", run)
