#!/usr/bin/env python
"""
Betbook - Bankroll and bet ledger CLI
"""
import sys
from pathlib import Path
import argparse
import json
import time
import uuid
from decimal import Decimal

from betledger import actions
from betledger.config import settings
from betledger.core import ServiceContainer
from betledger.ledger.money import format_money
from betledger.store import open_database
from betledger.tools import arbitrage_stakes, kelly_stake
from betledger.utils import setup_logging
from betledger.utils.observability import initialize_observability, get_metrics, Logger, CORRELATION_ID

# Initialize observability
initialize_observability(settings.observability)

logger = Logger(__name__)


def _load_payload(path: str) -> dict:
    """Read a JSON request from a file, or from stdin when path is '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _report(result) -> int:
    if result.ok:
        print(f"[OK] {result.message}")
        return 0
    print(f"ERROR: {result.message}")
    return 1


def _print_legs(legs):
    print(f"   | {'LEG':<32} | {'Bankroll':<14} | {'Selection':<20} | {'Odds':>6} | {'Stake':>9} | {'Status':<10} | {'Result':>9} |")
    for leg in legs:
        print(
            f"   | {leg['id']:<32} | {(leg.get('bookmaker_name') or '')[:14]:<14} "
            f"| {leg['selection'][:20]:<20} | {leg['odds'][:6]:>6} "
            f"| {_money(leg['stake']):>9} | {leg['status']:<10} | {_money(leg.get('result_value')):>9} |"
        )


def _money(value) -> str:
    return format_money(Decimal(value)) if value is not None else "-"


# --- STORE / BANKROLL COMMANDS ---

def cmd_init_db(args):
    """Create the ledger database and schema."""
    db = ServiceContainer.get_database()
    print(f"[OK] Ledger database ready: {db.db_path}")


def cmd_add_bankroll(args):
    """Register a bookmaker bankroll."""
    result = actions.create_bankroll(args.user, {
        "bookmaker_name": args.bookmaker,
        "currency": args.currency,
        "initial_balance": args.balance,
    })
    code = _report(result)
    if result.ok:
        print(f"   id: {result.data['id']}")
    return code


def cmd_bankrolls(args):
    """List bankrolls with their balances."""
    result = actions.list_bankrolls(args.user)
    if not result.ok:
        return _report(result)
    if not result.data:
        print("No bankrolls yet. Use 'add-bankroll' first.")
        return 0

    print(f"\n{'':=^80}")
    print(f"BANKROLLS ({args.user})".center(80))
    print(f"{'':=^80}")
    print(f"| {'ID':<32} | {'Bookmaker':<20} | {'Cur':<4} | {'Balance':>12} |")
    print(f"|{'-'*34}|{'-'*22}|{'-'*6}|{'-'*14}|")
    for b in result.data:
        print(f"| {b['id']:<32} | {b['bookmaker_name'][:20]:<20} | {b['currency']:<4} | {_money(b['current_balance']):>12} |")
    print()
    return 0


# --- OPERATION COMMANDS ---

def cmd_create(args):
    """Create an operation from a JSON payload."""
    result = actions.create_operation(args.user, _load_payload(args.file))
    code = _report(result)
    if result.ok:
        print(f"   id: {result.data['operation_id']}")
    return code


def cmd_operations(args):
    """List operations, newest first."""
    result = actions.list_operations(args.user)
    if not result.ok:
        return _report(result)

    operations = result.data
    if args.status:
        operations = [op for op in operations if op["status"] == args.status]
    operations = operations[:args.limit]

    if not operations:
        print("No operations found.")
        return 0

    print(f"\n{'':=^96}")
    print(f"OPERATIONS ({len(operations)} shown)".center(96))
    print(f"{'':=^96}")
    print(f"| {'ID':<32} | {'Type':<9} | {'Status':<10} | {'Stake':>9} | {'Expected':>9} | {'Return':>9} | {'ROI':>7} |")
    print(f"|{'-'*34}|{'-'*11}|{'-'*12}|{'-'*11}|{'-'*11}|{'-'*11}|{'-'*9}|")
    for op in operations:
        roi = f"{float(op['roi']) * 100:6.1f}%" if op.get("roi") is not None else "-"
        print(
            f"| {op['id']:<32} | {op['type']:<9} | {op['status']:<10} "
            f"| {_money(op['total_stake']):>9} | {_money(op.get('expected_return')):>9} "
            f"| {_money(op.get('actual_return')):>9} | {roi:>7} |"
        )
    print()
    return 0


def cmd_show(args):
    """Show one operation with its legs."""
    result = actions.get_operation(args.user, args.operation_id)
    if not result.ok:
        return _report(result)

    op = result.data
    print(f"\n[{op['type']}] {op['id']}  status={op['status']}")
    if op.get("description"):
        print(f"   {op['description']}")
    print(f"   stake={_money(op['total_stake'])} expected={_money(op.get('expected_return'))} "
          f"return={_money(op.get('actual_return'))}")
    _print_legs(op["legs"])
    print()
    return 0


def cmd_describe(args):
    """Set or clear an operation's description."""
    return _report(actions.update_operation_description(args.user, args.operation_id, args.text))


def cmd_edit(args):
    """Edit a pending operation from a JSON payload."""
    return _report(actions.edit_pending_operation(args.user, _load_payload(args.file)))


def cmd_settle(args):
    """Settle an operation."""
    return _report(actions.settle_operation(args.user, {
        "operation_id": args.operation_id,
        "status": args.status,
        "actual_return": args.actual_return,
        "winning_leg_id": args.winner,
    }))


def cmd_leg_status(args):
    """Settle a single leg."""
    return _report(actions.update_leg_status(args.user, {
        "bet_id": args.bet_id,
        "status": args.status,
        "result_value": args.value,
    }))


def cmd_delete_leg(args):
    result = actions.delete_leg(args.user, args.bet_id)
    code = _report(result)
    if result.ok and result.data is None:
        print("   Last leg removed; operation deleted.")
    return code


def cmd_delete_operation(args):
    return _report(actions.delete_operation(args.user, args.operation_id))


# --- CALCULATORS ---

def cmd_kelly(args):
    """Kelly criterion stake suggestion."""
    result = kelly_stake(args.probability, args.odds, args.bankroll, args.max_risk)
    print(f"\nKelly fraction: {format_money(result.fraction * 100)}%")
    print(f"Suggested stake: {format_money(result.suggested)}")
    print(f"Capped at {args.max_risk}%: {format_money(result.capped)}\n")


def cmd_arb(args):
    """Arbitrage stake split."""
    plan = arbitrage_stakes(args.total, args.odds)
    print(f"\nImplied total: {format_money(plan.implied_sum * 100)}%")
    print(f"Expected payout: {format_money(plan.payout)} | Profit: {format_money(plan.profit)} "
          f"| ROI: {format_money(plan.roi * 100)}%")
    for i, (odds, stake) in enumerate(zip(args.odds, plan.stakes), 1):
        print(f"   Leg {i}: odds {odds} -> stake {format_money(stake)}")
    if not plan.is_arbitrage:
        print("WARN: No arbitrage at these odds.")
    print()


def main():
    parser = argparse.ArgumentParser(description="Betbook - bankroll and bet ledger")
    parser.add_argument("--user", default=settings.default_user, help="User id owning the records")
    parser.add_argument("--db", help="SQLite database path (overrides STORE_DB_PATH)")
    parser.add_argument("--metrics", action="store_true", help="Print Prometheus metrics after the command")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create the database schema")
    init_db.set_defaults(func=cmd_init_db)

    add_bankroll = subparsers.add_parser("add-bankroll", help="Register a bookmaker bankroll")
    add_bankroll.add_argument("bookmaker")
    add_bankroll.add_argument("currency")
    add_bankroll.add_argument("balance", help="Initial balance")
    add_bankroll.set_defaults(func=cmd_add_bankroll)

    bankrolls = subparsers.add_parser("bankrolls", help="List bankrolls")
    bankrolls.set_defaults(func=cmd_bankrolls)

    create = subparsers.add_parser("create", help="Create an operation from JSON")
    create.add_argument("file", help="JSON payload path, or '-' for stdin")
    create.set_defaults(func=cmd_create)

    operations = subparsers.add_parser("operations", help="List operations")
    operations.add_argument("--status", choices=["PENDING", "WON", "LOST", "VOID", "CASHED_OUT"])
    operations.add_argument("--limit", type=int, default=50)
    operations.set_defaults(func=cmd_operations)

    show = subparsers.add_parser("show", help="Show one operation")
    show.add_argument("operation_id")
    show.set_defaults(func=cmd_show)

    describe = subparsers.add_parser("describe", help="Set or clear a description")
    describe.add_argument("operation_id")
    describe.add_argument("--text", help="New description (omit to clear)")
    describe.set_defaults(func=cmd_describe)

    edit = subparsers.add_parser("edit", help="Edit a pending operation from JSON")
    edit.add_argument("file", help="JSON payload path, or '-' for stdin")
    edit.set_defaults(func=cmd_edit)

    settle = subparsers.add_parser("settle", help="Settle an operation")
    settle.add_argument("operation_id")
    settle.add_argument("status", choices=["WON", "LOST", "VOID", "CASHED_OUT"])
    settle.add_argument("--return", dest="actual_return", help="Cashout amount")
    settle.add_argument("--winner", help="Winning leg id (arbitrage / matched)")
    settle.set_defaults(func=cmd_settle)

    leg_status = subparsers.add_parser("leg-status", help="Settle a single leg")
    leg_status.add_argument("bet_id")
    leg_status.add_argument("status", choices=["WON", "LOST", "VOID", "CASHED_OUT"])
    leg_status.add_argument("--value", help="Result value for a cashout")
    leg_status.set_defaults(func=cmd_leg_status)

    delete_leg = subparsers.add_parser("delete-leg", help="Delete one leg and refund it")
    delete_leg.add_argument("bet_id")
    delete_leg.set_defaults(func=cmd_delete_leg)

    delete_operation = subparsers.add_parser("delete-operation", help="Delete an operation and refund it")
    delete_operation.add_argument("operation_id")
    delete_operation.set_defaults(func=cmd_delete_operation)

    kelly = subparsers.add_parser("kelly", help="Kelly criterion stake")
    kelly.add_argument("--probability", "-p", default="55", help="Win probability in percent")
    kelly.add_argument("--odds", "-o", default="1.92")
    kelly.add_argument("--bankroll", "-b", default="1000")
    kelly.add_argument("--max-risk", default="5", help="Max stake in percent of bankroll")
    kelly.set_defaults(func=cmd_kelly)

    arb = subparsers.add_parser("arb", help="Arbitrage stake split")
    arb.add_argument("--total", "-t", required=True, help="Total stake to split")
    arb.add_argument("--odds", "-o", nargs="+", required=True)
    arb.set_defaults(func=cmd_arb)

    args = parser.parse_args()

    setup_logging(settings.observability)
    if args.db:
        ServiceContainer.register_database(open_database(Path(args.db)))

    # Initialize correlation ID for this run
    correlation_id = str(uuid.uuid4())
    CORRELATION_ID.set(correlation_id)

    start_time = time.time()

    try:
        code = args.func(args)
    except Exception as e:
        logger.log_error("command_failed", error=str(e), exc_info=True)
        print(f"ERROR: {e}")
        sys.exit(1)
    finally:
        duration = time.time() - start_time
        logger.log_event('command_completed', command=args.command, duration_seconds=duration)
        if args.metrics and settings.observability.enable_metrics:
            print(get_metrics().render())

    if isinstance(code, int) and code:
        sys.exit(code)


if __name__ == "__main__":
    main()
