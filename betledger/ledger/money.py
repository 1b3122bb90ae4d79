"""
Exact decimal arithmetic for stakes, odds, balances and ROI.

Every computation in the ledger runs inside ``money_context()`` so results do
not depend on whatever the process-wide decimal context happens to be.
Floats are only accepted through their ``repr`` so 0.1 stays 0.1.
"""
from contextlib import contextmanager
from decimal import Decimal, Context, Inexact, ROUND_DOWN, ROUND_HALF_EVEN, InvalidOperation, getcontext, localcontext
from typing import List, Optional, Sequence, Union

from betledger.exceptions import ValidationError

DEFAULT_PRECISION = 50
DEFAULT_MONEY_PLACES = 2

ZERO = Decimal(0)
ONE = Decimal(1)

Number = Union[Decimal, int, float, str]


def make_context(precision: int = DEFAULT_PRECISION) -> Context:
    return Context(prec=precision, rounding=ROUND_HALF_EVEN)


@contextmanager
def money_context(precision: int = DEFAULT_PRECISION):
    """Run a block with the ledger's decimal precision and banker's rounding."""
    with localcontext(make_context(precision)) as ctx:
        yield ctx


def to_decimal(value: Number) -> Decimal:
    """Convert user or storage input to Decimal, rejecting NaN and infinity."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"Not a number: {value!r}")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"Not a number: {value!r}")
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        raise ValidationError(f"Not a number: {value!r}")

    if not result.is_finite():
        raise ValidationError(f"Not a finite number: {value!r}")
    return result


def decimal_add(a: Optional[str], b: Optional[str]) -> Optional[str]:
    """
    Exact addition over stored decimal strings.

    Registered on every store connection as the SQL function ``decimal_add``
    so balance changes are applied as relative increments inside the UPDATE.
    SQLite calls it on the thread running the unit of work, so it sees the
    engine's ``money_context``. A sum that would need rounding raises
    ``decimal.Inexact`` and aborts the statement instead of drifting the balance.
    """
    if a is None or b is None:
        return None
    ctx = getcontext().copy()
    ctx.traps[Inexact] = True
    return str(ctx.add(Decimal(str(a)), Decimal(str(b))))


def quantize_money(value: Decimal, places: int, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=rounding)


def split_proportionally(total: Decimal, weights: Sequence[Decimal], places: int) -> List[Decimal]:
    """
    Split ``total`` by ``weights`` into amounts with ``places`` decimals.

    Every share but the last weighted one is truncated; that last one takes
    the remainder, so the shares always add up to ``total`` exactly and none
    goes negative. All-zero weights give all-zero shares.
    """
    weight_total = sum(weights, ZERO)
    if weight_total <= 0:
        return [ZERO for _ in weights]

    last = max(i for i, w in enumerate(weights) if w > 0)
    shares = [
        ZERO if i == last else quantize_money(total * w / weight_total, places, ROUND_DOWN)
        for i, w in enumerate(weights)
    ]
    shares[last] = total - sum(shares, ZERO)
    return shares


def format_money(value: Optional[Decimal], places: int = 2) -> str:
    """Human-readable amount for CLI output."""
    if value is None:
        return "-"
    quantum = Decimal(1).scaleb(-places)
    return str(value.quantize(quantum, rounding=ROUND_HALF_EVEN))
