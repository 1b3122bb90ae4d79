"""
Stake sizing calculators: Kelly criterion and arbitrage splits.

Neither touches the ledger; they only suggest stakes that can then be used to
create an operation.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Sequence

from betledger.exceptions import ValidationError
from betledger.ledger.money import ONE, ZERO, money_context, to_decimal

HUNDRED = Decimal(100)


@dataclass
class KellyResult:
    """Suggested stake for one bet."""
    probability: Decimal
    odds: Decimal
    fraction: Decimal       # Kelly fraction of bankroll, clamped to [0, 1]
    suggested: Decimal      # fraction x bankroll
    capped: Decimal         # suggested, limited to max_risk_pct of bankroll


@dataclass
class ArbitragePlan:
    """Stake split that pays the same amount whichever leg wins."""
    total_stake: Decimal
    implied_sum: Decimal
    payout: Decimal
    profit: Decimal
    roi: Decimal
    stakes: List[Decimal] = field(default_factory=list)

    @property
    def is_arbitrage(self) -> bool:
        return ZERO < self.implied_sum < ONE


def kelly_stake(
    probability_pct,
    odds,
    bankroll,
    max_risk_pct=5,
) -> KellyResult:
    """
    Calculate the Kelly stake for a single bet, capped by a risk limit.

    Kelly formula: f* = (bp - q) / b
    where:
        b = odds - 1 (net odds)
        p = probability of winning
        q = 1 - p

    Args:
        probability_pct: Estimated win probability in percent (e.g. 55)
        odds: Decimal odds
        bankroll: Bankroll to size against
        max_risk_pct: Maximum share of the bankroll per bet, in percent

    Returns:
        KellyResult with the raw and capped stake
    """
    with money_context():
        p = to_decimal(probability_pct) / HUNDRED
        odds = to_decimal(odds)
        bankroll = to_decimal(bankroll)
        max_risk = to_decimal(max_risk_pct)

        if not ZERO < p < ONE:
            raise ValidationError("Probability must be between 0 and 100.")
        if odds <= ONE:
            raise ValidationError("Odds must be greater than 1.0.")
        if bankroll <= 0:
            raise ValidationError("Bankroll must be positive.")
        if max_risk < 0:
            raise ValidationError("Max risk cannot be negative.")

        b = odds - ONE
        q = ONE - p
        raw = (b * p - q) / b
        fraction = max(ZERO, min(raw, ONE))

        suggested = fraction * bankroll
        capped = min(suggested, max_risk / HUNDRED * bankroll)

    return KellyResult(
        probability=p,
        odds=odds,
        fraction=fraction,
        suggested=suggested,
        capped=capped,
    )


def arbitrage_stakes(total_stake, odds: Sequence) -> ArbitragePlan:
    """
    Split a total stake so every outcome returns the same payout.

    implied = sum(1 / odds_i); payout = total / implied; stake_i = payout / odds_i.
    A positive profit (implied below 1) means a genuine surebet.
    """
    with money_context():
        total = to_decimal(total_stake)
        prices = [to_decimal(o) for o in odds]

        if total <= 0:
            raise ValidationError("Total stake must be positive.")
        if len(prices) < 2:
            raise ValidationError("At least two odds are required.")
        if any(o <= ONE for o in prices):
            raise ValidationError("Odds must be greater than 1.0.")

        implied = sum((ONE / o for o in prices), ZERO)
        payout = total / implied
        stakes = [payout / o for o in prices]
        profit = payout - total

        return ArbitragePlan(
            total_stake=total,
            implied_sum=implied,
            payout=payout,
            profit=profit,
            roi=profit / total,
            stakes=stakes,
        )
