# Tools module
from .calculators import ArbitragePlan, KellyResult, arbitrage_stakes, kelly_stake

__all__ = [
    "ArbitragePlan",
    "KellyResult",
    "arbitrage_stakes",
    "kelly_stake",
]
