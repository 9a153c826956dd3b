from __future__ import annotations

from hedge_calculator.models import HedgeOutcome, HedgeUnavailable, StrategyResult


def recommend(exit_result: StrategyResult, perfect_hedge: HedgeOutcome) -> StrategyResult:
    """Pick the strategy with the higher guaranteed profit.

    Ties go to the perfect hedge: it removes outcome risk rather than
    landing on parity by accident.
    """
    if isinstance(perfect_hedge, HedgeUnavailable):
        return exit_result
    if perfect_hedge.guaranteed_profit >= exit_result.guaranteed_profit:
        return perfect_hedge
    return exit_result
