"""Value types shared by the hedging engine and its callers.

Everything here is an immutable snapshot: positions and quotes are handed in
by the caller, results are built fresh on every calculation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Outcome side of a binary market."""
    YES = "YES"
    NO = "NO"


@dataclass(frozen=True)
class Position:
    """A held position, always sized in contracts."""
    side: Side
    shares: Decimal
    buy_price: Decimal

    @property
    def initial_cost(self) -> Decimal:
        return self.shares * self.buy_price


@dataclass(frozen=True)
class Quote:
    """Best bid/ask for both outcomes of one market, in dollars per share."""
    yes_ask: Decimal
    yes_bid: Decimal
    no_ask: Decimal
    no_bid: Decimal

    def bid_for(self, side: Side) -> Decimal:
        return self.yes_bid if side == Side.YES else self.no_bid

    def ask_for(self, side: Side) -> Decimal:
        return self.yes_ask if side == Side.YES else self.no_ask


@dataclass(frozen=True)
class FeeSchedule:
    """Fee rates as fractions of trade notional."""
    maker_fee: Decimal = Decimal("0")
    taker_fee: Decimal = Decimal("0")
    transaction_fee: Decimal = Decimal("0")
    source: str = "estimated"

    @property
    def taker_rate(self) -> Decimal:
        # Engine trades always take liquidity.
        return self.taker_fee + self.transaction_fee


@dataclass(frozen=True)
class FeeBreakdown:
    taker: Decimal
    transaction: Decimal
    total: Decimal


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one exit/hedge strategy.

    ``profit_if_side_a_wins`` is the profit when the originally held side
    resolves true, ``profit_if_side_b_wins`` when the hedge side does.
    """
    name: str
    action_description: str
    cost: Decimal
    fees: FeeBreakdown
    profit_if_side_a_wins: Decimal
    profit_if_side_b_wins: Decimal
    guaranteed_profit: Decimal
    profit: Decimal
    profit_percent: Decimal
    risk_label: str
    description: str
    hedge_shares: Decimal = Decimal("0")
    hedge_price: Decimal | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class HedgeUnavailable:
    """Placeholder for a hedge strategy that could not be priced."""
    reason: str


HedgeOutcome = StrategyResult | HedgeUnavailable


@dataclass(frozen=True)
class StrategySet:
    """All strategies computed for one position and quote snapshot."""
    exit: StrategyResult
    perfect_hedge: HedgeOutcome
    partial_hedges: dict[Decimal, HedgeOutcome] = field(default_factory=dict)
    recommended: StrategyResult | None = None
    quote_warnings: tuple[str, ...] = ()

    @property
    def hedge_available(self) -> bool:
        return isinstance(self.perfect_hedge, StrategyResult)

    def partial_hedge(self, percent: int | Decimal) -> HedgeOutcome:
        return self.partial_hedges[Decimal(percent)]
