"""Exit and hedge calculators.

Every calculator is a pure function of (position, quotes, fee schedule). The
hedge instrument is always YES in the complementary market: a contract that
pays 1 exactly when the held side loses.

Perfect hedge sizing equalizes the two resolutions:

    if held side wins:  shares - cost0 - hedge_cost - fee(hedge_cost)
    if hedge side wins: hedge_cost / H - cost0 - fee(hedge_cost)

The fee term is identical on both sides, so it cancels and

    hedge_cost = shares / (1 + 1 / H)
"""

from __future__ import annotations

import logging
from decimal import Decimal

from hedge_calculator.fees import apply_fees
from hedge_calculator.models import (
    FeeSchedule,
    HedgeOutcome,
    HedgeUnavailable,
    Position,
    Quote,
    StrategyResult,
    StrategySet,
)
from hedge_calculator.ranking import recommend
from hedge_calculator.sizing import normalize_fee_schedule, normalize_quote, validate_position

log = logging.getLogger(__name__)

ONE = Decimal("1")
HUNDRED = Decimal("100")

# Two profits closer than a cent are treated as equal.
PROFIT_TOLERANCE = Decimal("0.01")

# yes_ask + opposite yes_ask above this means hedging is currently expensive.
EXPENSIVE_HEDGE_THRESHOLD = Decimal("1.05")

# Canonical partial hedge levels, percent -> label.
PARTIAL_HEDGE_LEVELS: dict[Decimal, str] = {
    Decimal("80"): "conservative",
    Decimal("50"): "moderate",
    Decimal("25"): "minimal",
}

RISK_CLOSED = "None - position fully closed"
RISK_LOCKED_PROFIT = "None - profit locked in regardless of outcome"
RISK_LOCKED_LOSS = "Locks in a guaranteed loss"
RISK_PARTIAL = "Moderate - partial exposure remains"


def profits_equal(a: Decimal, b: Decimal, tolerance: Decimal = PROFIT_TOLERANCE) -> bool:
    return abs(a - b) <= tolerance


def _percent_of(amount: Decimal, base: Decimal) -> Decimal:
    # base is a position cost, positive once the position validated.
    return amount / base * HUNDRED


def _fmt_percent(percent: Decimal) -> str:
    return f"{percent.normalize():f}"


def quote_anomalies(quote: Quote, label: str = "quote") -> list[str]:
    """Describe prices that look stale or placeholder.

    Nothing here is fatal; the engine still prices with the numbers it was
    given and the result figures show the damage.
    """
    problems: list[str] = []
    for name in ("yes_ask", "yes_bid", "no_ask", "no_bid"):
        value = getattr(quote, name)
        if value <= 0 or value >= 1:
            problems.append(f"{label}.{name}={value} is outside (0, 1)")
    if quote.yes_ask < quote.yes_bid:
        problems.append(f"{label} yes_ask {quote.yes_ask} is below yes_bid {quote.yes_bid}")
    if quote.no_ask < quote.no_bid:
        problems.append(f"{label} no_ask {quote.no_ask} is below no_bid {quote.no_bid}")
    return problems


def calculate_exit(position: Position, quote: Quote, fees: FeeSchedule) -> StrategyResult:
    """Sell the whole position at the held side's bid."""
    sell_price = quote.bid_for(position.side)
    initial_cost = position.initial_cost
    gross_revenue = position.shares * sell_price
    breakdown = apply_fees(gross_revenue, fees)
    net_revenue = gross_revenue - breakdown.total
    profit = net_revenue - initial_cost

    log.debug(
        "exit side=%s shares=%s bid=%s gross=%s fees=%s profit=%s",
        position.side.value, position.shares, sell_price, gross_revenue, breakdown.total, profit,
    )
    return StrategyResult(
        name="Simple Exit",
        action_description=f"Sell {position.shares} {position.side.value} shares at ${sell_price:.2f}",
        cost=Decimal("0"),
        fees=breakdown,
        profit_if_side_a_wins=profit,
        profit_if_side_b_wins=profit,
        guaranteed_profit=profit,
        profit=profit,
        profit_percent=_percent_of(profit, initial_cost),
        risk_label=RISK_CLOSED,
        description="Exit your position immediately and lock in current profit/loss (after fees).",
    )


def _hedge_price(opposite_quote: Quote | None) -> Decimal | HedgeUnavailable:
    if opposite_quote is None:
        return HedgeUnavailable("no complementary market quote available")
    if opposite_quote.yes_ask <= 0:
        return HedgeUnavailable(
            f"complementary market has no usable YES ask ({opposite_quote.yes_ask})"
        )
    return opposite_quote.yes_ask


def perfect_hedge_size(position: Position, hedge_price: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(hedge_cost, hedge_shares)`` that equalize both resolutions."""
    hedge_cost = position.shares / (ONE + ONE / hedge_price)
    return hedge_cost, hedge_cost / hedge_price


def _resolution_profits(
    position: Position,
    hedge_shares: Decimal,
    hedge_cost: Decimal,
    hedge_fee: Decimal,
) -> tuple[Decimal, Decimal]:
    initial_cost = position.initial_cost
    if_held_wins = position.shares - initial_cost - hedge_cost - hedge_fee
    if_hedge_wins = hedge_shares - initial_cost - hedge_fee
    return if_held_wins, if_hedge_wins


def _perfect_hedge_warnings(
    position: Position,
    quote: Quote,
    hedge_price: Decimal,
    guaranteed_profit: Decimal,
    expensive_threshold: Decimal,
) -> tuple[str, ...]:
    warnings: list[str] = []
    if quote.ask_for(position.side) + hedge_price > expensive_threshold:
        warnings.append("Market prices look expensive to hedge right now (wide spread).")
    if guaranteed_profit < 0:
        warnings.append("This hedge would lock in a loss. Use only to stop further downside.")
    unrealized_gain = position.shares * quote.bid_for(position.side) - position.initial_cost
    if unrealized_gain <= 0:
        warnings.append(
            "Your position hasn't moved in your favor yet. "
            "Hedging now may lock in a loss or break-even."
        )
    return tuple(warnings)


def calculate_perfect_hedge(
    position: Position,
    quote: Quote,
    opposite_quote: Quote | None,
    fees: FeeSchedule,
    *,
    expensive_threshold: Decimal = EXPENSIVE_HEDGE_THRESHOLD,
    tolerance: Decimal = PROFIT_TOLERANCE,
) -> HedgeOutcome:
    """Buy enough complementary YES to make profit identical either way."""
    hedge_price = _hedge_price(opposite_quote)
    if isinstance(hedge_price, HedgeUnavailable):
        return hedge_price

    hedge_cost, hedge_shares = perfect_hedge_size(position, hedge_price)
    breakdown = apply_fees(hedge_cost, fees)
    if_held_wins, if_hedge_wins = _resolution_profits(
        position, hedge_shares, hedge_cost, breakdown.total
    )
    if not profits_equal(if_held_wins, if_hedge_wins, tolerance):
        log.warning(
            "perfect hedge did not equalize: held=%s hedge=%s", if_held_wins, if_hedge_wins
        )
    guaranteed = min(if_held_wins, if_hedge_wins)

    if guaranteed >= 0:
        risk = RISK_LOCKED_PROFIT
        description = f"Lock in a guaranteed profit of ${guaranteed:.2f} no matter what happens."
    else:
        risk = RISK_LOCKED_LOSS
        description = (
            f"This would lock in a loss of ${abs(guaranteed):.2f}. "
            "Only hedge if you want to stop further losses."
        )

    log.debug(
        "perfect hedge H=%s cost=%s shares=%s fees=%s guaranteed=%s",
        hedge_price, hedge_cost, hedge_shares, breakdown.total, guaranteed,
    )
    return StrategyResult(
        name="Perfect Hedge",
        action_description=(
            f"Buy {hedge_shares:.2f} YES shares in the opposite market at ${hedge_price:.2f}"
        ),
        cost=hedge_cost,
        fees=breakdown,
        profit_if_side_a_wins=if_held_wins,
        profit_if_side_b_wins=if_hedge_wins,
        guaranteed_profit=guaranteed,
        profit=guaranteed,
        profit_percent=_percent_of(guaranteed, position.initial_cost),
        risk_label=risk,
        description=description,
        hedge_shares=hedge_shares,
        hedge_price=hedge_price,
        warnings=_perfect_hedge_warnings(
            position, quote, hedge_price, guaranteed, expensive_threshold
        ),
    )


def calculate_partial_hedge(
    position: Position,
    opposite_quote: Quote | None,
    fees: FeeSchedule,
    percent: int | Decimal,
) -> HedgeOutcome:
    """Hedge ``percent`` of the perfect hedge size.

    Keeps upside if the held side wins while capping the loss if it doesn't.
    ``percent`` may be anywhere in [0, 100]; 0 is the unhedged position.
    """
    percent = Decimal(percent)
    if percent < 0 or percent > HUNDRED:
        raise ValueError(f"hedge percent must be between 0 and 100, got {percent}")

    hedge_price = _hedge_price(opposite_quote)
    if isinstance(hedge_price, HedgeUnavailable):
        return hedge_price

    _, perfect_shares = perfect_hedge_size(position, hedge_price)
    hedge_shares = perfect_shares * percent / HUNDRED
    hedge_cost = hedge_shares * hedge_price
    breakdown = apply_fees(hedge_cost, fees)
    if_held_wins, if_hedge_wins = _resolution_profits(
        position, hedge_shares, hedge_cost, breakdown.total
    )
    better = max(if_held_wins, if_hedge_wins)

    if percent < HUNDRED:
        risk = RISK_PARTIAL
    else:
        risk = RISK_LOCKED_PROFIT if min(if_held_wins, if_hedge_wins) >= 0 else RISK_LOCKED_LOSS

    label = _fmt_percent(percent)
    return StrategyResult(
        name=f"Partial Hedge ({label}%)",
        action_description=(
            f"Buy {hedge_shares:.2f} YES shares in the opposite market at ${hedge_price:.2f}"
        ),
        cost=hedge_cost,
        fees=breakdown,
        profit_if_side_a_wins=if_held_wins,
        profit_if_side_b_wins=if_hedge_wins,
        guaranteed_profit=min(if_held_wins, if_hedge_wins),
        profit=better,
        profit_percent=_percent_of(better, position.initial_cost),
        risk_label=risk,
        description=(
            f"Hedge {label}% of your position. You keep some upside if your original "
            "pick wins, and add a safety net if it doesn't."
        ),
        hedge_shares=hedge_shares,
        hedge_price=hedge_price,
    )


def compute_strategies(
    position: Position,
    quote: Quote,
    opposite_quote: Quote | None,
    fees: FeeSchedule,
    *,
    partial_percents: tuple[Decimal, ...] = tuple(PARTIAL_HEDGE_LEVELS),
    expensive_threshold: Decimal = EXPENSIVE_HEDGE_THRESHOLD,
    tolerance: Decimal = PROFIT_TOLERANCE,
) -> StrategySet:
    """Price every strategy for one position and quote snapshot.

    Raises ``InvalidPosition`` before any calculation when the position is
    malformed, and ``ValueError`` when a quote price or fee rate is not a
    finite number or a rate is negative. Plain ints and floats are accepted
    and converted to ``Decimal``. A missing complementary quote does not
    raise: hedge entries come back as ``HedgeUnavailable``.
    """
    position = validate_position(position.side, position.shares, position.buy_price)
    quote = normalize_quote(quote, "quote")
    if opposite_quote is not None:
        opposite_quote = normalize_quote(opposite_quote, "opposite_quote")
    fees = normalize_fee_schedule(fees)
    expensive_threshold = Decimal(str(expensive_threshold))
    tolerance = Decimal(str(tolerance))

    anomalies = quote_anomalies(quote, "quote")
    if opposite_quote is not None:
        anomalies.extend(quote_anomalies(opposite_quote, "opposite_quote"))
    for problem in anomalies:
        log.warning("Degenerate quote: %s", problem)

    exit_result = calculate_exit(position, quote, fees)
    perfect = calculate_perfect_hedge(
        position,
        quote,
        opposite_quote,
        fees,
        expensive_threshold=expensive_threshold,
        tolerance=tolerance,
    )
    if isinstance(perfect, HedgeUnavailable):
        log.info("Hedge strategies unavailable: %s", perfect.reason)

    partials = {
        Decimal(pct): calculate_partial_hedge(position, opposite_quote, fees, pct)
        for pct in partial_percents
    }
    return StrategySet(
        exit=exit_result,
        perfect_hedge=perfect,
        partial_hedges=partials,
        recommended=recommend(exit_result, perfect),
        quote_warnings=tuple(anomalies),
    )
