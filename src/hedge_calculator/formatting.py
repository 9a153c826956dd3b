"""Plain-English rendering of strategy results."""

from __future__ import annotations

from decimal import Decimal

from hedge_calculator.models import Position, StrategyResult


def format_currency(amount: Decimal) -> str:
    """Absolute dollar amount; callers say "profit" or "loss" themselves."""
    return f"${abs(amount):.2f}"


def format_percent(percent: Decimal) -> str:
    sign = "+" if percent >= 0 else ""
    return f"{sign}{percent:.1f}%"


def _exit_explanation(result: StrategyResult, position: Position) -> str:
    if result.profit >= 0:
        outcome = f"Result: {format_currency(result.profit)} profit ({format_percent(result.profit_percent)})."
    else:
        outcome = f"Result: {format_currency(result.profit)} loss (stops further downside)."
    return "\n".join(
        [
            "What it is:",
            f"  - Sell all your {position.shares} {position.side.value} shares now.",
            "When to use:",
            "  - You want cash now and zero risk.",
            "  - You don't want to watch the market anymore.",
            "Why it helps:",
            "  - Locks in today's result (profit or loss) immediately.",
            "What to do:",
            f"  - Place a sell order for {position.shares} {position.side.value} at the current bid.",
            f"  {outcome}",
        ]
    )


def _perfect_hedge_explanation(result: StrategyResult) -> str:
    price = result.hedge_price or Decimal("0")
    lines = [
        "What it is:",
        f"  - Buy {result.hedge_shares:.0f} YES shares in the opposite market "
        f"for {format_currency(result.cost)}.",
        "  - This makes your profit the SAME no matter who wins.",
        "When to use:",
        "  - You want a sure outcome with no more guessing.",
        "  - Prices have moved in your favor and you want to lock it in.",
        "Why it helps:",
        "  - Removes all risk. Your profit becomes fixed today.",
    ]
    for warning in result.warnings:
        lines.append(f"Heads up: {warning}")
    lines += [
        "What to do:",
        f"  - Buy {result.hedge_shares:.0f} YES at about ${price:.2f} each.",
        f"  - Your profit either way is about {format_currency(result.guaranteed_profit)} after fees.",
    ]
    return "\n".join(lines)


def _partial_hedge_explanation(result: StrategyResult) -> str:
    price = result.hedge_price or Decimal("0")
    pct = result.name.split("(", 1)[-1].rstrip("%)") if "(" in result.name else "some"
    return "\n".join(
        [
            "What it is:",
            f"  - Hedge {pct}% of your position by buying the opposite side.",
            "When to use:",
            "  - You want protection but still want upside if your original pick wins.",
            "Why it helps:",
            "  - Smooths out outcomes: smaller loss if wrong, some profit if right.",
            "What to do:",
            f"  - Buy {result.hedge_shares:.0f} YES at about ${price:.2f} each.",
            f"  - If your original side wins: profit about ${result.profit_if_side_a_wins:+.2f}",
            f"  - If the hedge wins: profit about ${result.profit_if_side_b_wins:+.2f}",
        ]
    )


def explain_strategy(result: StrategyResult, position: Position) -> str:
    if result.name == "Simple Exit":
        return _exit_explanation(result, position)
    if result.name == "Perfect Hedge":
        return _perfect_hedge_explanation(result)
    return _partial_hedge_explanation(result)
