from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal, InvalidOperation

from rich.console import Console
from rich.table import Table

from hedge_calculator.config import Settings, default_fee_schedule, load_settings
from hedge_calculator.errors import InvalidPosition, MarketDataError
from hedge_calculator.formatting import explain_strategy, format_currency, format_percent
from hedge_calculator.hedging import PARTIAL_HEDGE_LEVELS, compute_strategies
from hedge_calculator.log_config import setup_logging
from hedge_calculator.markets import (
    MarketMetadata,
    hedge_instrument_quote,
    implied_probabilities,
    resolve_quotes,
)
from hedge_calculator.models import HedgeUnavailable, Position, Quote, StrategyResult, StrategySet
from hedge_calculator.sizing import contracts_to_dollars, position_from_dollars, validate_position

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hedge-calculator",
        description="Compare exit and hedge strategies for a binary prediction-market position.",
    )
    parser.add_argument("--url", help="Kalshi or Polymarket market URL to fetch quotes from")
    parser.add_argument("--team", help="Outcome/team name to select within a Kalshi event")
    parser.add_argument("--side", required=True, help="YES or NO")
    size = parser.add_mutually_exclusive_group(required=True)
    size.add_argument("--shares", help="Position size in contracts")
    size.add_argument("--dollars", help="Position size in dollars (rounded down to contracts)")
    parser.add_argument("--buy-price", required=True, help="Entry price per share, e.g. 0.46")

    manual = parser.add_argument_group("manual quotes (used when --url is omitted)")
    manual.add_argument("--yes-ask", default="0")
    manual.add_argument("--yes-bid", default="0")
    manual.add_argument("--no-ask", default="0")
    manual.add_argument("--no-bid", default="0")
    manual.add_argument("--opposite-yes-ask", help="YES ask in the complementary market")
    manual.add_argument("--opposite-yes-bid", default="0")

    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--explain", action="store_true", help="Print a plain-English walkthrough")
    return parser


def _position_from_args(args: argparse.Namespace) -> Position:
    if args.dollars is not None:
        return position_from_dollars(args.side, args.dollars, args.buy_price)
    return validate_position(args.side, args.shares, args.buy_price)


def _price_arg(raw: str, flag: str) -> Decimal:
    try:
        price = Decimal(raw.strip())
    except InvalidOperation:
        raise ValueError(f"{flag} must be a number, got {raw!r}") from None
    if not price.is_finite():
        raise ValueError(f"{flag} must be a finite number, got {raw!r}")
    return price


def _manual_quotes(args: argparse.Namespace) -> tuple[Quote, Quote | None]:
    quote = Quote(
        yes_ask=_price_arg(args.yes_ask, "--yes-ask"),
        yes_bid=_price_arg(args.yes_bid, "--yes-bid"),
        no_ask=_price_arg(args.no_ask, "--no-ask"),
        no_bid=_price_arg(args.no_bid, "--no-bid"),
    )
    if args.opposite_yes_ask is None:
        return quote, None
    opposite_yes_ask = _price_arg(args.opposite_yes_ask, "--opposite-yes-ask")
    opposite_yes_bid = _price_arg(args.opposite_yes_bid, "--opposite-yes-bid")
    opposite = Quote(
        yes_ask=opposite_yes_ask,
        yes_bid=opposite_yes_bid,
        no_ask=Decimal("1") - opposite_yes_bid,
        no_bid=Decimal("1") - opposite_yes_ask,
    )
    return quote, opposite


def _row(result: StrategyResult, label: str = "") -> list[str]:
    return [
        f"{result.name} {label}".strip(),
        result.action_description,
        format_currency(result.fees.total),
        f"{result.profit_if_side_a_wins:+.2f}",
        f"{result.profit_if_side_b_wins:+.2f}",
        f"{result.guaranteed_profit:+.2f}",
        format_percent(result.profit_percent),
        result.risk_label,
    ]


def render(
    console: Console,
    position: Position,
    strategies: StrategySet,
    metadata: MarketMetadata | None = None,
    quote: Quote | None = None,
) -> None:
    if metadata is not None:
        console.print(f"[bold]{metadata.platform}[/bold]: {metadata.title}")
    if quote is not None:
        yes_pct, no_pct = implied_probabilities(quote)
        console.print(f"Implied odds: YES {yes_pct}% / NO {no_pct}%")
    console.print(
        f"Position: {position.shares} {position.side.value} @ ${position.buy_price:.2f} "
        f"({format_currency(contracts_to_dollars(position.shares, position.buy_price))} invested)"
    )

    table = Table(title="Exit and hedge strategies")
    for column in (
        "Strategy", "Action", "Fees", "If held side wins", "If hedge wins",
        "Guaranteed", "Return", "Risk",
    ):
        table.add_column(column, no_wrap=column == "Strategy")

    table.add_row(*_row(strategies.exit))
    rows = [("Perfect Hedge", "", strategies.perfect_hedge)]
    for pct, entry in strategies.partial_hedges.items():
        rows.append((f"Partial Hedge ({pct}%)", PARTIAL_HEDGE_LEVELS.get(pct, ""), entry))
    for name, label, entry in rows:
        if isinstance(entry, HedgeUnavailable):
            table.add_row(name, f"unavailable: {entry.reason}", "", "", "", "", "", "")
        else:
            table.add_row(*_row(entry, label))
    console.print(table)

    if strategies.recommended is not None:
        console.print(f"Recommended: [bold]{strategies.recommended.name}[/bold]")
    for warning in strategies.quote_warnings:
        console.print(f"[yellow]Quote warning:[/yellow] {warning}")
    if isinstance(strategies.perfect_hedge, StrategyResult):
        for warning in strategies.perfect_hedge.warnings:
            console.print(f"[yellow]Heads up:[/yellow] {warning}")


def run(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    try:
        position = _position_from_args(args)
    except InvalidPosition as e:
        log.error("Invalid position (%s): %s", e.field, e.message)
        return 2

    metadata = None
    if args.url:
        try:
            resolved = resolve_quotes(args.url, args.team, settings=settings)
        except MarketDataError as e:
            log.error("%s", e)
            return 1
        quote, opposite, fees, metadata = (
            resolved.quote, resolved.opposite_quote, resolved.fees, resolved.metadata
        )
    else:
        try:
            quote, opposite = _manual_quotes(args)
        except ValueError as e:
            log.error("Invalid quote: %s", e)
            return 2
        fees = default_fee_schedule(settings)

    try:
        strategies = compute_strategies(
            position,
            quote,
            hedge_instrument_quote(position.side, quote, opposite),
            fees,
            partial_percents=settings.partial_hedge_percents,
            expensive_threshold=settings.expensive_hedge_threshold,
            tolerance=settings.profit_tolerance,
        )
    except ValueError as e:
        log.error("Cannot price strategies: %s", e)
        return 2
    render(console, position, strategies, metadata, quote)

    if args.explain:
        results = [strategies.exit, strategies.perfect_hedge, *strategies.partial_hedges.values()]
        for result in results:
            if isinstance(result, StrategyResult):
                console.rule(result.name)
                console.print(explain_strategy(result, position))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.env_file)
    setup_logging(settings.log_level, log_to_file=settings.log_to_file, log_dir=settings.log_dir)
    return run(args, settings, Console())


if __name__ == "__main__":
    sys.exit(main())
