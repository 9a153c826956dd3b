"""Tests for the exit and hedge calculators."""

from decimal import Decimal

import pytest

from hedge_calculator.errors import InvalidPosition
from hedge_calculator.hedging import (
    RISK_CLOSED,
    RISK_LOCKED_LOSS,
    RISK_LOCKED_PROFIT,
    RISK_PARTIAL,
    calculate_exit,
    calculate_partial_hedge,
    calculate_perfect_hedge,
    compute_strategies,
    quote_anomalies,
)
from hedge_calculator.models import FeeSchedule, HedgeUnavailable, Position, Quote, Side, StrategyResult

EPS = Decimal("0.000001")


def _fees(taker: str = "0.05", transaction: str = "0.01") -> FeeSchedule:
    return FeeSchedule(
        maker_fee=Decimal("0.02"),
        taker_fee=Decimal(taker),
        transaction_fee=Decimal(transaction),
    )


def _position(side: Side = Side.YES, shares: str = "100", buy_price: str = "0.46") -> Position:
    return Position(side=side, shares=Decimal(shares), buy_price=Decimal(buy_price))


def _quote(yes_ask="0.55", yes_bid="0.54", no_ask="0.46", no_bid="0.45") -> Quote:
    return Quote(
        yes_ask=Decimal(yes_ask),
        yes_bid=Decimal(yes_bid),
        no_ask=Decimal(no_ask),
        no_bid=Decimal(no_bid),
    )


def _opposite(yes_ask="0.55", yes_bid="0.53") -> Quote:
    return _quote(yes_ask=yes_ask, yes_bid=yes_bid, no_ask="0.47", no_bid="0.45")


# ---------------------------------------------------------------------------
# Exit
# ---------------------------------------------------------------------------

def test_exit_sells_at_bid_after_fees():
    result = calculate_exit(_position(), _quote(), _fees())

    assert result.fees.taker == Decimal("2.70")
    assert result.fees.transaction == Decimal("0.54")
    assert result.fees.total == Decimal("3.24")
    assert result.profit == Decimal("4.76")
    assert result.guaranteed_profit == result.profit
    assert result.profit_if_side_a_wins == result.profit_if_side_b_wins == result.profit
    assert abs(result.profit_percent - Decimal("10.35")) < Decimal("0.01")
    assert result.risk_label == RISK_CLOSED
    assert result.action_description == "Sell 100 YES shares at $0.54"


def test_exit_no_side_uses_no_bid():
    position = _position(side=Side.NO, buy_price="0.40")
    result = calculate_exit(position, _quote(no_bid="0.45"), _fees("0", "0"))

    # 100 * 0.45 - 100 * 0.40
    assert result.profit == Decimal("5.00")
    assert "NO" in result.action_description


def test_exit_with_zero_bid_is_a_full_loss():
    result = calculate_exit(_position(), _quote(yes_bid="0"), _fees())

    assert result.fees.total == 0
    assert result.profit == Decimal("-46.00")
    assert result.profit_percent == Decimal("-100")


# ---------------------------------------------------------------------------
# Perfect hedge
# ---------------------------------------------------------------------------

def test_perfect_hedge_sizes_to_equalize_outcomes():
    result = calculate_perfect_hedge(_position(), _quote(), _opposite(), _fees())

    assert isinstance(result, StrategyResult)
    assert abs(result.cost - Decimal("35.48")) < Decimal("0.01")
    assert abs(result.hedge_shares - Decimal("64.516")) < Decimal("0.001")
    assert result.hedge_price == Decimal("0.55")
    assert abs(result.profit_if_side_a_wins - result.profit_if_side_b_wins) < EPS
    assert result.guaranteed_profit == min(result.profit_if_side_a_wins, result.profit_if_side_b_wins)
    assert result.guaranteed_profit > 0
    assert result.risk_label == RISK_LOCKED_PROFIT


def test_perfect_hedge_fees_are_charged_on_hedge_notional():
    result = calculate_perfect_hedge(_position(), _quote(), _opposite(), _fees())

    assert abs(result.fees.total - result.cost * Decimal("0.06")) < EPS


@pytest.mark.parametrize(
    "shares,buy_price,hedge_price,taker",
    [
        ("100", "0.46", "0.55", "0.05"),
        ("1", "0.01", "0.99", "0"),
        ("2500", "0.90", "0.07", "0.10"),
        ("37.5", "0.33", "0.33", "0.02"),
        ("10", "0.75", "1.20", "0.05"),
    ],
)
def test_perfect_hedge_equalization_holds_across_inputs(shares, buy_price, hedge_price, taker):
    result = calculate_perfect_hedge(
        _position(shares=shares, buy_price=buy_price),
        _quote(),
        _opposite(yes_ask=hedge_price),
        _fees(taker=taker),
    )

    assert abs(result.profit_if_side_a_wins - result.profit_if_side_b_wins) < EPS
    assert abs(
        result.profit_percent - result.guaranteed_profit / (Decimal(shares) * Decimal(buy_price)) * 100
    ) < EPS


def test_perfect_hedge_locking_a_loss_is_labelled():
    position = _position(buy_price="0.90")
    result = calculate_perfect_hedge(position, _quote(yes_bid="0.30"), _opposite(yes_ask="0.70"), _fees())

    assert result.guaranteed_profit < 0
    assert result.risk_label == RISK_LOCKED_LOSS
    assert "loss" in result.description
    assert any("lock in a loss" in w for w in result.warnings)
    assert any("hasn't moved in your favor" in w for w in result.warnings)


def test_perfect_hedge_flags_expensive_spread():
    result = calculate_perfect_hedge(_position(), _quote(yes_ask="0.56"), _opposite(yes_ask="0.55"), _fees())

    assert any("expensive" in w for w in result.warnings)


def test_perfect_hedge_no_warnings_for_cheap_hedge_in_profit():
    result = calculate_perfect_hedge(_position(), _quote(yes_ask="0.45"), _opposite(yes_ask="0.55"), _fees())

    assert result.warnings == ()


def test_no_holder_spread_check_uses_no_ask():
    # A NO holder hedges with YES in the same market, so the pair is no_ask + yes_ask.
    position = _position(side=Side.NO, buy_price="0.30")
    quote = _quote(yes_ask="0.60", yes_bid="0.58", no_ask="0.42", no_bid="0.40")

    result = calculate_perfect_hedge(position, quote, quote, _fees())

    assert result.hedge_price == Decimal("0.60")
    assert result.guaranteed_profit > 0
    assert result.warnings == ()


def test_no_holder_wide_spread_is_flagged():
    position = _position(side=Side.NO, buy_price="0.30")
    quote = _quote(yes_ask="0.60", yes_bid="0.58", no_ask="0.50", no_bid="0.40")

    result = calculate_perfect_hedge(position, quote, quote, _fees())

    assert any("expensive" in w for w in result.warnings)


def test_perfect_hedge_unavailable_without_opposite_quote():
    result = calculate_perfect_hedge(_position(), _quote(), None, _fees())

    assert isinstance(result, HedgeUnavailable)
    assert result.reason


def test_perfect_hedge_unavailable_with_zero_hedge_price():
    result = calculate_perfect_hedge(_position(), _quote(), _opposite(yes_ask="0"), _fees())

    assert isinstance(result, HedgeUnavailable)
    assert "YES ask" in result.reason


# ---------------------------------------------------------------------------
# Partial hedge
# ---------------------------------------------------------------------------

def test_partial_hedge_at_100_matches_perfect_hedge():
    perfect = calculate_perfect_hedge(_position(), _quote(), _opposite(), _fees())
    partial = calculate_partial_hedge(_position(), _opposite(), _fees(), 100)

    assert abs(partial.hedge_shares - perfect.hedge_shares) < EPS
    assert abs(partial.cost - perfect.cost) < EPS
    assert abs(partial.profit_if_side_a_wins - perfect.profit_if_side_a_wins) < EPS
    assert abs(partial.profit_if_side_b_wins - perfect.profit_if_side_b_wins) < EPS
    assert partial.risk_label == RISK_LOCKED_PROFIT


def test_partial_hedge_at_zero_is_the_unhedged_position():
    partial = calculate_partial_hedge(_position(), _opposite(), _fees(), 0)

    assert partial.cost == 0
    assert partial.fees.total == 0
    assert partial.profit_if_side_a_wins == Decimal("54.00")
    assert partial.profit_if_side_b_wins == Decimal("-46.00")
    assert partial.profit == Decimal("54.00")


def test_partial_hedge_scales_perfect_size_and_keeps_upside():
    perfect = calculate_perfect_hedge(_position(), _quote(), _opposite(), _fees())
    partial = calculate_partial_hedge(_position(), _opposite(), _fees(), 50)

    assert abs(partial.hedge_shares - perfect.hedge_shares / 2) < EPS
    assert abs(partial.fees.total - perfect.fees.total / 2) < EPS
    assert partial.profit_if_side_a_wins > perfect.profit_if_side_a_wins
    assert partial.profit_if_side_b_wins < perfect.profit_if_side_b_wins
    assert partial.profit == max(partial.profit_if_side_a_wins, partial.profit_if_side_b_wins)
    assert partial.guaranteed_profit == min(partial.profit_if_side_a_wins, partial.profit_if_side_b_wins)
    assert partial.risk_label == RISK_PARTIAL
    assert partial.name == "Partial Hedge (50%)"


def test_partial_hedge_accepts_fractional_percent():
    partial = calculate_partial_hedge(_position(), _opposite(), _fees(), Decimal("12.5"))

    assert partial.name == "Partial Hedge (12.5%)"


@pytest.mark.parametrize("percent", [-1, 101])
def test_partial_hedge_rejects_out_of_range_percent(percent):
    with pytest.raises(ValueError):
        calculate_partial_hedge(_position(), _opposite(), _fees(), percent)


def test_partial_hedge_unavailable_without_opposite_quote():
    assert isinstance(calculate_partial_hedge(_position(), None, _fees(), 50), HedgeUnavailable)


# ---------------------------------------------------------------------------
# Fees
# ---------------------------------------------------------------------------

def _fee_dependent_figures(strategies):
    figures = [strategies.exit.profit, strategies.perfect_hedge.guaranteed_profit]
    for result in strategies.partial_hedges.values():
        figures += [result.profit_if_side_a_wins, result.profit_if_side_b_wins]
    return figures


def test_raising_fees_never_raises_profit():
    low = compute_strategies(_position(), _quote(), _opposite(), _fees("0.01", "0.00"))
    mid = compute_strategies(_position(), _quote(), _opposite(), _fees("0.05", "0.01"))
    high = compute_strategies(_position(), _quote(), _opposite(), _fees("0.10", "0.03"))

    for a, b, c in zip(
        _fee_dependent_figures(low), _fee_dependent_figures(mid), _fee_dependent_figures(high)
    ):
        assert a > b > c


def test_fees_are_never_negative():
    strategies = compute_strategies(_position(), _quote(yes_bid="-0.10"), _opposite(), _fees())

    assert strategies.exit.fees.total == 0
    assert strategies.perfect_hedge.fees.total >= 0
    for result in strategies.partial_hedges.values():
        assert result.fees.total >= 0


def test_negative_fee_rate_is_rejected():
    with pytest.raises(ValueError):
        compute_strategies(_position(), _quote(), _opposite(), _fees(taker="-0.01"))


# ---------------------------------------------------------------------------
# compute_strategies
# ---------------------------------------------------------------------------

def test_compute_strategies_builds_full_set():
    strategies = compute_strategies(_position(), _quote(), _opposite(), _fees())

    assert strategies.hedge_available
    assert strategies.exit.profit == Decimal("4.76")
    assert list(strategies.partial_hedges) == [Decimal("80"), Decimal("50"), Decimal("25")]
    assert strategies.partial_hedge(80).name == "Partial Hedge (80%)"
    assert strategies.recommended is strategies.perfect_hedge
    assert strategies.quote_warnings == ()


def test_compute_strategies_custom_percents():
    strategies = compute_strategies(
        _position(), _quote(), _opposite(), _fees(), partial_percents=(Decimal("100"), Decimal("10"))
    )

    assert set(strategies.partial_hedges) == {Decimal("100"), Decimal("10")}


def test_compute_strategies_without_opposite_quote_still_exits():
    strategies = compute_strategies(_position(), _quote(), None, _fees())

    assert not strategies.hedge_available
    assert isinstance(strategies.perfect_hedge, HedgeUnavailable)
    assert all(isinstance(r, HedgeUnavailable) for r in strategies.partial_hedges.values())
    assert strategies.exit.profit == Decimal("4.76")
    assert strategies.recommended is strategies.exit


@pytest.mark.parametrize(
    "position,field",
    [
        (Position(side=Side.YES, shares=Decimal("100"), buy_price=Decimal("1.0")), "buy_price"),
        (Position(side=Side.YES, shares=Decimal("100"), buy_price=Decimal("0")), "buy_price"),
        (Position(side=Side.YES, shares=Decimal("0"), buy_price=Decimal("0.5")), "shares"),
        (Position(side=Side.YES, shares=Decimal("-3"), buy_price=Decimal("0.5")), "shares"),
        (Position(side="MAYBE", shares=Decimal("10"), buy_price=Decimal("0.5")), "side"),
    ],
)
def test_compute_strategies_rejects_invalid_position(position, field):
    with pytest.raises(InvalidPosition) as excinfo:
        compute_strategies(position, _quote(), _opposite(), _fees())

    assert excinfo.value.field == field


def test_degenerate_quotes_are_reported_not_raised(caplog):
    quote = _quote(yes_ask="0.40", yes_bid="0.60", no_ask="1.2", no_bid="0")
    with caplog.at_level("WARNING", logger="hedge_calculator.hedging"):
        strategies = compute_strategies(_position(), quote, _opposite(), _fees())

    assert strategies.exit.profit == Decimal("100") * Decimal("0.60") * Decimal("0.94") - Decimal("46")
    assert any("yes_ask" in w and "below" in w for w in strategies.quote_warnings)
    assert any("no_ask" in w and "outside" in w for w in strategies.quote_warnings)
    assert "Degenerate quote" in caplog.text


def test_quote_anomalies_clean_quote():
    assert quote_anomalies(_quote()) == []


def test_compute_strategies_accepts_float_inputs():
    strategies = compute_strategies(
        Position(side=Side.YES, shares=100, buy_price=0.46),
        Quote(yes_ask=0.55, yes_bid=0.54, no_ask=0.46, no_bid=0.45),
        Quote(yes_ask=0.55, yes_bid=0.53, no_ask=0.47, no_bid=0.45),
        FeeSchedule(taker_fee=0.05, transaction_fee=0.01),
        expensive_threshold=1.05,
        tolerance=0.01,
    )
    expected = compute_strategies(_position(), _quote(), _opposite(), _fees())

    assert strategies.exit.profit == expected.exit.profit == Decimal("4.76")
    assert strategies.perfect_hedge.guaranteed_profit == expected.perfect_hedge.guaranteed_profit
    assert strategies.partial_hedge(50).profit == expected.partial_hedge(50).profit


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), Decimal("NaN"), Decimal("-Infinity"), "n/a"])
def test_compute_strategies_rejects_unpriceable_quote(bad):
    quote = Quote(yes_ask=Decimal("0.55"), yes_bid=bad, no_ask=Decimal("0.46"), no_bid=Decimal("0.45"))

    with pytest.raises(ValueError, match="quote.yes_bid"):
        compute_strategies(_position(), quote, _opposite(), _fees())


def test_compute_strategies_rejects_non_finite_fee():
    with pytest.raises(ValueError, match="taker_fee"):
        compute_strategies(_position(), _quote(), _opposite(), FeeSchedule(taker_fee=float("inf")))
