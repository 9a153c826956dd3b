from decimal import Decimal

import pytest

from hedge_calculator.errors import InvalidPosition
from hedge_calculator.models import FeeSchedule, Quote, Side
from hedge_calculator.sizing import (
    contracts_to_dollars,
    dollars_to_contracts,
    normalize_fee_schedule,
    normalize_quote,
    position_from_dollars,
    validate_fee_schedule,
    validate_position,
)


def test_dollars_to_contracts_rounds_down():
    contracts = dollars_to_contracts(Decimal("100"), Decimal("0.46"))

    assert contracts == 217
    assert contracts_to_dollars(contracts, Decimal("0.46")) <= Decimal("100")


def test_dollars_to_contracts_exact_division():
    assert dollars_to_contracts(Decimal("46"), Decimal("0.46")) == 100


def test_dollars_to_contracts_non_positive_price_buys_nothing():
    assert dollars_to_contracts(Decimal("50"), Decimal("0")) == 0
    assert contracts_to_dollars(Decimal("50"), Decimal("-1")) == 0


def test_contracts_to_dollars_round_trips_for_real_shares():
    shares = Decimal("123.75")
    price = Decimal("0.37")

    dollars = contracts_to_dollars(shares, price)

    assert dollars / price == shares


def test_validate_position_coerces_inputs():
    position = validate_position(" yes ", 100, "0.46")

    assert position.side is Side.YES
    assert position.shares == Decimal("100")
    assert position.buy_price == Decimal("0.46")
    assert position.initial_cost == Decimal("46.00")


@pytest.mark.parametrize(
    "side,shares,price,field",
    [
        ("UP", 10, "0.5", "side"),
        ("NO", 0, "0.5", "shares"),
        ("NO", "abc", "0.5", "shares"),
        ("NO", "nan", "0.5", "shares"),
        ("NO", 10, "1.0", "buy_price"),
        ("NO", 10, "0", "buy_price"),
        ("NO", 10, "-0.2", "buy_price"),
    ],
)
def test_validate_position_names_failing_field(side, shares, price, field):
    with pytest.raises(InvalidPosition) as excinfo:
        validate_position(side, shares, price)

    assert excinfo.value.field == field
    assert field in str(excinfo.value)


def test_position_from_dollars_converts_to_whole_contracts():
    position = position_from_dollars("NO", "25", "0.30")

    assert position.side is Side.NO
    assert position.shares == 83
    assert position.initial_cost <= Decimal("25")


def test_position_from_dollars_too_small_to_buy_anything():
    with pytest.raises(InvalidPosition) as excinfo:
        position_from_dollars("YES", "0.20", "0.46")

    assert excinfo.value.field == "dollars"


def test_validate_fee_schedule_rejects_negative_rate():
    with pytest.raises(ValueError, match="transaction_fee"):
        validate_fee_schedule(FeeSchedule(transaction_fee=Decimal("-0.01")))


def test_normalize_quote_converts_floats_through_str():
    quote = normalize_quote(Quote(yes_ask=0.55, yes_bid=0.54, no_ask=1, no_bid="0.45"))

    assert quote == Quote(
        yes_ask=Decimal("0.55"), yes_bid=Decimal("0.54"), no_ask=Decimal("1"), no_bid=Decimal("0.45")
    )


def test_normalize_quote_keeps_out_of_range_prices():
    quote = normalize_quote(Quote(yes_ask=Decimal("1.2"), yes_bid=0, no_ask=-0.1, no_bid=0))

    assert quote.yes_ask == Decimal("1.2")
    assert quote.no_ask == Decimal("-0.1")


def test_normalize_quote_names_the_bad_field():
    with pytest.raises(ValueError, match="opposite_quote.no_ask"):
        normalize_quote(Quote(yes_ask=0.5, yes_bid=0.5, no_ask=float("inf"), no_bid=0.5), "opposite_quote")


def test_normalize_fee_schedule_keeps_source_and_checks_sign():
    fees = normalize_fee_schedule(FeeSchedule(taker_fee=0.07, transaction_fee=0, source="kalshi"))

    assert fees.taker_fee == Decimal("0.07")
    assert fees.transaction_fee == Decimal("0")
    assert fees.source == "kalshi"
    with pytest.raises(ValueError, match="maker_fee"):
        normalize_fee_schedule(FeeSchedule(maker_fee=-0.01))
