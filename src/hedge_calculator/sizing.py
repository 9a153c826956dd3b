"""Position validation and dollar/contract conversion.

Contracts are the only size unit the engine understands. Dollar amounts are
converted here, at the boundary, before a ``Position`` is built.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from hedge_calculator.errors import InvalidPosition
from hedge_calculator.models import FeeSchedule, Position, Quote, Side

_QUOTE_FIELDS = ("yes_ask", "yes_bid", "no_ask", "no_bid")
_FEE_FIELDS = ("maker_fee", "taker_fee", "transaction_fee")


def _to_decimal(value: object, field: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidPosition(field, f"not a number: {value!r}") from None
    if not result.is_finite():
        raise InvalidPosition(field, f"not a finite number: {value!r}")
    return result


def dollars_to_contracts(dollars: Decimal, price: Decimal) -> Decimal:
    """Whole contracts affordable with ``dollars`` at ``price``.

    Rounds down, so the spend never exceeds ``dollars``. A non-positive price
    buys nothing.
    """
    if price <= 0 or dollars <= 0:
        return Decimal("0")
    return (dollars / price).quantize(Decimal("1"), rounding=ROUND_FLOOR)


def contracts_to_dollars(contracts: Decimal, price: Decimal) -> Decimal:
    if price <= 0:
        return Decimal("0")
    return contracts * price


def validate_position(side: object, shares: object, buy_price: object) -> Position:
    """Build a ``Position`` or raise ``InvalidPosition`` naming the bad field."""
    if isinstance(side, Side):
        parsed_side = side
    else:
        try:
            parsed_side = Side(str(side).strip().upper())
        except ValueError:
            raise InvalidPosition("side", f"must be YES or NO, got {side!r}") from None

    parsed_shares = _to_decimal(shares, "shares")
    if parsed_shares <= 0:
        raise InvalidPosition("shares", "number of shares must be greater than 0")

    parsed_price = _to_decimal(buy_price, "buy_price")
    if parsed_price <= 0 or parsed_price >= 1:
        raise InvalidPosition("buy_price", "buy price must be between $0.01 and $0.99")

    return Position(side=parsed_side, shares=parsed_shares, buy_price=parsed_price)


def position_from_dollars(side: object, dollars: object, buy_price: object) -> Position:
    """Validate a dollar-denominated position and convert it to contracts."""
    amount = _to_decimal(dollars, "dollars")
    if amount <= 0:
        raise InvalidPosition("dollars", "dollar amount must be greater than 0")
    price = _to_decimal(buy_price, "buy_price")
    if price <= 0 or price >= 1:
        raise InvalidPosition("buy_price", "buy price must be between $0.01 and $0.99")
    contracts = dollars_to_contracts(amount, price)
    if contracts <= 0:
        raise InvalidPosition("dollars", f"${amount} buys no contracts at {price}")
    return validate_position(side, contracts, price)


def _finite_decimal(value: object, name: str) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"{name} is not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return result


def normalize_quote(quote: Quote, label: str = "quote") -> Quote:
    """Return ``quote`` with every price as a finite ``Decimal``.

    Floats go through ``str`` so 0.55 stays 0.55. Out-of-range prices are
    left alone; only values that cannot be priced at all raise ``ValueError``.
    """
    return Quote(
        **{name: _finite_decimal(getattr(quote, name), f"{label}.{name}") for name in _QUOTE_FIELDS}
    )


def normalize_fee_schedule(schedule: FeeSchedule) -> FeeSchedule:
    normalized = FeeSchedule(
        **{name: _finite_decimal(getattr(schedule, name), name) for name in _FEE_FIELDS},
        source=schedule.source,
    )
    validate_fee_schedule(normalized)
    return normalized


def validate_fee_schedule(schedule: FeeSchedule) -> None:
    for name in _FEE_FIELDS:
        rate = getattr(schedule, name)
        if rate < 0:
            raise ValueError(f"{name} must be non-negative, got {rate}")
