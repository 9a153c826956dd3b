from __future__ import annotations

from decimal import Decimal

from hedge_calculator.models import FeeBreakdown, FeeSchedule


def apply_fees(notional: Decimal, schedule: FeeSchedule) -> FeeBreakdown:
    """Fees charged on one liquidity-taking trade leg.

    The maker rate is carried on the schedule for display only.
    """
    if notional < 0:
        notional = Decimal("0")
    taker = notional * schedule.taker_fee
    transaction = notional * schedule.transaction_fee
    return FeeBreakdown(taker=taker, transaction=transaction, total=taker + transaction)
