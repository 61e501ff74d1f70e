"""
Rental pricing rules.

Amounts are ``Decimal`` rounded to cents with ``ROUND_HALF_UP``. Long
rentals get cumulative discounts: 10% from 7 days, then a further 20% on
the discounted figure from 30 days.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from .conf import get_setting

CENTS = Decimal("0.01")
SECONDS_PER_DAY = 24 * 60 * 60

WEEKLY_DISCOUNT_DAYS = 7
WEEKLY_DISCOUNT = Decimal("0.9")
MONTHLY_DISCOUNT_DAYS = 30
MONTHLY_DISCOUNT = Decimal("0.8")


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def rental_days(start: datetime, end: datetime) -> int:
    """Number of billable days, any started day counts as a whole one."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def total_amount(days: int, daily_rate: Decimal | int | str) -> Decimal:
    total = Decimal(days) * Decimal(daily_rate)
    if days >= WEEKLY_DISCOUNT_DAYS:
        total *= WEEKLY_DISCOUNT
    if days >= MONTHLY_DISCOUNT_DAYS:
        total *= MONTHLY_DISCOUNT
    return _to_cents(total)


def late_fee(scheduled_end: datetime, actual_return: datetime) -> Decimal:
    if actual_return <= scheduled_end:
        return _to_cents(Decimal(0))
    days_late = rental_days(scheduled_end, actual_return)
    return _to_cents(days_late * Decimal(get_setting("LATE_FEE_PER_DAY")))
