"""
Tax & Fee Engine — Line Calculator
===================================
Turns an applicable line into an amount.

    percent + vehicle_subtotal  → base_amount × rate / 100
    fixed                       → rate_or_amount (base ignored)
    anything else               → 0

Total function: never raises for a well-formed line, never rounds.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from engines.tax_fees.catalog import BASE_VEHICLE_SUBTOTAL, CalcType
from engines.tax_fees.money import HUNDRED, ZERO, to_decimal

logger = logging.getLogger("dealdesk.tax_fees")


def compute(line: Any, base_amount: Decimal) -> Decimal:
    """
    Compute the unrounded amount for `line`.

    `line` is anything exposing calc_type, base and rate_or_amount
    (RuleLine when previewing, DealFee when overriding/recalculating).
    """
    calc_type = line.calc_type
    if calc_type is CalcType.PERCENT and line.base == BASE_VEHICLE_SUBTOTAL:
        return to_decimal(base_amount) * line.rate_or_amount / HUNDRED
    if calc_type is CalcType.FIXED:
        return line.rate_or_amount

    logger.debug(
        f"No calculation for calc_type={calc_type.value} base={line.base}; "
        f"'{getattr(line, 'name', '?')}' computes to 0"
    )
    return ZERO


def resolve_base(base: str, vehicle_subtotal: Decimal) -> Decimal:
    """Amount a base identifier refers to; unknown bases have none."""
    if base == BASE_VEHICLE_SUBTOTAL:
        return vehicle_subtotal
    return ZERO
