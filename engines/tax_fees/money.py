"""
Tax & Fee Engine — Money Helpers
=================================
All amounts are decimal.Decimal at full precision.
Rounding to minor units happens only through quantize_money, at
display or persistence time, never between chained computations.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from core.config import DEFAULT_SETTINGS, FeeEngineSettings

ZERO = Decimal(0)
HUNDRED = Decimal(100)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a numeric input to Decimal without binary-float artefacts.

    Floats go through str() (0.1 → Decimal('0.1')). Booleans are refused
    because True would otherwise read as 1.
    """
    if isinstance(value, bool):
        raise TypeError("Booleans are not monetary values.")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"'{value}' is not a number.") from exc
    raise TypeError(f"Cannot use {type(value).__name__} as a monetary value.")


def finite_decimal(value: Any) -> Optional[Decimal]:
    """Return value as a finite Decimal, or None if it is not one."""
    try:
        amount = to_decimal(value)
    except (TypeError, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def quantize_money(amount: Decimal, settings: FeeEngineSettings = DEFAULT_SETTINGS) -> Decimal:
    """Round to currency minor units. Display / persistence only."""
    return amount.quantize(settings.money_exponent, rounding=settings.rounding)


def money_str(amount: Decimal, settings: FeeEngineSettings = DEFAULT_SETTINGS) -> str:
    return str(quantize_money(amount, settings))
