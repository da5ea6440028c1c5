"""
Deal Desk Core Config — Fee Engine Settings
============================================
Doctrine: No hardcoded jurisdiction data in engine logic.
Rates and conditions live in the rule catalog. This module only
carries the few engine-wide knobs: how taxes are recognised by name
and how money is rounded for display/persistence.

Values come from Django settings (settings.TAX_FEES) when Django is
configured, otherwise the defaults below.
"""

from __future__ import annotations

import decimal
import os
from dataclasses import dataclass
from typing import Any, Mapping, Tuple

DEFAULT_TAX_NAME_KEYWORDS: Tuple[str, ...] = ("tax", "sales")
DEFAULT_CURRENCY_DECIMALS = 2
DEFAULT_ROUNDING = decimal.ROUND_HALF_UP

_VALID_ROUNDING = frozenset({
    decimal.ROUND_HALF_UP,
    decimal.ROUND_HALF_EVEN,
    decimal.ROUND_HALF_DOWN,
    decimal.ROUND_DOWN,
    decimal.ROUND_UP,
})


@dataclass(frozen=True)
class FeeEngineSettings:
    """
    Engine-wide settings.

    tax_name_keywords: case-insensitive substrings that classify a fee
                       as a tax in the deal rollup.
    currency_decimals: minor-unit precision used by quantize_money.
    rounding:          decimal rounding mode used by quantize_money.
    """

    tax_name_keywords: Tuple[str, ...] = DEFAULT_TAX_NAME_KEYWORDS
    currency_decimals: int = DEFAULT_CURRENCY_DECIMALS
    rounding: str = DEFAULT_ROUNDING

    def __post_init__(self) -> None:
        if not self.tax_name_keywords:
            raise ValueError("tax_name_keywords must not be empty.")
        if any(not k or k != k.lower() for k in self.tax_name_keywords):
            raise ValueError("tax_name_keywords must be non-empty lowercase strings.")
        if not isinstance(self.currency_decimals, int) or not 0 <= self.currency_decimals <= 6:
            raise ValueError("currency_decimals must be an integer between 0 and 6.")
        if self.rounding not in _VALID_ROUNDING:
            raise ValueError(f"rounding '{self.rounding}' is not a supported decimal mode.")

    @property
    def money_exponent(self) -> decimal.Decimal:
        return decimal.Decimal(1).scaleb(-self.currency_decimals)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FeeEngineSettings:
        return cls(
            tax_name_keywords=tuple(
                str(k).lower() for k in data.get("TAX_NAME_KEYWORDS", DEFAULT_TAX_NAME_KEYWORDS)
            ),
            currency_decimals=int(data.get("CURRENCY_DECIMALS", DEFAULT_CURRENCY_DECIMALS)),
            rounding=data.get("ROUNDING", DEFAULT_ROUNDING),
        )

    @classmethod
    def from_django(cls) -> FeeEngineSettings:
        """Read settings.TAX_FEES; fall back to defaults outside Django."""
        from django.conf import settings

        if not settings.configured and not os.environ.get("DJANGO_SETTINGS_MODULE"):
            return cls()
        return cls.from_mapping(getattr(settings, "TAX_FEES", {}))


DEFAULT_SETTINGS = FeeEngineSettings()
