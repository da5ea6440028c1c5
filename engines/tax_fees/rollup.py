"""
Tax & Fee Engine — Deal Rollup
===============================
Pure aggregation of deal units and committed fees into deal totals.

    subtotal        = Σ unit agreed prices
    discounts_total = -Σ |discount fees|            (always <= 0)
    tax_total       = Σ tax-classified fees
    fees_total      = Σ remaining fees
    total_due       = subtotal + fees_total + tax_total + discounts_total
    commission_base = total_due

Only fees with applies=True count. Nothing is cached: callers re-run
compute_totals after every unit or fee mutation.

Classification order: kind == discount first, then the name heuristic
(case-insensitive "tax" / "sales" substring), then everything else.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable

from core.config import DEFAULT_SETTINGS, FeeEngineSettings
from engines.tax_fees.catalog import FeeKind
from engines.tax_fees.money import ZERO, quantize_money


class FeeClass(Enum):
    TAX = "tax"
    DISCOUNT = "discount"
    FEE = "fee"


def is_tax_name(name: str, settings: FeeEngineSettings = DEFAULT_SETTINGS) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in settings.tax_name_keywords)


def classify_fee(fee: Any, settings: FeeEngineSettings = DEFAULT_SETTINGS) -> FeeClass:
    """fee: anything with `name` and `kind` (DealFee, PreviewLine)."""
    if fee.kind is FeeKind.DISCOUNT:
        return FeeClass.DISCOUNT
    if is_tax_name(fee.name, settings):
        return FeeClass.TAX
    return FeeClass.FEE


def units_subtotal(deal_units: Iterable[Any]) -> Decimal:
    """Vehicle subtotal: sum of agreed unit prices."""
    return sum((u.agreed_unit_price for u in deal_units), ZERO)


# ══════════════════════════════════════════════════════════════
# DEAL TOTALS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DealTotals:
    subtotal: Decimal
    discounts_total: Decimal
    fees_total: Decimal
    tax_total: Decimal
    total_due: Decimal
    commission_base: Decimal

    def rounded(self, settings: FeeEngineSettings = DEFAULT_SETTINGS) -> DealTotals:
        """Display copy rounded to currency minor units."""
        return DealTotals(**{
            f.name: quantize_money(getattr(self, f.name), settings) for f in fields(self)
        })

    def to_dict(self) -> Dict[str, str]:
        return {f.name: str(getattr(self, f.name)) for f in fields(self)}


def compute_totals(
    deal_units: Iterable[Any],
    deal_fees: Iterable[Any],
    settings: FeeEngineSettings = DEFAULT_SETTINGS,
) -> DealTotals:
    subtotal = units_subtotal(deal_units)

    discounts = ZERO
    fees_total = ZERO
    tax_total = ZERO
    for fee in deal_fees:
        if not fee.applies:
            continue
        fee_class = classify_fee(fee, settings)
        if fee_class is FeeClass.DISCOUNT:
            discounts += abs(fee.result_amount)
        elif fee_class is FeeClass.TAX:
            tax_total += fee.result_amount
        else:
            fees_total += fee.result_amount

    discounts_total = -discounts
    total_due = subtotal + fees_total + tax_total + discounts_total
    return DealTotals(
        subtotal=subtotal,
        discounts_total=discounts_total,
        fees_total=fees_total,
        tax_total=tax_total,
        total_due=total_due,
        commission_base=total_due,
    )


# ══════════════════════════════════════════════════════════════
# LINE SUMMARY (preview side panel)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class LineSummary:
    taxes_total: Decimal
    fees_total: Decimal
    discounts_total: Decimal

    @property
    def combined_total(self) -> Decimal:
        return self.taxes_total + self.fees_total + self.discounts_total


def summarize_lines(
    lines: Iterable[Any],
    settings: FeeEngineSettings = DEFAULT_SETTINGS,
) -> LineSummary:
    """Taxes / fees split of preview or committed lines, using rollup classification."""
    taxes = ZERO
    fees_total = ZERO
    discounts = ZERO
    for line in lines:
        if not getattr(line, "applies", True):
            continue
        fee_class = classify_fee(line, settings)
        if fee_class is FeeClass.DISCOUNT:
            discounts += abs(line.result_amount)
        elif fee_class is FeeClass.TAX:
            taxes += line.result_amount
        else:
            fees_total += line.result_amount
    return LineSummary(taxes_total=taxes, fees_total=fees_total, discounts_total=-discounts)
