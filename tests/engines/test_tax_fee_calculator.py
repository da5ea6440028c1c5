"""
Tax & Fee Engine — Line Calculator and Money Tests
===================================================
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from core.config import FeeEngineSettings
from engines.tax_fees.calculator import compute, resolve_base
from engines.tax_fees.catalog import RuleLine
from engines.tax_fees.money import finite_decimal, money_str, quantize_money, to_decimal


def _line(calc_type: str, base: str, rate) -> RuleLine:
    return RuleLine(
        line_id="L1",
        rule_id="R1",
        name="Line",
        calc_type=calc_type,
        base=base,
        rate_or_amount=rate,
    )


SALES_TAX = _line("percent", "vehicle_subtotal", "6.25")
DOC_FEE = _line("fixed", "flat", "150")


class TestCompute:
    def test_percent_of_vehicle_subtotal(self):
        assert compute(SALES_TAX, Decimal("50000")) == Decimal("3125")

    def test_fixed_ignores_base(self):
        assert compute(DOC_FEE, Decimal("50000")) == Decimal("150")
        assert compute(DOC_FEE, Decimal("0")) == Decimal("150")

    @pytest.mark.parametrize("amount", ["1", "333.33", "49999.99", "0.01"])
    def test_percent_is_linear_in_base(self, amount):
        x = Decimal(amount)
        assert compute(SALES_TAX, 2 * x) == 2 * compute(SALES_TAX, x)

    def test_percent_with_unwired_base_is_zero(self):
        assert compute(_line("percent", "custom", "5"), Decimal("1000")) == Decimal("0")

    def test_no_intermediate_rounding(self):
        line = _line("percent", "vehicle_subtotal", "6.25")
        assert compute(line, Decimal("0.01")) == Decimal("0.000625")

    def test_float_base_has_no_binary_artefacts(self):
        assert compute(SALES_TAX, 0.1) == Decimal("0.00625")


class TestResolveBase:
    def test_vehicle_subtotal(self):
        assert resolve_base("vehicle_subtotal", Decimal("10")) == Decimal("10")

    def test_unknown_base_has_no_amount(self):
        assert resolve_base("custom", Decimal("10")) == Decimal("0")


class TestMoney:
    def test_to_decimal_refuses_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_to_decimal_rejects_garbage_string(self):
        with pytest.raises(ValueError):
            to_decimal("abc")

    @pytest.mark.parametrize("value", ["nan", "inf", float("inf"), "x", None, True, [1]])
    def test_finite_decimal_rejects_non_finite(self, value):
        assert finite_decimal(value) is None

    def test_finite_decimal_accepts_numbers(self):
        assert finite_decimal("200") == Decimal("200")
        assert finite_decimal(12.5) == Decimal("12.5")

    def test_quantize_half_up(self):
        assert quantize_money(Decimal("0.125")) == Decimal("0.13")
        assert money_str(Decimal("3125")) == "3125.00"

    def test_quantize_uses_settings(self):
        settings = FeeEngineSettings(currency_decimals=0)
        assert quantize_money(Decimal("10.5"), settings) == Decimal("11")
