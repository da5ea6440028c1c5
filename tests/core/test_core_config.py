"""
Tests for core.config — fee engine settings.
"""

import decimal

import pytest

from core.config import DEFAULT_SETTINGS, FeeEngineSettings


class TestDefaults:
    def test_default_keywords(self):
        assert DEFAULT_SETTINGS.tax_name_keywords == ("tax", "sales")

    def test_default_money_exponent(self):
        assert DEFAULT_SETTINGS.money_exponent == decimal.Decimal("0.01")
        assert DEFAULT_SETTINGS.rounding == decimal.ROUND_HALF_UP


class TestValidation:
    def test_rejects_empty_keywords(self):
        with pytest.raises(ValueError, match="tax_name_keywords"):
            FeeEngineSettings(tax_name_keywords=())

    def test_rejects_uppercase_keywords(self):
        with pytest.raises(ValueError, match="lowercase"):
            FeeEngineSettings(tax_name_keywords=("Tax",))

    def test_rejects_out_of_range_decimals(self):
        with pytest.raises(ValueError, match="currency_decimals"):
            FeeEngineSettings(currency_decimals=9)

    def test_rejects_unknown_rounding(self):
        with pytest.raises(ValueError, match="rounding"):
            FeeEngineSettings(rounding="ROUND_SIDEWAYS")

    def test_settings_are_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_SETTINGS.currency_decimals = 4


class TestFromMapping:
    def test_reads_keys_and_lowercases_keywords(self):
        settings = FeeEngineSettings.from_mapping({
            "TAX_NAME_KEYWORDS": ["TAX", "Levy"],
            "CURRENCY_DECIMALS": 3,
            "ROUNDING": decimal.ROUND_HALF_EVEN,
        })
        assert settings.tax_name_keywords == ("tax", "levy")
        assert settings.money_exponent == decimal.Decimal("0.001")
        assert settings.rounding == decimal.ROUND_HALF_EVEN

    def test_missing_keys_fall_back_to_defaults(self):
        assert FeeEngineSettings.from_mapping({}) == DEFAULT_SETTINGS


class TestFromDjango:
    def test_reads_project_settings(self):
        assert FeeEngineSettings.from_django() == DEFAULT_SETTINGS

    def test_reads_overridden_tax_fees(self, settings):
        settings.TAX_FEES = {"TAX_NAME_KEYWORDS": ("duty",), "CURRENCY_DECIMALS": 0}
        loaded = FeeEngineSettings.from_django()
        assert loaded.tax_name_keywords == ("duty",)
        assert loaded.currency_decimals == 0
