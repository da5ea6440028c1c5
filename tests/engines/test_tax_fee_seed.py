"""
Tax & Fee Engine — Starter Catalog Tests
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.time import FixedClock
from engines.tax_fees.catalog import InMemoryRuleCatalog
from engines.tax_fees.evaluator import RuleEvaluator
from engines.tax_fees.rollup import compute_totals
from engines.tax_fees.ports import DealUnit
from engines.tax_fees.seed import SEED_CATALOG, load_seed_catalog


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def evaluator():
    clock = FixedClock(NOW)
    return RuleEvaluator(InMemoryRuleCatalog.from_dict(SEED_CATALOG, clock=clock), clock=clock)


class TestSeedCatalog:
    def test_four_regimes(self):
        catalog = InMemoryRuleCatalog.from_dict(SEED_CATALOG)
        assert [r.name for r in catalog.list_regimes()] == [
            "Out-of-State", "TX Apportioned", "TX Combo", "Wholesale",
        ]
        assert catalog.get_active_rule("tx-combo", date(2025, 1, 1)).version == 1

    def test_loading_twice_skips_existing(self):
        catalog = InMemoryRuleCatalog()
        assert load_seed_catalog(catalog) == 4
        assert load_seed_catalog(catalog) == 0

    def test_tx_combo_deal(self, evaluator):
        preview = evaluator.evaluate("tx-combo", {}, Decimal("45000"))
        assert [line.name for line in preview.lines] == [
            "Sales Tax", "Title Fee", "Registration", "Temp Plate",
        ]

        fees = [line.to_deal_fee(fee_id=line.id, deal_id="deal-1") for line in preview.lines]
        totals = compute_totals(
            [DealUnit(deal_id="deal-1", unit_id="u-1", agreed_unit_price="45000")], fees,
        )
        assert totals.tax_total == Decimal("2812.50")
        assert totals.fees_total == Decimal("126.50")
        assert totals.total_due == Decimal("47939.00")

    def test_apportioned_lines_need_apportioned_tag(self, evaluator):
        assert evaluator.evaluate("tx-apportioned", {"tag": "combo"}, Decimal("45000")).is_empty

        unspecified = evaluator.evaluate("tx-apportioned", {}, Decimal("45000"))
        assert unspecified.is_empty
        assert unspecified.underspecified_keys == ("tag",)

        apportioned = evaluator.evaluate("tx-apportioned", {"tag": "apportioned"}, Decimal("45000"))
        assert [line.name for line in apportioned.lines] == [
            "Sales Tax", "Title Fee", "Apportioned Plate",
        ]

    def test_wholesale_requires_resale_certificate(self, evaluator):
        assert evaluator.evaluate("wholesale", {"resale_cert": False}, Decimal("45000")).is_empty
        preview = evaluator.evaluate("wholesale", {"resale_cert": True}, Decimal("45000"))
        assert [(line.name, line.result_amount) for line in preview.lines] == [
            ("Processing Fee", Decimal("100.00")),
        ]
