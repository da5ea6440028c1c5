"""
Tax & Fee Engine — Service Tests
================================
End-to-end flows through TaxFeeService over in-memory stores:
preview → commit → override → rollup, events, and audit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.commands import ReasonCode
from core.config import FeeEngineSettings
from core.time import FixedClock
from engines.tax_fees.catalog import InMemoryRuleCatalog, Regime
from engines.tax_fees.ports import DealUnit, InMemoryDealStore
from engines.tax_fees.policies import TaxFeeReasonCode
from engines.tax_fees.services import TaxFeeService


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
DEAL_ID = "deal-1"

SALES_TAX = {
    "line_id": "sales-tax", "name": "Sales Tax", "calc_type": "percent",
    "base": "vehicle_subtotal", "rate_or_amount": "6.25",
    "conditions": {"out_of_state": False}, "sort": 1,
}
DOC_FEE = {
    "line_id": "doc-fee", "name": "Doc Fee", "calc_type": "fixed",
    "base": "flat", "rate_or_amount": "150", "sort": 2,
}


class StubPersistEvent:
    def __init__(self):
        self.calls = []

    def __call__(self, *, event_data):
        self.calls.append(event_data)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def catalog(clock):
    catalog = InMemoryRuleCatalog(clock=clock)
    catalog.add_regime(Regime(regime_id="tx-trucks", name="TX-Trucks", jurisdiction="TX"))
    catalog.publish_rule(
        "tx-trucks", rule_id="tx-trucks-2026",
        effective_from="2026-01-01", lines=[SALES_TAX, DOC_FEE],
    )
    return catalog


@pytest.fixture
def deals():
    store = InMemoryDealStore()
    store.put_unit(DealUnit(deal_id=DEAL_ID, unit_id="unit-1", agreed_unit_price="50000"))
    return store


@pytest.fixture
def persisted():
    return StubPersistEvent()


@pytest.fixture
def service(catalog, deals, clock, persisted):
    return TaxFeeService(
        catalog=catalog,
        deals=deals,
        clock=clock,
        settings=FeeEngineSettings(),
        persist_event=persisted,
    )


def _fee_named(fees, name):
    return next(fee for fee in fees if fee.name == name)


# ══════════════════════════════════════════════════════════════
# PREVIEW
# ══════════════════════════════════════════════════════════════

class TestPreview:
    def test_preview_with_summary(self, service, deals):
        result = service.preview(DEAL_ID, "tx-trucks", {"out_of_state": False})

        assert [line.name for line in result.preview.lines] == ["Sales Tax", "Doc Fee"]
        assert result.summary.taxes_total == Decimal("3125")
        assert result.summary.fees_total == Decimal("150")
        assert deals.fetch_deal_fees(DEAL_ID) == []

    def test_preview_without_regime(self, service):
        result = service.preview(DEAL_ID, None, {})
        assert result.preview.is_empty
        assert result.summary.combined_total == Decimal("0")

    def test_preview_emits_no_events(self, service):
        service.preview(DEAL_ID, "tx-trucks", {"out_of_state": False})
        assert service.events == []


# ══════════════════════════════════════════════════════════════
# COMMIT → OVERRIDE → ROLLUP
# ══════════════════════════════════════════════════════════════

class TestDealFlow:
    def test_commit_returns_totals(self, service):
        result = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")

        assert result.accepted
        assert result.rule_id == "tx-trucks-2026"
        assert result.totals.tax_total == Decimal("3125")
        assert result.totals.fees_total == Decimal("150")
        assert result.totals.total_due == Decimal("53275")

    def test_second_commit_rejected(self, service, deals):
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        again = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-8")

        assert again.outcome.reason.code == TaxFeeReasonCode.DUPLICATE_COMMIT
        assert len(deals.fetch_deal_fees(DEAL_ID)) == 2
        assert again.totals.total_due == Decimal("53275")

    def test_override_doc_fee(self, service):
        committed = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        doc_fee = _fee_named(committed.fees, "Doc Fee")

        result = service.override(doc_fee.fee_id, "200", True, "user-9")

        assert result.accepted
        assert result.fee.result_amount == Decimal("200")
        assert result.fee.meta.overridden_by == "user-9"
        assert result.totals.fees_total == Decimal("200")
        assert result.totals.tax_total == Decimal("3125")

    def test_toggle_sales_tax_off(self, service):
        committed = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        sales_tax = _fee_named(committed.fees, "Sales Tax")

        result = service.override(sales_tax.fee_id, sales_tax.rate_or_amount, False, "user-9")

        assert result.totals.tax_total == Decimal("0")
        assert committed.totals.total_due - result.totals.total_due == Decimal("3125")

    def test_rejected_override_has_no_totals(self, service):
        result = service.override("fee-missing", "10", True, "user-9")
        assert result.outcome.reason.code == TaxFeeReasonCode.FEE_NOT_FOUND
        assert result.totals is None

    def test_system_actor_cannot_override(self, service, deals):
        committed = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        doc_fee = _fee_named(committed.fees, "Doc Fee")

        result = service.override(doc_fee.fee_id, "0", True, "nightly-job", actor_type="SYSTEM")

        assert result.outcome.reason.code == ReasonCode.INVALID_ACTOR
        assert deals.fetch_deal_fee(doc_fee.fee_id).result_amount == Decimal("150")

    def test_recalculate_after_price_change(self, service, deals):
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        deals.set_unit_price(DEAL_ID, "unit-1", "40000")

        result = service.recalculate(DEAL_ID)

        assert [fee.name for fee in result.changed] == ["Sales Tax"]
        assert result.totals.tax_total == Decimal("2500")
        assert result.totals.total_due == Decimal("42650")

    def test_rollup_after_unit_change_without_recalculate(self, service, deals):
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        deals.set_unit_price(DEAL_ID, "unit-1", "40000")

        totals = service.rollup(DEAL_ID)
        assert totals.subtotal == Decimal("40000")
        assert totals.tax_total == Decimal("3125")


# ══════════════════════════════════════════════════════════════
# VERSIONING
# ══════════════════════════════════════════════════════════════

class TestVersioning:
    def test_committed_deal_keeps_its_rule_version(self, service, catalog, deals, clock):
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")

        catalog.publish_rule(
            "tx-trucks", effective_from="2026-03-02",
            lines=[dict(SALES_TAX, rate_or_amount="7"), DOC_FEE],
        )
        clock.advance(days=1)

        assert deals.fetch_deal_stamp(DEAL_ID) == "tx-trucks-2026"
        assert _fee_named(deals.fetch_deal_fees(DEAL_ID), "Sales Tax").rate_or_amount == Decimal("6.25")
        assert catalog.is_locked("tx-trucks-2026")

        fresh = service.preview("deal-2", "tx-trucks", {"out_of_state": False})
        assert fresh.preview.rule_id == "tx-trucks-v2"


# ══════════════════════════════════════════════════════════════
# EVENTS
# ══════════════════════════════════════════════════════════════

class TestEvents:
    def test_events_recorded_and_persisted(self, service, persisted):
        committed = service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        service.override(_fee_named(committed.fees, "Doc Fee").fee_id, "200", True, "user-9")
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")

        types = [event["event_type"] for event in service.events]
        assert types == [
            "tax_fees.deal_fees.committed.v1",
            "tax_fees.deal_fee.overridden.v1",
            "tax_fees.deal_fees.commit.rejected",
        ]
        assert persisted.calls == service.events

    def test_event_envelope(self, service):
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        (event,) = service.events
        assert event["deal_id"] == DEAL_ID
        assert event["actor_id"] == "user-7"
        assert event["occurred_at"] == NOW
        assert event["payload"]["tax_rule_version_id"] == "tx-trucks-2026"

    def test_custom_event_factory(self, catalog, deals, clock):
        def factory(*, command, event_type, payload):
            return {"type": event_type, "deal": command.deal_id}

        service = TaxFeeService(
            catalog=catalog, deals=deals, clock=clock,
            settings=FeeEngineSettings(), event_factory=factory,
        )
        service.commit(DEAL_ID, "tx-trucks", {"out_of_state": False}, "user-7")
        assert service.events == [{"type": "tax_fees.deal_fees.committed.v1", "deal": DEAL_ID}]

    def test_settings_exposed(self, service):
        assert service.settings.tax_name_keywords == ("tax", "sales")
