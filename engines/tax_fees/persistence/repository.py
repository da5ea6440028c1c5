"""
Deal Desk Tax & Fee Persistence - ORM Stores
=============================================
DjangoRuleCatalog and DjangoDealStore implement the same operations as
the in-memory stores, over the tax_fees app tables.

Versioning checks reuse the catalog module's rules; these classes only
move rows. Writes run inside transaction.atomic with the affected
regime / deal rows locked via select_for_update.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Any, Iterator, List, Mapping, Optional, Sequence

from django.db import transaction

from core.time import Clock, get_default_clock, parse_date
from engines.tax_fees.catalog import (
    Regime,
    Rule,
    RuleLine,
    assert_no_active_overlap,
    next_version,
    order_rule_lines,
    plan_supersession,
    resolve_active_rule,
    rule_line_from_mapping,
)
from engines.tax_fees.errors import (
    CatalogIntegrityError,
    RuleVersionLockedError,
    UnknownRecordError,
)
from engines.tax_fees.persistence import models as m
from engines.tax_fees.ports import DealFee, DealUnit, FeeMeta, order_deal_fees
from engines.tax_fees.money import to_decimal

logger = logging.getLogger("dealdesk.tax_fees.persistence")


# ══════════════════════════════════════════════════════════════
# ROW ↔ RECORD
# ══════════════════════════════════════════════════════════════

def _regime_from_row(row: m.TaxRegime) -> Regime:
    return Regime(
        regime_id=row.regime_id,
        name=row.name,
        jurisdiction=row.jurisdiction,
        active=row.active,
    )


def _rule_from_row(row: m.TaxRule) -> Rule:
    return Rule(
        rule_id=row.rule_id,
        regime_id=row.regime_id,
        version=row.version,
        effective_from=row.effective_from,
        effective_to=row.effective_to,
        is_active=row.is_active,
    )


def _line_from_row(row: m.TaxRuleLine) -> RuleLine:
    return RuleLine(
        line_id=row.line_id,
        rule_id=row.rule_id,
        name=row.name,
        calc_type=row.calc_type,
        base=row.base,
        rate_or_amount=row.rate_or_amount,
        conditions=row.conditions,
        sort=row.sort,
        kind=row.kind,
    )


def _line_to_row(line: RuleLine) -> m.TaxRuleLine:
    return m.TaxRuleLine(
        line_id=line.line_id,
        rule_id=line.rule_id,
        name=line.name,
        calc_type=line.calc_type.value,
        base=line.base,
        rate_or_amount=line.rate_or_amount,
        conditions=line.conditions_dict,
        sort=line.sort,
        kind=line.kind.value if line.kind else None,
    )


def _fee_from_row(row: m.DealFee) -> DealFee:
    return DealFee(
        fee_id=row.fee_id,
        deal_id=row.deal_id,
        name=row.name,
        calc_type=row.calc_type,
        base=row.base,
        rate_or_amount=row.rate_or_amount,
        result_amount=row.result_amount,
        applies=row.applies,
        meta=FeeMeta.from_dict(row.meta),
        sort=row.sort,
        kind=row.kind,
        rule_id=row.rule_id,
    )


def _fee_to_row(fee: DealFee) -> m.DealFee:
    return m.DealFee(
        fee_id=fee.fee_id,
        deal_id=fee.deal_id,
        name=fee.name,
        calc_type=fee.calc_type.value,
        base=fee.base,
        rate_or_amount=fee.rate_or_amount,
        result_amount=fee.result_amount,
        applies=fee.applies,
        meta=fee.meta.to_dict(),
        sort=fee.sort,
        kind=fee.kind.value if fee.kind else None,
        rule_id=fee.rule_id,
    )


# ══════════════════════════════════════════════════════════════
# RULE CATALOG
# ══════════════════════════════════════════════════════════════

class DjangoRuleCatalog:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock

    # ── regimes ───────────────────────────────────────────────

    def add_regime(self, regime: Regime) -> Regime:
        with transaction.atomic():
            if m.TaxRegime.objects.filter(regime_id=regime.regime_id).exists():
                raise CatalogIntegrityError(f"Regime '{regime.regime_id}' already exists.")
            m.TaxRegime.objects.create(
                regime_id=regime.regime_id,
                name=regime.name,
                jurisdiction=regime.jurisdiction,
                active=regime.active,
            )
        logger.info(f"Regime added: {regime.regime_id} ({regime.name})")
        return regime

    def get_regime(self, regime_id: str) -> Optional[Regime]:
        row = m.TaxRegime.objects.filter(regime_id=regime_id).first()
        return _regime_from_row(row) if row else None

    def list_regimes(self, active_only: bool = False) -> List[Regime]:
        rows = m.TaxRegime.objects.all()
        if active_only:
            rows = rows.filter(active=True)
        return [_regime_from_row(row) for row in rows.order_by("name", "regime_id")]

    def set_regime_active(self, regime_id: str, active: bool) -> Regime:
        updated = m.TaxRegime.objects.filter(regime_id=regime_id).update(active=active)
        if not updated:
            raise UnknownRecordError("Regime", regime_id)
        return self.get_regime(regime_id)

    # ── rules ─────────────────────────────────────────────────

    def publish_rule(
        self,
        regime_id: str,
        *,
        effective_from,
        lines: Sequence[Mapping[str, Any]],
        effective_to=None,
        is_active: bool = True,
        rule_id: Optional[str] = None,
    ) -> Rule:
        with transaction.atomic():
            regime_row = m.TaxRegime.objects.select_for_update().filter(regime_id=regime_id).first()
            if regime_row is None:
                raise UnknownRecordError("Regime", regime_id)

            existing = self.list_rules(regime_id)
            version = next_version(existing)
            rule = Rule(
                rule_id=rule_id or f"{regime_id}-v{version}",
                regime_id=regime_id,
                version=version,
                effective_from=parse_date(effective_from),
                effective_to=parse_date(effective_to),
                is_active=is_active,
            )
            if m.TaxRule.objects.filter(rule_id=rule.rule_id).exists():
                raise CatalogIntegrityError(f"Rule '{rule.rule_id}' already exists.")

            superseded = plan_supersession(existing, rule.window) if is_active else []
            built = [rule_line_from_mapping(rule.rule_id, i + 1, entry) for i, entry in enumerate(lines)]

            for old in superseded:
                m.TaxRule.objects.filter(rule_id=old.rule_id).update(effective_to=old.effective_to)
                logger.info(
                    f"Rule {old.rule_id} (v{old.version}) superseded; "
                    f"now effective to {old.effective_to}"
                )
            m.TaxRule.objects.create(
                rule_id=rule.rule_id,
                regime=regime_row,
                version=rule.version,
                effective_from=rule.effective_from,
                effective_to=rule.effective_to,
                is_active=rule.is_active,
            )
            m.TaxRuleLine.objects.bulk_create([_line_to_row(line) for line in built])

        logger.info(
            f"Rule published: {rule.rule_id} regime={regime_id} v{rule.version} "
            f"from {rule.effective_from} ({len(built)} lines)"
        )
        return rule

    def set_rule_active(self, rule_id: str, active: bool) -> Rule:
        with transaction.atomic():
            row = m.TaxRule.objects.select_for_update().filter(rule_id=rule_id).first()
            if row is None:
                raise UnknownRecordError("Rule", rule_id)
            updated = replace(_rule_from_row(row), is_active=active)
            if active:
                assert_no_active_overlap(updated, self.list_rules(row.regime_id))
            row.is_active = active
            row.save(update_fields=["is_active"])
        return updated

    def deactivate_rule(self, rule_id: str) -> Rule:
        return self.set_rule_active(rule_id, False)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        row = m.TaxRule.objects.filter(rule_id=rule_id).first()
        return _rule_from_row(row) if row else None

    def list_rules(self, regime_id: str) -> List[Rule]:
        rows = m.TaxRule.objects.filter(regime_id=regime_id).order_by("version")
        return [_rule_from_row(row) for row in rows]

    # ── lines ─────────────────────────────────────────────────

    def revise_rule_lines(self, rule_id: str, lines: Sequence[Mapping[str, Any]]) -> List[RuleLine]:
        with transaction.atomic():
            row = m.TaxRule.objects.select_for_update().filter(rule_id=rule_id).first()
            if row is None:
                raise UnknownRecordError("Rule", rule_id)
            if row.locked:
                raise RuleVersionLockedError(rule_id)
            built = [rule_line_from_mapping(rule_id, i + 1, entry) for i, entry in enumerate(lines)]
            m.TaxRuleLine.objects.filter(rule_id=rule_id).delete()
            m.TaxRuleLine.objects.bulk_create([_line_to_row(line) for line in built])
        return order_rule_lines(built)

    def lock_rule(self, rule_id: str) -> None:
        if not m.TaxRule.objects.filter(rule_id=rule_id).update(locked=True):
            raise UnknownRecordError("Rule", rule_id)

    def is_locked(self, rule_id: str) -> bool:
        return m.TaxRule.objects.filter(rule_id=rule_id, locked=True).exists()

    # ── reader port ───────────────────────────────────────────

    def fetch_active_rule(self, regime_id: str, on: date) -> Optional[Rule]:
        if not m.TaxRegime.objects.filter(regime_id=regime_id, active=True).exists():
            return None
        rows = m.TaxRule.objects.filter(regime_id=regime_id, is_active=True)
        return resolve_active_rule((_rule_from_row(row) for row in rows), on)

    def fetch_rule_lines(self, rule_id: str) -> List[RuleLine]:
        rows = m.TaxRuleLine.objects.filter(rule_id=rule_id).order_by("sort", "line_id")
        return order_rule_lines(_line_from_row(row) for row in rows)

    def get_active_rule(self, regime_id: str, on: Optional[date] = None) -> Optional[Rule]:
        clock = self._clock or get_default_clock()
        return self.fetch_active_rule(regime_id, on or clock.now_utc().date())

    def get_rule_lines(self, rule_id: str) -> List[RuleLine]:
        return self.fetch_rule_lines(rule_id)


# ══════════════════════════════════════════════════════════════
# DEAL STORE
# ══════════════════════════════════════════════════════════════

class DjangoDealStore:
    # ── deal units ────────────────────────────────────────────

    def put_unit(self, unit: DealUnit) -> None:
        m.DealUnit.objects.update_or_create(
            deal_id=unit.deal_id,
            unit_id=unit.unit_id,
            defaults={"agreed_unit_price": unit.agreed_unit_price},
        )

    def set_unit_price(self, deal_id: str, unit_id: str, price) -> DealUnit:
        amount = to_decimal(price)
        if not m.DealUnit.objects.filter(deal_id=deal_id, unit_id=unit_id).update(
            agreed_unit_price=amount,
        ):
            raise UnknownRecordError("DealUnit", unit_id)
        return DealUnit(deal_id=deal_id, unit_id=unit_id, agreed_unit_price=amount)

    def fetch_deal_units(self, deal_id: str) -> List[DealUnit]:
        rows = m.DealUnit.objects.filter(deal_id=deal_id).order_by("unit_id")
        return [
            DealUnit(deal_id=row.deal_id, unit_id=row.unit_id, agreed_unit_price=row.agreed_unit_price)
            for row in rows
        ]

    # ── deal fees ─────────────────────────────────────────────

    def fetch_deal_fees(self, deal_id: str) -> List[DealFee]:
        rows = m.DealFee.objects.filter(deal_id=deal_id)
        return order_deal_fees([_fee_from_row(row) for row in rows])

    def fetch_deal_fee(self, fee_id: str) -> Optional[DealFee]:
        row = m.DealFee.objects.filter(fee_id=fee_id).first()
        return _fee_from_row(row) if row else None

    def persist_deal_fees(self, deal_id: str, fees: Sequence[DealFee]) -> None:
        for fee in fees:
            if fee.deal_id != deal_id:
                raise ValueError(f"Fee '{fee.fee_id}' belongs to deal '{fee.deal_id}'.")
        with transaction.atomic():
            m.DealFee.objects.bulk_create([_fee_to_row(fee) for fee in fees])
        logger.debug(f"Deal {deal_id}: {len(fees)} fee rows written")

    def persist_deal_fee_override(self, fee_id: str, patch: Mapping[str, Any]) -> DealFee:
        with transaction.atomic():
            row = m.DealFee.objects.select_for_update().filter(fee_id=fee_id).first()
            if row is None:
                raise UnknownRecordError("DealFee", fee_id)
            updated = _fee_from_row(row).with_patch(patch)
            row.rate_or_amount = updated.rate_or_amount
            row.result_amount = updated.result_amount
            row.applies = updated.applies
            row.meta = updated.meta.to_dict()
            row.save(update_fields=["rate_or_amount", "result_amount", "applies", "meta", "updated_at"])
        return updated

    # ── deal stamp ────────────────────────────────────────────

    def stamp_deal(self, deal_id: str, *, tax_rule_version_id: str) -> None:
        m.DealStamp.objects.update_or_create(
            deal_id=deal_id,
            defaults={"tax_rule_version_id": tax_rule_version_id},
        )

    def fetch_deal_stamp(self, deal_id: str) -> Optional[str]:
        row = m.DealStamp.objects.filter(deal_id=deal_id).first()
        return row.tax_rule_version_id if row else None

    @contextmanager
    def transaction(self, deal_id: str) -> Iterator[None]:
        """Atomic block holding the deal's lock row, created on first use."""
        with transaction.atomic():
            m.DealLock.objects.get_or_create(deal_id=deal_id)
            m.DealLock.objects.select_for_update().get(deal_id=deal_id)
            yield
