"""
Tax & Fee Engine — Rule Evaluator
==================================
Catalog lookup → condition matching → line calculation → ordered
preview. Commit turns a preview into durable Deal Fee rows, once.

State machine (one FeeEvaluation per deal):

    IDLE ──select_regime/set_facts──► PREVIEWING ──commit──► COMMITTED
      ▲                                   │
      └──────select_regime(None)──────────┘

- Every regime or fact change recomputes the preview from scratch
- No regime, or no active rule → empty preview, never an error
- commit in IDLE / with an empty preview → EMPTY_COMMIT, nothing written
- commit once fees exist for the deal → DUPLICATE_COMMIT, nothing written
- The duplicate check re-reads persisted fees inside the store's
  transaction, immediately before writing

Previews are not commands. Only commit goes through the dispatcher.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from core.commands import Command, CommandDispatcher, CommandOutcome
from core.time import Clock, get_default_clock
from engines.tax_fees.calculator import compute, resolve_base
from engines.tax_fees.catalog import CalcType, FeeKind, Rule
from engines.tax_fees.commands import CommitDealFeesRequest
from engines.tax_fees.conditions import TransactionFacts, is_applicable, missing_fact_keys
from engines.tax_fees.events import (
    TAX_FEES_DEAL_FEES_COMMITTED_V1,
    build_deal_fees_committed_payload,
    build_rejected_payload,
    rejection_event_type,
)
from engines.tax_fees.policies import (
    TaxFeeReasonCode,
    commit_must_be_first_policy,
    commit_requires_preview_lines_policy,
)
from engines.tax_fees.ports import DealFee, DealStore, FeeMeta, RuleCatalogReader
from engines.tax_fees.rollup import units_subtotal

logger = logging.getLogger("dealdesk.tax_fees")

# (command, event_type, payload) → None
EventRecorder = Callable[[Command, str, dict], None]
FactsInput = Union[TransactionFacts, Mapping[str, Any], None]


class EvaluationState(Enum):
    IDLE = "IDLE"
    PREVIEWING = "PREVIEWING"
    COMMITTED = "COMMITTED"


def _as_facts(facts: FactsInput) -> TransactionFacts:
    if isinstance(facts, TransactionFacts):
        return facts
    return TransactionFacts.from_mapping(facts)


def _new_fee_id() -> str:
    return str(uuid.uuid4())


# ══════════════════════════════════════════════════════════════
# PREVIEW
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PreviewLine:
    """A computed, uncommitted charge line. result_amount is unrounded."""

    id: str
    line_id: str
    rule_id: str
    name: str
    calc_type: CalcType
    base: str
    rate_or_amount: Decimal
    result_amount: Decimal
    sort: int
    kind: Optional[FeeKind] = None
    conditions: Optional[Dict[str, Any]] = None

    @classmethod
    def preview_id(cls, line_id: str) -> str:
        return f"preview-{line_id}"

    def to_deal_fee(self, *, fee_id: str, deal_id: str) -> DealFee:
        return DealFee(
            fee_id=fee_id,
            deal_id=deal_id,
            name=self.name,
            calc_type=self.calc_type,
            base=self.base,
            rate_or_amount=self.rate_or_amount,
            result_amount=self.result_amount,
            applies=True,
            meta=FeeMeta(original_conditions=self.conditions),
            sort=self.sort,
            kind=self.kind,
            rule_id=self.rule_id,
        )


@dataclass(frozen=True)
class Preview:
    regime_id: Optional[str]
    rule: Optional[Rule] = None
    lines: Tuple[PreviewLine, ...] = ()
    underspecified_keys: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def rule_id(self) -> Optional[str]:
        return self.rule.rule_id if self.rule else None


class RuleEvaluator:
    """Stateless preview computation against an injected catalog."""

    def __init__(self, catalog: RuleCatalogReader, clock: Optional[Clock] = None):
        self._catalog = catalog
        self._clock = clock

    @property
    def catalog(self) -> RuleCatalogReader:
        return self._catalog

    def evaluate(
        self,
        regime_id: Optional[str],
        facts: FactsInput,
        vehicle_subtotal: Decimal,
        on: Optional[date] = None,
    ) -> Preview:
        if regime_id is None:
            return Preview(regime_id=None)

        day = on or (self._clock or get_default_clock()).now_utc().date()
        rule = self._catalog.fetch_active_rule(regime_id, day)
        if rule is None:
            logger.info(
                f"[{TaxFeeReasonCode.NO_ACTIVE_RULE}] regime={regime_id} on {day}; "
                f"empty preview"
            )
            return Preview(regime_id=regime_id)

        facts = _as_facts(facts)
        lines: List[PreviewLine] = []
        missing: List[str] = []
        for line in self._catalog.fetch_rule_lines(rule.rule_id):
            if not is_applicable(line, facts):
                for key in missing_fact_keys(line, facts):
                    if key not in missing:
                        missing.append(key)
                continue
            amount = compute(line, resolve_base(line.base, vehicle_subtotal))
            lines.append(PreviewLine(
                id=PreviewLine.preview_id(line.line_id),
                line_id=line.line_id,
                rule_id=rule.rule_id,
                name=line.name,
                calc_type=line.calc_type,
                base=line.base,
                rate_or_amount=line.rate_or_amount,
                result_amount=amount,
                sort=line.sort,
                kind=line.kind,
                conditions=line.conditions_dict,
            ))

        if missing:
            logger.debug(
                f"[{TaxFeeReasonCode.UNDERSPECIFIED_FACTS}] regime={regime_id} "
                f"rule={rule.rule_id} missing={missing}"
            )
        return Preview(
            regime_id=regime_id,
            rule=rule,
            lines=tuple(lines),
            underspecified_keys=tuple(missing),
        )


# ══════════════════════════════════════════════════════════════
# EVALUATION SESSION
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CommitResult:
    outcome: CommandOutcome
    fees: Tuple[DealFee, ...] = ()
    rule_id: Optional[str] = None
    totals: Any = None

    @property
    def accepted(self) -> bool:
        return self.outcome.is_accepted


class FeeEvaluation:
    """
    Preview/commit session for one deal.

    Starts COMMITTED when the deal already carries committed fees;
    such a session can still preview but commit is rejected.
    """

    def __init__(
        self,
        deal_id: str,
        *,
        evaluator: RuleEvaluator,
        deals: DealStore,
        dispatcher: CommandDispatcher,
        clock: Optional[Clock] = None,
        record_event: Optional[EventRecorder] = None,
        fee_id_factory: Callable[[], str] = _new_fee_id,
    ):
        if not deal_id:
            raise ValueError("deal_id must be non-empty.")
        self._deal_id = deal_id
        self._evaluator = evaluator
        self._deals = deals
        self._dispatcher = dispatcher
        self._clock = clock
        self._record_event = record_event
        self._fee_id_factory = fee_id_factory

        self._regime_id: Optional[str] = None
        self._facts = TransactionFacts()
        self._preview = Preview(regime_id=None)
        self._state = (
            EvaluationState.COMMITTED
            if self._deals.fetch_deal_fees(deal_id)
            else EvaluationState.IDLE
        )

    # ── state ─────────────────────────────────────────────────

    @property
    def deal_id(self) -> str:
        return self._deal_id

    @property
    def state(self) -> EvaluationState:
        return self._state

    @property
    def regime_id(self) -> Optional[str]:
        return self._regime_id

    @property
    def facts(self) -> TransactionFacts:
        return self._facts

    @property
    def preview(self) -> Preview:
        return self._preview

    # ── transitions ───────────────────────────────────────────

    def select_regime(self, regime_id: Optional[str]) -> Preview:
        self._regime_id = regime_id
        return self.refresh()

    def set_facts(self, facts: FactsInput) -> Preview:
        self._facts = _as_facts(facts)
        return self.refresh()

    def refresh(self) -> Preview:
        """Recompute the preview from scratch against current deal units."""
        subtotal = units_subtotal(self._deals.fetch_deal_units(self._deal_id))
        self._preview = self._evaluator.evaluate(self._regime_id, self._facts, subtotal)

        if self._state is not EvaluationState.COMMITTED:
            previous = self._state
            self._state = (
                EvaluationState.IDLE if self._regime_id is None
                else EvaluationState.PREVIEWING
            )
            if previous is not self._state:
                logger.debug(f"Deal {self._deal_id}: {previous.value} → {self._state.value}")
        return self._preview

    def commit(
        self,
        actor_id: str,
        *,
        actor_type: str = "HUMAN",
        correlation_id: Optional[uuid.UUID] = None,
    ) -> CommitResult:
        clock = self._clock or get_default_clock()
        preview = self._preview
        command = CommitDealFeesRequest(
            regime_id=self._regime_id,
            facts=self._facts.to_dict(),
            rule_id=preview.rule_id,
            line_count=len(preview.lines),
        ).to_command(
            deal_id=self._deal_id,
            actor_type=actor_type,
            actor_id=actor_id,
            correlation_id=correlation_id,
            issued_at=clock.now_utc(),
        )

        with self._deals.transaction(self._deal_id):
            outcome = self._dispatcher.dispatch(command, [
                partial(commit_must_be_first_policy, fees_exist=self._fees_exist),
                partial(commit_requires_preview_lines_policy, preview_lines=preview.lines),
            ])
            if outcome.is_rejected:
                self._emit(command, rejection_event_type(command),
                           build_rejected_payload(command, outcome.reason))
                return CommitResult(outcome=outcome)

            fees = tuple(
                line.to_deal_fee(fee_id=self._fee_id_factory(), deal_id=self._deal_id)
                for line in preview.lines
            )
            self._deals.persist_deal_fees(self._deal_id, fees)
            self._deals.stamp_deal(self._deal_id, tax_rule_version_id=preview.rule_id)
            self._evaluator.catalog.lock_rule(preview.rule_id)

        self._state = EvaluationState.COMMITTED
        logger.info(
            f"Deal {self._deal_id}: committed {len(fees)} fees "
            f"from rule {preview.rule_id} by {actor_id}"
        )
        self._emit(command, TAX_FEES_DEAL_FEES_COMMITTED_V1,
                   build_deal_fees_committed_payload(command, preview.rule_id, fees))
        return CommitResult(outcome=outcome, fees=fees, rule_id=preview.rule_id)

    # ── internals ─────────────────────────────────────────────

    def _fees_exist(self, deal_id: str) -> bool:
        return bool(self._deals.fetch_deal_fees(deal_id))

    def _emit(self, command: Command, event_type: str, payload: dict) -> None:
        if self._record_event is not None:
            self._record_event(command, event_type, payload)
