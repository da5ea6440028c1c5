"""Deal Desk Tax & Fee Engine - application service."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Protocol

from core.commands import CommandDispatcher, system_actor_cannot_override_guard
from core.commands.base import Command
from core.config import FeeEngineSettings
from core.time import Clock
from engines.tax_fees.evaluator import (
    CommitResult,
    FactsInput,
    FeeEvaluation,
    Preview,
    RuleEvaluator,
)
from engines.tax_fees.events import build_event_data
from engines.tax_fees.overrides import OverrideManager, OverrideResult, RecalculateResult
from engines.tax_fees.ports import DealStore, RuleCatalogReader
from engines.tax_fees.rollup import DealTotals, LineSummary, compute_totals, summarize_lines, units_subtotal

logger = logging.getLogger("dealdesk.tax_fees")


class EventFactoryProtocol(Protocol):
    def __call__(self, *, command: Command, event_type: str, payload: dict) -> dict: ...


class PersistEventProtocol(Protocol):
    def __call__(self, *, event_data: dict) -> Any: ...


@dataclass(frozen=True)
class PreviewSummary:
    preview: Preview
    summary: LineSummary


class TaxFeeService:
    """
    Wires catalog, deal store, dispatcher and clock together.

    Every mutation returns fresh deal totals. Every accepted or rejected
    command produces one event, kept in `events` and handed to
    persist_event when one is injected.
    """

    def __init__(self, *, catalog: RuleCatalogReader, deals: DealStore,
                 clock: Optional[Clock] = None,
                 settings: Optional[FeeEngineSettings] = None,
                 event_factory: EventFactoryProtocol = build_event_data,
                 persist_event: Optional[PersistEventProtocol] = None):
        self._catalog = catalog
        self._deals = deals
        self._clock = clock
        self._settings = settings or FeeEngineSettings.from_django()
        self._event_factory = event_factory
        self._persist_event = persist_event
        self._events: List[dict] = []

        self._dispatcher = CommandDispatcher(clock=clock)
        self._dispatcher.register_policy(system_actor_cannot_override_guard)
        self._evaluator = RuleEvaluator(catalog, clock=clock)
        self._overrides = OverrideManager(
            deals, self._dispatcher, clock=clock, record_event=self._record_event,
        )

    # ── events ────────────────────────────────────────────────

    def _record_event(self, command: Command, event_type: str, payload: dict) -> None:
        event_data = self._event_factory(command=command, event_type=event_type, payload=payload)
        self._events.append(event_data)
        if self._persist_event is not None:
            self._persist_event(event_data=event_data)
        logger.debug(f"Event recorded: {event_type} deal={command.deal_id}")

    @property
    def events(self) -> List[dict]:
        return list(self._events)

    @property
    def settings(self) -> FeeEngineSettings:
        return self._settings

    # ── evaluation ────────────────────────────────────────────

    def open_evaluation(self, deal_id: str) -> FeeEvaluation:
        return FeeEvaluation(
            deal_id,
            evaluator=self._evaluator,
            deals=self._deals,
            dispatcher=self._dispatcher,
            clock=self._clock,
            record_event=self._record_event,
        )

    def preview(self, deal_id: str, regime_id: Optional[str], facts: FactsInput) -> PreviewSummary:
        """One-shot preview against the deal's current units. Writes nothing."""
        subtotal = units_subtotal(self._deals.fetch_deal_units(deal_id))
        preview = self._evaluator.evaluate(regime_id, facts, subtotal)
        return PreviewSummary(preview=preview, summary=summarize_lines(preview.lines, self._settings))

    def commit(self, deal_id: str, regime_id: Optional[str], facts: FactsInput,
               actor: str, *, actor_type: str = "HUMAN") -> CommitResult:
        session = self.open_evaluation(deal_id)
        session.select_regime(regime_id)
        session.set_facts(facts)
        result = session.commit(actor, actor_type=actor_type)
        return replace(result, totals=self.rollup(deal_id))

    # ── overrides ─────────────────────────────────────────────

    def override(self, fee_id: str, new_rate_or_amount: Any, new_applies: bool,
                 actor: str, *, actor_type: str = "HUMAN") -> OverrideResult:
        result = self._overrides.override(
            fee_id, new_rate_or_amount, new_applies, actor, actor_type=actor_type,
        )
        if result.fee is None:
            return result
        return replace(result, totals=self.rollup(result.fee.deal_id))

    def recalculate(self, deal_id: str, actor: str = "dealdesk", *,
                    actor_type: str = "SYSTEM") -> RecalculateResult:
        result = self._overrides.recalculate(deal_id, actor, actor_type=actor_type)
        return replace(result, totals=self.rollup(deal_id))

    # ── rollup ────────────────────────────────────────────────

    def rollup(self, deal_id: str) -> DealTotals:
        return compute_totals(
            self._deals.fetch_deal_units(deal_id),
            self._deals.fetch_deal_fees(deal_id),
            self._settings,
        )
