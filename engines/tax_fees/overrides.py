"""
Tax & Fee Engine — Override Manager
====================================
Audited mutation of committed Deal Fees.

- result_amount is recomputed from the fee's OWN calc_type/base, never
  from the rule line it came from (the catalog may have moved on)
- meta.override is re-stamped (by, at); original conditions survive
- applies=False keeps the row; the rollup ignores it
- A non-finite or non-numeric value is rejected before anything is read
  for writing
- Only the latest override is kept; there is no override history

recalculate() refreshes result_amount of applying fees after deal unit
prices change. It never touches override provenance.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Optional, Tuple

from core.commands import Command, CommandDispatcher, CommandOutcome
from core.time import Clock, get_default_clock
from engines.tax_fees.calculator import compute, resolve_base
from engines.tax_fees.commands import OverrideDealFeeRequest, RecalculateDealFeesRequest
from engines.tax_fees.events import (
    TAX_FEES_DEAL_FEE_OVERRIDDEN_V1,
    TAX_FEES_DEAL_FEES_RECALCULATED_V1,
    build_deal_fee_overridden_payload,
    build_deal_fees_recalculated_payload,
    build_rejected_payload,
    rejection_event_type,
)
from engines.tax_fees.money import finite_decimal
from engines.tax_fees.policies import (
    deal_fee_must_exist_policy,
    override_applies_must_be_bool_policy,
    override_value_must_be_finite_policy,
)
from engines.tax_fees.ports import DealFee, DealStore
from engines.tax_fees.rollup import units_subtotal

logger = logging.getLogger("dealdesk.tax_fees")

# Commands must name a deal; an unknown fee has none to name.
UNRESOLVED_DEAL_ID = "unresolved"


@dataclass(frozen=True)
class OverrideResult:
    outcome: CommandOutcome
    fee: Optional[DealFee] = None
    previous: Optional[DealFee] = None
    totals: Any = None

    @property
    def accepted(self) -> bool:
        return self.outcome.is_accepted


@dataclass(frozen=True)
class RecalculateResult:
    outcome: CommandOutcome
    changed: Tuple[DealFee, ...] = ()
    totals: Any = None


def recompute_fee(fee: DealFee, vehicle_subtotal) -> Any:
    return compute(fee, resolve_base(fee.base, vehicle_subtotal))


class OverrideManager:
    def __init__(
        self,
        deals: DealStore,
        dispatcher: CommandDispatcher,
        clock: Optional[Clock] = None,
        record_event: Optional[Callable[[Command, str, dict], None]] = None,
    ):
        self._deals = deals
        self._dispatcher = dispatcher
        self._clock = clock
        self._record_event = record_event

    def override(
        self,
        fee_id: str,
        new_rate_or_amount: Any,
        new_applies: bool,
        actor: str,
        *,
        actor_type: str = "HUMAN",
        correlation_id: Optional[uuid.UUID] = None,
    ) -> OverrideResult:
        clock = self._clock or get_default_clock()
        existing = self._deals.fetch_deal_fee(fee_id)
        deal_id = existing.deal_id if existing is not None else UNRESOLVED_DEAL_ID

        command = OverrideDealFeeRequest(
            fee_id=fee_id,
            rate_or_amount=new_rate_or_amount,
            applies=new_applies,
        ).to_command(
            deal_id=deal_id,
            actor_type=actor_type,
            actor_id=actor,
            correlation_id=correlation_id,
            issued_at=clock.now_utc(),
        )

        with self._deals.transaction(deal_id):
            outcome = self._dispatcher.dispatch(command, [
                override_value_must_be_finite_policy,
                override_applies_must_be_bool_policy,
                partial(deal_fee_must_exist_policy, fee_lookup=self._deals.fetch_deal_fee),
            ])
            if outcome.is_rejected:
                self._emit(command, rejection_event_type(command),
                           build_rejected_payload(command, outcome.reason))
                return OverrideResult(outcome=outcome, previous=existing)

            previous = self._deals.fetch_deal_fee(fee_id)
            value = finite_decimal(new_rate_or_amount)
            subtotal = units_subtotal(self._deals.fetch_deal_units(deal_id))
            result_amount = recompute_fee(replace(previous, rate_or_amount=value), subtotal)

            updated = self._deals.persist_deal_fee_override(fee_id, {
                "rate_or_amount": value,
                "result_amount": result_amount,
                "applies": new_applies,
                "meta": previous.meta.stamped(by=actor, at=clock.now_utc()),
            })

        logger.info(
            f"Fee {fee_id} on deal {deal_id} overridden by {actor}: "
            f"{previous.rate_or_amount} → {updated.rate_or_amount}, applies={updated.applies}"
        )
        self._emit(command, TAX_FEES_DEAL_FEE_OVERRIDDEN_V1,
                   build_deal_fee_overridden_payload(command, previous, updated))
        return OverrideResult(outcome=outcome, fee=updated, previous=previous)

    def recalculate(
        self,
        deal_id: str,
        actor: str = "dealdesk",
        *,
        actor_type: str = "SYSTEM",
        correlation_id: Optional[uuid.UUID] = None,
    ) -> RecalculateResult:
        clock = self._clock or get_default_clock()
        command = RecalculateDealFeesRequest().to_command(
            deal_id=deal_id,
            actor_type=actor_type,
            actor_id=actor,
            correlation_id=correlation_id,
            issued_at=clock.now_utc(),
        )

        changed = []
        with self._deals.transaction(deal_id):
            outcome = self._dispatcher.dispatch(command)
            if outcome.is_rejected:
                self._emit(command, rejection_event_type(command),
                           build_rejected_payload(command, outcome.reason))
                return RecalculateResult(outcome=outcome)

            subtotal = units_subtotal(self._deals.fetch_deal_units(deal_id))
            for fee in self._deals.fetch_deal_fees(deal_id):
                if not fee.applies:
                    continue
                amount = recompute_fee(fee, subtotal)
                if amount == fee.result_amount:
                    continue
                changed.append(
                    self._deals.persist_deal_fee_override(fee.fee_id, {"result_amount": amount})
                )

        logger.info(f"Deal {deal_id}: recalculated fees, {len(changed)} changed")
        self._emit(command, TAX_FEES_DEAL_FEES_RECALCULATED_V1,
                   build_deal_fees_recalculated_payload(command, changed))
        return RecalculateResult(outcome=outcome, changed=tuple(changed))

    def _emit(self, command: Command, event_type: str, payload: dict) -> None:
        if self._record_event is not None:
            self._record_event(command, event_type, payload)
