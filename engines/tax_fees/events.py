"""Deal Desk Tax & Fee Engine - event types and payload builders."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from core.commands.base import Command, derive_rejection_event_type
from core.commands.outcomes import RejectionReason

TAX_FEES_DEAL_FEES_COMMITTED_V1 = "tax_fees.deal_fees.committed.v1"
TAX_FEES_DEAL_FEE_OVERRIDDEN_V1 = "tax_fees.deal_fee.overridden.v1"
TAX_FEES_DEAL_FEES_RECALCULATED_V1 = "tax_fees.deal_fees.recalculated.v1"

TAX_FEE_EVENT_TYPES = (
    TAX_FEES_DEAL_FEES_COMMITTED_V1,
    TAX_FEES_DEAL_FEE_OVERRIDDEN_V1,
    TAX_FEES_DEAL_FEES_RECALCULATED_V1,
)

COMMAND_TO_EVENT_TYPE = {
    "tax_fees.deal_fees.commit.request": TAX_FEES_DEAL_FEES_COMMITTED_V1,
    "tax_fees.deal_fee.override.request": TAX_FEES_DEAL_FEE_OVERRIDDEN_V1,
    "tax_fees.deal_fees.recalculate.request": TAX_FEES_DEAL_FEES_RECALCULATED_V1,
}


def resolve_tax_fee_event_type(command_type: str) -> str | None:
    return COMMAND_TO_EVENT_TYPE.get(command_type)


def _base_payload(command: Command) -> dict:
    return {
        "deal_id": command.deal_id,
        "actor_id": command.actor_id,
        "actor_type": command.actor_type,
        "correlation_id": command.correlation_id,
        "command_id": command.command_id,
    }


def build_deal_fees_committed_payload(command: Command, rule_id: str, fees: Iterable) -> dict:
    payload = _base_payload(command)
    payload.update({
        "regime_id": command.payload["regime_id"],
        "tax_rule_version_id": rule_id,
        "facts": command.payload.get("facts", {}),
        "fees": [fee.to_dict() for fee in fees],
        "committed_at": command.issued_at,
    })
    return payload


def build_deal_fee_overridden_payload(command: Command, previous, updated) -> dict:
    payload = _base_payload(command)
    payload.update({
        "fee_id": updated.fee_id,
        "previous_rate_or_amount": str(previous.rate_or_amount),
        "previous_applies": previous.applies,
        "rate_or_amount": str(updated.rate_or_amount),
        "result_amount": str(updated.result_amount),
        "applies": updated.applies,
        "overridden_by": updated.meta.overridden_by,
        "overridden_at": updated.meta.overridden_at,
    })
    return payload


def build_deal_fees_recalculated_payload(command: Command, changed) -> dict:
    payload = _base_payload(command)
    payload.update({
        "reason": command.payload.get("reason"),
        "changed": [
            {"fee_id": fee.fee_id, "result_amount": str(fee.result_amount)}
            for fee in changed
        ],
    })
    return payload


def build_rejected_payload(command: Command, reason: RejectionReason) -> dict:
    payload = _base_payload(command)
    payload.update({
        "command_type": command.command_type,
        "reason": reason.to_dict(),
    })
    return payload


def rejection_event_type(command: Command) -> str:
    return derive_rejection_event_type(command.command_type)


def build_event_data(*, command: Command, event_type: str, payload: dict,
                     event_id: Optional[uuid.UUID] = None) -> dict:
    """Default event factory: envelope around a payload."""
    return {
        "event_id": event_id or uuid.uuid4(),
        "event_type": event_type,
        "deal_id": command.deal_id,
        "actor_id": command.actor_id,
        "correlation_id": command.correlation_id,
        "causation_id": command.command_id,
        "occurred_at": command.issued_at,
        "payload": payload,
    }
