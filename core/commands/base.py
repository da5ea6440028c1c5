"""
Deal Desk Command Layer — Command Base Contract
================================================
Every durable action on a deal begins as a Command.

A Command is a frozen, auditable declaration of intent.
It carries identity, the deal it targets, and a payload — nothing else.

Rules:
- Immutable once created (frozen dataclass)
- No business logic inside
- No store interaction
- command_type must end with '.request'
- command_type follows engine.domain.action.request format

Previews are NOT commands. Only commit and override mutate state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


# ══════════════════════════════════════════════════════════════
# ACTOR TYPES
# ══════════════════════════════════════════════════════════════

VALID_ACTOR_TYPES = frozenset({"HUMAN", "SYSTEM"})


# ══════════════════════════════════════════════════════════════
# CANONICAL COMMAND
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Command:
    """
    Canonical Deal Desk Command — declaration of intent against a deal.

    Fields:
        command_id:     Unique identifier (UUID).
        command_type:   Namespaced type ending in '.request'
                        (e.g. 'tax_fees.deal_fees.commit.request').
        deal_id:        The deal this command targets.
        actor_type:     HUMAN | SYSTEM.
        actor_id:       Opaque identity of the actor (from auth).
        payload:        Intent data (dict).
        issued_at:      When the command was issued.
        correlation_id: Groups related commands/events in a story.
        source_engine:  Engine that originates this command.

    Example:
        Command(
            command_id=uuid.uuid4(),
            command_type="tax_fees.deal_fee.override.request",
            deal_id="deal-1",
            actor_type="HUMAN",
            actor_id="user-7",
            payload={"fee_id": "fee-1", "rate_or_amount": "200"},
            issued_at=datetime.now(timezone.utc),
            correlation_id=uuid.uuid4(),
            source_engine="tax_fees",
        )
    """

    command_id: uuid.UUID
    command_type: str
    deal_id: str
    actor_type: str
    actor_id: str
    payload: dict
    issued_at: datetime
    correlation_id: uuid.UUID
    source_engine: str

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError(
                f"command_id must be UUID, got {type(self.command_id).__name__}"
            )

        # ── command_type must end with .request ───────────────
        if not self.command_type or not isinstance(self.command_type, str):
            raise ValueError("command_type must be a non-empty string.")

        if not self.command_type.endswith(".request"):
            raise ValueError(
                f"command_type '{self.command_type}' must end with "
                f"'.request' (e.g. 'tax_fees.deal_fees.commit.request')."
            )

        parts = self.command_type.split(".")
        if len(parts) < 4:
            raise ValueError(
                f"command_type '{self.command_type}' must follow "
                f"engine.domain.action.request format (minimum 4 segments)."
            )

        if parts[0] != self.source_engine:
            raise ValueError(
                f"command_type namespace '{parts[0]}' does not match "
                f"source_engine '{self.source_engine}'."
            )

        if not self.deal_id or not isinstance(self.deal_id, str):
            raise ValueError("deal_id must be a non-empty string.")

        if self.actor_type not in VALID_ACTOR_TYPES:
            raise ValueError(
                f"actor_type '{self.actor_type}' not valid. "
                f"Must be one of: {sorted(VALID_ACTOR_TYPES)}"
            )

        if not self.actor_id or not isinstance(self.actor_id, str):
            raise ValueError("actor_id must be a non-empty string.")

        if not isinstance(self.payload, dict):
            raise TypeError("payload must be a dict.")

        if not isinstance(self.correlation_id, uuid.UUID):
            raise ValueError("correlation_id must be UUID.")


# ══════════════════════════════════════════════════════════════
# EVENT NAMING LAW (derivation helpers)
# ══════════════════════════════════════════════════════════════

def derive_rejection_event_type(command_type: str) -> str:
    """
    Derive rejected event type from command type.

    tax_fees.deal_fees.commit.request → tax_fees.deal_fees.commit.rejected
    """
    if not command_type.endswith(".request"):
        raise ValueError(
            f"Cannot derive rejection event type from "
            f"'{command_type}' — must end with '.request'."
        )

    base = command_type[: -len(".request")]
    return f"{base}.rejected"
