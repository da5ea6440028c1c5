"""
Deal Desk Command Layer
========================
Every durable action begins as a Command.
Every Command produces exactly one Outcome.
REJECTED commands are validation outcomes, not exceptions.
"""

from core.commands.base import (
    Command,
    VALID_ACTOR_TYPES,
    derive_rejection_event_type,
)
from core.commands.outcomes import (
    CommandOutcome,
    CommandStatus,
    ReasonCode,
    RejectionReason,
)
from core.commands.dispatcher import (
    CommandDispatcher,
    PolicyEvaluator,
    system_actor_cannot_override_guard,
)

__all__ = [
    # ── Base ──────────────────────────────────────────────────
    "Command",
    "VALID_ACTOR_TYPES",
    "derive_rejection_event_type",
    # ── Outcomes ──────────────────────────────────────────────
    "CommandOutcome",
    "CommandStatus",
    # ── Rejection ─────────────────────────────────────────────
    "ReasonCode",
    "RejectionReason",
    # ── Dispatcher ────────────────────────────────────────────
    "CommandDispatcher",
    "PolicyEvaluator",
    "system_actor_cannot_override_guard",
]
