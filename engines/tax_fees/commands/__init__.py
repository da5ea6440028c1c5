"""Deal Desk Tax & Fee Engine - request commands."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from core.commands.base import Command

TAX_FEES_DEAL_FEES_COMMIT_REQUEST = "tax_fees.deal_fees.commit.request"
TAX_FEES_DEAL_FEE_OVERRIDE_REQUEST = "tax_fees.deal_fee.override.request"
TAX_FEES_DEAL_FEES_RECALCULATE_REQUEST = "tax_fees.deal_fees.recalculate.request"


def _cmd(command_type: str, payload: dict, *, deal_id, actor_type, actor_id,
         command_id, correlation_id, issued_at) -> Command:
    return Command(
        command_id=command_id or uuid.uuid4(),
        command_type=command_type,
        deal_id=deal_id,
        actor_type=actor_type,
        actor_id=actor_id,
        payload=payload,
        issued_at=issued_at,
        correlation_id=correlation_id or uuid.uuid4(),
        source_engine="tax_fees",
    )


@dataclass(frozen=True)
class CommitDealFeesRequest:
    """Commit the current preview. regime_id None means nothing was selected."""

    regime_id: Optional[str]
    facts: Dict[str, Any] = field(default_factory=dict)
    rule_id: Optional[str] = None
    line_count: int = 0

    def __post_init__(self):
        if self.regime_id is not None and not self.regime_id.strip():
            raise ValueError("regime_id must be non-empty when given.")
        if not isinstance(self.line_count, int) or self.line_count < 0:
            raise ValueError("line_count must be integer >= 0.")

    def to_command(self, *, deal_id, actor_type, actor_id,
                   command_id=None,
                   correlation_id=None,
                   issued_at: datetime) -> Command:
        return _cmd(
            TAX_FEES_DEAL_FEES_COMMIT_REQUEST,
            {
                "regime_id": self.regime_id,
                "rule_id": self.rule_id,
                "facts": dict(self.facts),
                "line_count": self.line_count,
            },
            deal_id=deal_id,
            actor_type=actor_type,
            actor_id=actor_id,
            command_id=command_id,
            correlation_id=correlation_id,
            issued_at=issued_at,
        )


@dataclass(frozen=True)
class OverrideDealFeeRequest:
    """
    rate_or_amount and applies are carried as supplied. Their checks are
    policies, so a bad value becomes a rejection, not an exception.
    """

    fee_id: str
    rate_or_amount: Any
    applies: Any = True

    def __post_init__(self):
        if not self.fee_id or not self.fee_id.strip():
            raise ValueError("fee_id must be non-empty.")

    def to_command(self, *, deal_id, actor_type, actor_id,
                   command_id=None,
                   correlation_id=None,
                   issued_at: datetime) -> Command:
        return _cmd(
            TAX_FEES_DEAL_FEE_OVERRIDE_REQUEST,
            {
                "fee_id": self.fee_id,
                "rate_or_amount": self.rate_or_amount,
                "applies": self.applies,
            },
            deal_id=deal_id,
            actor_type=actor_type,
            actor_id=actor_id,
            command_id=command_id,
            correlation_id=correlation_id,
            issued_at=issued_at,
        )


@dataclass(frozen=True)
class RecalculateDealFeesRequest:
    reason: str = "UNIT_PRICE_CHANGED"

    def __post_init__(self):
        if not self.reason:
            raise ValueError("reason must be non-empty.")

    def to_command(self, *, deal_id, actor_type, actor_id,
                   command_id=None,
                   correlation_id=None,
                   issued_at: datetime) -> Command:
        return _cmd(
            TAX_FEES_DEAL_FEES_RECALCULATE_REQUEST,
            {"reason": self.reason},
            deal_id=deal_id,
            actor_type=actor_type,
            actor_id=actor_id,
            command_id=command_id,
            correlation_id=correlation_id,
            issued_at=issued_at,
        )
