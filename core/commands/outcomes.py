"""
Deal Desk Command Layer — Outcomes
===================================
What the dispatcher hands back for a command: ACCEPTED, or REJECTED
with a RejectionReason.

A rejection is a recoverable validation outcome. The caller shows the
message and re-prompts; nothing retries automatically. Its to_dict()
form is embedded in the `<command>.rejected` audit event.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ReasonCode:
    """Rejection codes raised by the command layer itself. Engines add their own."""

    INVALID_ACTOR = "INVALID_ACTOR"


@dataclass(frozen=True)
class RejectionReason:
    """
    code:        machine-readable, SCREAMING_SNAKE_CASE (e.g. 'DUPLICATE_COMMIT')
    message:     shown to the user
    policy_name: the policy that said no
    """

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        for name in ("code", "message", "policy_name"):
            value = getattr(self, name)
            if not value or not isinstance(value, str):
                raise ValueError(f"{name} must be a non-empty string.")

    def to_dict(self) -> Dict[str, str]:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


class CommandStatus(Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class CommandOutcome:
    """
    REJECTED always carries a reason; ACCEPTED never does.
    Build through accepted() / rejected().
    """

    command_id: uuid.UUID
    status: CommandStatus
    reason: Optional[RejectionReason]
    occurred_at: datetime

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError("command_id must be UUID.")
        if not isinstance(self.status, CommandStatus):
            raise ValueError(f"status must be CommandStatus, got {type(self.status).__name__}.")
        if self.status is CommandStatus.REJECTED and self.reason is None:
            raise ValueError("REJECTED outcome must include a RejectionReason.")
        if self.status is CommandStatus.ACCEPTED and self.reason is not None:
            raise ValueError("ACCEPTED outcome must NOT include a RejectionReason.")
        if not isinstance(self.occurred_at, datetime):
            raise ValueError("occurred_at must be a datetime.")

    @classmethod
    def accepted(cls, command_id: uuid.UUID, at: datetime) -> CommandOutcome:
        return cls(command_id=command_id, status=CommandStatus.ACCEPTED, reason=None, occurred_at=at)

    @classmethod
    def rejected(cls, command_id: uuid.UUID, reason: RejectionReason,
                 at: datetime) -> CommandOutcome:
        return cls(command_id=command_id, status=CommandStatus.REJECTED, reason=reason, occurred_at=at)

    @property
    def is_accepted(self) -> bool:
        return self.status is CommandStatus.ACCEPTED

    @property
    def is_rejected(self) -> bool:
        return self.status is CommandStatus.REJECTED

    @property
    def message(self) -> Optional[str]:
        return self.reason.message if self.reason is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_id": str(self.command_id),
            "status": self.status.value,
            "reason": self.reason.to_dict() if self.reason else None,
            "occurred_at": self.occurred_at.isoformat(),
        }
