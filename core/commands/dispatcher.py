"""
Deal Desk Command Layer — Command Dispatcher
=============================================
Accept Command → Evaluate Policies → Produce Outcome.

The Dispatcher is the DECISION MAKER. It decides ACCEPTED or REJECTED.

The Dispatcher DOES NOT:
- Persist anything
- Execute business logic
- Raise on a rejected command

Policies are callables that return Optional[RejectionReason].
Policies that need collaborators (a store lookup, a preview) are
bound with functools.partial before dispatch.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from core.commands.base import Command
from core.commands.outcomes import CommandOutcome, ReasonCode, RejectionReason
from core.time.clock import Clock, get_default_clock

logger = logging.getLogger("dealdesk.commands")


# A policy is a callable:
#   (Command) → Optional[RejectionReason]
#   Returns None if policy passes, RejectionReason if it rejects.
PolicyEvaluator = Callable[[Command], Optional[RejectionReason]]


def system_actor_cannot_override_guard(command: Command) -> Optional[RejectionReason]:
    """Overrides carry a person's name in the audit trail; SYSTEM may not issue them."""
    if command.actor_type == "SYSTEM" and command.command_type.endswith(".override.request"):
        return RejectionReason(
            code=ReasonCode.INVALID_ACTOR,
            message="Fee overrides must be issued by a person.",
            policy_name="system_actor_cannot_override_guard",
        )
    return None


class CommandDispatcher:
    """
    Evaluate a command through policies.

    Usage:
        dispatcher = CommandDispatcher(clock=clock)
        dispatcher.register_policy(system_actor_cannot_override_guard)

        outcome = dispatcher.dispatch(command, extra_policies)

    Registered policies run first, then the per-call policies, in order.
    First rejection wins — remaining policies are skipped.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock
        self._policies: List[PolicyEvaluator] = []

    def register_policy(self, policy: PolicyEvaluator) -> None:
        if not callable(policy):
            raise TypeError(
                f"Policy must be callable, got {type(policy).__name__}."
            )
        self._policies.append(policy)

        policy_name = getattr(policy, "__qualname__", str(policy))
        logger.debug(f"Policy registered: {policy_name}")

    def dispatch(
        self,
        command: Command,
        policies: Sequence[PolicyEvaluator] = (),
    ) -> CommandOutcome:
        """
        Evaluate command and produce outcome.

        Returns:
            CommandOutcome — never None, never ambiguous.
        """
        clock = self._clock or get_default_clock()
        now = clock.now_utc()

        for policy in [*self._policies, *policies]:
            rejection = policy(command)
            if rejection is None:
                continue
            if not isinstance(rejection, RejectionReason):
                raise TypeError(
                    f"Policy must return RejectionReason or None, "
                    f"got {type(rejection).__name__}."
                )

            logger.info(
                f"Command {command.command_id} rejected by "
                f"policy '{rejection.policy_name}': "
                f"[{rejection.code}] {rejection.message}"
            )
            return CommandOutcome.rejected(command.command_id, rejection, at=now)

        logger.info(f"Command {command.command_id} ACCEPTED ({command.command_type})")
        return CommandOutcome.accepted(command.command_id, at=now)
