"""Deal Desk Tax & Fee Engine - policies."""

from __future__ import annotations

from typing import Callable, Sequence

from core.commands.base import Command
from core.commands.outcomes import RejectionReason
from engines.tax_fees.money import finite_decimal


class TaxFeeReasonCode:
    """
    Caller-visible validation outcomes.

    NO_ACTIVE_RULE and UNDERSPECIFIED_FACTS are handled locally (empty
    preview / fail-closed match) and only appear in logs.
    """

    NO_ACTIVE_RULE = "NO_ACTIVE_RULE"
    INVALID_OVERRIDE_VALUE = "INVALID_OVERRIDE_VALUE"
    DUPLICATE_COMMIT = "DUPLICATE_COMMIT"
    EMPTY_COMMIT = "EMPTY_COMMIT"
    UNDERSPECIFIED_FACTS = "UNDERSPECIFIED_FACTS"
    FEE_NOT_FOUND = "FEE_NOT_FOUND"


def commit_must_be_first_policy(
    command: Command,
    fees_exist: Callable[[str], bool],
) -> RejectionReason | None:
    if fees_exist(command.deal_id):
        return RejectionReason(
            code=TaxFeeReasonCode.DUPLICATE_COMMIT,
            message="Fees already applied to this deal.",
            policy_name="commit_must_be_first_policy",
        )
    return None


def commit_requires_preview_lines_policy(
    command: Command,
    preview_lines: Sequence,
) -> RejectionReason | None:
    if command.payload.get("regime_id") is None:
        return RejectionReason(
            code=TaxFeeReasonCode.EMPTY_COMMIT,
            message="Select a tax regime before applying fees.",
            policy_name="commit_requires_preview_lines_policy",
        )
    if not preview_lines:
        return RejectionReason(
            code=TaxFeeReasonCode.EMPTY_COMMIT,
            message="No fees to apply for the selected regime and facts.",
            policy_name="commit_requires_preview_lines_policy",
        )
    return None


def override_value_must_be_finite_policy(command: Command) -> RejectionReason | None:
    if "rate_or_amount" not in command.payload:
        return None
    value = command.payload["rate_or_amount"]
    if finite_decimal(value) is None:
        return RejectionReason(
            code=TaxFeeReasonCode.INVALID_OVERRIDE_VALUE,
            message=f"Rate or amount {value!r} is not a finite number.",
            policy_name="override_value_must_be_finite_policy",
        )
    return None


def override_applies_must_be_bool_policy(command: Command) -> RejectionReason | None:
    if "applies" not in command.payload:
        return None
    value = command.payload["applies"]
    if type(value) is not bool:
        return RejectionReason(
            code=TaxFeeReasonCode.INVALID_OVERRIDE_VALUE,
            message=f"Applies flag {value!r} must be true or false.",
            policy_name="override_applies_must_be_bool_policy",
        )
    return None


def deal_fee_must_exist_policy(command: Command, fee_lookup) -> RejectionReason | None:
    fee_id = command.payload.get("fee_id", "")
    fee = fee_lookup(fee_id) if fee_id else None
    if fee is None or fee.deal_id != command.deal_id:
        return RejectionReason(
            code=TaxFeeReasonCode.FEE_NOT_FOUND,
            message=f"Fee '{fee_id}' not found on deal '{command.deal_id}'.",
            policy_name="deal_fee_must_exist_policy",
        )
    return None
