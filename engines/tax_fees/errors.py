"""
Tax & Fee Engine — Errors
==========================
Raised only for programming / data-integrity faults on the catalog
write path. Caller-recoverable conditions (duplicate commit, empty
commit, invalid override value) are RejectionReasons, not exceptions.
"""


class TaxFeeError(Exception):
    """Base error for the tax & fee engine."""


class CatalogIntegrityError(TaxFeeError):
    """A catalog write would break a versioning invariant."""


class RuleVersionLockedError(TaxFeeError):
    """A rule version referenced by committed fees cannot be revised."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(
            f"Rule version '{rule_id}' is referenced by committed fees; "
            f"publish a new version instead."
        )


class UnknownRecordError(TaxFeeError, KeyError):
    """A catalog or deal record id does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} '{record_id}' not found.")

    def __str__(self) -> str:
        return self.args[0]
