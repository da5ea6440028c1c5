"""
Tax & Fee Engine — Ports and Deal Records
==========================================
Read/write interfaces the engine is handed (never reaches for), the
deal-side records that cross them, and the in-memory store used by
tests and bootstrap wiring.

The Django implementations live in engines.tax_fees.persistence.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import (
    Any,
    ContextManager,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from engines.tax_fees.catalog import (
    CalcType,
    FeeKind,
    Rule,
    RuleLine,
    coerce_calc_type,
    coerce_fee_kind,
)
from engines.tax_fees.errors import UnknownRecordError
from engines.tax_fees.money import to_decimal


# ══════════════════════════════════════════════════════════════
# FEE META (override provenance)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class OverrideStamp:
    by: str
    at: datetime

    def __post_init__(self):
        if not self.by:
            raise ValueError("OverrideStamp.by must be non-empty.")
        if not isinstance(self.at, datetime) or self.at.tzinfo is None:
            raise ValueError("OverrideStamp.at must be a timezone-aware datetime.")


@dataclass(frozen=True)
class FeeMeta:
    """
    Structured annotation on a committed fee.

    original_conditions: the rule line's condition mapping at commit time.
    override: who last overrode the fee and when (None = never).
    """

    original_conditions: Optional[Mapping[str, Any]] = None
    override: Optional[OverrideStamp] = None

    @property
    def is_overridden(self) -> bool:
        return self.override is not None

    @property
    def overridden_by(self) -> Optional[str]:
        return self.override.by if self.override else None

    @property
    def overridden_at(self) -> Optional[datetime]:
        return self.override.at if self.override else None

    def stamped(self, by: str, at: datetime) -> FeeMeta:
        """Replace the override stamp, keeping everything else."""
        return replace(self, override=OverrideStamp(by=by, at=at))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.original_conditions is not None:
            out["conditions"] = dict(self.original_conditions)
        if self.override is not None:
            out["overridden_by"] = self.override.by
            out["overridden_at"] = self.override.at.isoformat()
        return out

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> FeeMeta:
        data = data or {}
        stamp = None
        if data.get("overridden_by") and data.get("overridden_at"):
            at = data["overridden_at"]
            if isinstance(at, str):
                at = datetime.fromisoformat(at)
            stamp = OverrideStamp(by=data["overridden_by"], at=at)
        return cls(original_conditions=data.get("conditions"), override=stamp)


# ══════════════════════════════════════════════════════════════
# DEAL RECORDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DealUnit:
    deal_id: str
    unit_id: str
    agreed_unit_price: Decimal

    def __post_init__(self):
        if not self.deal_id or not self.unit_id:
            raise ValueError("deal_id and unit_id must be non-empty.")
        object.__setattr__(self, "agreed_unit_price", to_decimal(self.agreed_unit_price))


# Fields the override path is allowed to patch on a committed fee.
PATCHABLE_FEE_FIELDS = frozenset({"rate_or_amount", "result_amount", "applies", "meta"})


@dataclass(frozen=True)
class DealFee:
    """A committed, per-deal charge line. Mutated only via override patches."""

    fee_id: str
    deal_id: str
    name: str
    calc_type: CalcType
    base: str
    rate_or_amount: Decimal
    result_amount: Decimal
    applies: bool = True
    meta: FeeMeta = field(default_factory=FeeMeta)
    sort: int = 0
    kind: Optional[FeeKind] = None
    rule_id: Optional[str] = None

    def __post_init__(self):
        if not self.fee_id:
            raise ValueError("fee_id must be non-empty.")
        if not self.deal_id:
            raise ValueError("deal_id must be non-empty.")
        if type(self.applies) is not bool:
            raise ValueError("applies must be bool.")
        if not isinstance(self.meta, FeeMeta):
            raise TypeError("meta must be FeeMeta.")
        object.__setattr__(self, "calc_type", coerce_calc_type(self.calc_type))
        object.__setattr__(self, "kind", coerce_fee_kind(self.kind))
        object.__setattr__(self, "rate_or_amount", to_decimal(self.rate_or_amount))
        object.__setattr__(self, "result_amount", to_decimal(self.result_amount))

    def with_patch(self, patch: Mapping[str, Any]) -> DealFee:
        unknown = set(patch) - PATCHABLE_FEE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch fee fields {sorted(unknown)}.")
        return replace(self, **patch)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fee_id": self.fee_id,
            "deal_id": self.deal_id,
            "name": self.name,
            "calc_type": self.calc_type.value,
            "base": self.base,
            "rate_or_amount": str(self.rate_or_amount),
            "result_amount": str(self.result_amount),
            "applies": self.applies,
            "meta": self.meta.to_dict(),
            "sort": self.sort,
            "kind": self.kind.value if self.kind else None,
            "rule_id": self.rule_id,
        }


# ══════════════════════════════════════════════════════════════
# PORTS
# ══════════════════════════════════════════════════════════════

class RuleCatalogReader(Protocol):
    def fetch_active_rule(self, regime_id: str, on: date) -> Optional[Rule]:
        ...

    def fetch_rule_lines(self, rule_id: str) -> List[RuleLine]:
        ...

    def lock_rule(self, rule_id: str) -> None:
        ...


class DealStore(Protocol):
    def fetch_deal_units(self, deal_id: str) -> List[DealUnit]:
        ...

    def fetch_deal_fees(self, deal_id: str) -> List[DealFee]:
        ...

    def fetch_deal_fee(self, fee_id: str) -> Optional[DealFee]:
        ...

    def persist_deal_fees(self, deal_id: str, fees: Sequence[DealFee]) -> None:
        ...

    def persist_deal_fee_override(self, fee_id: str, patch: Mapping[str, Any]) -> DealFee:
        ...

    def stamp_deal(self, deal_id: str, *, tax_rule_version_id: str) -> None:
        ...

    def fetch_deal_stamp(self, deal_id: str) -> Optional[str]:
        ...

    def transaction(self, deal_id: str) -> ContextManager[None]:
        """Unit of work for a deal's check-then-write."""
        ...


def order_deal_fees(fees: Sequence[DealFee]) -> List[DealFee]:
    return sorted(fees, key=lambda f: (f.sort, f.fee_id))


# ══════════════════════════════════════════════════════════════
# IN-MEMORY DEAL STORE
# ══════════════════════════════════════════════════════════════

class InMemoryDealStore:
    """
    Deal units, fees and stamps held in process memory.

    transaction() serialises check-then-write per store with a
    re-entrant lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._units: Dict[str, Dict[str, DealUnit]] = {}
        self._fees: Dict[str, DealFee] = {}
        self._stamps: Dict[str, str] = {}

    # ── deal units (owned by the deal desk, seeded here) ──────

    def put_unit(self, unit: DealUnit) -> None:
        with self._lock:
            self._units.setdefault(unit.deal_id, {})[unit.unit_id] = unit

    def set_unit_price(self, deal_id: str, unit_id: str, price) -> DealUnit:
        with self._lock:
            unit = self._units.get(deal_id, {}).get(unit_id)
            if unit is None:
                raise UnknownRecordError("DealUnit", unit_id)
            updated = replace(unit, agreed_unit_price=to_decimal(price))
            self._units[deal_id][unit_id] = updated
        return updated

    def fetch_deal_units(self, deal_id: str) -> List[DealUnit]:
        return sorted(self._units.get(deal_id, {}).values(), key=lambda u: u.unit_id)

    # ── deal fees ─────────────────────────────────────────────

    def fetch_deal_fees(self, deal_id: str) -> List[DealFee]:
        return order_deal_fees([f for f in self._fees.values() if f.deal_id == deal_id])

    def fetch_deal_fee(self, fee_id: str) -> Optional[DealFee]:
        return self._fees.get(fee_id)

    def persist_deal_fees(self, deal_id: str, fees: Sequence[DealFee]) -> None:
        with self._lock:
            for fee in fees:
                if fee.deal_id != deal_id:
                    raise ValueError(f"Fee '{fee.fee_id}' belongs to deal '{fee.deal_id}'.")
                if fee.fee_id in self._fees:
                    raise ValueError(f"Fee '{fee.fee_id}' already persisted.")
            for fee in fees:
                self._fees[fee.fee_id] = fee

    def persist_deal_fee_override(self, fee_id: str, patch: Mapping[str, Any]) -> DealFee:
        with self._lock:
            fee = self._fees.get(fee_id)
            if fee is None:
                raise UnknownRecordError("DealFee", fee_id)
            updated = fee.with_patch(patch)
            self._fees[fee_id] = updated
        return updated

    def stamp_deal(self, deal_id: str, *, tax_rule_version_id: str) -> None:
        with self._lock:
            self._stamps[deal_id] = tax_rule_version_id

    def fetch_deal_stamp(self, deal_id: str) -> Optional[str]:
        return self._stamps.get(deal_id)

    @contextmanager
    def transaction(self, deal_id: str) -> Iterator[None]:
        with self._lock:
            yield
