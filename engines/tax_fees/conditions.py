"""
Tax & Fee Engine — Condition Matcher
=====================================
Decides which rule lines apply to a transaction.

RULES (NON-NEGOTIABLE):
- A line without conditions always applies, for any facts
- Otherwise every condition must match (logical AND)
- Equality is strict and type-preserving: True != "true", True != 1;
  numbers compare by value, so 3 == 3.0
- A fact the line asks about but the caller did not supply is a
  NON-match (fail closed). An under-specified fact set must never
  silently enable a charge.
- Pure: no I/O, no clock, no mutation

Condition kinds:
    FlagCondition    — boolean switches: out_of_state, resale_cert, temp_plate
    TagCondition     — plate/tag registration type: combo | apportioned
    OpaqueCondition  — any other key the catalog references; compared
                       strictly against TransactionFacts.extra
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from numbers import Number
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Iterable, Mapping, Optional, Tuple, Union

logger = logging.getLogger("dealdesk.tax_fees")


# ══════════════════════════════════════════════════════════════
# KNOWN FACT KEYS
# ══════════════════════════════════════════════════════════════

class TagType(Enum):
    COMBO = "combo"              # standard combo registration
    APPORTIONED = "apportioned"  # IRP apportioned plates


FLAG_KEYS = frozenset({"out_of_state", "resale_cert", "temp_plate"})
TAG_KEY = "tag"
KNOWN_FACT_KEYS = FLAG_KEYS | {TAG_KEY}

_TAG_VALUES = {t.value: t for t in TagType}
_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _strict_equal(left: Any, right: Any) -> bool:
    # 3 == 3.0, but a bool never equals a number or a string
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


# ══════════════════════════════════════════════════════════════
# TRANSACTION FACTS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransactionFacts:
    """
    Condition context supplied at evaluation time.

    Known keys are typed fields (None = not supplied). Any other key,
    and any known key supplied with the wrong type, is kept verbatim in
    `extra` so strict comparison still fails closed on it.
    """

    out_of_state: Optional[bool] = None
    resale_cert: Optional[bool] = None
    temp_plate: Optional[bool] = None
    tag: Optional[TagType] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for key in sorted(FLAG_KEYS):
            value = getattr(self, key)
            if value is not None and type(value) is not bool:
                raise ValueError(f"{key} must be bool or None, got {type(value).__name__}.")
        if self.tag is not None and not isinstance(self.tag, TagType):
            raise ValueError(f"tag must be TagType or None, got {type(self.tag).__name__}.")
        for key in self.extra:
            if key in KNOWN_FACT_KEYS and self._typed(key) is not None:
                raise ValueError(f"'{key}' supplied both as a typed fact and in extra.")
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def _typed(self, key: str) -> Any:
        return getattr(self, key) if key in KNOWN_FACT_KEYS else None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> TransactionFacts:
        """Build facts from a flat condition-key → value mapping."""
        typed: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key in FLAG_KEYS and type(value) is bool:
                typed[key] = value
            elif key == TAG_KEY and isinstance(value, TagType):
                typed[key] = value
            elif key == TAG_KEY and isinstance(value, str) and value in _TAG_VALUES:
                typed[key] = _TAG_VALUES[value]
            else:
                extra[key] = value
        return cls(**typed, extra=extra)

    def lookup(self, key: str) -> Any:
        """Return the fact value, or the _MISSING sentinel."""
        typed = self._typed(key)
        if typed is not None:
            return typed
        return self.extra.get(key, _MISSING)

    def has(self, key: str) -> bool:
        return self.lookup(key) is not _MISSING

    def with_changes(self, **changes: Any) -> TransactionFacts:
        extra = {k: v for k, v in self.extra.items() if k not in changes}
        return replace(self, extra=extra, **changes)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key in sorted(FLAG_KEYS):
            if getattr(self, key) is not None:
                out[key] = getattr(self, key)
        if self.tag is not None:
            out[TAG_KEY] = self.tag.value
        for key in sorted(self.extra):
            out[key] = self.extra[key]
        return out


# ══════════════════════════════════════════════════════════════
# CONDITIONS (tagged union)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FlagCondition:
    kind: ClassVar[str] = "flag"

    key: str
    required: bool

    def __post_init__(self) -> None:
        if self.key not in FLAG_KEYS:
            raise ValueError(f"'{self.key}' is not a flag fact.")
        if type(self.required) is not bool:
            raise ValueError("FlagCondition.required must be bool.")

    def matches(self, facts: TransactionFacts) -> bool:
        return _strict_equal(facts.lookup(self.key), self.required)

    def raw_value(self) -> Any:
        return self.required


@dataclass(frozen=True)
class TagCondition:
    kind: ClassVar[str] = "tag"
    key: ClassVar[str] = TAG_KEY

    required: TagType

    def matches(self, facts: TransactionFacts) -> bool:
        value = facts.lookup(TAG_KEY)
        return isinstance(value, TagType) and value is self.required

    def raw_value(self) -> Any:
        return self.required.value


@dataclass(frozen=True)
class OpaqueCondition:
    kind: ClassVar[str] = "opaque"

    key: str
    required: Any

    def matches(self, facts: TransactionFacts) -> bool:
        value = facts.lookup(self.key)
        if value is _MISSING:
            return False
        return _strict_equal(value, self.required)

    def raw_value(self) -> Any:
        return self.required


Condition = Union[FlagCondition, TagCondition, OpaqueCondition]


def parse_condition(key: str, value: Any) -> Condition:
    if key in FLAG_KEYS and type(value) is bool:
        return FlagCondition(key=key, required=value)
    if key == TAG_KEY and isinstance(value, TagType):
        return TagCondition(required=value)
    if key == TAG_KEY and isinstance(value, str) and value in _TAG_VALUES:
        return TagCondition(required=_TAG_VALUES[value])
    return OpaqueCondition(key=key, required=value)


def parse_conditions(
    data: Optional[Mapping[str, Any]],
) -> Optional[Tuple[Condition, ...]]:
    """Catalog condition mapping → ordered condition tuple (None if empty)."""
    if not data:
        return None
    return tuple(parse_condition(key, data[key]) for key in sorted(data))


def conditions_to_dict(conditions: Optional[Iterable[Condition]]) -> Optional[Dict[str, Any]]:
    if not conditions:
        return None
    return {c.key: c.raw_value() for c in conditions}


# ══════════════════════════════════════════════════════════════
# MATCHER
# ══════════════════════════════════════════════════════════════

def missing_fact_keys(line, facts: TransactionFacts) -> Tuple[str, ...]:
    """Condition keys the line references that the facts do not supply."""
    if not line.conditions:
        return ()
    return tuple(c.key for c in line.conditions if not facts.has(c.key))


def is_applicable(line, facts: TransactionFacts) -> bool:
    """
    True if every condition on the line matches the facts.

    `line` is anything with a `conditions` attribute holding a tuple of
    Condition or None (RuleLine in practice).
    """
    if not line.conditions:
        return True

    applicable = all(condition.matches(facts) for condition in line.conditions)
    if not applicable:
        missing = missing_fact_keys(line, facts)
        if missing:
            logger.debug(
                f"Line '{getattr(line, 'name', '?')}' fails closed: "
                f"facts missing {list(missing)}"
            )
    return applicable
