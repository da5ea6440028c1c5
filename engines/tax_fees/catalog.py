"""
Tax & Fee Engine — Rule Catalog
================================
Regimes, versioned Rules and Rule Lines. Pure data with validity-window
semantics, plus the write-path guards that keep versioning honest.

RULES (NON-NEGOTIABLE):
- Version numbers per regime strictly increase in creation order
- Two active rules of one regime never have overlapping windows
  (enforced here at write time; the evaluator never checks)
- Rule lines are returned ordered by sort ascending, ties by line_id
- A rule version referenced by committed fees is locked: its lines
  cannot be revised, corrections need a new version
- Nothing is deleted: regimes and rules are deactivated or superseded

"Active on day D" means is_active and effective_from <= D <= effective_to
(effective_to None = open-ended), and the owning regime is active.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.time import Clock, EffectiveWindow, get_default_clock, parse_date
from engines.tax_fees.conditions import (
    Condition,
    conditions_to_dict,
    parse_conditions,
)
from engines.tax_fees.errors import (
    CatalogIntegrityError,
    RuleVersionLockedError,
    UnknownRecordError,
)
from engines.tax_fees.money import to_decimal

logger = logging.getLogger("dealdesk.tax_fees.catalog")


# ══════════════════════════════════════════════════════════════
# ENUMS / BASES
# ══════════════════════════════════════════════════════════════

class CalcType(Enum):
    PERCENT = "percent"  # rate_or_amount is percentage points of the base
    FIXED = "fixed"      # rate_or_amount is a currency amount


class FeeKind(Enum):
    TAX = "tax"
    TEMP_PLATE = "temp_plate"
    TRANSPORT = "transport"
    DOC = "doc"
    DISCOUNT = "discount"
    OTHER = "other"


# Base identifiers are open-ended; only vehicle_subtotal is wired to an amount.
BASE_VEHICLE_SUBTOTAL = "vehicle_subtotal"
BASE_FLAT = "flat"


def coerce_calc_type(value: Any) -> CalcType:
    if isinstance(value, CalcType):
        return value
    try:
        return CalcType(value)
    except ValueError:
        raise ValueError(f"calc_type '{value}' is not valid.") from None


def coerce_fee_kind(value: Any) -> Optional[FeeKind]:
    if value is None or isinstance(value, FeeKind):
        return value
    try:
        return FeeKind(value)
    except ValueError:
        raise ValueError(f"kind '{value}' is not valid.") from None


# ══════════════════════════════════════════════════════════════
# CATALOG RECORDS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Regime:
    """A taxing/fee jurisdiction, e.g. 'TX Combo' in 'TX'."""

    regime_id: str
    name: str
    jurisdiction: str
    active: bool = True

    def __post_init__(self):
        if not self.regime_id:
            raise ValueError("regime_id must be non-empty.")
        if not self.name:
            raise ValueError("name must be non-empty.")


@dataclass(frozen=True)
class Rule:
    """An immutable, dated snapshot of a regime's calculation logic."""

    rule_id: str
    regime_id: str
    version: int
    effective_from: date
    effective_to: Optional[date] = None
    is_active: bool = True

    def __post_init__(self):
        if not self.rule_id:
            raise ValueError("rule_id must be non-empty.")
        if not isinstance(self.version, int) or self.version < 1:
            raise ValueError("version must be integer >= 1.")
        # validates effective_from <= effective_to
        self.window

    @property
    def window(self) -> EffectiveWindow:
        return EffectiveWindow(start=self.effective_from, end=self.effective_to)

    def is_effective_on(self, day: date) -> bool:
        return self.is_active and self.window.contains(day)


@dataclass(frozen=True)
class RuleLine:
    """
    One charge definition within a rule version.

    conditions accepts either a parsed Condition tuple or the catalog's
    raw key → value mapping; it is stored parsed.
    """

    line_id: str
    rule_id: str
    name: str
    calc_type: CalcType
    base: str
    rate_or_amount: Decimal
    conditions: Optional[Tuple[Condition, ...]] = None
    sort: int = 0
    kind: Optional[FeeKind] = None

    def __post_init__(self):
        if not self.line_id:
            raise ValueError("line_id must be non-empty.")
        if not self.name:
            raise ValueError("name must be non-empty.")
        if not self.base:
            raise ValueError("base must be non-empty.")
        if not isinstance(self.sort, int) or isinstance(self.sort, bool):
            raise ValueError("sort must be an integer.")
        object.__setattr__(self, "calc_type", coerce_calc_type(self.calc_type))
        object.__setattr__(self, "kind", coerce_fee_kind(self.kind))

        rate = to_decimal(self.rate_or_amount)
        if not rate.is_finite():
            raise ValueError("rate_or_amount must be a finite number.")
        object.__setattr__(self, "rate_or_amount", rate)

        if isinstance(self.conditions, Mapping) or not self.conditions:
            object.__setattr__(self, "conditions", parse_conditions(self.conditions or None))
        else:
            object.__setattr__(self, "conditions", tuple(self.conditions))

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.sort, self.line_id)

    @property
    def conditions_dict(self) -> Optional[Dict[str, Any]]:
        return conditions_to_dict(self.conditions)


def order_rule_lines(lines: Iterable[RuleLine]) -> List[RuleLine]:
    """Deterministic evaluation/display order: sort asc, then line_id."""
    return sorted(lines, key=lambda line: line.sort_key)


def rule_line_from_mapping(rule_id: str, index: int, data: Mapping[str, Any]) -> RuleLine:
    """Build a RuleLine from an authoring mapping; line_id defaults to '<rule_id>-L<n>'."""
    return RuleLine(
        line_id=data.get("line_id") or f"{rule_id}-L{index}",
        rule_id=rule_id,
        name=data["name"],
        calc_type=data["calc_type"],
        base=data.get("base", BASE_FLAT),
        rate_or_amount=data["rate_or_amount"],
        conditions=data.get("conditions"),
        sort=data.get("sort", index),
        kind=data.get("kind"),
    )


# ══════════════════════════════════════════════════════════════
# VERSIONING RULES (shared by every catalog store)
# ══════════════════════════════════════════════════════════════

def next_version(rules: Iterable[Rule]) -> int:
    return max((r.version for r in rules), default=0) + 1


def plan_supersession(existing: Iterable[Rule], new_window: EffectiveWindow) -> List[Rule]:
    """
    Work out which active rules a new active version supersedes.

    An active rule that starts before the new window and is still in
    force on its first day is closed the day before. Any other overlap
    is an integrity violation.

    Returns the truncated replacements; raises CatalogIntegrityError.
    """
    replacements: List[Rule] = []
    for rule in existing:
        if not rule.is_active or not rule.window.overlaps(new_window):
            continue
        if rule.effective_from < new_window.start:
            closed = rule.window.closed_before(new_window.start)
            replacements.append(replace(rule, effective_to=closed.end))
            continue
        raise CatalogIntegrityError(
            f"Rule '{rule.rule_id}' (v{rule.version}) is active from "
            f"{rule.effective_from} and overlaps the new window starting "
            f"{new_window.start}."
        )
    return replacements


def assert_no_active_overlap(candidate: Rule, others: Iterable[Rule]) -> None:
    for other in others:
        if other.rule_id == candidate.rule_id or not other.is_active:
            continue
        if other.window.overlaps(candidate.window):
            raise CatalogIntegrityError(
                f"Rule '{candidate.rule_id}' (v{candidate.version}) would be "
                f"active alongside '{other.rule_id}' (v{other.version})."
            )


def resolve_active_rule(rules: Iterable[Rule], on: date) -> Optional[Rule]:
    """Pick the rule in force on `on`. Highest version wins a (corrupt) tie."""
    candidates = [r for r in rules if r.is_effective_on(on)]
    if not candidates:
        return None
    if len(candidates) > 1:
        logger.warning(
            f"Catalog integrity violation: {len(candidates)} active rules on {on} "
            f"({sorted(r.rule_id for r in candidates)}); using highest version."
        )
    return max(candidates, key=lambda r: r.version)


# ══════════════════════════════════════════════════════════════
# LOADING
# ══════════════════════════════════════════════════════════════

def load_catalog(catalog, data: Mapping[str, Any]) -> int:
    """
    Publish regimes and rules from a plain mapping into any catalog store.

    Regimes that already exist are skipped together with their rules.
    Rules are published in list order, so list order is version order.
    Returns the number of rules published.
    """
    published = 0
    for entry in data.get("regimes", []):
        if catalog.get_regime(entry["regime_id"]) is not None:
            logger.info(f"Load: regime {entry['regime_id']} exists, skipped")
            continue
        catalog.add_regime(Regime(
            regime_id=entry["regime_id"],
            name=entry["name"],
            jurisdiction=entry.get("jurisdiction", ""),
            active=entry.get("active", True),
        ))
        for rule in entry.get("rules", []):
            catalog.publish_rule(
                entry["regime_id"],
                rule_id=rule.get("rule_id"),
                effective_from=rule["effective_from"],
                effective_to=rule.get("effective_to"),
                is_active=rule.get("is_active", True),
                lines=rule.get("lines", []),
            )
            published += 1
    return published


# ══════════════════════════════════════════════════════════════
# IN-MEMORY CATALOG (tests / bootstrap / seed data)
# ══════════════════════════════════════════════════════════════

class InMemoryRuleCatalog:
    """
    Rule catalog held in process memory.

    Implements the RuleCatalogReader port (fetch_active_rule,
    fetch_rule_lines) plus the authoring write path.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._regimes: Dict[str, Regime] = {}
        self._rules: Dict[str, Rule] = {}
        self._lines: Dict[str, List[RuleLine]] = {}
        self._locked_rules: set = set()

    # ── regimes ───────────────────────────────────────────────

    def add_regime(self, regime: Regime) -> Regime:
        with self._lock:
            if regime.regime_id in self._regimes:
                raise CatalogIntegrityError(f"Regime '{regime.regime_id}' already exists.")
            self._regimes[regime.regime_id] = regime
        logger.info(f"Regime added: {regime.regime_id} ({regime.name})")
        return regime

    def get_regime(self, regime_id: str) -> Optional[Regime]:
        return self._regimes.get(regime_id)

    def list_regimes(self, active_only: bool = False) -> List[Regime]:
        regimes = sorted(self._regimes.values(), key=lambda r: (r.name, r.regime_id))
        return [r for r in regimes if r.active or not active_only]

    def set_regime_active(self, regime_id: str, active: bool) -> Regime:
        with self._lock:
            regime = self._require_regime(regime_id)
            updated = replace(regime, active=active)
            self._regimes[regime_id] = updated
        return updated

    # ── rules ─────────────────────────────────────────────────

    def publish_rule(
        self,
        regime_id: str,
        *,
        effective_from,
        lines: Sequence[Mapping[str, Any]],
        effective_to=None,
        is_active: bool = True,
        rule_id: Optional[str] = None,
    ) -> Rule:
        """
        Create the next rule version for a regime.

        An earlier active version still in force on effective_from is
        superseded (closed the day before). Other overlaps raise
        CatalogIntegrityError and nothing is written.
        """
        with self._lock:
            self._require_regime(regime_id)
            existing = self.list_rules(regime_id)
            version = next_version(existing)
            rule = Rule(
                rule_id=rule_id or f"{regime_id}-v{version}",
                regime_id=regime_id,
                version=version,
                effective_from=parse_date(effective_from),
                effective_to=parse_date(effective_to),
                is_active=is_active,
            )
            if rule.rule_id in self._rules:
                raise CatalogIntegrityError(f"Rule '{rule.rule_id}' already exists.")

            superseded = plan_supersession(existing, rule.window) if is_active else []
            built = [rule_line_from_mapping(rule.rule_id, i + 1, entry) for i, entry in enumerate(lines)]

            for old in superseded:
                self._rules[old.rule_id] = old
                logger.info(
                    f"Rule {old.rule_id} (v{old.version}) superseded; "
                    f"now effective to {old.effective_to}"
                )
            self._rules[rule.rule_id] = rule
            self._lines[rule.rule_id] = built

        logger.info(
            f"Rule published: {rule.rule_id} regime={regime_id} v{rule.version} "
            f"from {rule.effective_from} ({len(built)} lines)"
        )
        return rule

    def set_rule_active(self, rule_id: str, active: bool) -> Rule:
        with self._lock:
            rule = self._require_rule(rule_id)
            updated = replace(rule, is_active=active)
            if active:
                assert_no_active_overlap(updated, self.list_rules(rule.regime_id))
            self._rules[rule_id] = updated
        return updated

    def deactivate_rule(self, rule_id: str) -> Rule:
        return self.set_rule_active(rule_id, False)

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def list_rules(self, regime_id: str) -> List[Rule]:
        return sorted(
            (r for r in self._rules.values() if r.regime_id == regime_id),
            key=lambda r: r.version,
        )

    # ── lines ─────────────────────────────────────────────────

    def revise_rule_lines(self, rule_id: str, lines: Sequence[Mapping[str, Any]]) -> List[RuleLine]:
        with self._lock:
            self._require_rule(rule_id)
            if rule_id in self._locked_rules:
                raise RuleVersionLockedError(rule_id)
            built = [rule_line_from_mapping(rule_id, i + 1, entry) for i, entry in enumerate(lines)]
            self._lines[rule_id] = built
        return order_rule_lines(built)

    def lock_rule(self, rule_id: str) -> None:
        with self._lock:
            self._require_rule(rule_id)
            self._locked_rules.add(rule_id)

    def is_locked(self, rule_id: str) -> bool:
        return rule_id in self._locked_rules

    # ── reader port ───────────────────────────────────────────

    def fetch_active_rule(self, regime_id: str, on: date) -> Optional[Rule]:
        regime = self._regimes.get(regime_id)
        if regime is None or not regime.active:
            return None
        return resolve_active_rule(self.list_rules(regime_id), on)

    def fetch_rule_lines(self, rule_id: str) -> List[RuleLine]:
        return order_rule_lines(self._lines.get(rule_id, []))

    def get_active_rule(self, regime_id: str, on: Optional[date] = None) -> Optional[Rule]:
        clock = self._clock or get_default_clock()
        return self.fetch_active_rule(regime_id, on or clock.now_utc().date())

    def get_rule_lines(self, rule_id: str) -> List[RuleLine]:
        return self.fetch_rule_lines(rule_id)

    # ── seed data ─────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], clock: Optional[Clock] = None) -> InMemoryRuleCatalog:
        """
        Load regimes and their rule versions.

        {"regimes": [{"regime_id", "name", "jurisdiction", "active",
                      "rules": [{"rule_id", "effective_from", "effective_to",
                                 "is_active", "lines": [...]}]}]}
        Rules are published in list order, so list order is version order.
        """
        catalog = cls(clock=clock)
        load_catalog(catalog, data)
        return catalog

    # ── internals ─────────────────────────────────────────────

    def _require_regime(self, regime_id: str) -> Regime:
        regime = self._regimes.get(regime_id)
        if regime is None:
            raise UnknownRecordError("Regime", regime_id)
        return regime

    def _require_rule(self, rule_id: str) -> Rule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise UnknownRecordError("Rule", rule_id)
        return rule
