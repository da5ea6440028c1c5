"""
Tax & Fee Engine — Condition Matcher Tests
==========================================
Strict, fail-closed matching of rule line conditions against facts.
"""

from __future__ import annotations

import pytest

from engines.tax_fees.catalog import RuleLine
from engines.tax_fees.conditions import (
    FlagCondition,
    OpaqueCondition,
    TagCondition,
    TagType,
    TransactionFacts,
    conditions_to_dict,
    is_applicable,
    missing_fact_keys,
    parse_conditions,
)


def _line(conditions=None) -> RuleLine:
    return RuleLine(
        line_id="L1",
        rule_id="R1",
        name="Sales Tax",
        calc_type="percent",
        base="vehicle_subtotal",
        rate_or_amount="6.25",
        conditions=conditions,
    )


# ══════════════════════════════════════════════════════════════
# FACTS
# ══════════════════════════════════════════════════════════════

class TestTransactionFacts:
    def test_from_mapping_types_known_keys(self):
        facts = TransactionFacts.from_mapping({"out_of_state": True, "tag": "apportioned"})
        assert facts.out_of_state is True
        assert facts.tag is TagType.APPORTIONED
        assert dict(facts.extra) == {}

    def test_mistyped_known_key_goes_to_extra(self):
        facts = TransactionFacts.from_mapping({"out_of_state": "true", "tag": "bogus"})
        assert facts.out_of_state is None
        assert facts.tag is None
        assert dict(facts.extra) == {"out_of_state": "true", "tag": "bogus"}

    def test_unknown_keys_go_to_extra(self):
        facts = TransactionFacts.from_mapping({"dealer_state": "TX"})
        assert facts.lookup("dealer_state") == "TX"
        assert facts.has("dealer_state")
        assert not facts.has("resale_cert")

    def test_rejects_non_bool_flag(self):
        with pytest.raises(ValueError, match="out_of_state"):
            TransactionFacts(out_of_state=1)

    def test_rejects_key_both_typed_and_extra(self):
        with pytest.raises(ValueError, match="both"):
            TransactionFacts(out_of_state=True, extra={"out_of_state": False})

    def test_extra_is_read_only(self):
        facts = TransactionFacts(extra={"x": 1})
        with pytest.raises(TypeError):
            facts.extra["x"] = 2

    def test_with_changes_replaces_extra_shadow(self):
        facts = TransactionFacts.from_mapping({"out_of_state": "yes"})
        changed = facts.with_changes(out_of_state=True)
        assert changed.out_of_state is True
        assert "out_of_state" not in changed.extra

    def test_to_dict_round_trips_mapping(self):
        data = {"out_of_state": False, "tag": "combo", "dealer_state": "TX"}
        assert TransactionFacts.from_mapping(data).to_dict() == data


# ══════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════

class TestParseConditions:
    def test_empty_mapping_is_unconditional(self):
        assert parse_conditions({}) is None
        assert parse_conditions(None) is None

    def test_parses_each_kind(self):
        parsed = parse_conditions({"out_of_state": True, "tag": "apportioned", "dealer_state": "TX"})
        assert parsed == (
            OpaqueCondition(key="dealer_state", required="TX"),
            FlagCondition(key="out_of_state", required=True),
            TagCondition(required=TagType.APPORTIONED),
        )

    def test_string_flag_value_stays_opaque(self):
        (condition,) = parse_conditions({"resale_cert": "true"})
        assert isinstance(condition, OpaqueCondition)

    def test_conditions_to_dict(self):
        data = {"out_of_state": True, "tag": "apportioned"}
        assert conditions_to_dict(parse_conditions(data)) == data

    def test_flag_condition_rejects_unknown_key(self):
        with pytest.raises(ValueError, match="flag"):
            FlagCondition(key="dealer_state", required=True)


# ══════════════════════════════════════════════════════════════
# MATCHING
# ══════════════════════════════════════════════════════════════

class TestIsApplicable:
    @pytest.mark.parametrize("facts", [
        TransactionFacts(),
        TransactionFacts(out_of_state=True),
        TransactionFacts.from_mapping({"anything": object()}),
    ])
    def test_unconditional_line_always_applies(self, facts):
        assert is_applicable(_line(), facts)

    def test_matching_flag_applies(self):
        line = _line({"out_of_state": False})
        assert is_applicable(line, TransactionFacts(out_of_state=False))

    def test_flipping_the_fact_flips_applicability(self):
        line = _line({"out_of_state": False})
        assert not is_applicable(line, TransactionFacts(out_of_state=True))

    def test_all_conditions_must_match(self):
        line = _line({"out_of_state": True, "resale_cert": True})
        assert not is_applicable(line, TransactionFacts(out_of_state=True, resale_cert=False))
        assert is_applicable(line, TransactionFacts(out_of_state=True, resale_cert=True))

    def test_one_failing_condition_holds_line_off_when_another_flips(self):
        line = _line({"out_of_state": True, "resale_cert": True})
        facts = TransactionFacts(out_of_state=False, resale_cert=False)
        assert not is_applicable(line, facts)
        assert not is_applicable(line, facts.with_changes(out_of_state=True))

    def test_missing_fact_fails_closed(self):
        line = _line({"out_of_state": False})
        assert not is_applicable(line, TransactionFacts())
        assert missing_fact_keys(line, TransactionFacts()) == ("out_of_state",)

    def test_strict_equality_string_is_not_bool(self):
        line = _line({"out_of_state": True})
        assert not is_applicable(line, TransactionFacts.from_mapping({"out_of_state": "true"}))

    def test_strict_equality_int_is_not_bool(self):
        line = _line({"out_of_state": True})
        assert not is_applicable(line, TransactionFacts.from_mapping({"out_of_state": 1}))

    def test_tag_condition(self):
        line = _line({"tag": "apportioned"})
        assert is_applicable(line, TransactionFacts(tag=TagType.APPORTIONED))
        assert not is_applicable(line, TransactionFacts(tag=TagType.COMBO))
        assert not is_applicable(line, TransactionFacts())

    def test_unknown_key_matches_only_identical_typed_value(self):
        line = _line({"dealer_state": "TX"})
        assert is_applicable(line, TransactionFacts.from_mapping({"dealer_state": "TX"}))
        assert not is_applicable(line, TransactionFacts.from_mapping({"dealer_state": "OK"}))
        assert not is_applicable(line, TransactionFacts())

    def test_numeric_values_compare_by_value(self):
        line = _line({"axles": 3})
        assert is_applicable(line, TransactionFacts.from_mapping({"axles": 3.0}))
        assert is_applicable(line, TransactionFacts.from_mapping({"axles": 3}))
        assert not is_applicable(line, TransactionFacts.from_mapping({"axles": 4}))
        assert not is_applicable(line, TransactionFacts.from_mapping({"axles": "3"}))

    def test_bool_never_equals_a_number(self):
        line = _line({"axles": 1})
        assert not is_applicable(line, TransactionFacts.from_mapping({"axles": True}))
