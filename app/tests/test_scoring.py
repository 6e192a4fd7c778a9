"""Score evaluation and entry validation. Pure functions, no store."""
from __future__ import annotations

import pytest

from app.models.kpi_entry import EntryValueIn
from app.models.kpi_template import KpiType, ScoringRule, TemplateItem
from app.services.errors import InvalidValueType, MissingBypassScore, MissingRequiredValues
from app.services.scoring import calculate_score, total_score, validate_and_calculate_scores

PERCENT_RULES = [ScoringRule(value=90, score=5), ScoringRule(value=75, score=3)]


# ── calculate_score ───────────────────────────────────────────────────────────

class TestPercentage:
    @pytest.mark.parametrize("value,expected", [(80, 3), (95, 5), (50, 0), (75, 3), (90, 5)])
    def test_threshold_semantics(self, value, expected):
        assert calculate_score(value, PERCENT_RULES, KpiType.percentage) == expected

    def test_rule_order_does_not_matter(self):
        assert calculate_score(92, list(reversed(PERCENT_RULES)), "percentage") == 5


class TestScoreType:
    def test_value_is_the_score(self):
        assert calculate_score(7.5, [], KpiType.score) == 7.5

    def test_rules_are_not_consulted(self):
        assert calculate_score(4, [ScoringRule(min=0, max=10, score=99)], KpiType.score) == 4


class TestRuleLookup:
    def test_range_bounds_are_inclusive(self):
        rules = [ScoringRule(min=0, max=4, score=1), ScoringRule(min=5, max=9, score=3)]
        assert calculate_score(4, rules, KpiType.quantitative) == 1
        assert calculate_score(5, rules, KpiType.quantitative) == 3
        assert calculate_score(9, rules, KpiType.quantitative) == 3

    def test_first_match_wins(self):
        rules = [ScoringRule(min=0, max=10, score=1), ScoringRule(min=5, max=10, score=7)]
        assert calculate_score(6, rules, KpiType.quantitative) == 1

    def test_no_match_scores_zero(self):
        assert calculate_score(50, [ScoringRule(min=0, max=10, score=1)], KpiType.quantitative) == 0

    def test_exact_string_match(self):
        rules = [ScoringRule(value="excellent", score=3), ScoringRule(value="good", score=2)]
        assert calculate_score("good", rules, KpiType.qualitative) == 2
        assert calculate_score("Good", rules, KpiType.qualitative) == 0

    def test_exact_match_is_type_sensitive(self):
        assert calculate_score(True, [ScoringRule(value=1, score=4)], KpiType.binary) == 0
        assert calculate_score("1", [ScoringRule(value=1, score=4)], KpiType.qualitative) == 0
        assert calculate_score(True, [ScoringRule(value=True, score=4)], KpiType.binary) == 4

    def test_int_and_float_compare_numerically(self):
        assert calculate_score(3.0, [ScoringRule(value=3, score=2)], KpiType.quantitative) == 2


# ── validate_and_calculate_scores ─────────────────────────────────────────────

@pytest.fixture
def items():
    return [
        TemplateItem(
            name="Tickets", kpi_type=KpiType.quantitative,
            scoring_rules=[ScoringRule(min=0, max=2, score=1), ScoringRule(min=3, max=100, score=5)],
        ),
        TemplateItem(name="Docs", kpi_type=KpiType.binary, scoring_rules=[ScoringRule(value=True, score=2)]),
        TemplateItem(name="Coverage", kpi_type=KpiType.percentage, is_dynamic=True, scoring_rules=PERCENT_RULES),
    ]


class TestRequiredValues:
    def test_missing_non_dynamic_item_fails(self, items):
        with pytest.raises(MissingRequiredValues) as exc:
            validate_and_calculate_scores([EntryValueIn(name="Docs", value=True)], items)
        assert exc.value.missing == ["Tickets"]
        assert "Tickets" in exc.value.message

    def test_every_missing_item_is_named(self, items):
        with pytest.raises(MissingRequiredValues) as exc:
            validate_and_calculate_scores([], items)
        assert exc.value.missing == ["Tickets", "Docs"]

    def test_missing_dynamic_item_is_fine(self, items):
        values = validate_and_calculate_scores(
            [EntryValueIn(name="Tickets", value=4), EntryValueIn(name="Docs", value=True)], items,
        )
        assert [v.name for v in values] == ["Tickets", "Docs"]
        assert total_score(values) == 7


class TestBypass:
    def test_bypass_without_score_fails(self, items):
        with pytest.raises(MissingBypassScore):
            validate_and_calculate_scores([
                EntryValueIn(name="Tickets", value=1, is_by_passed=True),
                EntryValueIn(name="Docs", value=True),
            ], items)

    def test_bypass_score_used_verbatim(self, items):
        values = validate_and_calculate_scores([
            EntryValueIn(name="Tickets", value="n/a", score=4.5, is_by_passed=True),
            EntryValueIn(name="Docs", value=True),
        ], items)
        assert values[0].score == 4.5
        assert values[0].is_by_passed is True

    def test_caller_score_ignored_when_not_bypassed(self, items):
        values = validate_and_calculate_scores([
            EntryValueIn(name="Tickets", value=1, score=100),
            EntryValueIn(name="Docs", value=True),
        ], items)
        assert values[0].score == 1


class TestValueTypes:
    def test_numeric_item_rejects_string(self, items):
        with pytest.raises(InvalidValueType, match="expects numeric"):
            validate_and_calculate_scores([
                EntryValueIn(name="Tickets", value="four"),
                EntryValueIn(name="Docs", value=True),
            ], items)

    def test_numeric_item_rejects_bool(self, items):
        with pytest.raises(InvalidValueType):
            validate_and_calculate_scores([
                EntryValueIn(name="Tickets", value=True),
                EntryValueIn(name="Docs", value=True),
            ], items)

    def test_binary_item_rejects_number(self, items):
        with pytest.raises(InvalidValueType, match="expects boolean"):
            validate_and_calculate_scores([
                EntryValueIn(name="Tickets", value=3),
                EntryValueIn(name="Docs", value=1),
            ], items)


def test_unknown_items_are_dropped(items):
    values = validate_and_calculate_scores([
        EntryValueIn(name="Tickets", value=3),
        EntryValueIn(name="Docs", value=False),
        EntryValueIn(name="Mystery", value=10),
    ], items)
    assert [v.name for v in values] == ["Tickets", "Docs"]
    assert total_score(values) == 5


def test_supplied_dynamic_item_is_scored(items):
    values = validate_and_calculate_scores([
        EntryValueIn(name="Tickets", value=0),
        EntryValueIn(name="Docs", value=True),
        EntryValueIn(name="Coverage", value=91),
    ], items)
    assert [v.score for v in values] == [1, 2, 5]
