"""Score evaluation and entry validation.

Pure functions over plain models: no store access here. The orchestration in
kpi_entry_service sequences store calls around them.
"""
from __future__ import annotations

import logging
from typing import Optional

from app.models.kpi_entry import EntryValue, EntryValueIn
from app.models.kpi_template import KpiType, KpiValue, ScoringRule, TemplateItem
from app.services.errors import InvalidValueType, MissingBypassScore, MissingRequiredValues

logger = logging.getLogger(__name__)

_NUMERIC_TYPES = {KpiType.quantitative, KpiType.percentage, KpiType.score}


def is_number(value: object) -> bool:
    # bool is an int subclass, but a checkbox is not a number
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _values_equal(value: KpiValue, expected: KpiValue) -> bool:
    if is_number(value) and is_number(expected):
        return value == expected
    return type(value) is type(expected) and value == expected


def calculate_score(
    value: KpiValue,
    scoring_rules: list[ScoringRule],
    kpi_type: Optional[KpiType | str] = None,
    kpi_name: Optional[str] = None,
) -> float:
    """Score one value against its item's rules. Returns 0 when nothing matches."""
    kind = KpiType(kpi_type) if kpi_type is not None else None
    logger.debug("Scoring KPI %r (%s): value=%r, %d rules", kpi_name, kind, value, len(scoring_rules))

    # Direct score entry: the value is the score
    if kind is KpiType.score and is_number(value):
        return float(value)

    # Threshold semantics: highest rule whose value the submission reaches
    if kind is KpiType.percentage and is_number(value):
        thresholds = sorted(
            (r for r in scoring_rules if is_number(r.value)),
            key=lambda r: r.value,
            reverse=True,
        )
        for rule in thresholds:
            if value >= rule.value:
                return rule.score
        logger.warning("No percentage rule matched for KPI %r with value %r%%", kpi_name, value)
        return 0.0

    for rule in scoring_rules:
        if rule.is_range:
            if is_number(value) and rule.min <= value <= rule.max:
                return rule.score
        elif rule.value is not None and _values_equal(value, rule.value):
            return rule.score

    logger.warning("No scoring rule matched for KPI %r with value %r", kpi_name, value)
    return 0.0


def validate_required_values(values: list[EntryValueIn], template_items: list[TemplateItem]) -> None:
    """Raise MissingRequiredValues naming every non-dynamic item that was not supplied."""
    provided = {v.name for v in values}
    missing = [item.name for item in template_items if not item.is_dynamic and item.name not in provided]
    if missing:
        raise MissingRequiredValues(missing)

    dynamic = {item.name for item in template_items if item.is_dynamic}
    supplied_dynamic = [v.name for v in values if v.name in dynamic]
    if supplied_dynamic:
        logger.warning(
            "Dynamic KPIs provided in entry (will be updated by an automated source later): %s",
            ", ".join(supplied_dynamic),
        )


def _check_value_type(value: EntryValueIn, item: TemplateItem) -> None:
    if item.kpi_type in _NUMERIC_TYPES and not is_number(value.value):
        raise InvalidValueType(value.name, "numeric", value.value)
    if item.kpi_type is KpiType.binary and not isinstance(value.value, bool):
        raise InvalidValueType(value.name, "boolean", value.value)


def validate_and_calculate_scores(
    values: list[EntryValueIn],
    template_items: list[TemplateItem],
) -> list[EntryValue]:
    """Validate submitted values against the template and attach a score to each.

    Values that name no template item are dropped. Bypassed values keep the
    caller's score; all others are scored from the item's rules and any caller
    score is ignored.
    """
    validate_required_values(values, template_items)
    items = {item.name: item for item in template_items}

    validated: list[EntryValue] = []
    for value in values:
        item = items.get(value.name)
        if item is None:
            logger.warning("Template item not found for KPI: %s", value.name)
            continue

        if value.is_by_passed:
            if value.score is None:
                raise MissingBypassScore(value.name)
            score = value.score
        else:
            if value.score is not None:
                logger.warning(
                    "Score field ignored for non-bypassed KPI: %s. Score will be calculated automatically.",
                    value.name,
                )
            _check_value_type(value, item)
            score = calculate_score(value.value, item.scoring_rules, item.kpi_type, value.name)

        validated.append(EntryValue(**value.model_dump(exclude={"score"}), score=score))

    return validated


def total_score(values: list[EntryValue]) -> float:
    return sum(v.score for v in values)
