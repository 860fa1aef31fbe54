"""
Cleaning rule engine — applies declarative rules to single cell values,
and suggests a starting configuration from a column preview.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from membersync.core.constants import DetectedType, OnInvalid, StorageType
from membersync.processing.rules import (
    CleaningRule,
    CollapseWhitespaceRule,
    LowercaseRule,
    ParseBooleanRule,
    ParseDateRule,
    ParseNumberRule,
    RuleOutcome,
    TrimRule,
    ValidateEmailRule,
    ValidatePhoneRule,
    ValidateUrlRule,
)
from membersync.processing.types import ColumnConfig, ColumnPreview

# Detected semantic type -> storage type of a generated column
STORAGE_TYPE_FOR: dict[DetectedType, StorageType] = {
    DetectedType.TEXT: StorageType.TEXT,
    DetectedType.EMAIL: StorageType.TEXT,
    DetectedType.URL: StorageType.TEXT,
    DetectedType.PHONE: StorageType.TEXT,
    DetectedType.BOOLEAN: StorageType.BOOLEAN,
    DetectedType.INTEGER: StorageType.INTEGER,
    DetectedType.NUMBER: StorageType.NUMBER,
    DetectedType.DATE: StorageType.DATE,
}


def apply_rule(value: Any, rule: CleaningRule) -> RuleOutcome:
    """Apply one rule.  Pure and total."""
    return rule.apply(value)


def apply_column_rules(value: Any, rules: Iterable[CleaningRule]) -> RuleOutcome:
    """Fold rules left to right; stop at the first one that asks to skip."""
    outcome = RuleOutcome(value)
    for rule in rules:
        outcome = rule.apply(outcome.value)
        if outcome.skip:
            break
    return outcome


def to_snake_case(label: str) -> str:
    """'First Name' -> 'first_name'."""
    return re.sub(r"[^a-z0-9]+", "_", label.lower()).strip("_")


def suggest_cleaning_rules(column: ColumnPreview) -> list[CleaningRule]:
    """Heuristic starting rules for a column, based on its samples and type."""
    rules: list[CleaningRule] = []
    samples = column.sample_values

    if any(v != v.strip() for v in samples):
        rules.append(TrimRule())
    if any(re.search(r" {2,}", v.strip()) for v in samples):
        rules.append(CollapseWhitespaceRule())

    detected = column.detected_type
    if detected == DetectedType.EMAIL:
        rules.append(LowercaseRule())
        rules.append(ValidateEmailRule(on_invalid=OnInvalid.NULL))
    elif detected == DetectedType.PHONE:
        rules.append(ValidatePhoneRule(format="e164", on_invalid=OnInvalid.KEEP))
    elif detected == DetectedType.URL:
        rules.append(ValidateUrlRule(on_invalid=OnInvalid.KEEP))
    elif detected in (DetectedType.INTEGER, DetectedType.NUMBER):
        rules.append(ParseNumberRule())
    elif detected == DetectedType.BOOLEAN:
        rules.append(ParseBooleanRule())
    elif detected == DetectedType.DATE:
        rules.append(ParseDateRule(format="auto"))

    return rules


def generate_default_column_config(previews: Iterable[ColumnPreview]) -> list[ColumnConfig]:
    """One included column per preview, snake-cased, with suggested rules."""
    return [
        ColumnConfig(
            source_name=preview.name,
            target_name=to_snake_case(preview.name) or preview.name,
            type=STORAGE_TYPE_FOR.get(preview.detected_type, StorageType.TEXT),
            included=True,
            cleaning_rules=suggest_cleaning_rules(preview),
        )
        for preview in previews
    ]
