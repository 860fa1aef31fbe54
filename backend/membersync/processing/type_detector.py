"""
Column type detector — infers a semantic type per column from samples.

Detection order is part of the contract: the first predicate that
accepts a value wins, so "1" is a boolean rather than an integer and
"(212) 555-1234" is a phone rather than text.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable, Iterable, Mapping, Sequence

from membersync.core.config import settings
from membersync.core.constants import DetectedType
from membersync.processing.types import ColumnPreview
from membersync.processing.value_parsers import (
    is_blank,
    is_boolean_token,
    is_date,
    is_email,
    is_integer,
    is_number,
    is_url,
    looks_like_phone,
    to_text,
)

TYPE_PREDICATES: list[tuple[Callable[[str], bool], DetectedType]] = [
    (is_email, DetectedType.EMAIL),
    (is_url, DetectedType.URL),
    (looks_like_phone, DetectedType.PHONE),
    (is_boolean_token, DetectedType.BOOLEAN),
    (is_integer, DetectedType.INTEGER),
    (is_number, DetectedType.NUMBER),
    (is_date, DetectedType.DATE),
]

SAMPLE_VALUE_LIMIT = 5


def detect_value_type(value: Any) -> DetectedType:
    if is_blank(value):
        return DetectedType.TEXT
    text = to_text(value).strip()
    for predicate, detected in TYPE_PREDICATES:
        if predicate(text):
            return detected
    return DetectedType.TEXT


def detect_column_type(values: Iterable[Any]) -> tuple[DetectedType, float]:
    """
    Majority type over the non-blank values.

    Returns (type, confidence) where confidence is the majority's share
    of non-blank values.  No usable values -> (TEXT, 0.0).
    """
    counts = Counter(detect_value_type(v) for v in values if not is_blank(v))
    total = sum(counts.values())
    if not total:
        return DetectedType.TEXT, 0.0
    # Counter.most_common keeps first-seen order on ties
    detected, hits = counts.most_common(1)[0]
    return detected, hits / total


def column_preview(name: str, values: Sequence[Any]) -> ColumnPreview:
    detected, confidence = detect_column_type(values)
    non_blank = [to_text(v) for v in values if not is_blank(v)]
    return ColumnPreview(
        name=name,
        detected_type=detected,
        confidence=confidence,
        sample_values=non_blank[:SAMPLE_VALUE_LIMIT],
        null_count=len(values) - len(non_blank),
        unique_count=len(set(non_blank)),
    )


def analyze_columns(
    records: Sequence[Mapping[str, Any]],
    sample_size: int | None = None,
) -> list[ColumnPreview]:
    """One preview per column of the first record, sampling the first N rows."""
    if not records:
        return []
    sample = records[: sample_size or settings.TYPE_SAMPLE_SIZE]
    return [
        column_preview(name, [row.get(name) for row in sample])
        for name in records[0].keys()
    ]
