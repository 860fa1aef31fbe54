"""
Row processing — clean every cell, then filter and deduplicate the batch.

    raw rows ─▶ per-cell rules ─▶ skip collection ─▶ row filters ─▶ dedup

Filters and duplicate keys refer to target (cleaned) column names.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from membersync.core.logging import get_logger
from membersync.processing.cleaning import apply_column_rules
from membersync.processing.types import ColumnConfiguration, ProcessedRows, Row
from membersync.validation.duplicate_detector import handle_duplicates
from membersync.validation.row_filters import should_include_row

logger = get_logger(__name__)


def clean_row(row: Mapping[str, Any], config: ColumnConfiguration) -> Row | None:
    """
    Apply each included column's rules.  Returns None when any cell
    asks for the row to be skipped.  Without configured columns the row
    passes through unchanged.
    """
    if not config.columns:
        return dict(row)

    cleaned: Row = {}
    for column in config.columns:
        if not column.included:
            continue
        outcome = apply_column_rules(row.get(column.source_name), column.cleaning_rules)
        if outcome.skip:
            return None
        cleaned[column.target_name] = outcome.value
    return cleaned


def process_rows(rows: Sequence[Mapping[str, Any]], config: ColumnConfiguration) -> ProcessedRows:
    cleaned_rows: list[Row] = []
    skipped_by_rules = 0
    for row in rows:
        cleaned = clean_row(row, config)
        if cleaned is None:
            skipped_by_rules += 1
        else:
            cleaned_rows.append(cleaned)

    filtered = [row for row in cleaned_rows if should_include_row(row, config.row_filters)]
    deduplicated = handle_duplicates(filtered, config.duplicate_key_columns, config.duplicate_handling)

    skipped_count = len(rows) - len(deduplicated)
    logger.info(
        "Rows cleaned",
        input_rows=len(rows),
        cleaned_rows=len(deduplicated),
        skipped_by_rules=skipped_by_rules,
        filtered_out=len(cleaned_rows) - len(filtered),
        duplicates_removed=len(filtered) - len(deduplicated),
    )
    return ProcessedRows(cleaned_rows=deduplicated, skipped_count=skipped_count)
