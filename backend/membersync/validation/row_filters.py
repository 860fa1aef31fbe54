"""Row-level include/exclude filters."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from membersync.core.constants import FilterAction, FilterOperator
from membersync.processing.types import RowFilter
from membersync.processing.value_parsers import is_blank, parse_number, to_text


def _text(value: Any) -> str:
    return "" if value is None else to_text(value)


def _as_number(value: Any) -> int | float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    return parse_number(to_text(value))


def _compare(cell: Any, target: Any) -> int:
    """-1 / 0 / 1.  Numeric when both sides are numeric, else string order."""
    left, right = _as_number(cell), _as_number(target)
    if left is None or right is None:
        left, right = _text(cell), _text(target)
    return (left > right) - (left < right)


def matches_filter(row: Mapping[str, Any], row_filter: RowFilter) -> bool:
    """Evaluate one filter's operator against row[filter.column]."""
    cell = row.get(row_filter.column)
    target = row_filter.value
    op = row_filter.operator

    if op == FilterOperator.IS_EMPTY:
        return is_blank(cell)
    if op == FilterOperator.IS_NOT_EMPTY:
        return not is_blank(cell)
    if op == FilterOperator.GREATER_THAN:
        return not is_blank(cell) and _compare(cell, target) > 0
    if op == FilterOperator.LESS_THAN:
        return not is_blank(cell) and _compare(cell, target) < 0

    cell_text, target_text = _text(cell), _text(target)
    if op == FilterOperator.EQUALS:
        return cell_text == target_text
    if op == FilterOperator.NOT_EQUALS:
        return cell_text != target_text

    # Substring operators are case-insensitive
    cell_text, target_text = cell_text.lower(), target_text.lower()
    if op == FilterOperator.CONTAINS:
        return target_text in cell_text
    if op == FilterOperator.NOT_CONTAINS:
        return target_text not in cell_text
    if op == FilterOperator.STARTS_WITH:
        return cell_text.startswith(target_text)
    if op == FilterOperator.ENDS_WITH:
        return cell_text.endswith(target_text)
    return False


def should_include_row(row: Mapping[str, Any], filters: Iterable[RowFilter]) -> bool:
    """Keep the row iff it satisfies every include filter and no exclude filter."""
    for row_filter in filters:
        matched = matches_filter(row, row_filter)
        if row_filter.action == FilterAction.INCLUDE and not matched:
            return False
        if row_filter.action == FilterAction.EXCLUDE and matched:
            return False
    return True
