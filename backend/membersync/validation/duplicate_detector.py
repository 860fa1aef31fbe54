"""
Within-batch duplicate resolution.

Rows are keyed by a composite of the configured columns.  The scope is
a single batch; nothing is compared against previously imported data.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Mapping, Sequence, TypeVar

from membersync.core.constants import DuplicateHandling
from membersync.processing.value_parsers import to_text

R = TypeVar("R", bound=Mapping[str, Any])


def get_row_key(row: Mapping[str, Any], columns: Sequence[str]) -> str:
    """Pipe-joined column values; a missing or null column contributes ''."""
    return "|".join(
        "" if row.get(col) is None else to_text(row.get(col))
        for col in columns
    )


def handle_duplicates(
    rows: Sequence[R],
    key_columns: Sequence[str],
    handling: DuplicateHandling | str,
) -> list[R]:
    """
    Resolve duplicate keys across an ordered batch.

        keep_all    no-op
        keep_first  first occurrence of each key, in input order
        keep_last   last occurrence of each key, in order of those occurrences
        skip_all    only rows whose key occurs exactly once

    With no key columns every mode is a no-op.
    """
    handling = DuplicateHandling(handling)
    if not key_columns or handling == DuplicateHandling.KEEP_ALL:
        return list(rows)

    keys = [get_row_key(row, key_columns) for row in rows]

    if handling == DuplicateHandling.KEEP_FIRST:
        seen: set[str] = set()
        kept = []
        for row, key in zip(rows, keys):
            if key not in seen:
                seen.add(key)
                kept.append(row)
        return kept

    if handling == DuplicateHandling.KEEP_LAST:
        last_index = {key: idx for idx, key in enumerate(keys)}
        return [rows[idx] for idx in sorted(last_index.values())]

    counts = Counter(keys)
    return [row for row, key in zip(rows, keys) if counts[key] == 1]
