"""
Tabular parser — delimited text to ParsedTable, plus CSV export.

Quoting follows RFC 4180 via the stdlib csv module: quoted fields may
hold the delimiter, embedded newlines and doubled quotes.  Blank lines
are ignored; lines whose cells are all empty are counted in total_rows
but left out of rows.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from membersync.core.config import settings
from membersync.core.logging import get_logger
from membersync.pipeline.errors import ParseError
from membersync.processing.type_detector import column_preview
from membersync.processing.types import DataPreview, ParsedTable
from membersync.processing.value_parsers import to_text

logger = get_logger(__name__)


def parse_csv(text: str, delimiter: str = ",") -> ParsedTable:
    """
    Parse delimited text.

    Raises:
        ParseError: on malformed quoting (e.g. an unterminated quote).
    """
    text = text.lstrip("\ufeff")
    if not text.strip():
        return ParsedTable()

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
    headers: list[str] | None = None
    rows: list[list[str]] = []
    total_rows = 0

    try:
        for record in reader:
            if not record:
                continue
            if headers is None:
                if all(not cell.strip() for cell in record):
                    continue
                headers = [cell.strip() for cell in record]
                continue

            total_rows += 1
            if all(not cell.strip() for cell in record):
                continue
            width = len(headers)
            rows.append((record + [""] * width)[:width])
    except csv.Error as exc:
        raise ParseError(f"Malformed delimited input: {exc}", line=reader.line_num) from exc

    logger.debug("Parsed delimited input", columns=len(headers or []), rows=len(rows), total_rows=total_rows)
    return ParsedTable(headers=headers or [], rows=rows, total_rows=total_rows)


def rows_to_records(table: ParsedTable) -> list[dict[str, str]]:
    """Header-keyed records, in row order."""
    return [dict(zip(table.headers, row)) for row in table.rows]


def generate_preview(table: ParsedTable, max_rows: int | None = None) -> DataPreview:
    """Column previews over every parsed row plus the first `max_rows` records."""
    limit = settings.PREVIEW_ROW_LIMIT if max_rows is None else max_rows
    columns = [
        column_preview(header, [row[idx] for row in table.rows])
        for idx, header in enumerate(table.headers)
    ]
    return DataPreview(
        headers=list(table.headers),
        columns=columns,
        rows=rows_to_records(table)[:limit],
        total_rows=table.total_rows,
    )


# ═══════════════════════════════════════════════════════════
#  Export
# ═══════════════════════════════════════════════════════════

@dataclass
class CsvColumn:
    """Export column: record key, header label, optional formatter."""

    key: str
    header: str | None = None
    format: Callable[[Any, Mapping[str, Any]], str] | None = None

    @property
    def label(self) -> str:
        return self.header if self.header is not None else self.key


def _as_columns(columns: Sequence[CsvColumn | str]) -> list[CsvColumn]:
    return [c if isinstance(c, CsvColumn) else CsvColumn(key=c) for c in columns]


def to_csv_string(
    records: Sequence[Mapping[str, Any]],
    columns: Sequence[CsvColumn | str],
    delimiter: str = ",",
) -> str:
    """
    Render records as CSV, header first, rows joined by '\\n' (no trailing
    newline).  Fields holding the delimiter, a quote or a newline are
    quoted; None becomes an empty field.
    """
    cols = _as_columns(columns)
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow([c.label for c in cols])
    for record in records:
        cells = []
        for col in cols:
            raw = record.get(col.key)
            if col.format is not None:
                raw = col.format(raw, record)
            cells.append("" if raw is None else to_text(raw))
        writer.writerow(cells)
    return buffer.getvalue().removesuffix("\n")


def from_csv_string(
    text: str,
    columns: Sequence[CsvColumn | str],
    delimiter: str = ",",
) -> list[dict[str, str]]:
    """Parse CSV produced by to_csv_string back into records keyed by column key."""
    cols = _as_columns(columns)
    table = parse_csv(text, delimiter=delimiter)
    position = {header: idx for idx, header in enumerate(table.headers)}
    records = []
    for row in table.rows:
        records.append({
            col.key: row[position[col.label]] if col.label in position else ""
            for col in cols
        })
    return records
