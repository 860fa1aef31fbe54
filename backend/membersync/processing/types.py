"""
Data shapes shared by the import pipeline.

Configuration objects that are stored per data source (column config,
row filters, field mappings, schedules) are pydantic models so they
round-trip through JSON columns.  Transient per-run values are plain
dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, TypeAlias

from pydantic import BaseModel, Field

from membersync.core.constants import (
    DetectedType,
    DuplicateHandling,
    FilterAction,
    FilterOperator,
    ScheduleFrequency,
    StorageType,
    SyncStatus,
)
from membersync.processing.rules import CleaningRule

# A single cell after cleaning
CellValue: TypeAlias = bool | int | float | str | date | None

# Column name -> value, in column-configuration order
Row: TypeAlias = dict[str, CellValue]


# ═══════════════════════════════════════════════════════════
#  Parsing / preview
# ═══════════════════════════════════════════════════════════

@dataclass
class ParsedTable:
    """Header row plus data rows, each padded or truncated to len(headers)."""

    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    total_rows: int = 0


class ColumnPreview(BaseModel):
    """Inferred shape of one source column."""

    name: str
    detected_type: DetectedType = DetectedType.TEXT
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    sample_values: list[str] = Field(default_factory=list)
    null_count: int = 0
    unique_count: int = 0


@dataclass
class DataPreview:
    """What an operator sees before configuring an import."""

    headers: list[str]
    columns: list[ColumnPreview]
    rows: list[dict[str, str]]
    total_rows: int


# ═══════════════════════════════════════════════════════════
#  Cleaning configuration
# ═══════════════════════════════════════════════════════════

class ColumnConfig(BaseModel):
    source_name: str
    target_name: str
    type: StorageType = StorageType.TEXT
    included: bool = True
    cleaning_rules: list[CleaningRule] = Field(default_factory=list)


class RowFilter(BaseModel):
    column: str
    operator: FilterOperator
    value: Any | None = None
    action: FilterAction = FilterAction.INCLUDE


class ColumnConfiguration(BaseModel):
    """Full cleaning setup for one data source; persists across runs."""

    columns: list[ColumnConfig] = Field(default_factory=list)
    row_filters: list[RowFilter] = Field(default_factory=list)
    duplicate_key_columns: list[str] = Field(default_factory=list)
    duplicate_handling: DuplicateHandling = DuplicateHandling.KEEP_ALL


class FieldMapping(BaseModel):
    """Binds a cleaned column to a destination field.  Empty source = unmapped."""

    source_column: str = ""
    target_field: str
    required: bool = False


class ScheduleConfiguration(BaseModel):
    frequency: ScheduleFrequency = ScheduleFrequency.MANUAL
    time: str | None = None                 # "HH:MM"
    day_of_week: int | None = None          # 0 = Sunday
    day_of_month: int | None = None
    cron_expression: str | None = None
    timezone: str | None = None
    retry_on_failure: bool = False
    max_retries: int = 0
    retry_delay_minutes: int = 15


# ═══════════════════════════════════════════════════════════
#  Run results
# ═══════════════════════════════════════════════════════════

@dataclass
class RowError:
    """A row-level problem reported back to the operator.  `row` is 1-based."""

    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass
class ProcessedRows:
    cleaned_rows: list[Row] = field(default_factory=list)
    skipped_count: int = 0


@dataclass
class RouteResult:
    """Outcome of one destination handler over a batch."""

    imported: int = 0
    skipped: int = 0
    errors: list[RowError] = field(default_factory=list)


@dataclass
class SyncResult:
    sync_log_id: str
    status: SyncStatus
    records_imported: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    errors: list[RowError] = field(default_factory=list)
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sync_log_id": self.sync_log_id,
            "status": self.status,
            "records_imported": self.records_imported,
            "records_skipped": self.records_skipped,
            "records_failed": self.records_failed,
            "errors": [e.to_dict() for e in self.errors],
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class QueryPage:
    """One page of an import table plus the table's total row count."""

    rows: list[dict[str, Any]]
    count: int
