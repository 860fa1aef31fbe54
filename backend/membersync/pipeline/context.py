"""
SyncContext — mutable state object carried through every step.

This is the single source of truth for a sync run.  Each step reads
from and writes to the context; the engine turns the final context
into the sync log entry and the SyncResult.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from membersync.core.constants import DestinationType
from membersync.processing.types import (
    ColumnConfiguration,
    FieldMapping,
    ProcessedRows,
    RouteResult,
    Row,
    RowError,
)


# ═══════════════════════════════════════════════════════════
#  StepResult
# ═══════════════════════════════════════════════════════════

@dataclass
class StepResult:
    """Outcome of a single pipeline step execution."""

    step_name: str
    status: str                     # StepStatus value
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_name": self.step_name,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "metadata": self.metadata,
        }


# ═══════════════════════════════════════════════════════════
#  SyncContext
# ═══════════════════════════════════════════════════════════

@dataclass
class SyncContext:
    """
    Carries all state between pipeline steps.

    Populated progressively: clean_rows fills `processed`, map_fields
    fills `mapped_rows`, route_rows fills `route_result`.
    """

    # ─── Identity (set at init) ────────────────────────
    data_source_id: str
    destination_type: DestinationType
    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sync_log_id: str | None = None
    site_id: str | None = None
    table_name: str | None = None

    # ─── Input ─────────────────────────────────────────
    raw_rows: list[dict[str, Any]] = field(default_factory=list)
    column_config: ColumnConfiguration = field(default_factory=ColumnConfiguration)
    field_mappings: list[FieldMapping] = field(default_factory=list)

    # ─── Populated by steps ────────────────────────────
    processed: ProcessedRows | None = None
    mapped_rows: list[Row] = field(default_factory=list)
    route_result: RouteResult | None = None

    # ─── Execution tracking ────────────────────────────
    step_results: list[StepResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    # ─── Derived counts ────────────────────────────────

    @property
    def records_imported(self) -> int:
        return self.route_result.imported if self.route_result else 0

    @property
    def records_skipped(self) -> int:
        """Rows dropped by cleaning / filters / dedup plus rows a router skipped."""
        cleaning = self.processed.skipped_count if self.processed else 0
        routing = self.route_result.skipped if self.route_result else 0
        return cleaning + routing

    @property
    def row_errors(self) -> list[RowError]:
        return list(self.route_result.errors) if self.route_result else []

    def add_error(self, error: str) -> None:
        """Record a step-level failure message."""
        self.errors.append(error)

    def to_summary_dict(self) -> dict[str, Any]:
        """Row counts per stage and step outcomes, for the run's closing log line."""
        return {
            "raw_rows": len(self.raw_rows),
            "cleaned_rows": len(self.processed.cleaned_rows) if self.processed else 0,
            "mapped_rows": len(self.mapped_rows),
            "row_errors": len(self.row_errors),
            "steps": [sr.to_dict() for sr in self.step_results],
            "errors": self.errors,
        }
