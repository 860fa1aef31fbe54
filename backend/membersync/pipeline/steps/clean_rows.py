"""
CleanRowsStep — apply the column configuration to every raw row.

Per-cell rules, then row filters, then duplicate handling.  Rows dropped
at any stage count towards records_skipped.
"""

from __future__ import annotations

from membersync.core.logging import get_logger
from membersync.pipeline.context import StepResult, SyncContext
from membersync.pipeline.errors import StepExecutionError
from membersync.pipeline.step import SyncStep
from membersync.processing.pipeline import process_rows

logger = get_logger(__name__)


class CleanRowsStep(SyncStep):
    """Clean, filter and deduplicate raw rows."""

    name = "clean_rows"
    description = "Clean, filter and deduplicate rows"

    async def execute(self, ctx: SyncContext) -> StepResult:
        started_at = self._now()

        try:
            ctx.processed = process_rows(ctx.raw_rows, ctx.column_config)
        except Exception as exc:
            raise StepExecutionError(
                f"Row cleaning failed: {exc}",
                execution_id=ctx.execution_id,
                step_name=self.name,
            ) from exc

        return self._success(started_at, metadata={
            "input_rows": len(ctx.raw_rows),
            "cleaned_rows": len(ctx.processed.cleaned_rows),
            "skipped": ctx.processed.skipped_count,
        })
