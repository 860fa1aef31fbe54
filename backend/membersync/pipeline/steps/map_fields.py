"""
MapFieldsStep — rename cleaned columns to destination fields.

Mappings are checked against the destination schema first; a required
field left unmapped fails the run before anything is written.  A custom
destination with no mappings receives the cleaned rows as they are.
"""

from __future__ import annotations

from membersync.core.constants import DestinationType
from membersync.core.logging import get_logger
from membersync.pipeline.context import StepResult, SyncContext
from membersync.pipeline.errors import StepExecutionError
from membersync.pipeline.step import SyncStep
from membersync.processing.mapper import map_row_to_destination, validate_field_mappings

logger = get_logger(__name__)


class MapFieldsStep(SyncStep):
    """Apply field mappings to the cleaned rows."""

    name = "map_fields"
    description = "Map cleaned columns to destination fields"

    async def execute(self, ctx: SyncContext) -> StepResult:
        started_at = self._now()
        cleaned = ctx.processed.cleaned_rows if ctx.processed else []

        try:
            if ctx.destination_type == DestinationType.CUSTOM and not ctx.field_mappings:
                ctx.mapped_rows = [dict(row) for row in cleaned]
                return self._success(started_at, metadata={"mapped_rows": len(ctx.mapped_rows), "passthrough": True})

            mappings = validate_field_mappings(ctx.field_mappings, ctx.destination_type)
            ctx.mapped_rows = [map_row_to_destination(row, mappings) for row in cleaned]
        except Exception as exc:
            raise StepExecutionError(
                f"Field mapping failed: {exc}",
                execution_id=ctx.execution_id,
                step_name=self.name,
            ) from exc

        logger.debug("Fields mapped", mappings=len(mappings), mapped_rows=len(ctx.mapped_rows))
        return self._success(started_at, metadata={
            "mapped_rows": len(ctx.mapped_rows),
            "mappings": len(mappings),
        })
