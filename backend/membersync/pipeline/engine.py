"""
SyncEngine — the orchestrator that runs a sync end to end.

Responsibilities:
    - Open a sync log and mark the data source as syncing
    - Execute clean_rows → map_fields → route_rows with timing and logging
    - Derive the run status from imported / error counts
    - Finalise the sync log and the data source status
    - Return a SyncResult with a bounded error sample

A failing step ends the run as `failed`.  Nothing is rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from membersync.core.config import settings
from membersync.core.constants import DataSourceStatus, DestinationType, StepStatus, SyncStatus
from membersync.core.logging import get_logger
from membersync.pipeline.context import StepResult, SyncContext
from membersync.pipeline.errors import StepExecutionError
from membersync.pipeline.step import SyncStep
from membersync.pipeline.steps.clean_rows import CleanRowsStep
from membersync.pipeline.steps.map_fields import MapFieldsStep
from membersync.pipeline.steps.route_rows import RouteRowsStep
from membersync.processing.types import ColumnConfiguration, FieldMapping, RowError, SyncResult
from membersync.routing.router import DestinationRouter
from membersync.store.base import DataStore

logger = get_logger(__name__)


@dataclass
class SyncOptions:
    """Everything one sync run needs."""

    data_source_id: str
    raw_rows: list[dict[str, Any]]
    destination_type: DestinationType
    column_config: ColumnConfiguration = field(default_factory=ColumnConfiguration)
    field_mappings: list[FieldMapping] = field(default_factory=list)
    site_id: str | None = None
    table_name: str | None = None


def determine_status(imported: int, error_count: int) -> SyncStatus:
    if imported > 0 and error_count:
        return SyncStatus.PARTIAL
    if imported > 0:
        return SyncStatus.SUCCESS
    return SyncStatus.FAILED


class SyncEngine:
    """
    Runs the sync steps against a SyncContext.

    Usage::

        engine = SyncEngine(store)
        result = await engine.run(SyncOptions(
            data_source_id="ds-1",
            raw_rows=records,
            destination_type=DestinationType.MEMBERS,
            column_config=config,
            field_mappings=mappings,
            site_id="site-1",
        ))
    """

    def __init__(
        self,
        store: DataStore,
        router: DestinationRouter | None = None,
        steps: Sequence[SyncStep] | None = None,
    ) -> None:
        self.store = store
        self.router = router or DestinationRouter(store)
        self.steps: list[SyncStep] = list(steps) if steps is not None else [
            CleanRowsStep(),
            MapFieldsStep(),
            RouteRowsStep(self.router),
        ]

    async def run(self, options: SyncOptions) -> SyncResult:
        started_at = datetime.now(timezone.utc)

        ctx = SyncContext(
            data_source_id=options.data_source_id,
            destination_type=DestinationType(options.destination_type),
            site_id=options.site_id,
            table_name=options.table_name,
            raw_rows=list(options.raw_rows),
            column_config=options.column_config,
            field_mappings=list(options.field_mappings),
        )
        log = logger.bind(
            execution_id=ctx.execution_id,
            data_source_id=ctx.data_source_id,
            destination_type=ctx.destination_type.value,
        )

        # ── Open the run ──────────────────────────────
        ctx.sync_log_id = await self.store.create_sync_log(ctx.data_source_id)
        await self.store.update_data_source_status(ctx.data_source_id, DataSourceStatus.SYNCING)
        log.info("Sync started", sync_log_id=ctx.sync_log_id, raw_rows=len(ctx.raw_rows))

        # ── Run steps ─────────────────────────────────
        failed_step = await self.run_steps(ctx, log)

        # ── Finalise ──────────────────────────────────
        if failed_step is not None:
            result = await self._finish_failed(ctx, failed_step, started_at)
        else:
            result = await self._finish(ctx, started_at)

        log.info(
            "Sync finished",
            status=result.status,
            imported=result.records_imported,
            skipped=result.records_skipped,
            failed=result.records_failed,
            **ctx.to_summary_dict(),
        )
        return result

    async def run_steps(self, ctx: SyncContext, log: Any = None) -> StepResult | None:
        """
        Execute each step in order.  Returns the failed StepResult, or None
        when every step completed or was skipped.
        """
        log = log or logger.bind(execution_id=ctx.execution_id)

        for index, step in enumerate(self.steps, start=1):
            step_log = log.bind(step_name=step.name, step_index=index)

            if await step.should_skip(ctx):
                step_log.info("Step skipped")
                now = datetime.now(timezone.utc)
                ctx.step_results.append(StepResult(
                    step_name=step.name,
                    status=StepStatus.SKIPPED,
                    started_at=now,
                    completed_at=now,
                ))
                continue

            step_log.info(f"Step {index}/{len(self.steps)}: {step.description}")
            result = await self._execute(step, ctx, step_log)
            ctx.step_results.append(result)

            if result.status != StepStatus.COMPLETED:
                step_log.error("Step failed, sync stopping", error=result.error)
                ctx.add_error(f"Step '{step.name}' failed: {result.error}")
                return result

            step_log.info("Step completed", duration_ms=result.duration_ms, metadata=result.metadata)
        return None

    async def _execute(self, step: SyncStep, ctx: SyncContext, log: Any) -> StepResult:
        try:
            return await step.execute(ctx)
        except StepExecutionError as exc:
            now = datetime.now(timezone.utc)
            return StepResult(
                step_name=step.name,
                status=StepStatus.FAILED,
                started_at=now,
                completed_at=now,
                error=str(exc),
            )
        except Exception as exc:
            log.exception("Unexpected error in step", error=str(exc))
            now = datetime.now(timezone.utc)
            return StepResult(
                step_name=step.name,
                status=StepStatus.FAILED,
                started_at=now,
                completed_at=now,
                error=f"Unexpected: {exc}",
            )

    async def _finish(self, ctx: SyncContext, started_at: datetime) -> SyncResult:
        errors = ctx.row_errors
        imported = ctx.records_imported
        skipped = ctx.records_skipped
        status = determine_status(imported, len(errors))
        error_message = f"{len(errors)} rows had errors" if errors else None

        await self.store.finalize_sync_log(
            ctx.sync_log_id,
            status=status,
            records_imported=imported,
            records_skipped=skipped,
            records_failed=len(errors),
            error_message=error_message,
            errors=_error_sample(errors),
        )
        await self.store.update_data_source_status(
            ctx.data_source_id,
            DataSourceStatus.FAILED if status == SyncStatus.FAILED else DataSourceStatus.SUCCESS,
        )
        return SyncResult(
            sync_log_id=ctx.sync_log_id,
            status=status,
            records_imported=imported,
            records_skipped=skipped,
            records_failed=len(errors),
            errors=errors[:settings.SYNC_ERROR_SAMPLE_LIMIT],
            error_message=error_message,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

    async def _finish_failed(
        self,
        ctx: SyncContext,
        failed_step: StepResult,
        started_at: datetime,
    ) -> SyncResult:
        message = failed_step.error or f"Step '{failed_step.step_name}' failed"
        errors = [RowError(row=0, message=message)]
        # Rows committed before the failure stay in the store and in the counts
        imported = ctx.records_imported
        failed = len(ctx.raw_rows) - imported

        await self.store.finalize_sync_log(
            ctx.sync_log_id,
            status=SyncStatus.FAILED,
            records_imported=imported,
            records_skipped=0,
            records_failed=failed,
            error_message=message,
            errors=_error_sample(errors),
        )
        await self.store.update_data_source_status(ctx.data_source_id, DataSourceStatus.FAILED)
        return SyncResult(
            sync_log_id=ctx.sync_log_id,
            status=SyncStatus.FAILED,
            records_imported=imported,
            records_failed=failed,
            errors=errors,
            error_message=message,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


def _error_sample(errors: list[RowError]) -> list[dict[str, Any]]:
    return [e.to_dict() for e in errors[:settings.SYNC_ERROR_SAMPLE_LIMIT]]
