"""
RouteRowsStep — hand the mapped batch to the destination router.

Row-level failures come back inside the RouteResult; anything raised
here (store outage, custom destination without a table) ends the run.
Rows already written stay written and stay counted on ctx.route_result.
"""

from __future__ import annotations

from membersync.core.logging import get_logger
from membersync.pipeline.context import StepResult, SyncContext
from membersync.pipeline.errors import StepExecutionError
from membersync.pipeline.step import SyncStep
from membersync.processing.types import RouteResult
from membersync.routing.router import DestinationRouter

logger = get_logger(__name__)


class RouteRowsStep(SyncStep):
    """Write mapped rows to members / transactions / visits / an import table."""

    name = "route_rows"
    description = "Route rows to their destination"

    def __init__(self, router: DestinationRouter) -> None:
        self.router = router

    async def execute(self, ctx: SyncContext) -> StepResult:
        started_at = self._now()
        ctx.route_result = RouteResult()

        try:
            ctx.route_result = await self.router.route(
                ctx.destination_type,
                ctx.mapped_rows,
                site_id=ctx.site_id,
                table_name=ctx.table_name,
                result=ctx.route_result,
            )
        except Exception as exc:
            raise StepExecutionError(
                f"Routing failed: {exc}",
                execution_id=ctx.execution_id,
                step_name=self.name,
            ) from exc

        return self._success(started_at, metadata={
            "imported": ctx.route_result.imported,
            "skipped": ctx.route_result.skipped,
            "row_errors": len(ctx.route_result.errors),
        })
