"""
Celery tasks — scheduled and on-demand data source syncs.

Each task runs its async body with asyncio.run on a fresh engine so
worker processes never share an event loop with a pooled connection.
"""

import asyncio
from datetime import datetime, timezone

import structlog

from membersync.core.config import settings
from membersync.db.session import build_engine, build_session_factory
from membersync.processing.types import ScheduleConfiguration
from membersync.repositories import data_sources as data_source_repo
from membersync.services.data_source_sync import DataSourceSyncOutcome, sync_data_source
from membersync.services.schedule import calculate_next_sync_time
from membersync.store.sql import SqlDataStore
from membersync.tasks import celery_app

logger = structlog.get_logger("tasks.sync")


async def _run_sync(data_source_id: str, attempt: int) -> DataSourceSyncOutcome | None:
    engine = build_engine(settings.DATABASE_URL)
    try:
        return await sync_data_source(
            SqlDataStore(engine),
            build_session_factory(engine),
            data_source_id,
            attempt=attempt,
        )
    finally:
        await engine.dispose()


async def _claim_due_sources(now: datetime) -> list[str]:
    """
    Due source ids.  Each claimed source has next_sync_at moved to its
    following slot so the next beat tick does not enqueue it again.
    """
    engine = build_engine(settings.DATABASE_URL)
    sessions = build_session_factory(engine)
    try:
        async with sessions() as db, db.begin():
            due = await data_source_repo.list_due_data_sources(db, now)
            for source in due:
                schedule = ScheduleConfiguration.model_validate(source.schedule or {})
                await data_source_repo.set_schedule_state(
                    db,
                    source.id,
                    next_sync_at=calculate_next_sync_time(schedule, now),
                    retry_attempt=source.retry_attempt,
                )
            return [source.id for source in due]
    finally:
        await engine.dispose()


@celery_app.task(bind=True, name="membersync.tasks.sync_tasks.run_data_source_sync")
def run_data_source_sync(self, data_source_id: str, attempt: int = 0):
    """
    Fetch the live CSV for a data source and run it through the pipeline.

    On a failed run with retries left, re-enqueues itself with an
    exponential countdown (retry_delay_minutes, doubled per attempt).
    """
    task_log = logger.bind(
        task_id=self.request.id,
        data_source_id=data_source_id,
        attempt=attempt,
    )
    task_log.info("Sync task started")

    try:
        outcome = asyncio.run(_run_sync(data_source_id, attempt))
    except Exception as exc:
        task_log.exception("Sync task failed", error=str(exc))
        raise

    if outcome is None:
        task_log.warning("Sync task skipped, data source not found")
        return {"data_source_id": data_source_id, "status": "not_found"}

    if outcome.retry_attempt is not None:
        run_data_source_sync.apply_async(
            args=[data_source_id, outcome.retry_attempt],
            countdown=outcome.retry_delay_minutes * 60,
        )
        task_log.info(
            "Retry enqueued",
            retry_attempt=outcome.retry_attempt,
            countdown_minutes=outcome.retry_delay_minutes,
        )

    result = outcome.result
    task_log.info(
        "Sync task finished",
        status=result.status,
        imported=result.records_imported,
        skipped=result.records_skipped,
        failed=result.records_failed,
    )
    return {
        **result.to_dict(),
        "data_source_id": data_source_id,
        "next_sync_at": outcome.next_sync_at.isoformat() if outcome.next_sync_at else None,
        "retry_attempt": outcome.retry_attempt,
    }


@celery_app.task(bind=True, name="membersync.tasks.sync_tasks.dispatch_due_syncs")
def dispatch_due_syncs(self):
    """Beat task: enqueue every active source whose next_sync_at has passed."""
    now = datetime.now(timezone.utc)
    source_ids = asyncio.run(_claim_due_sources(now))
    for source_id in source_ids:
        run_data_source_sync.delay(source_id)

    logger.bind(task_id=self.request.id).info("Due syncs dispatched", count=len(source_ids))
    return {"dispatched": source_ids}
