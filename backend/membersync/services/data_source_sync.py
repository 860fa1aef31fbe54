"""
Data source sync — one complete run for a stored data source.

    load source ─▶ fetch CSV (or use pasted text) ─▶ parse ─▶ SyncEngine
                ─▶ next run time / retry decision

Used by the Celery task, the API and the CLI.  Scheduling of the retry
itself (a delayed task) is left to the caller; this module only decides
whether and when.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from membersync.core.constants import DataSourceStatus, DestinationType, SyncStatus
from membersync.core.logging import get_logger
from membersync.db.models.data_source import DataSource
from membersync.pipeline.engine import SyncEngine, SyncOptions
from membersync.pipeline.errors import InfrastructureError, ParseError
from membersync.processing.cleaning import generate_default_column_config
from membersync.processing.parser import parse_csv, rows_to_records
from membersync.processing.type_detector import analyze_columns
from membersync.processing.types import (
    ColumnConfiguration,
    FieldMapping,
    RowError,
    ScheduleConfiguration,
    SyncResult,
)
from membersync.repositories import data_sources as data_source_repo
from membersync.services.import_tables import ImportTableManager
from membersync.services.schedule import (
    calculate_next_sync_time,
    calculate_retry_delay,
    should_retry,
)
from membersync.services.source_fetcher import SourceFetcher
from membersync.store.base import DataStore

logger = get_logger(__name__)


@dataclass
class DataSourceSyncOutcome:
    result: SyncResult
    next_sync_at: datetime | None = None
    retry_attempt: int | None = None          # set when a retry should be queued
    retry_delay_minutes: int | None = None


def source_configuration(source: DataSource) -> tuple[ColumnConfiguration, list[FieldMapping], ScheduleConfiguration]:
    """Validate the JSON configuration columns of a data source."""
    column_config = ColumnConfiguration.model_validate(source.column_config or {})
    field_mappings = [FieldMapping.model_validate(m) for m in source.field_mappings or []]
    schedule = ScheduleConfiguration.model_validate(source.schedule or {})
    return column_config, field_mappings, schedule


async def _record_failed_run(store: DataStore, data_source_id: str, message: str) -> SyncResult:
    """A run that failed before the engine could start (fetch / parse)."""
    started_at = datetime.now(timezone.utc)
    sync_log_id = await store.create_sync_log(data_source_id)
    errors = [RowError(row=0, message=message)]
    await store.finalize_sync_log(
        sync_log_id,
        status=SyncStatus.FAILED,
        records_imported=0,
        records_skipped=0,
        records_failed=0,
        error_message=message,
        errors=[e.to_dict() for e in errors],
    )
    await store.update_data_source_status(data_source_id, DataSourceStatus.FAILED)
    return SyncResult(
        sync_log_id=sync_log_id,
        status=SyncStatus.FAILED,
        errors=errors,
        error_message=message,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
    )


async def _adopt_default_config(
    sessions: async_sessionmaker[AsyncSession],
    source: DataSource,
    column_config: ColumnConfiguration,
    records: list[dict[str, Any]],
) -> ColumnConfiguration:
    """
    Custom sources without configured columns get the suggested
    configuration, stored so later runs write the same columns.
    """
    column_config = column_config.model_copy(
        update={"columns": generate_default_column_config(analyze_columns(records))}
    )
    async with sessions() as db, db.begin():
        await data_source_repo.set_column_config(db, source.id, column_config.model_dump(mode="json"))
    logger.info("Default column configuration stored", data_source_id=source.id, columns=len(column_config.columns))
    return column_config


async def _ensure_import_table(
    sessions: async_sessionmaker[AsyncSession],
    import_tables: ImportTableManager,
    source: DataSource,
    column_config: ColumnConfiguration,
    records: list[dict[str, Any]],
) -> str:
    """Custom destinations get their table on the first run."""
    existing = await import_tables.get_import_table(source.id)
    if existing is not None:
        table_name = existing["table_name"]
    else:
        columns = column_config.columns or analyze_columns(records)
        table_name = await import_tables.create_import_table(source.name, columns)
        await import_tables.register_import_table(source.id, table_name, columns)
        logger.info("Import table created", data_source_id=source.id, table_name=table_name)

    async with sessions() as db, db.begin():
        await data_source_repo.set_table_name(db, source.id, table_name)
    return table_name


async def sync_data_source(
    store: DataStore,
    sessions: async_sessionmaker[AsyncSession],
    data_source_id: str,
    *,
    attempt: int = 0,
    csv_text: str | None = None,
    fetcher: SourceFetcher | None = None,
    now: datetime | None = None,
) -> DataSourceSyncOutcome | None:
    """
    Run one sync for a stored data source.

    `csv_text` bypasses the live fetch (uploads, API, CLI).  Returns None
    when the data source does not exist.  A retry, when one is due, is
    reported on the outcome; next_sync_at keeps the regular schedule.
    """
    log = logger.bind(data_source_id=data_source_id, attempt=attempt)

    async with sessions() as db:
        source = await data_source_repo.get_data_source(db, data_source_id)
    if source is None:
        log.warning("Data source not found")
        return None

    column_config, field_mappings, schedule = source_configuration(source)
    destination = DestinationType(source.destination_type)

    # ── Acquire rows ──────────────────────────────────
    records: list[dict[str, Any]] | None = None
    try:
        if csv_text is None:
            url = (source.config or {}).get("url", "")
            csv_text = await (fetcher or SourceFetcher()).fetch_csv(url)
        records = rows_to_records(parse_csv(csv_text))
    except (InfrastructureError, ParseError) as exc:
        log.warning("Source could not be read", error=str(exc))
        result = await _record_failed_run(store, data_source_id, str(exc))

    # ── Run the pipeline ──────────────────────────────
    if records is not None:
        if destination == DestinationType.CUSTOM and not column_config.columns and records:
            column_config = await _adopt_default_config(sessions, source, column_config, records)

        table_name = source.table_name
        if destination == DestinationType.CUSTOM and not table_name:
            table_name = await _ensure_import_table(
                sessions, ImportTableManager(store), source, column_config, records
            )

        result = await SyncEngine(store).run(SyncOptions(
            data_source_id=data_source_id,
            raw_rows=records,
            destination_type=destination,
            column_config=column_config,
            field_mappings=field_mappings,
            site_id=source.site_id,
            table_name=table_name,
        ))

    # ── Next run / retry ──────────────────────────────
    now = now or datetime.now(timezone.utc)
    outcome = DataSourceSyncOutcome(result=result, next_sync_at=calculate_next_sync_time(schedule, now))

    if result.status == SyncStatus.FAILED and should_retry(attempt, schedule):
        outcome.retry_attempt = attempt + 1
        outcome.retry_delay_minutes = calculate_retry_delay(outcome.retry_attempt, schedule.retry_delay_minutes)
        log.info(
            "Sync failed, retry scheduled",
            retry_attempt=outcome.retry_attempt,
            retry_delay_minutes=outcome.retry_delay_minutes,
        )

    async with sessions() as db, db.begin():
        await data_source_repo.set_schedule_state(
            db,
            data_source_id,
            next_sync_at=outcome.next_sync_at,
            retry_attempt=outcome.retry_attempt or 0,
        )
    return outcome
