"""
Data source endpoints — preview, create, sync, run history and schedules.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from membersync.api.deps import get_db, get_session_factory, get_store
from membersync.api.schemas.data_sources import (
    DataSourceCreate,
    DataSourceResponse,
    PreviewRequest,
    PreviewResponse,
    ScheduleOptionsResponse,
    ScheduleResponse,
    SyncLogResponse,
    SyncRequest,
    SyncResultResponse,
)
from membersync.pipeline.errors import ParseError
from membersync.processing.cleaning import generate_default_column_config
from membersync.processing.mapper import suggest_field_mappings
from membersync.processing.parser import generate_preview, parse_csv
from membersync.processing.types import ScheduleConfiguration
from membersync.repositories import data_sources as data_source_repo
from membersync.repositories import sync_logs as sync_log_repo
from membersync.services.data_source_sync import sync_data_source
from membersync.services.schedule import (
    calculate_next_sync_time,
    get_common_timezones,
    get_frequency_options,
    get_schedule_description,
    validate_schedule_config,
)
from membersync.store.base import DataStore

router = APIRouter(prefix="/data-sources", tags=["Data Sources"])


def _schedule_response(schedule: ScheduleConfiguration) -> ScheduleResponse:
    validation = validate_schedule_config(schedule)
    return ScheduleResponse(
        schedule=schedule,
        description=get_schedule_description(schedule),
        next_sync_at=calculate_next_sync_time(schedule) if validation.valid else None,
        valid=validation.valid,
        errors=validation.errors,
    )


# ─── Preview ──────────────────────────────────────────────
@router.post("/preview", response_model=PreviewResponse)
async def preview_data(payload: PreviewRequest) -> PreviewResponse:
    """Parse pasted CSV, infer column types and suggest a configuration."""
    try:
        table = parse_csv(payload.csv_text)
    except ParseError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "line": exc.line},
        ) from None

    preview = generate_preview(table, payload.max_rows)
    columns = generate_default_column_config(preview.columns)
    return PreviewResponse(
        headers=preview.headers,
        columns=preview.columns,
        rows=preview.rows,
        total_rows=preview.total_rows,
        suggested_columns=columns,
        suggested_mappings=suggest_field_mappings(
            [c.target_name for c in columns], payload.destination_type
        ),
    )


# ─── Schedules ────────────────────────────────────────────
@router.get("/schedule/options", response_model=ScheduleOptionsResponse)
async def schedule_options() -> ScheduleOptionsResponse:
    return ScheduleOptionsResponse(
        frequencies=get_frequency_options(),
        timezones=get_common_timezones(),
    )


@router.post("/schedule/validate", response_model=ScheduleResponse)
async def validate_schedule(schedule: ScheduleConfiguration) -> ScheduleResponse:
    """Validate a schedule and describe when it would next run."""
    return _schedule_response(schedule)


# ─── Data sources ─────────────────────────────────────────
@router.post("", response_model=DataSourceResponse, status_code=status.HTTP_201_CREATED)
async def create_data_source(
    payload: DataSourceCreate,
    db: AsyncSession = Depends(get_db),
) -> DataSourceResponse:
    validation = validate_schedule_config(payload.schedule)
    if not validation.valid:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Invalid schedule", "errors": validation.errors},
        )

    source = await data_source_repo.create_data_source(
        db,
        name=payload.name,
        destination_type=payload.destination_type,
        site_id=payload.site_id,
        source_type=payload.source_type,
        table_name=payload.table_name,
        config=payload.config,
        column_config=payload.column_config.model_dump(mode="json"),
        field_mappings=[m.model_dump(mode="json") for m in payload.field_mappings],
        schedule=payload.schedule.model_dump(mode="json"),
        next_sync_at=calculate_next_sync_time(payload.schedule),
    )
    return DataSourceResponse.model_validate(source)


@router.get("/{data_source_id}", response_model=DataSourceResponse)
async def get_data_source(data_source_id: str, db: AsyncSession = Depends(get_db)) -> DataSourceResponse:
    source = await data_source_repo.get_data_source(db, data_source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Data source not found")
    return DataSourceResponse.model_validate(source)


@router.post("/{data_source_id}/sync", response_model=SyncResultResponse)
async def sync_now(
    data_source_id: str,
    payload: SyncRequest,
    store: DataStore = Depends(get_store),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SyncResultResponse:
    """Run the pipeline synchronously on pasted CSV text."""
    outcome = await sync_data_source(store, sessions, data_source_id, csv_text=payload.csv_text)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Data source not found")

    return SyncResultResponse(
        **outcome.result.to_dict(),
        next_sync_at=outcome.next_sync_at,
    )


@router.get("/{data_source_id}/sync-logs", response_model=list[SyncLogResponse])
async def list_sync_logs(
    data_source_id: str,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db),
) -> list[SyncLogResponse]:
    """Run history, most recent first."""
    logs = await sync_log_repo.list_sync_logs(db, data_source_id, offset=offset, limit=limit)
    return [SyncLogResponse.model_validate(log) for log in logs]


@router.get("/{data_source_id}/schedule", response_model=ScheduleResponse)
async def get_schedule(data_source_id: str, db: AsyncSession = Depends(get_db)) -> ScheduleResponse:
    source = await data_source_repo.get_data_source(db, data_source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Data source not found")
    return _schedule_response(ScheduleConfiguration.model_validate(source.schedule or {}))
