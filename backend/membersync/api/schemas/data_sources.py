"""Data source request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from membersync.core.constants import DataSourceType, DestinationType, SyncStatus
from membersync.processing.types import (
    ColumnConfig,
    ColumnConfiguration,
    ColumnPreview,
    FieldMapping,
    ScheduleConfiguration,
)


class DataSourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    site_id: str | None = None
    source_type: DataSourceType = DataSourceType.CSV_UPLOAD
    destination_type: DestinationType = DestinationType.MEMBERS
    table_name: str | None = None
    config: dict[str, Any] = Field(default_factory=dict)
    column_config: ColumnConfiguration = Field(default_factory=ColumnConfiguration)
    field_mappings: list[FieldMapping] = Field(default_factory=list)
    schedule: ScheduleConfiguration = Field(default_factory=ScheduleConfiguration)


class DataSourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    site_id: str | None
    source_type: str
    destination_type: str
    table_name: str | None
    sync_status: str
    last_sync_at: datetime | None
    next_sync_at: datetime | None
    is_active: bool


class PreviewRequest(BaseModel):
    """Pasted CSV text to analyse before configuring an import."""

    csv_text: str = Field(..., min_length=1)
    destination_type: DestinationType = DestinationType.MEMBERS
    max_rows: int | None = Field(default=None, ge=1, le=500)


class PreviewResponse(BaseModel):
    headers: list[str]
    columns: list[ColumnPreview]
    rows: list[dict[str, str]]
    total_rows: int
    suggested_columns: list[ColumnConfig]
    suggested_mappings: list[FieldMapping]


class SyncRequest(BaseModel):
    csv_text: str = Field(..., min_length=1)


class RowErrorResponse(BaseModel):
    row: int
    message: str


class SyncResultResponse(BaseModel):
    sync_log_id: str
    status: SyncStatus
    records_imported: int
    records_skipped: int
    records_failed: int
    errors: list[RowErrorResponse]
    error_message: str | None
    started_at: datetime | None
    completed_at: datetime | None
    next_sync_at: datetime | None = None


class SyncLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    records_imported: int
    records_skipped: int
    records_failed: int
    error_message: str | None
    errors: list[RowErrorResponse] | None
    started_at: datetime
    completed_at: datetime | None


class ScheduleResponse(BaseModel):
    schedule: ScheduleConfiguration
    description: str
    next_sync_at: datetime | None
    valid: bool
    errors: list[str]


class ScheduleOptionsResponse(BaseModel):
    frequencies: list[dict[str, str]]
    timezones: list[str]
