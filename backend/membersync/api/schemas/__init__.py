"""API schema package."""

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

__all__ = [
    "DataSourceCreate",
    "DataSourceResponse",
    "PreviewRequest",
    "PreviewResponse",
    "ScheduleOptionsResponse",
    "ScheduleResponse",
    "SyncLogResponse",
    "SyncRequest",
    "SyncResultResponse",
]
