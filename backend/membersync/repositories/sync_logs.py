"""
Sync log repository — run audit records.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from membersync.core.constants import SyncStatus
from membersync.db.models.sync_log import SyncLog


async def create_sync_log(db: AsyncSession, data_source_id: str) -> SyncLog:
    """Open a run log in `started` state."""
    log = SyncLog(
        data_source_id=data_source_id,
        status=SyncStatus.STARTED.value,
        started_at=datetime.now(timezone.utc),
    )
    db.add(log)
    await db.flush()
    return log


async def finalize_sync_log(
    db: AsyncSession,
    sync_log_id: str,
    *,
    status: str,
    records_imported: int = 0,
    records_skipped: int = 0,
    records_failed: int = 0,
    error_message: str | None = None,
    errors: list[dict[str, Any]] | None = None,
) -> SyncLog | None:
    log = await db.get(SyncLog, sync_log_id)
    if log is None:
        return None
    log.status = status
    log.records_imported = records_imported
    log.records_skipped = records_skipped
    log.records_failed = records_failed
    log.error_message = error_message
    log.errors = errors or []
    log.completed_at = datetime.now(timezone.utc)
    await db.flush()
    return log


async def get_sync_log(db: AsyncSession, sync_log_id: str) -> SyncLog | None:
    return await db.get(SyncLog, sync_log_id)


async def list_sync_logs(
    db: AsyncSession,
    data_source_id: str,
    *,
    offset: int = 0,
    limit: int = 50,
) -> list[SyncLog]:
    """Most recent runs first."""
    stmt = (
        select(SyncLog)
        .where(SyncLog.data_source_id == data_source_id)
        .order_by(SyncLog.started_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
