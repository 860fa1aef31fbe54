"""
Data source repository — reads and status updates for data_sources.

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

from membersync.core.constants import DataSourceStatus
from membersync.db.models.data_source import DataSource


async def create_data_source(
    db: AsyncSession,
    *,
    name: str,
    destination_type: str,
    site_id: str | None = None,
    **fields: Any,
) -> DataSource:
    source = DataSource(
        name=name.strip(),
        destination_type=destination_type,
        site_id=site_id,
        **fields,
    )
    db.add(source)
    await db.flush()
    return source


async def get_data_source(db: AsyncSession, data_source_id: str) -> DataSource | None:
    """Fetch a data source by primary key."""
    return await db.get(DataSource, data_source_id)


async def list_due_data_sources(db: AsyncSession, now: datetime | None = None) -> list[DataSource]:
    """Active sources whose next_sync_at has passed and that are not mid-run."""
    now = now or datetime.now(timezone.utc)
    stmt = (
        select(DataSource)
        .where(
            DataSource.is_active.is_(True),
            DataSource.next_sync_at.is_not(None),
            DataSource.next_sync_at <= now,
            DataSource.sync_status != DataSourceStatus.SYNCING.value,
        )
        .order_by(DataSource.next_sync_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_sync_status(
    db: AsyncSession,
    data_source_id: str,
    status: str,
) -> DataSource | None:
    """
    Set sync_status.  Terminal statuses (success / failed) also stamp
    last_sync_at.
    """
    source = await get_data_source(db, data_source_id)
    if source is None:
        return None
    source.sync_status = status
    if status in (DataSourceStatus.SUCCESS, DataSourceStatus.FAILED):
        source.last_sync_at = datetime.now(timezone.utc)
    await db.flush()
    return source


async def set_schedule_state(
    db: AsyncSession,
    data_source_id: str,
    *,
    next_sync_at: datetime | None,
    retry_attempt: int = 0,
) -> DataSource | None:
    """Record when the source should next run and which retry attempt that is."""
    source = await get_data_source(db, data_source_id)
    if source is None:
        return None
    source.next_sync_at = next_sync_at
    source.retry_attempt = retry_attempt
    await db.flush()
    return source


async def set_table_name(db: AsyncSession, data_source_id: str, table_name: str) -> DataSource | None:
    """Bind a custom-destination source to its import table."""
    source = await get_data_source(db, data_source_id)
    if source is None:
        return None
    source.table_name = table_name
    await db.flush()
    return source


async def set_column_config(
    db: AsyncSession,
    data_source_id: str,
    column_config: dict[str, Any],
) -> DataSource | None:
    """Persist a generated cleaning configuration."""
    source = await get_data_source(db, data_source_id)
    if source is None:
        return None
    source.column_config = column_config
    await db.flush()
    return source
