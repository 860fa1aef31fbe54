"""
Import table registry repository.

Repository rules:
- Pure data-access logic only
- Every function receives AsyncSession explicitly
- Functions flush, but never commit
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from membersync.db.models.import_table import ImportTable


async def register_import_table(
    db: AsyncSession,
    *,
    data_source_id: str,
    table_name: str,
    columns: list[dict[str, Any]],
) -> ImportTable:
    record = ImportTable(
        data_source_id=data_source_id,
        table_name=table_name,
        columns=columns,
        row_count=0,
    )
    db.add(record)
    await db.flush()
    return record


async def get_by_data_source(db: AsyncSession, data_source_id: str) -> ImportTable | None:
    stmt = select(ImportTable).where(ImportTable.data_source_id == data_source_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def update_row_count(db: AsyncSession, table_name: str, row_count: int) -> bool:
    """Returns True when the table is registered."""
    stmt = (
        update(ImportTable)
        .where(ImportTable.table_name == table_name)
        .values(row_count=row_count)
    )
    result = await db.execute(stmt)
    await db.flush()
    return result.rowcount > 0


async def delete_by_table_name(db: AsyncSession, table_name: str) -> bool:
    """Remove the registry row.  Returns True if one was deleted."""
    result = await db.execute(delete(ImportTable).where(ImportTable.table_name == table_name))
    await db.flush()
    return result.rowcount > 0
