"""
Import table manager — dynamically named tables for custom destinations.

    manager = ImportTableManager(store)
    name = await manager.create_import_table("Spring Roster", columns)
    await manager.register_import_table(data_source_id, name, columns)
    await manager.insert_rows_batched(name, rows, on_progress=report)

Every store failure is re-raised as InfrastructureError with a
"Failed to ..." message naming the operation.
"""

from __future__ import annotations

import inspect
import uuid
from typing import Any, Awaitable, Callable, Mapping, Sequence

from membersync.core.config import settings
from membersync.core.constants import StorageType
from membersync.core.logging import get_logger
from membersync.pipeline.errors import InfrastructureError
from membersync.processing.cleaning import STORAGE_TYPE_FOR, to_snake_case
from membersync.processing.types import ColumnConfig, ColumnPreview, QueryPage
from membersync.store.base import SYSTEM_COLUMNS, ColumnSpec, DataStore

logger = get_logger(__name__)

IdGenerator = Callable[[], str]
ProgressCallback = Callable[[int, int], Awaitable[None] | None]

TABLE_NAME_SUFFIX_LENGTH = 8


def random_hex_id() -> str:
    return uuid.uuid4().hex


def generate_table_name(label: str, id_generator: IdGenerator = random_hex_id) -> str:
    """
    'Spring Roster 2025!' -> 'import_spring_roster_2025_<8 hex>'.

    The suffix is the first 8 characters of `id_generator()`.
    """
    sanitized = to_snake_case(label) or "data"
    suffix = id_generator().replace("-", "").lower()[:TABLE_NAME_SUFFIX_LENGTH]
    return f"import_{sanitized}_{suffix}"


def column_specs(columns: Sequence[ColumnConfig | ColumnPreview]) -> list[ColumnSpec]:
    """
    Schema for an import table.  Included ColumnConfigs keep their storage
    type; previews map their detected type.  System column names are skipped.
    """
    specs: list[ColumnSpec] = []
    for column in columns:
        if isinstance(column, ColumnConfig):
            if not column.included:
                continue
            spec = ColumnSpec(name=column.target_name, type=StorageType(column.type))
        else:
            spec = ColumnSpec(
                name=to_snake_case(column.name) or column.name,
                type=STORAGE_TYPE_FOR.get(column.detected_type, StorageType.TEXT),
            )
        if spec.name not in SYSTEM_COLUMNS:
            specs.append(spec)
    return specs


class ImportTableManager:
    """Creates, fills and tears down custom import tables through a DataStore."""

    def __init__(self, store: DataStore, id_generator: IdGenerator = random_hex_id) -> None:
        self.store = store
        self.id_generator = id_generator

    async def _call(self, failure: str, operation: Awaitable[Any]) -> Any:
        try:
            return await operation
        except Exception as exc:
            logger.error(failure, error=str(exc))
            raise InfrastructureError(f"{failure}: {exc}", details={"cause": type(exc).__name__}) from exc

    # ── Lifecycle ─────────────────────────────────────

    async def create_import_table(
        self,
        source_name: str,
        columns: Sequence[ColumnConfig | ColumnPreview],
    ) -> str:
        """Create a freshly named table; returns its name."""
        table_name = generate_table_name(source_name, self.id_generator)
        await self._call(
            "Failed to create import table",
            self.store.create_table(table_name, column_specs(columns)),
        )
        return table_name

    async def register_import_table(
        self,
        data_source_id: str,
        table_name: str,
        columns: Sequence[ColumnConfig | ColumnPreview],
    ) -> dict[str, Any]:
        return await self._call(
            "Failed to register import table",
            self.store.register_import_table(data_source_id, table_name, column_specs(columns)),
        )

    async def get_import_table(self, data_source_id: str) -> dict[str, Any] | None:
        """Registry entry for a data source, or None when it has no table."""
        return await self._call(
            "Failed to get import table",
            self.store.get_import_table(data_source_id),
        )

    async def update_row_count(self, table_name: str, row_count: int) -> None:
        await self._call(
            "Failed to update row count",
            self.store.update_import_table_row_count(table_name, row_count),
        )

    async def drop_import_table(self, table_name: str) -> None:
        """Deregister first, then physically drop."""
        await self._call("Failed to drop import table", self.store.deregister_import_table(table_name))
        await self._call("Failed to drop import table", self.store.drop_table(table_name))
        logger.info("Import table dropped", table_name=table_name)

    async def truncate_import_table(self, table_name: str) -> None:
        await self._call("Failed to truncate import table", self.store.truncate_table(table_name))
        await self.update_row_count(table_name, 0)

    # ── Data ──────────────────────────────────────────

    async def query_import_table(
        self,
        table_name: str,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str = "id",
        descending: bool = False,
    ) -> QueryPage:
        return await self._call(
            "Failed to query import table",
            self.store.query_table(
                table_name,
                limit=limit,
                offset=offset,
                order_by=order_by,
                descending=descending,
            ),
        )

    async def insert_rows(self, table_name: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Single-batch insert.  Empty input returns 0 without touching the store."""
        if not rows:
            return 0
        return await self._call("Failed to insert rows", self.store.insert_rows(table_name, rows))

    async def insert_rows_batched(
        self,
        table_name: str,
        rows: Sequence[Mapping[str, Any]],
        batch_size: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """
        Insert in batches, one batch in flight at a time.

        `on_progress(inserted_so_far, total)` is called once per batch and
        may be sync or async.  `_import_row_num` is stamped with each row's
        1-based position in `rows`.  Returns the number inserted.
        """
        batch_size = batch_size or settings.IMPORT_BATCH_SIZE
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        total = len(rows)
        inserted = 0
        for start in range(0, total, batch_size):
            batch = [
                {**row, "_import_row_num": start + offset + 1}
                for offset, row in enumerate(rows[start:start + batch_size])
            ]
            inserted += await self.insert_rows(table_name, batch)
            if on_progress is not None:
                maybe_awaitable = on_progress(inserted, total)
                if inspect.isawaitable(maybe_awaitable):
                    await maybe_awaitable
            logger.debug("Batch inserted", table_name=table_name, inserted=inserted, total=total)

        if inserted:
            page = await self.query_import_table(table_name, limit=1)
            await self.update_row_count(table_name, page.count)
        return inserted

    # ── Schema ────────────────────────────────────────

    async def get_table_columns(self, table_name: str) -> list[ColumnSpec]:
        return await self._call("Failed to get table columns", self.store.list_columns(table_name))

    async def add_column(self, table_name: str, column: ColumnSpec) -> None:
        await self._call("Failed to add column", self.store.add_column(table_name, column))
