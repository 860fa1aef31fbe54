"""
DataStore — the persistence boundary of the sync pipeline.

Everything the pipeline writes or looks up goes through this interface:
row inserts into named tables, member lookup, dynamic table
provisioning, the import-table registry, run logs and data-source
status.

Error contract:
    - a single rejected row raises DuplicateRecordError (unique
      constraint) or RowRejectedError (any other constraint)
    - anything else (unreachable store, bad SQL, missing table) raises
      InfrastructureError
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from membersync.core.constants import StorageType
from membersync.processing.types import QueryPage


@dataclass(frozen=True)
class ColumnSpec:
    """One column of a dynamically created table."""

    name: str
    type: StorageType = StorageType.TEXT
    nullable: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "nullable": self.nullable}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ColumnSpec:
        return cls(
            name=data["name"],
            type=StorageType(data.get("type", StorageType.TEXT)),
            nullable=data.get("nullable", True),
        )


# Columns every import table carries in addition to its data columns
SYSTEM_COLUMNS = ("id", "_import_row_num", "_imported_at")


class DataStore(ABC):
    """Abstract persistence boundary.  Every method is its own unit of work."""

    # ── Rows ──────────────────────────────────────────

    @abstractmethod
    async def insert_row(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row; returns it with generated keys filled in."""

    @abstractmethod
    async def insert_rows(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insert rows in one round trip; returns the number inserted."""

    @abstractmethod
    async def find_one(
        self,
        table: str,
        column: str,
        value: Any,
        *,
        site_id: str | None = None,
    ) -> dict[str, Any] | None:
        """First row where `column == value` (and `site_id`, when given)."""

    # ── Dynamic tables ───────────────────────────────

    @abstractmethod
    async def create_table(self, table: str, columns: Sequence[ColumnSpec]) -> None:
        """Create `table` with SYSTEM_COLUMNS followed by `columns`."""

    @abstractmethod
    async def drop_table(self, table: str) -> None:
        ...

    @abstractmethod
    async def truncate_table(self, table: str) -> None:
        ...

    @abstractmethod
    async def query_table(
        self,
        table: str,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str = "id",
        descending: bool = False,
    ) -> QueryPage:
        ...

    @abstractmethod
    async def list_columns(self, table: str) -> list[ColumnSpec]:
        ...

    @abstractmethod
    async def add_column(self, table: str, column: ColumnSpec) -> None:
        ...

    # ── Import-table registry ────────────────────────

    @abstractmethod
    async def register_import_table(
        self,
        data_source_id: str,
        table: str,
        columns: Sequence[ColumnSpec],
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    async def get_import_table(self, data_source_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def update_import_table_row_count(self, table: str, row_count: int) -> None:
        ...

    @abstractmethod
    async def deregister_import_table(self, table: str) -> None:
        ...

    # ── Run log / data source status ─────────────────

    @abstractmethod
    async def create_sync_log(self, data_source_id: str) -> str:
        """Open a `started` run log; returns its id."""

    @abstractmethod
    async def finalize_sync_log(
        self,
        sync_log_id: str,
        *,
        status: str,
        records_imported: int,
        records_skipped: int,
        records_failed: int,
        error_message: str | None = None,
        errors: Sequence[Mapping[str, Any]] = (),
    ) -> None:
        ...

    @abstractmethod
    async def update_data_source_status(self, data_source_id: str, status: str) -> None:
        ...
