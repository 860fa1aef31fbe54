"""
Shared fixtures: an in-memory DataStore fake and a sqlite-backed SqlDataStore.
"""

from __future__ import annotations

import itertools
from typing import Any, AsyncGenerator, Mapping, Sequence

import pytest
from sqlalchemy.pool import StaticPool

from membersync.db.session import build_engine, build_session_factory
from membersync.pipeline.errors import DuplicateRecordError, InfrastructureError, RowRejectedError
from membersync.processing.types import QueryPage
from membersync.store.base import ColumnSpec, DataStore
from membersync.store.sql import SqlDataStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class InMemoryDataStore(DataStore):
    """
    Dict-backed DataStore.  Members are unique per (site_id, email);
    fixed tables always exist, dynamic tables must be created first.
    """

    FIXED_TABLES = ("members", "member_transactions", "member_visits")

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in self.FIXED_TABLES}
        self.columns: dict[str, list[ColumnSpec]] = {}
        self.registry: dict[str, dict[str, Any]] = {}
        self.sync_logs: dict[str, dict[str, Any]] = {}
        self.status_history: dict[str, list[str]] = {}
        self._ids = itertools.count(1)
        self.fail_inserts = False
        # Inserts succeed this many times, then the store goes down
        self.fail_after_inserts: int | None = None
        self.insert_count = 0

    def _rows(self, table: str) -> list[dict[str, Any]]:
        if table not in self.tables:
            raise InfrastructureError(f"table {table} does not exist")
        return self.tables[table]

    # ── Rows ──────────────────────────────────────────

    async def insert_row(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        if self.fail_inserts or self.insert_count == self.fail_after_inserts:
            raise InfrastructureError("store unavailable")
        rows = self._rows(table)
        if table in self.columns:
            allowed = {c.name for c in self.columns[table]} | {"id", "_import_row_num", "_imported_at"}
            unknown = [key for key in row if key not in allowed]
            if unknown:
                raise RowRejectedError(f"Unknown columns for {table}: {', '.join(unknown)}")
        if table == "members" and row.get("email") is not None:
            for existing in rows:
                if existing.get("email") == row["email"] and existing.get("site_id") == row.get("site_id"):
                    raise DuplicateRecordError(f"duplicate key: {row['email']}")
        inserted = {"id": f"id-{next(self._ids)}", **row}
        rows.append(inserted)
        self.insert_count += 1
        return inserted

    async def insert_rows(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        for row in rows:
            await self.insert_row(table, row)
        return len(rows)

    async def find_one(self, table, column, value, *, site_id=None):
        for row in self._rows(table):
            if row.get(column) == value and (site_id is None or row.get("site_id") == site_id):
                return dict(row)
        return None

    # ── Dynamic tables ───────────────────────────────

    async def create_table(self, table: str, columns: Sequence[ColumnSpec]) -> None:
        self.tables[table] = []
        self.columns[table] = list(columns)

    async def drop_table(self, table: str) -> None:
        self.tables.pop(table, None)
        self.columns.pop(table, None)

    async def truncate_table(self, table: str) -> None:
        self._rows(table).clear()

    async def query_table(self, table, *, limit=100, offset=0, order_by="id", descending=False):
        rows = self._rows(table)
        ordered = sorted(rows, key=lambda r: str(r.get(order_by)), reverse=descending)
        return QueryPage(rows=ordered[offset:offset + limit], count=len(rows))

    async def list_columns(self, table: str) -> list[ColumnSpec]:
        self._rows(table)
        return list(self.columns.get(table, []))

    async def add_column(self, table: str, column: ColumnSpec) -> None:
        self._rows(table)
        self.columns.setdefault(table, []).append(column)

    # ── Import-table registry ────────────────────────

    async def register_import_table(self, data_source_id, table, columns):
        entry = {
            "data_source_id": data_source_id,
            "table_name": table,
            "columns": [c.to_dict() for c in columns],
            "row_count": 0,
        }
        self.registry[table] = entry
        return dict(entry)

    async def get_import_table(self, data_source_id):
        for entry in self.registry.values():
            if entry["data_source_id"] == data_source_id:
                return dict(entry)
        return None

    async def update_import_table_row_count(self, table, row_count):
        if table in self.registry:
            self.registry[table]["row_count"] = row_count

    async def deregister_import_table(self, table):
        self.registry.pop(table, None)

    # ── Run log / data source status ─────────────────

    async def create_sync_log(self, data_source_id: str) -> str:
        sync_log_id = f"log-{next(self._ids)}"
        self.sync_logs[sync_log_id] = {"data_source_id": data_source_id, "status": "started"}
        return sync_log_id

    async def finalize_sync_log(self, sync_log_id, *, status, records_imported, records_skipped,
                                records_failed, error_message=None, errors=()):
        self.sync_logs[sync_log_id].update(
            status=status,
            records_imported=records_imported,
            records_skipped=records_skipped,
            records_failed=records_failed,
            error_message=error_message,
            errors=[dict(e) for e in errors],
        )

    async def update_data_source_status(self, data_source_id: str, status: str) -> None:
        self.status_history.setdefault(data_source_id, []).append(str(status))


@pytest.fixture
def memory_store() -> InMemoryDataStore:
    return InMemoryDataStore()


@pytest.fixture
async def sql_engine():
    """In-memory sqlite shared by every connection of one test."""
    engine = build_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    await engine.dispose()


@pytest.fixture
async def sql_store(sql_engine) -> AsyncGenerator[SqlDataStore, None]:
    store = SqlDataStore(sql_engine)
    await store.create_schema()
    yield store


@pytest.fixture
def session_factory(sql_engine):
    return build_session_factory(sql_engine)
