"""
SqlDataStore — DataStore on SQLAlchemy's async engine.

Fixed tables (members, sync_logs, ...) come from the ORM metadata;
import tables are created at run time and reflected on first use.
Every public method runs in its own transaction: a failure part-way
through a sync leaves earlier operations committed.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Mapping, Sequence

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    delete,
    func,
    inspect,
    insert,
    select,
    text,
)
from sqlalchemy.exc import DataError, IntegrityError, NoSuchTableError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.types import TypeEngine

from membersync.core.constants import StorageType
from membersync.core.logging import get_logger
from membersync.db.models import Base
from membersync.db.session import build_engine, build_session_factory
from membersync.pipeline.errors import (
    DuplicateRecordError,
    InfrastructureError,
    PipelineError,
    RowRejectedError,
)
from membersync.processing.types import QueryPage
from membersync.processing.value_parsers import parse_date_value, parse_number
from membersync.repositories import data_sources as data_source_repo
from membersync.repositories import import_tables as import_table_repo
from membersync.repositories import sync_logs as sync_log_repo
from membersync.store.base import ColumnSpec, DataStore

logger = get_logger(__name__)

SQL_TYPE_FOR: dict[StorageType, type[TypeEngine]] = {
    StorageType.TEXT: Text,
    StorageType.NUMBER: Float,
    StorageType.INTEGER: BigInteger,
    StorageType.BOOLEAN: Boolean,
    StorageType.DATE: Date,
    StorageType.TIMESTAMP: DateTime,
}

_TRUE_TOKENS = {"true", "yes", "y", "1", "t"}
_FALSE_TOKENS = {"false", "no", "n", "0", "f"}


def _sql_type(storage_type: StorageType) -> TypeEngine:
    if storage_type == StorageType.TIMESTAMP:
        return DateTime(timezone=True)
    return SQL_TYPE_FOR[storage_type]()


def _storage_type(sql_type: TypeEngine) -> StorageType:
    """Best-effort reverse mapping for introspected columns."""
    if isinstance(sql_type, Boolean):
        return StorageType.BOOLEAN
    if isinstance(sql_type, DateTime):
        return StorageType.TIMESTAMP
    if isinstance(sql_type, Date):
        return StorageType.DATE
    if isinstance(sql_type, Integer):
        return StorageType.INTEGER
    if isinstance(sql_type, (Float, Numeric)):
        return StorageType.NUMBER
    return StorageType.TEXT


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == "23505" or getattr(orig, "pgcode", None) == "23505":
        return True
    message = str(orig).lower()
    return "unique" in message or "duplicate" in message


def _coerce(value: Any, column: Column) -> Any:
    """Convert a cleaned cell to what the column's type accepts."""
    if value is None or value == "":
        return None
    sql_type = column.type
    if isinstance(sql_type, Boolean):
        if isinstance(value, bool):
            return value
        token = str(value).strip().lower()
        if token in _TRUE_TOKENS:
            return True
        if token in _FALSE_TOKENS:
            return False
        raise ValueError(f"not a boolean: {value!r}")
    if isinstance(sql_type, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if isinstance(sql_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        parsed = parse_date_value(str(value))
        if parsed is None:
            raise ValueError(f"not a date: {value!r}")
        return parsed
    if isinstance(sql_type, (Integer, Float, Numeric)):
        if isinstance(value, bool):
            raise ValueError(f"not a number: {value!r}")
        number = value if isinstance(value, (int, float)) else parse_number(str(value))
        if number is None:
            raise ValueError(f"not a number: {value!r}")
        return int(number) if isinstance(sql_type, Integer) else number
    if isinstance(sql_type, String):
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return value if isinstance(value, str) else str(value)
    return value


class SqlDataStore(DataStore):
    """
    Usage::

        store = SqlDataStore.from_url("sqlite+aiosqlite:///:memory:")
        await store.create_schema()
        await store.insert_row("members", {"email": "a@b.co"})
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._sessions = build_session_factory(engine)
        self._dynamic = MetaData()

    @classmethod
    def from_url(cls, url: str) -> SqlDataStore:
        return cls(build_engine(url))

    async def create_schema(self) -> None:
        """Create the fixed tables (tests / local dev; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    # ── Internals ─────────────────────────────────────

    @asynccontextmanager
    async def _guard(self, operation: str, *, row_level: bool = False) -> AsyncIterator[None]:
        """Translate SQLAlchemy failures into the DataStore error contract."""
        try:
            yield
        except PipelineError:
            raise
        except IntegrityError as exc:
            if not row_level:
                raise InfrastructureError(f"{operation} failed: {exc.orig}") from exc
            if _is_unique_violation(exc):
                raise DuplicateRecordError(str(exc.orig)) from exc
            raise RowRejectedError(str(exc.orig)) from exc
        except DataError as exc:
            if row_level:
                raise RowRejectedError(str(exc.orig)) from exc
            raise InfrastructureError(f"{operation} failed: {exc.orig}") from exc
        except NoSuchTableError as exc:
            raise InfrastructureError(f"{operation} failed: table {exc} does not exist") from exc
        except SQLAlchemyError as exc:
            raise InfrastructureError(f"{operation} failed: {exc}") from exc
        except OSError as exc:
            raise InfrastructureError(f"{operation} failed: store unavailable ({exc})") from exc

    async def _table(self, conn: AsyncConnection, name: str) -> Table:
        if name in Base.metadata.tables:
            return Base.metadata.tables[name]
        if name in self._dynamic.tables:
            return self._dynamic.tables[name]
        return await conn.run_sync(
            lambda sync_conn: Table(name, self._dynamic, autoload_with=sync_conn)
        )

    def _forget(self, name: str) -> None:
        if name in self._dynamic.tables:
            self._dynamic.remove(self._dynamic.tables[name])

    def _quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(name)

    @staticmethod
    def _prepare(table: Table, row: Mapping[str, Any]) -> dict[str, Any]:
        unknown = [key for key in row if key not in table.c]
        if unknown:
            raise RowRejectedError(f"Unknown columns for {table.name}: {', '.join(unknown)}")
        prepared = {}
        for key, value in row.items():
            try:
                prepared[key] = _coerce(value, table.c[key])
            except (TypeError, ValueError) as exc:
                raise RowRejectedError(f"Invalid value for {key}: {exc}") from exc
        return prepared

    # ── Rows ──────────────────────────────────────────

    async def insert_row(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        async with self._guard(f"Insert into {table}", row_level=True):
            async with self.engine.begin() as conn:
                sa_table = await self._table(conn, table)
                values = self._prepare(sa_table, row)
                result = await conn.execute(insert(sa_table).values(**values))
                inserted = dict(values)
                for col, key in zip(sa_table.primary_key.columns, result.inserted_primary_key or ()):
                    inserted[col.name] = key
                return inserted

    async def insert_rows(self, table: str, rows: Sequence[Mapping[str, Any]]) -> int:
        if not rows:
            return 0
        async with self._guard(f"Insert into {table}", row_level=True):
            async with self.engine.begin() as conn:
                sa_table = await self._table(conn, table)
                values = [self._prepare(sa_table, row) for row in rows]
                await conn.execute(insert(sa_table), values)
        return len(rows)

    async def find_one(
        self,
        table: str,
        column: str,
        value: Any,
        *,
        site_id: str | None = None,
    ) -> dict[str, Any] | None:
        async with self._guard(f"Lookup in {table}"):
            async with self.engine.connect() as conn:
                sa_table = await self._table(conn, table)
                stmt = select(sa_table).where(sa_table.c[column] == value)
                if site_id is not None and "site_id" in sa_table.c:
                    stmt = stmt.where(sa_table.c.site_id == site_id)
                result = await conn.execute(stmt.limit(1))
                found = result.mappings().first()
                return dict(found) if found is not None else None

    # ── Dynamic tables ───────────────────────────────

    async def create_table(self, table: str, columns: Sequence[ColumnSpec]) -> None:
        metadata = MetaData()
        sa_table = Table(
            table,
            metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("_import_row_num", Integer, nullable=True),
            Column("_imported_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
            *[Column(spec.name, _sql_type(spec.type), nullable=spec.nullable) for spec in columns],
        )
        async with self._guard(f"Create table {table}"):
            async with self.engine.begin() as conn:
                await conn.run_sync(sa_table.create)
        self._forget(table)
        logger.info("Import table created", table_name=table, columns=len(columns))

    async def drop_table(self, table: str) -> None:
        async with self._guard(f"Drop table {table}"):
            async with self.engine.begin() as conn:
                await conn.execute(text(f"DROP TABLE IF EXISTS {self._quote(table)}"))
        self._forget(table)

    async def truncate_table(self, table: str) -> None:
        async with self._guard(f"Truncate table {table}"):
            async with self.engine.begin() as conn:
                sa_table = await self._table(conn, table)
                await conn.execute(delete(sa_table))

    async def query_table(
        self,
        table: str,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str = "id",
        descending: bool = False,
    ) -> QueryPage:
        async with self._guard(f"Query table {table}"):
            async with self.engine.connect() as conn:
                sa_table = await self._table(conn, table)
                if order_by not in sa_table.c:
                    raise InfrastructureError(f"Unknown order column {order_by!r} for {table}")
                order_col = sa_table.c[order_by]
                stmt = (
                    select(sa_table)
                    .order_by(order_col.desc() if descending else order_col.asc())
                    .limit(limit)
                    .offset(offset)
                )
                rows = (await conn.execute(stmt)).mappings().all()
                count = (await conn.execute(select(func.count()).select_from(sa_table))).scalar_one()
        return QueryPage(rows=[dict(r) for r in rows], count=count)

    async def list_columns(self, table: str) -> list[ColumnSpec]:
        async with self._guard(f"Inspect table {table}"):
            async with self.engine.connect() as conn:
                columns = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_columns(table))
        return [
            ColumnSpec(name=c["name"], type=_storage_type(c["type"]), nullable=c.get("nullable", True))
            for c in columns
        ]

    async def add_column(self, table: str, column: ColumnSpec) -> None:
        async with self._guard(f"Add column to {table}"):
            async with self.engine.begin() as conn:
                type_sql = _sql_type(column.type).compile(dialect=conn.dialect)
                await conn.execute(text(
                    f"ALTER TABLE {self._quote(table)} ADD COLUMN {self._quote(column.name)} {type_sql}"
                ))
        self._forget(table)

    # ── Import-table registry ────────────────────────

    async def register_import_table(
        self,
        data_source_id: str,
        table: str,
        columns: Sequence[ColumnSpec],
    ) -> dict[str, Any]:
        async with self._guard("Register import table"):
            async with self._sessions() as session, session.begin():
                record = await import_table_repo.register_import_table(
                    session,
                    data_source_id=data_source_id,
                    table_name=table,
                    columns=[c.to_dict() for c in columns],
                )
                return _import_table_dict(record)

    async def get_import_table(self, data_source_id: str) -> dict[str, Any] | None:
        async with self._guard("Get import table"):
            async with self._sessions() as session:
                record = await import_table_repo.get_by_data_source(session, data_source_id)
                return _import_table_dict(record) if record is not None else None

    async def update_import_table_row_count(self, table: str, row_count: int) -> None:
        async with self._guard("Update row count"):
            async with self._sessions() as session, session.begin():
                await import_table_repo.update_row_count(session, table, row_count)

    async def deregister_import_table(self, table: str) -> None:
        async with self._guard("Deregister import table"):
            async with self._sessions() as session, session.begin():
                await import_table_repo.delete_by_table_name(session, table)

    # ── Run log / data source status ─────────────────

    async def create_sync_log(self, data_source_id: str) -> str:
        async with self._guard("Create sync log"):
            async with self._sessions() as session, session.begin():
                log = await sync_log_repo.create_sync_log(session, data_source_id)
                return log.id

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
        async with self._guard("Finalize sync log"):
            async with self._sessions() as session, session.begin():
                await sync_log_repo.finalize_sync_log(
                    session,
                    sync_log_id,
                    status=status,
                    records_imported=records_imported,
                    records_skipped=records_skipped,
                    records_failed=records_failed,
                    error_message=error_message,
                    errors=[dict(e) for e in errors],
                )

    async def update_data_source_status(self, data_source_id: str, status: str) -> None:
        async with self._guard("Update data source status"):
            async with self._sessions() as session, session.begin():
                await data_source_repo.update_sync_status(session, data_source_id, status)


def _import_table_dict(record) -> dict[str, Any]:
    return {
        "id": record.id,
        "data_source_id": record.data_source_id,
        "table_name": record.table_name,
        "columns": list(record.columns or []),
        "row_count": record.row_count,
        "created_at": record.created_at,
    }
