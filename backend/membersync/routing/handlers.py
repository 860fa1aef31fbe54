"""
Destination handlers — write mapped rows into one destination schema.

Row-level problems (missing identifiers, duplicates, unknown members,
rows the store rejects) are collected as RowErrors and never stop the
batch.  InfrastructureError propagates and ends the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from membersync.core.logging import get_logger
from membersync.pipeline.errors import DuplicateRecordError, MappingError, RowLevelStoreError
from membersync.processing.types import RouteResult, Row, RowError
from membersync.processing.value_parsers import is_blank, to_text
from membersync.services.import_tables import ImportTableManager
from membersync.store.base import DataStore

logger = get_logger(__name__)


def _value(row: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """row[key], with missing / blank treated as `default`."""
    value = row.get(key)
    return default if is_blank(value) else value


def _normalize_email(value: Any) -> str:
    return to_text(value).strip().lower()


def _split_tags(value: Any) -> list[str]:
    if is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        return [str(t).strip() for t in value if str(t).strip()]
    return [t.strip() for t in to_text(value).split(",") if t.strip()]


class DestinationHandler(ABC):
    """Writes one batch of mapped rows to a destination."""

    destination: str = "unknown"

    @abstractmethod
    async def route(
        self,
        rows: Sequence[Row],
        *,
        site_id: str | None = None,
        table_name: str | None = None,
        result: RouteResult | None = None,
    ) -> RouteResult:
        """
        Route `rows` and return the counts.  When `result` is given it is
        updated in place as rows are written, so a caller still sees the
        rows already committed if the store fails partway.
        """


class _MemberLookupMixin:
    store: DataStore

    async def _find_member(self, email: Any, site_id: str | None) -> dict[str, Any] | None:
        return await self.store.find_one("members", "email", _normalize_email(email), site_id=site_id)


class MembersHandler(DestinationHandler):
    destination = "members"

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def route(self, rows, *, site_id=None, table_name=None, result=None) -> RouteResult:
        result = result if result is not None else RouteResult()
        for index, row in enumerate(rows, start=1):
            first_name = _value(row, "first_name")
            email = _value(row, "email")
            if first_name is None and email is None:
                result.skipped += 1
                result.errors.append(RowError(index, "Missing first_name and email"))
                continue

            data = {
                "first_name": first_name,
                "last_name": _value(row, "last_name"),
                "email": _normalize_email(email) if email is not None else None,
                "phone": _value(row, "phone"),
                "membership_status": _value(row, "membership_status", "active"),
                "date_of_birth": _value(row, "date_of_birth"),
                "address_line1": _value(row, "address_line1"),
                "address_line2": _value(row, "address_line2"),
                "city": _value(row, "city"),
                "state": _value(row, "state"),
                "postal_code": _value(row, "postal_code"),
                "tags": _split_tags(row.get("tags")),
            }
            if site_id:
                data["site_id"] = site_id

            try:
                await self.store.insert_row("members", data)
            except DuplicateRecordError:
                result.skipped += 1
                result.errors.append(RowError(index, f"Duplicate: {data['email'] or first_name}"))
            except RowLevelStoreError as exc:
                result.errors.append(RowError(index, str(exc)))
            else:
                result.imported += 1
        return result


class TransactionsHandler(_MemberLookupMixin, DestinationHandler):
    destination = "transactions"

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def route(self, rows, *, site_id=None, table_name=None, result=None) -> RouteResult:
        result = result if result is not None else RouteResult()
        for index, row in enumerate(rows, start=1):
            member_email = _value(row, "member_email")
            amount = _value(row, "amount")
            transaction_date = _value(row, "transaction_date")
            if member_email is None or amount is None or transaction_date is None:
                result.skipped += 1
                result.errors.append(RowError(index, "Missing required fields (member_email, amount, transaction_date)"))
                continue

            member = await self._find_member(member_email, site_id)
            if member is None:
                result.skipped += 1
                result.errors.append(RowError(index, f"Member not found: {member_email}"))
                continue

            try:
                await self.store.insert_row("member_transactions", {
                    "member_id": member["id"],
                    "amount": amount,
                    "transaction_date": transaction_date,
                    "transaction_type": _value(row, "transaction_type", "purchase"),
                    "description": _value(row, "description"),
                    "payment_method": _value(row, "payment_method"),
                    "reference_number": _value(row, "reference_number"),
                })
            except RowLevelStoreError as exc:
                result.errors.append(RowError(index, str(exc)))
            else:
                result.imported += 1
        return result


class VisitsHandler(_MemberLookupMixin, DestinationHandler):
    destination = "visits"

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def route(self, rows, *, site_id=None, table_name=None, result=None) -> RouteResult:
        result = result if result is not None else RouteResult()
        for index, row in enumerate(rows, start=1):
            member_email = _value(row, "member_email")
            visit_date = _value(row, "visit_date")
            if member_email is None or visit_date is None:
                result.skipped += 1
                result.errors.append(RowError(index, "Missing required fields (member_email, visit_date)"))
                continue

            member = await self._find_member(member_email, site_id)
            if member is None:
                result.skipped += 1
                result.errors.append(RowError(index, f"Member not found: {member_email}"))
                continue

            try:
                await self.store.insert_row("member_visits", {
                    "member_id": member["id"],
                    "site_id": site_id,
                    "visit_date": visit_date,
                    "check_in_time": _value(row, "check_in_time"),
                    "check_out_time": _value(row, "check_out_time"),
                    "visit_type": _value(row, "visit_type", "general"),
                    "service_name": _value(row, "service_name"),
                    "notes": _value(row, "notes"),
                })
            except RowLevelStoreError as exc:
                result.errors.append(RowError(index, str(exc)))
            else:
                result.imported += 1
        return result


class CustomTableHandler(DestinationHandler):
    """No per-row validation; rows go straight into the import table in batches."""

    destination = "custom"

    def __init__(self, import_tables: ImportTableManager) -> None:
        self.import_tables = import_tables

    async def route(self, rows, *, site_id=None, table_name=None, result=None) -> RouteResult:
        if not table_name:
            raise MappingError("table_name required for custom destination")
        result = result if result is not None else RouteResult()

        def track(inserted: int, total: int) -> None:
            result.imported = inserted

        await self.import_tables.insert_rows_batched(table_name, list(rows), on_progress=track)
        return result
