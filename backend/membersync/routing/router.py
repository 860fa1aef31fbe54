"""
DestinationRouter — dispatches a mapped batch to exactly one handler.
"""

from __future__ import annotations

from typing import Sequence

from membersync.core.constants import DestinationType
from membersync.core.logging import get_logger
from membersync.pipeline.errors import MappingError
from membersync.processing.types import RouteResult, Row
from membersync.routing.handlers import (
    CustomTableHandler,
    DestinationHandler,
    MembersHandler,
    TransactionsHandler,
    VisitsHandler,
)
from membersync.services.import_tables import ImportTableManager
from membersync.store.base import DataStore

logger = get_logger(__name__)


class DestinationRouter:
    """
    Usage::

        router = DestinationRouter(store)
        result = await router.route("members", rows, site_id="site-1")
    """

    def __init__(
        self,
        store: DataStore,
        import_tables: ImportTableManager | None = None,
        handlers: dict[DestinationType, DestinationHandler] | None = None,
    ) -> None:
        self.store = store
        self.import_tables = import_tables or ImportTableManager(store)
        self.handlers: dict[DestinationType, DestinationHandler] = handlers or {
            DestinationType.MEMBERS: MembersHandler(store),
            DestinationType.TRANSACTIONS: TransactionsHandler(store),
            DestinationType.VISITS: VisitsHandler(store),
            DestinationType.CUSTOM: CustomTableHandler(self.import_tables),
        }

    async def route(
        self,
        destination_type: DestinationType | str,
        rows: Sequence[Row],
        site_id: str | None = None,
        table_name: str | None = None,
        result: RouteResult | None = None,
    ) -> RouteResult:
        try:
            destination = DestinationType(destination_type)
        except ValueError:
            raise MappingError(f"Unknown destination type: {destination_type}") from None

        handler = self.handlers.get(destination)
        if handler is None:
            raise MappingError(f"No handler registered for destination: {destination.value}")

        result = await handler.route(rows, site_id=site_id, table_name=table_name, result=result)
        logger.info(
            "Rows routed",
            destination=destination.value,
            input_rows=len(rows),
            imported=result.imported,
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result
