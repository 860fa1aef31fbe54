"""Destination routing — members, transactions, visits and custom import tables."""

from membersync.routing.handlers import (
    CustomTableHandler,
    DestinationHandler,
    MembersHandler,
    TransactionsHandler,
    VisitsHandler,
)
from membersync.routing.router import DestinationRouter

__all__ = [
    "CustomTableHandler",
    "DestinationHandler",
    "DestinationRouter",
    "MembersHandler",
    "TransactionsHandler",
    "VisitsHandler",
]
