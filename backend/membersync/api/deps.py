"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from membersync.db.session import async_session, engine
from membersync.db.session import get_db as _get_db
from membersync.store.base import DataStore
from membersync.store.sql import SqlDataStore

_store = SqlDataStore(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session."""
    async for session in _get_db():
        yield session


def get_store() -> DataStore:
    """The DataStore the sync pipeline writes through."""
    return _store


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that open their own short transactions."""
    return async_session
