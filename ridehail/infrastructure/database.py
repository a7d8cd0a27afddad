"""
Async SQLAlchemy engine, session factory and the process-wide lock.

``RideStore`` is constructed once at process start and handed to every
service.  The default URL is an in-memory SQLite database, so all rides
and users live exactly as long as the process; pointing ``database_url``
at PostgreSQL (``postgresql+asyncpg://...``) swaps in a persistent
backend without touching the services.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


class RideStore:
    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every session sees an empty DB
            self.engine = create_async_engine(
                database_url, echo=echo, poolclass=StaticPool
            )
        elif database_url.startswith("sqlite"):
            self.engine = create_async_engine(database_url, echo=echo)
        else:
            self.engine = create_async_engine(
                database_url, echo=echo, pool_size=20, max_overflow=10
            )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        # Serialises store + registry work: one message/request at a time
        self.lock = asyncio.Lock()

    async def open(self) -> None:
        # Import registers the tables on Base.metadata
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Entity store ready (%s)", self.engine.url.render_as_string())

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a unit of work; commit on success, rollback on error.

        Callers hold ``self.lock`` for the duration.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
