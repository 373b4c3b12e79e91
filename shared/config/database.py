from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from shared.errors import InternalError

logger = structlog.get_logger(__name__)

Base = declarative_base()


def _serialize_sqlite_writers(engine) -> None:
    """SQLite has no row locks. Start every transaction with BEGIN IMMEDIATE so
    concurrent transactions queue on the database write lock instead."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Engine + session factory. Built once by the app factory and handed to services."""

    def __init__(self, url: str, echo: bool = False):
        connect_args = {"timeout": 30} if url.startswith("sqlite") else {}
        self.engine = create_async_engine(url, echo=echo, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """One atomic unit: commits on clean exit, rolls back on any exception."""
        async with self.sessionmaker() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as exc:
                logger.error("transaction_failed", error=str(exc))
                raise InternalError("Database transaction failed") from exc

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session
