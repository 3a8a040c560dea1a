from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.errors import ConfigurationError
from libs.db.config import Database


def get_database(request: Request) -> Database:
    database = getattr(request.app.state, "database", None)
    if database is None:
        raise ConfigurationError("Database is not configured")
    return database


async def get_async_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a service-tier (read/write) session.
    """
    async with get_database(request).sessionmaker() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_read_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields a read-tier session for client-initiated reads.
    """
    async with get_database(request).read_sessionmaker() as session:
        try:
            yield session
        finally:
            await session.close()
