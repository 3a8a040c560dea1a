from dataclasses import dataclass

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import Settings


def build_engine(url: str, settings: Settings) -> AsyncEngine:
    """Create an async engine for ``url`` using the pool settings.

    SQLite (local runs and tests) gets no pool sizing and a generous busy
    timeout so concurrent writers queue instead of failing.
    """
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return create_async_engine(
            url,
            future=True,
            connect_args={"timeout": 30},
        )

    connect_args = {}
    if make_url(url).get_driver_name() == "psycopg":
        # Disable psycopg auto-prepared statements (pgbouncer / pooled Postgres)
        connect_args["prepare_threshold"] = 0

    return create_async_engine(
        url,
        echo=(settings.ENVIRONMENT == "local" and settings.LOG_LEVEL.upper() == "DEBUG"),
        future=True,
        pool_pre_ping=True,  # Test connections before using
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args=connect_args,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@dataclass
class Database:
    """Service-tier and read-tier engines, built once at process start."""

    engine: AsyncEngine
    read_engine: AsyncEngine
    sessionmaker: async_sessionmaker[AsyncSession]
    read_sessionmaker: async_sessionmaker[AsyncSession]

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        engine = build_engine(settings.DATABASE_URL, settings)
        if settings.read_database_url == settings.DATABASE_URL:
            read_engine = engine
        else:
            read_engine = build_engine(settings.read_database_url, settings)
        return cls(
            engine=engine,
            read_engine=read_engine,
            sessionmaker=build_sessionmaker(engine),
            read_sessionmaker=build_sessionmaker(read_engine),
        )

    async def dispose(self) -> None:
        await self.engine.dispose()
        if self.read_engine is not self.engine:
            await self.read_engine.dispose()
