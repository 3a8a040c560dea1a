"""Shared fixtures for the token service tests.

Each test gets its own file-backed SQLite database under ``tmp_path`` so
concurrent sessions really contend for the same rows.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from libs.common.config import Settings
from libs.common.rate_limit import limiter
from libs.db.base import Base
from libs.db.config import Database
from services.tokens_service import models as _token_models  # noqa: F401
from services.tokens_service.app.main import create_app
from services.tokens_service.services.notifier import Notifier
from tests.factories import FakeCheckoutClient, make_settings, unique_user_id


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest_asyncio.fixture
async def database(settings) -> AsyncGenerator[Database, None]:
    """
    Fresh database per test, tables created from the model metadata.
    """
    db = Database.from_settings(settings)
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    async with database.sessionmaker() as session:
        yield session


@pytest.fixture
def session_factory(database):
    return database.sessionmaker


@pytest.fixture
def notifier(database) -> Notifier:
    return Notifier(database.sessionmaker)


@pytest.fixture
def checkout_client() -> FakeCheckoutClient:
    return FakeCheckoutClient()


@pytest.fixture
def user_id() -> str:
    return unique_user_id()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Start every test with empty limiter counters."""
    limiter.reset()
    yield
    limiter.reset()


@pytest_asyncio.fixture
async def app(settings, database, checkout_client):
    application = create_app(
        settings, database=database, checkout_client=checkout_client
    )
    # ASGITransport does not send lifespan events
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the app over ASGI.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
