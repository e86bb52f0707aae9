import os

# No collector in tests
os.environ.setdefault("OTEL_SDK_DISABLED", "true")

import pytest
import pytest_asyncio
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from pimsync.models import Base
from pimsync.main import app
from pimsync.core.db import get_db
from pimsync.api.v1.endpoints.webhooks import get_sink
from pimsync.api.v1.endpoints.import_runs import get_enqueuer

from tests.fakes import FakeSink


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # File-backed so the runner's cancel watcher and the test see the same data
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pimsync.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_sink():
    return FakeSink()


@pytest.fixture
def enqueued():
    return []


@pytest_asyncio.fixture
async def client(session_factory, fake_sink, enqueued):
    """
    HTTP client with the DB, destination sink and Celery enqueue swapped for test doubles.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    async def _override_get_sink():
        yield fake_sink

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_sink] = _override_get_sink
    app.dependency_overrides[get_enqueuer] = lambda: enqueued.append

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
