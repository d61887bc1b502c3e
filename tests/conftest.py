"""Shared fixtures.

Every test gets its own SQLite file (through aiosqlite) so concurrent
sessions behave like separate connections, and every outbound HTTP call
goes through an ``httpx.MockTransport``.
"""

import inspect
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from drc.config import Settings
from drc.database import get_db
from drc.main import create_app
from drc.models import Base, Disaster
from drc.realtime import Broadcaster
from drc.services.cache import CacheStore

T0 = datetime(2025, 6, 17, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class FakeUpstream:
    """Routes mocked HTTP requests by host and records every call."""

    def __init__(self) -> None:
        self.handlers = {}
        self.requests: list[httpx.Request] = []

    def on(self, host: str, handler) -> None:
        self.handlers[host] = handler

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.handlers.get(request.url.host)
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


class FakeGemini:
    def __init__(self, location: str | None = "Manhattan, NYC", summary: str = "Looks authentic.") -> None:
        self.location = location
        self.summary = summary
        self.calls: list[str] = []

    async def extract_location(self, description: str) -> str | None:
        self.calls.append(description)
        return self.location

    async def describe_image(self, image_bytes: bytes, mime_type: str) -> str | None:
        self.calls.append(mime_type)
        return self.summary


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        gemini_api_key="",
        bluesky_identifier="",
        bluesky_password="",
        http_retry_backoff_seconds=0,
        rate_limit_requests=100,
    )


@pytest_asyncio.fixture
async def engine(test_settings):
    engine = create_async_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(session, clock) -> CacheStore:
    return CacheStore(session, clock=clock)


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest_asyncio.fixture
async def http(upstream):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as client:
        yield client


@pytest_asyncio.fixture
async def disaster(session) -> Disaster:
    disaster = Disaster(
        id="abc",
        title="NYC Flood",
        location_name="Manhattan, NYC",
        description="Heavy flooding in Manhattan",
        tags=["flood", "urgent"],
        owner_id="netrunnerX",
    )
    disaster.record("create", "netrunnerX")
    session.add(disaster)
    await session.commit()
    return disaster


@pytest_asyncio.fixture
async def app(test_settings, session_maker, http):
    app = create_app(test_settings)
    app.state.http_client = http

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
