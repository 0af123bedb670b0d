"""Shared test fixtures — async SQLite in-memory store, fake clock, mock API."""

from collections.abc import Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from deploydeck.core.cache import FreshnessCache
from deploydeck.core.database import create_session_factory, init_db
from deploydeck.core.diagnostics import RecordingSink
from deploydeck.services.kv_store import KeyValueStore
from deploydeck.services.vercel_api import VercelClient

# 2023-11-14T22:13:20Z
T0 = 1_700_000_000_000


class FakeClock:
    """Epoch-millisecond clock the tests move by hand."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False, poolclass=StaticPool)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory) -> KeyValueStore:
    return KeyValueStore(session_factory)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def cache(store, clock, sink) -> FreshnessCache:
    return FreshnessCache(store, clock=clock, sink=sink)


@pytest.fixture
def make_client(sink) -> Callable[..., VercelClient]:
    """Build a VercelClient whose requests are answered by ``handler``."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        token: str = "tok_valid",
        team_id: str | None = None,
    ) -> VercelClient:
        return VercelClient(
            token,
            team_id,
            base_url="https://api.test",
            transport=httpx.MockTransport(handler),
            sink=sink,
        )

    return _make

