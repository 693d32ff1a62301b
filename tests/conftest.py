"""Shared fixtures: temporary SQLite usage stores, settings, a fake clock."""

import datetime
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from chat_usage.core.config import Settings
from chat_usage.core.database import (
    create_session_factory,
    create_usage_engine,
    ensure_usage_schema,
)
from chat_usage.services.usage_store import UsageStore

TEST_SALT = "test-salt"


class FakeClock:
    """Settable wall clock (unix seconds) for day-window tests."""

    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    # Local noon keeps the test well away from midnight in any timezone
    return FakeClock(datetime.datetime(2026, 3, 10, 12, 0, 0).timestamp())


@pytest.fixture
def usage_db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'usage.sqlite'}"


@pytest_asyncio.fixture
async def engine(usage_db_url) -> AsyncIterator[AsyncEngine]:
    engine = create_usage_engine(usage_db_url)
    await ensure_usage_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory, clock) -> UsageStore:
    return UsageStore(session_factory, clock=clock)


@pytest.fixture
def chatkit_requests() -> list[httpx.Request]:
    return []


@pytest.fixture
def chatkit_transport(chatkit_requests) -> httpx.MockTransport:
    """Upstream ChatKit stub that always issues a session."""

    def handler(request: httpx.Request) -> httpx.Response:
        chatkit_requests.append(request)
        return httpx.Response(200, json={"client_secret": f"cs_{len(chatkit_requests)}"})

    return httpx.MockTransport(handler)


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": "test",
        "USAGE_SALT": TEST_SALT,
        "OPENAI_API_KEY": "sk-test",
        "CHATKIT_WORKFLOW_ID": "wf_test",
        "SANITY_PROJECT_ID": "",
        "USAGE_DATABASE_URL": "",
        "TRUSTED_PROXY": False,
        "AUTH_USER_HEADER": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings_factory():
    """Build isolated Settings (no .env) with test-friendly defaults."""
    return make_settings
