"""Shared fixtures: an in-memory database and a message recorder."""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from sleeperbot.db import Base, get_session_factory
from sleeperbot.storage import Store


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine):
    return Store(get_session_factory(engine))


class RecordingMessenger:
    """Stands in for Messenger and records every send."""

    def __init__(self, fail_for=(), lang="en"):
        self.fail_for = set(fail_for)
        self.lang = lang
        self.templated = []
        self.raw = []

    async def send_templated(self, chat_id, template_key, variables=None, **options):
        if chat_id in self.fail_for:
            return False
        self.templated.append((chat_id, template_key, variables or {}))
        return True

    async def send_raw(self, chat_id, text, platform=None, **options):
        if chat_id in self.fail_for:
            return False
        self.raw.append((chat_id, text, platform))
        return True

    async def language_for(self, chat_id, platform=None):
        return self.lang


@pytest.fixture
def messenger():
    return RecordingMessenger()


def make_league(league_id=1, name="Dynasty", provider_league_id="L1", members=((111, "Europe/Kyiv"),)):
    return SimpleNamespace(
        id=league_id,
        name=name,
        provider_league_id=provider_league_id,
        members=[SimpleNamespace(user=SimpleNamespace(chat_id=c, tz=tz)) for c, tz in members],
    )
