"""
Pytest fixtures for notifier tests.

Store-backed tests run against an in-memory SQLite database injected as the
engine singleton.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from notifier.database import set_engine
from notifier.tables import metadata

from .fakes import FakeChannelSink, FakeReminderSink


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    set_engine(engine)
    yield engine
    set_engine(None)
    await engine.dispose()


@pytest.fixture
def channel_sink():
    return FakeChannelSink()


@pytest.fixture
def reminder_sink():
    return FakeReminderSink()
