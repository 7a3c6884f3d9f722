from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest

from bazaar.store import SessionFactory, create_database, seed

from tests.factories import NOW, RecordingGateway

type Seeder = Callable[..., Awaitable[None]]


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[SessionFactory]:
    # file database: every ':memory:' connection would be a separate database
    factory, engine = await create_database(f"sqlite+aiosqlite:///{tmp_path / 'bazaar.db'}")
    yield factory
    await engine.dispose()


@pytest.fixture
def seeded(session_factory: SessionFactory) -> Seeder:
    """Seed catalog rows in one committed transaction."""

    async def _seed(**rows: Any) -> None:
        async with session_factory() as session, session.begin():
            await seed(session, **rows)

    return _seed


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def clock():
    return lambda: NOW
