from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leave_ledger.db import get_session
from leave_ledger.main import app
from leave_ledger.models import SQLModel
from leave_ledger.services.notification import InMemoryNotificationDispatcher, set_notification_dispatcher
from leave_ledger.services.payroll import InMemoryPayrollGateway, set_payroll_gateway

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create a fresh SQLite database file for each test.

    A file rather than ``:memory:`` lets independent connections see each
    other's commits, which the concurrency tests rely on.
    """
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client whose requests each get their own database session."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def dispatcher() -> Iterator[InMemoryNotificationDispatcher]:
    """Fresh in-memory notification dispatcher for every test."""
    recorder = InMemoryNotificationDispatcher()
    set_notification_dispatcher(recorder)
    yield recorder
    set_notification_dispatcher(InMemoryNotificationDispatcher())


@pytest.fixture(autouse=True)
def payroll() -> Iterator[InMemoryPayrollGateway]:
    """Fresh in-memory payroll gateway for every test."""
    gateway = InMemoryPayrollGateway()
    set_payroll_gateway(gateway)
    yield gateway
    set_payroll_gateway(InMemoryPayrollGateway())
