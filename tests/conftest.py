from __future__ import annotations

import asyncio
from typing import Optional

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from ticketgate.config import Settings
from ticketgate.domain import ScanEntry, Ticket
from ticketgate.exceptions import StoreUnavailableError
from ticketgate.infrastructure.database import create_engine, create_session_maker, create_tables
from ticketgate.infrastructure.repositories.ticket_repository import (
    InMemoryTicketRepository,
    SqlTicketRepository,
)
from ticketgate.main import create_app
from ticketgate.services.ticket_lifecycle import TicketLifecycle


class YieldingStore(InMemoryTicketRepository):
    """In-memory store that gives up the event loop on every call, so
    concurrent coroutines actually interleave."""

    async def add(self, ticket: Ticket) -> bool:
        await asyncio.sleep(0)
        return await super().add(ticket)

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        await asyncio.sleep(0)
        return await super().get(ticket_id)

    async def append_scan(self, ticket_id, entry: ScanEntry, used_at=None) -> Optional[Ticket]:
        await asyncio.sleep(0)
        return await super().append_scan(ticket_id, entry, used_at=used_at)


class BrokenStore:
    async def add(self, ticket):
        raise StoreUnavailableError("store is down")

    async def put(self, ticket):
        raise StoreUnavailableError("store is down")

    async def get(self, ticket_id):
        raise StoreUnavailableError("store is down")

    async def append_scan(self, ticket_id, entry, used_at=None):
        raise StoreUnavailableError("store is down")


@pytest.fixture
def store() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}")
    await create_tables(engine)
    yield SqlTicketRepository(create_session_maker(engine))
    await engine.dispose()


@pytest.fixture
def lifecycle(store) -> TicketLifecycle:
    return TicketLifecycle(store)


@pytest.fixture
def settings() -> Settings:
    return Settings(store_backend="memory")


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store=store)) as test_client:
        yield test_client
