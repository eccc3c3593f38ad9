from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ticketgate.exceptions import TicketBusyError


class TicketLocks:
    """Per-ticket mutual exclusion, created on demand.

    Holders never queue: a second caller for the same id gets TicketBusyError
    right away, so unrelated tickets never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, ticket_id: str) -> bool:
        lock = self._locks.get(ticket_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, ticket_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(ticket_id, asyncio.Lock())
        if lock.locked():
            raise TicketBusyError(ticket_id)
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            if self._locks.get(ticket_id) is lock:
                del self._locks[ticket_id]
