from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ticketgate.domain import ScanAction, ScanEntry, Ticket, TicketStatus
from ticketgate.exceptions import StoreUnavailableError
from ticketgate.infrastructure.models import ScanRecord, TicketRecord

logger = logging.getLogger(__name__)


class TicketStore(Protocol):
    """Authoritative mapping from ticket id to ticket."""

    async def add(self, ticket: Ticket) -> bool:
        """Insert a new ticket. False if the id is already taken."""
        ...

    async def put(self, ticket: Ticket) -> None: ...

    async def get(self, ticket_id: str) -> Optional[Ticket]: ...

    async def append_scan(
        self,
        ticket_id: str,
        entry: ScanEntry,
        used_at: Optional[datetime] = None,
    ) -> Optional[Ticket]:
        """Append one scan entry in a single atomic step.

        When used_at is given and the ticket is still issued, the ticket is
        marked used in the same step. Returns the updated ticket, or None
        if the id is unknown.
        """
        ...


class InMemoryTicketRepository:
    """Process-local ticket store. Hands out copies, never the stored object."""

    def __init__(self) -> None:
        self._tickets: dict[str, Ticket] = {}

    def __len__(self) -> int:
        return len(self._tickets)

    async def add(self, ticket: Ticket) -> bool:
        if ticket.ticket_id in self._tickets:
            return False
        self._tickets[ticket.ticket_id] = copy.deepcopy(ticket)
        return True

    async def put(self, ticket: Ticket) -> None:
        self._tickets[ticket.ticket_id] = copy.deepcopy(ticket)

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            return None
        return copy.deepcopy(ticket)

    async def append_scan(
        self,
        ticket_id: str,
        entry: ScanEntry,
        used_at: Optional[datetime] = None,
    ) -> Optional[Ticket]:
        ticket = self._tickets.get(ticket_id)
        if ticket is None:
            return None
        ticket.record_scan(entry, used_at=used_at)
        return copy.deepcopy(ticket)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite drops tzinfo on the way back
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_domain(record: TicketRecord) -> Ticket:
    return Ticket(
        ticket_id=record.ticket_id,
        name=record.name,
        email=record.email,
        ticket_type=record.ticket_type,
        payment_method=record.payment_method,
        issued_at=_as_utc(record.issued_at),
        status=TicketStatus(record.status),
        used_at=_as_utc(record.used_at),
        scan_history=[
            ScanEntry(scanned_at=_as_utc(scan.scanned_at), action=ScanAction(scan.action))
            for scan in record.scans
        ],
    )


def _apply(record: TicketRecord, ticket: Ticket) -> None:
    record.name = ticket.name
    record.email = ticket.email
    record.ticket_type = ticket.ticket_type
    record.payment_method = ticket.payment_method
    record.status = ticket.status.value
    record.issued_at = ticket.issued_at
    record.used_at = ticket.used_at
    record.scans = [
        ScanRecord(scanned_at=entry.scanned_at, action=entry.action.value)
        for entry in ticket.scan_history
    ]


class SqlTicketRepository:
    """Ticket store backed by SQLAlchemy. Each call runs in its own transaction."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def _load(
        self, session: AsyncSession, ticket_id: str, for_update: bool = False
    ) -> Optional[TicketRecord]:
        return await session.get(
            TicketRecord,
            ticket_id,
            options=[selectinload(TicketRecord.scans)],
            with_for_update=for_update,
        )

    async def add(self, ticket: Ticket) -> bool:
        try:
            async with self._session_maker() as session, session.begin():
                record = TicketRecord(ticket_id=ticket.ticket_id)
                _apply(record, ticket)
                session.add(record)
                await session.flush()
        except IntegrityError:
            # primary key taken
            return False
        except SQLAlchemyError as e:
            logger.exception("Failed to add ticket %s", ticket.ticket_id)
            raise StoreUnavailableError(f"Failed to add ticket {ticket.ticket_id}") from e
        return True

    async def put(self, ticket: Ticket) -> None:
        try:
            async with self._session_maker() as session, session.begin():
                record = await self._load(session, ticket.ticket_id, for_update=True)
                if record is None:
                    record = TicketRecord(ticket_id=ticket.ticket_id)
                    session.add(record)
                _apply(record, ticket)
        except SQLAlchemyError as e:
            logger.exception("Failed to store ticket %s", ticket.ticket_id)
            raise StoreUnavailableError(f"Failed to store ticket {ticket.ticket_id}") from e

    async def get(self, ticket_id: str) -> Optional[Ticket]:
        try:
            async with self._session_maker() as session:
                record = await self._load(session, ticket_id)
                if record is None:
                    return None
                return _to_domain(record)
        except SQLAlchemyError as e:
            logger.exception("Failed to read ticket %s", ticket_id)
            raise StoreUnavailableError(f"Failed to read ticket {ticket_id}") from e

    async def append_scan(
        self,
        ticket_id: str,
        entry: ScanEntry,
        used_at: Optional[datetime] = None,
    ) -> Optional[Ticket]:
        try:
            async with self._session_maker() as session, session.begin():
                record = await self._load(session, ticket_id, for_update=True)
                if record is None:
                    return None
                action = entry.action
                if used_at is not None:
                    if record.status == TicketStatus.ISSUED.value:
                        record.status = TicketStatus.USED.value
                        record.used_at = used_at
                    elif action is ScanAction.REDEEMED:
                        action = ScanAction.CHECKED
                record.scans.append(ScanRecord(scanned_at=entry.scanned_at, action=action.value))
                await session.flush()
                return _to_domain(record)
        except SQLAlchemyError as e:
            logger.exception("Failed to record scan for ticket %s", ticket_id)
            raise StoreUnavailableError(f"Failed to record scan for ticket {ticket_id}") from e
