from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ticketgate.domain import (
    CheckResult,
    RedeemResult,
    ScanAction,
    ScanEntry,
    Ticket,
    TicketStatus,
    VerifyStatus,
)
from ticketgate.exceptions import TicketBusyError, TicketIdCollisionError
from ticketgate.infrastructure.repositories.ticket_repository import TicketStore
from ticketgate.services.ticket_ids import generate_ticket_id
from ticketgate.services.ticket_locks import TicketLocks

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketLifecycle:
    """Issues tickets and moves them from issued to used exactly once."""

    def __init__(
        self,
        store: TicketStore,
        *,
        locks: Optional[TicketLocks] = None,
        id_factory: Callable[[], str] = generate_ticket_id,
        issue_max_attempts: int = 5,
        redeem_retry_attempts: int = 0,
        redeem_retry_backoff: float = 0.05,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._locks = locks if locks is not None else TicketLocks()
        self._id_factory = id_factory
        self._issue_max_attempts = issue_max_attempts
        self._redeem_retry_attempts = redeem_retry_attempts
        self._redeem_retry_backoff = redeem_retry_backoff
        self._clock = clock

    async def issue(self, name: str, email: str, ticket_type: str, payment_method: str) -> Ticket:
        issued_at = self._clock()
        # No uniqueness guarantee from the generator; the store rejects taken ids.
        for attempt in range(1, self._issue_max_attempts + 1):
            ticket = Ticket(
                ticket_id=self._id_factory(),
                name=name,
                email=email,
                ticket_type=ticket_type,
                payment_method=payment_method,
                issued_at=issued_at,
            )
            if await self._store.add(ticket):
                logger.info("Issued ticket %s (%s)", ticket.ticket_id, ticket.ticket_type)
                return ticket
            logger.warning("Ticket id collision on %s (attempt %d)", ticket.ticket_id, attempt)
        raise TicketIdCollisionError(
            f"No free ticket id after {self._issue_max_attempts} attempts"
        )

    async def lookup(self, ticket_id: str) -> Optional[Ticket]:
        """Read a ticket without recording a scan."""
        return await self._store.get(ticket_id)

    async def check(self, ticket_id: str) -> CheckResult:
        entry = ScanEntry(scanned_at=self._clock(), action=ScanAction.CHECKED)
        ticket = await self._store.append_scan(ticket_id, entry)
        if ticket is None:
            return CheckResult(status=VerifyStatus.INVALID)
        if ticket.status is TicketStatus.USED:
            return CheckResult(status=VerifyStatus.USED, ticket=ticket)
        return CheckResult(status=VerifyStatus.VALID, ticket=ticket)

    async def redeem(self, ticket_id: str) -> RedeemResult:
        if await self._store.get(ticket_id) is None:
            return RedeemResult(status=VerifyStatus.INVALID)

        delay = self._redeem_retry_backoff
        for attempt in range(self._redeem_retry_attempts + 1):
            try:
                async with self._locks.hold(ticket_id):
                    return await self._redeem_locked(ticket_id)
            except TicketBusyError:
                if attempt == self._redeem_retry_attempts:
                    break
                await asyncio.sleep(delay)
                delay *= 2

        logger.info("Redemption of %s is busy", ticket_id)
        return RedeemResult(status=VerifyStatus.BUSY)

    async def _redeem_locked(self, ticket_id: str) -> RedeemResult:
        # A concurrent redeemer may have flipped the ticket before we got the lock.
        current = await self._store.get(ticket_id)
        if current is None:
            return RedeemResult(status=VerifyStatus.INVALID)

        now = self._clock()
        if current.status is TicketStatus.USED:
            ticket = await self._store.append_scan(
                ticket_id, ScanEntry(scanned_at=now, action=ScanAction.CHECKED)
            )
            return RedeemResult(status=VerifyStatus.USED, ticket=ticket)

        ticket = await self._store.append_scan(
            ticket_id,
            ScanEntry(scanned_at=now, action=ScanAction.REDEEMED),
            used_at=now,
        )
        if ticket is None:
            return RedeemResult(status=VerifyStatus.INVALID)
        if ticket.used_at != now:
            # flipped by another process sharing the store
            return RedeemResult(status=VerifyStatus.USED, ticket=ticket)
        logger.info("Redeemed ticket %s", ticket_id)
        return RedeemResult(status=VerifyStatus.VALID, ticket=ticket, redeemed=True)
