from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


class TicketStatus(str, enum.Enum):
    ISSUED = "issued"
    USED = "used"


class ScanAction(str, enum.Enum):
    CHECKED = "checked"
    REDEEMED = "redeemed"


class VerifyStatus(str, enum.Enum):
    """Outcome of a check or redeem call."""

    INVALID = "invalid"
    VALID = "valid"
    USED = "used"
    BUSY = "busy"


@dataclass(frozen=True)
class ScanEntry:
    scanned_at: datetime
    action: ScanAction


@dataclass
class Ticket:
    ticket_id: str
    name: str
    email: str
    ticket_type: str
    payment_method: str
    issued_at: datetime
    status: TicketStatus = TicketStatus.ISSUED
    used_at: Optional[datetime] = None
    scan_history: list[ScanEntry] = field(default_factory=list)

    @property
    def is_used(self) -> bool:
        return self.status is TicketStatus.USED

    def record_scan(self, entry: ScanEntry, used_at: Optional[datetime] = None) -> None:
        """Append a scan entry, flipping to used when used_at is given.

        A ticket that is already used keeps its first used_at, and a late
        redemption is recorded as a check.
        """
        if used_at is not None:
            if self.status is TicketStatus.ISSUED:
                self.status = TicketStatus.USED
                self.used_at = used_at
            elif entry.action is ScanAction.REDEEMED:
                entry = ScanEntry(scanned_at=entry.scanned_at, action=ScanAction.CHECKED)
        self.scan_history.append(entry)


@dataclass(frozen=True)
class CheckResult:
    status: VerifyStatus
    ticket: Optional[Ticket] = None


@dataclass(frozen=True)
class RedeemResult:
    status: VerifyStatus
    ticket: Optional[Ticket] = None
    redeemed: bool = False
