from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ticketgate.domain import ScanAction, TicketStatus, VerifyStatus

_email_adapter = TypeAdapter(EmailStr)


def sanitize_input(value: Any, max_length: int = 200) -> Any:
    """Trim, truncate and drop angle brackets."""
    if not isinstance(value, str):
        return value
    return value.strip()[:max_length].replace("<", "").replace(">", "")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ScanEntryResponse(CamelModel):
    scanned_at: datetime
    action: ScanAction


class TicketResponse(CamelModel):
    ticket_id: str
    name: str
    email: str
    ticket_type: str
    payment_method: str
    status: TicketStatus
    issued_at: datetime
    used_at: Optional[datetime] = None
    scan_history: list[ScanEntryResponse]


class TicketCreateRequest(CamelModel):
    name: str
    email: str
    ticket_type: str
    payment_method: str

    @field_validator("name", "email", mode="before")
    @classmethod
    def clean_contact(cls, value: Any) -> Any:
        return sanitize_input(value, 100)

    @field_validator("ticket_type", "payment_method", mode="before")
    @classmethod
    def clean_choice(cls, value: Any) -> Any:
        return sanitize_input(value, 50)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        # validated only, stored as entered
        try:
            _email_adapter.validate_python(value)
        except ValidationError:
            raise ValueError("Invalid email address format") from None
        return value

    @field_validator("name")
    @classmethod
    def check_name_length(cls, value: str) -> str:
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return value


class TicketCreateResponse(CamelModel):
    ticket_id: str
    ticket: TicketResponse
    verify_path: str


class VerifyRequest(CamelModel):
    ticket_id: Optional[str] = None
    payload: Optional[str] = None  # raw QR text
    action: Literal["check", "redeem"] = "redeem"

    @model_validator(mode="after")
    def require_one_source(self) -> "VerifyRequest":
        has_id = bool(self.ticket_id and self.ticket_id.strip())
        has_payload = bool(self.payload and self.payload.strip())
        if has_id == has_payload:
            raise ValueError("Exactly one of ticketId or payload is required")
        return self


class VerifyResponse(CamelModel):
    status: VerifyStatus
    ticket: Optional[TicketResponse] = None
    redeemed: Optional[bool] = None
