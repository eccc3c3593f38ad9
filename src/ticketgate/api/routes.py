from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ticketgate.api.schemas import (
    TicketCreateRequest,
    TicketCreateResponse,
    TicketResponse,
    VerifyRequest,
    VerifyResponse,
)
from ticketgate.config import Settings
from ticketgate.domain import Ticket
from ticketgate.services.ticket_ids import (
    normalize_ticket_id,
    ticket_id_from_payload,
    verification_path,
)
from ticketgate.services.ticket_lifecycle import TicketLifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def get_lifecycle(request: Request) -> TicketLifecycle:
    return request.app.state.lifecycle


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _ticket_to_response(ticket: Ticket, settings: Settings) -> TicketCreateResponse:
    return TicketCreateResponse(
        ticket_id=ticket.ticket_id,
        ticket=TicketResponse.model_validate(ticket),
        verify_path=verification_path(ticket.ticket_id, settings.verify_path),
    )


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/tickets", response_model=TicketCreateResponse, status_code=201)
async def create_ticket(
    body: TicketCreateRequest,
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
    settings: Settings = Depends(get_settings),
) -> TicketCreateResponse:
    if body.ticket_type not in settings.allowed_ticket_types:
        raise HTTPException(status_code=400, detail="Invalid ticket type selected")
    if body.payment_method not in settings.allowed_payment_methods:
        raise HTTPException(status_code=400, detail="Invalid payment method selected")

    ticket = await lifecycle.issue(
        name=body.name,
        email=body.email,
        ticket_type=body.ticket_type,
        payment_method=body.payment_method,
    )
    return _ticket_to_response(ticket, settings)


@router.get("/tickets/{ticket_id}", response_model=TicketCreateResponse)
async def get_ticket(
    ticket_id: str,
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
    settings: Settings = Depends(get_settings),
) -> TicketCreateResponse:
    ticket = await lifecycle.lookup(normalize_ticket_id(ticket_id))
    if ticket is None:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return _ticket_to_response(ticket, settings)


@router.post("/tickets/verify", response_model=VerifyResponse, response_model_exclude_unset=True)
async def verify_ticket(
    body: VerifyRequest,
    lifecycle: TicketLifecycle = Depends(get_lifecycle),
) -> VerifyResponse:
    if body.payload is not None and body.payload.strip():
        ticket_id = ticket_id_from_payload(body.payload)
        if ticket_id is None:
            raise HTTPException(status_code=400, detail="QR payload does not contain a ticketId")
    else:
        ticket_id = normalize_ticket_id(body.ticket_id or "")

    if body.action == "check":
        checked = await lifecycle.check(ticket_id)
        return VerifyResponse(
            status=checked.status,
            ticket=TicketResponse.model_validate(checked.ticket) if checked.ticket else None,
        )

    result = await lifecycle.redeem(ticket_id)
    return VerifyResponse(
        status=result.status,
        ticket=TicketResponse.model_validate(result.ticket) if result.ticket else None,
        redeemed=result.redeemed,
    )
