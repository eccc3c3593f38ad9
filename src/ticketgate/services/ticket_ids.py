from __future__ import annotations

import secrets
import string
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit

TICKET_ID_ALPHABET = string.digits + string.ascii_uppercase


def generate_ticket_id(prefix: str = "SW-", length: int = 7) -> str:
    """Random id like SW-3K9ZQ0A. Uniqueness is the caller's job."""
    return prefix + "".join(secrets.choice(TICKET_ID_ALPHABET) for _ in range(length))


def normalize_ticket_id(raw: str) -> str:
    return raw.strip().upper()


def verification_path(ticket_id: str, base_path: str = "/verify") -> str:
    """Path to encode in the ticket's QR code."""
    return f"{base_path}?{urlencode({'ticketId': ticket_id})}"


def ticket_id_from_payload(payload: str) -> Optional[str]:
    """Extract a normalized ticket id from scanned QR text.

    Accepts a verification path ("/verify?ticketId=..."), a full URL with the
    same query parameter, or a bare ticket id.
    """
    text = payload.strip()
    if not text:
        return None
    if text.startswith("/") or "://" in text:
        values = parse_qs(urlsplit(text).query).get("ticketId")
        if not values or not values[0].strip():
            return None
        return normalize_ticket_id(values[0])
    return normalize_ticket_id(text)
