from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from ticketgate.exceptions import GateClientError

logger = logging.getLogger(__name__)


class GateClient:
    """HTTP client used by gate scanners to talk to the ticket service."""

    def __init__(
        self,
        base_url: str,
        busy_retries: int = 3,
        busy_backoff: float = 0.1,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._busy_retries = busy_retries
        self._busy_backoff = busy_backoff
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=30.0, transport=self._transport)

    def _handle(self, resp: httpx.Response) -> dict[str, Any]:
        """Return the JSON body, raising GateClientError on 4xx and
        httpx.HTTPStatusError on 5xx."""
        if 400 <= resp.status_code < 500:
            raise GateClientError(f"Ticket service error {resp.status_code}: {resp.text}")
        resp.raise_for_status()
        return resp.json()

    def issue(self, name: str, email: str, ticket_type: str, payment_method: str) -> dict[str, Any]:
        """Issue a ticket via POST /api/tickets."""
        body = {
            "name": name,
            "email": email,
            "ticketType": ticket_type,
            "paymentMethod": payment_method,
        }
        with self._client() as client:
            resp = client.post(f"{self._base_url}/api/tickets", json=body)
            return self._handle(resp)

    def ticket(self, ticket_id: str) -> Optional[dict[str, Any]]:
        """Fetch a ticket without scanning it. None if unknown."""
        with self._client() as client:
            resp = client.get(f"{self._base_url}/api/tickets/{ticket_id}")
            if resp.status_code == 404:
                return None
            return self._handle(resp)

    def _verify(self, body: dict[str, Any]) -> dict[str, Any]:
        with self._client() as client:
            resp = client.post(f"{self._base_url}/api/tickets/verify", json=body)
            return self._handle(resp)

    def check(self, ticket_id: str) -> dict[str, Any]:
        return self._verify({"ticketId": ticket_id, "action": "check"})

    def redeem(self, ticket_id: Optional[str] = None, payload: Optional[str] = None) -> dict[str, Any]:
        """Redeem by id or by raw QR text, retrying while the service says busy."""
        body: dict[str, Any] = {"action": "redeem"}
        if payload is not None:
            body["payload"] = payload
        else:
            body["ticketId"] = ticket_id

        delay = self._busy_backoff
        result = self._verify(body)
        for attempt in range(1, self._busy_retries + 1):
            if result.get("status") != "busy":
                break
            logger.info("Ticket busy, retrying redeem (attempt %d)", attempt)
            time.sleep(delay)
            delay *= 2
            result = self._verify(body)
        return result
