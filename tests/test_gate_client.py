import json

import httpx
import pytest

from ticketgate.exceptions import GateClientError
from ticketgate.infrastructure.gate_client import GateClient


def _client(handler, **kwargs) -> GateClient:
    return GateClient("http://gate.test/", transport=httpx.MockTransport(handler), **kwargs)


def test_issue_posts_camel_case_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"ticketId": "SW-ABC1234"})

    result = _client(handler).issue("Alice", "a@x.com", "VIP $200", "PayPal")

    assert result == {"ticketId": "SW-ABC1234"}
    assert seen["url"] == "http://gate.test/api/tickets"
    assert seen["body"] == {
        "name": "Alice",
        "email": "a@x.com",
        "ticketType": "VIP $200",
        "paymentMethod": "PayPal",
    }


def test_redeem_retries_while_busy():
    responses = iter(
        [
            {"status": "busy", "ticket": None, "redeemed": False},
            {"status": "busy", "ticket": None, "redeemed": False},
            {"status": "used", "ticket": {"ticketId": "SW-ABC1234"}, "redeemed": False},
        ]
    )
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        return httpx.Response(200, json=next(responses))

    result = _client(handler, busy_retries=3, busy_backoff=0).redeem("SW-ABC1234")

    assert result["status"] == "used"
    assert len(calls) == 3
    assert calls[0] == {"action": "redeem", "ticketId": "SW-ABC1234"}


def test_redeem_gives_up_after_retries():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "busy", "ticket": None, "redeemed": False})

    result = _client(handler, busy_retries=2, busy_backoff=0).redeem("SW-ABC1234")

    assert result["status"] == "busy"


def test_redeem_by_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"action": "redeem", "payload": "/verify?ticketId=SW-ABC1234"}
        return httpx.Response(200, json={"status": "valid", "redeemed": True})

    result = _client(handler).redeem(payload="/verify?ticketId=SW-ABC1234")

    assert result["redeemed"] is True


def test_check_sends_check_action():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"ticketId": "SW-ABC1234", "action": "check"}
        return httpx.Response(200, json={"status": "valid"})

    assert _client(handler).check("SW-ABC1234") == {"status": "valid"}


def test_ticket_not_found_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "Ticket not found"})

    assert _client(handler).ticket("SW-NOPE000") is None


def test_client_errors_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Invalid ticket type selected"})

    with pytest.raises(GateClientError):
        _client(handler).issue("Alice", "a@x.com", "Backstage", "PayPal")


def test_server_errors_raise_http_status_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"detail": "Ticket store unavailable"})

    with pytest.raises(httpx.HTTPStatusError):
        _client(handler).check("SW-ABC1234")
