import re

from ticketgate.services.ticket_ids import (
    generate_ticket_id,
    normalize_ticket_id,
    ticket_id_from_payload,
    verification_path,
)

TICKET_ID_RE = re.compile(r"^SW-[0-9A-Z]{7}$")


def test_generated_ids_match_format():
    for _ in range(200):
        assert TICKET_ID_RE.match(generate_ticket_id())


def test_generated_ids_use_custom_prefix_and_length():
    ticket_id = generate_ticket_id(prefix="GA-", length=10)
    assert ticket_id.startswith("GA-")
    assert len(ticket_id) == 13


def test_normalize_trims_and_uppercases():
    assert normalize_ticket_id("  sw-abc1234\n") == "SW-ABC1234"


def test_verification_path_embeds_ticket_id():
    assert verification_path("SW-ABC1234") == "/verify?ticketId=SW-ABC1234"
    assert verification_path("SW-ABC1234", "/gate") == "/gate?ticketId=SW-ABC1234"


def test_payload_relative_path():
    assert ticket_id_from_payload("/verify?ticketId=sw-abc1234") == "SW-ABC1234"


def test_payload_full_url():
    payload = "https://tickets.example.org/verify?ticketId=SW-ABC1234&src=qr"
    assert ticket_id_from_payload(payload) == "SW-ABC1234"


def test_payload_bare_id():
    assert ticket_id_from_payload("  sw-abc1234 ") == "SW-ABC1234"


def test_payload_without_ticket_id():
    assert ticket_id_from_payload("/verify?other=1") is None
    assert ticket_id_from_payload("https://x.org/verify?ticketId=") is None
    assert ticket_id_from_payload("   ") is None
