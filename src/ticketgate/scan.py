"""Gate scanner command.

Usage:
    ticketgate-scan "https://tickets.example.org/verify?ticketId=SW-ABC1234"
    ticketgate-scan SW-ABC1234 --check
    ticketgate-scan SW-ABC1234 --base-url http://gate-api:8000

Exit status is 0 when the ticket is valid, 1 otherwise.
"""
import argparse
import json
import logging
import sys
from typing import Optional

import httpx

from ticketgate.config import settings
from ticketgate.exceptions import GateClientError
from ticketgate.infrastructure.gate_client import GateClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticketgate-scan",
        description="Redeem or check a scanned ticket against the ticket service.",
    )
    parser.add_argument("payload", help="Scanned QR text or a ticket id")
    parser.add_argument("--check", action="store_true", help="Only check, do not mark the ticket used")
    parser.add_argument("--base-url", default=settings.gate_base_url, help="Ticket service URL")
    parser.add_argument("--retries", type=int, default=3, help="Retries while the ticket is busy (default: 3)")
    return parser


def main(argv: Optional[list[str]] = None, client: Optional[GateClient] = None) -> int:
    args = build_parser().parse_args(argv)
    client = client or GateClient(args.base_url, busy_retries=args.retries)

    try:
        if args.check:
            result = client.check(args.payload.strip())
        else:
            result = client.redeem(payload=args.payload)
    except (GateClientError, httpx.HTTPError) as e:
        logger.error("Scan failed: %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if result.get("status") == "valid" else 1


if __name__ == "__main__":
    sys.exit(main())
