#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.concierge import ConciergeEngine, reference_store  # noqa: E402
from backend.app.logging_config import configure_structlog  # noqa: E402
from backend.app.openai_async import close_async_client  # noqa: E402


async def _ask(apartment_id: str, message: str) -> dict:
    await reference_store.areload()
    try:
        reply = await ConciergeEngine().resolve(apartment_id, message)
    finally:
        await close_async_client()
    return reply.as_payload()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ask the apartment concierge a question.")
    parser.add_argument("apartment", help="Apartment id, as in apartments.json")
    parser.add_argument("message", help="Guest message")
    parser.add_argument("--json", action="store_true", help="Emit the full reply payload as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline decisions")
    args = parser.parse_args(argv)

    # stdout carries only the reply
    configure_structlog(
        json_logs=False,
        level=logging.INFO if args.verbose else logging.WARNING,
        stream=sys.stderr,
    )
    payload = asyncio.run(_ask(args.apartment, args.message))

    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(payload["reply"])
        print(f"\n[{payload['source']} · {payload['detected_language']}]", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
