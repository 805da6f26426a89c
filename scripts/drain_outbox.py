"""
Deliver pending outbox events to the event bus once and exit.
"""

from __future__ import annotations

import argparse
import json
import logging

from app.config import get_event_bus_settings, get_outbox_relay_settings
from app.events.bus import HttpEventBusClient
from app.events.outbox_relay import OutboxRelay
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Drain the event outbox.")
    parser.add_argument("--batch-size", type=int, default=None, help="Override OUTBOX_RELAY_BATCH_SIZE.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings = get_outbox_relay_settings()
    relay = OutboxRelay(
        session_factory=SessionLocal,
        client=HttpEventBusClient(settings=get_event_bus_settings()),
        batch_size=args.batch_size or settings.batch_size,
        max_attempts=settings.max_attempts,
    )
    summary = relay.drain()
    print(
        json.dumps(
            {"published": summary.published, "retried": summary.retried, "failed": summary.failed},
            indent=2,
        )
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
