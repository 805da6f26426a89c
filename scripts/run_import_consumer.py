"""
Run a queue consumer over a JSON file of delivered messages.

The file holds a list of ``{"messageId": ..., "body": ...}`` records (or an
object with a ``Records`` list of the same). The batch response is printed
as JSON, listing only the messages that should be redelivered.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from app.consumers import AnalyticsEventConsumer, ImportBatchConsumer, QueueMessage
from db.session import SessionLocal

_CONSUMERS = {
    "import": ImportBatchConsumer,
    "analytics": AnalyticsEventConsumer,
}


def main() -> int:
    parser = argparse.ArgumentParser(description="Process a batch of queue messages.")
    parser.add_argument("kind", choices=sorted(_CONSUMERS), help="Which consumer to run.")
    parser.add_argument("path", type=Path, help="JSON file with the delivered messages.")
    parser.add_argument("--workers", type=int, default=None, help="Override CONSUMER_MAX_WORKERS.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Override CONSUMER_MESSAGE_TIMEOUT_SECONDS.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    document = json.loads(args.path.read_text(encoding="utf-8"))
    records = document.get("Records", []) if isinstance(document, dict) else document
    messages = [QueueMessage.from_dict(record) for record in records]

    consumer = _CONSUMERS[args.kind](
        SessionLocal,
        max_workers=args.workers,
        message_timeout_seconds=args.timeout,
    )
    response = consumer.process_batch(messages)
    print(json.dumps(response.to_dict(), indent=2))
    return 1 if response.batch_item_failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
