"""
Schedule an import job from a JSON file of raw records.

Prints one import message per batch so they can be fed to a queue or to
``run_import_consumer.py``.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path

from app.services.import_scheduler_service import ImportSchedulerService
from db.models.import_job import IMPORT_JOB_TYPES
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an import job and its batches.")
    parser.add_argument("source_id", help="External data source identifier.")
    parser.add_argument("job_type", choices=sorted(IMPORT_JOB_TYPES))
    parser.add_argument("path", type=Path, help="JSON file holding a list of raw records.")
    parser.add_argument("--batch-size", type=int, default=None, help="Override IMPORT_BATCH_SIZE.")
    parser.add_argument("--created-by", default=None)
    args = parser.parse_args()

    records = json.loads(args.path.read_text(encoding="utf-8"))
    if not isinstance(records, list):
        parser.error("The records file must contain a JSON list.")

    with SessionLocal() as db:
        scheduled = ImportSchedulerService(db, batch_size=args.batch_size).schedule(
            source_id=args.source_id,
            job_type=args.job_type,
            records=records,
            created_by=args.created_by,
        )

    payload = [
        {"messageId": message["batchId"], "body": message}
        for message in scheduled.messages
    ]
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
