"""
app/consumers/import_batch_consumer.py

Consumer for import batch messages ``{jobId, batchId, data, metadata}``.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

from sqlalchemy.orm import Session

from app.consumers.base import BatchConsumer
from app.domain.imports import BatchProcessingResult
from app.events.publisher import EventPublisher
from app.services.batch_processor import BatchProcessor
from db.repositories.errors import ValidationError


def parse_import_message(payload: Any) -> tuple[str, str, list[Any], dict[str, Any]]:
    if not isinstance(payload, Mapping):
        raise ValidationError("Import message must be a JSON object.")
    job_id = payload.get("jobId")
    batch_id = payload.get("batchId")
    items = payload.get("data")
    metadata = payload.get("metadata") or {}
    if not job_id or not batch_id:
        raise ValidationError("Import message requires jobId and batchId.")
    if not isinstance(items, list):
        raise ValidationError("Import message 'data' must be a list of records.")
    if not isinstance(metadata, Mapping):
        raise ValidationError("Import message 'metadata' must be an object.")
    return str(job_id), str(batch_id), items, dict(metadata)


class ImportBatchConsumer(BatchConsumer):
    name = "import-batch"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        publisher: EventPublisher | None = None,
        max_workers: int | None = None,
        message_timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(
            session_factory,
            max_workers=max_workers,
            message_timeout_seconds=message_timeout_seconds,
        )
        self._publisher = publisher

    def handle(self, session: Session, payload: Any, *, message_id: str) -> None:
        self.process(session, payload)

    def process(self, session: Session, payload: Any) -> BatchProcessingResult:
        job_id, batch_id, items, metadata = parse_import_message(payload)
        return BatchProcessor(session, publisher=self._publisher).process_batch(
            job_id,
            batch_id,
            items,
            metadata,
        )
