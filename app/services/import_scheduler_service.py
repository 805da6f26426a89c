"""
app/services/import_scheduler_service.py

Creates import jobs and splits their records into PENDING batches, producing
one queue message per batch.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_import_pipeline_settings
from app.domain.events import new_trace_id
from db.base import utc_now
from db.models.import_job import IMPORT_JOB_TYPES, ImportJob
from db.repositories.errors import StoreError, ValidationError
from db.repositories.import_job_repository import ImportJobRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledImport:
    """
    A created job with the import messages for its batches, in batch order.
    """

    job: ImportJob
    messages: list[dict[str, Any]]


class ImportSchedulerService:
    def __init__(self, session: Session, *, batch_size: int | None = None) -> None:
        self._session = session
        self._jobs = ImportJobRepository(session)
        self._batch_size = max(1, batch_size or get_import_pipeline_settings().batch_size)

    def schedule(
        self,
        *,
        source_id: str,
        job_type: str,
        records: Sequence[Any],
        parameters: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> ScheduledImport:
        """
        Persist a job and its batches in one transaction.
        """

        source_id = source_id.strip()
        job_type = job_type.strip().upper()
        if not source_id:
            raise ValidationError("source_id must be non-empty.")
        if job_type not in IMPORT_JOB_TYPES:
            raise ValidationError(f"Unsupported import job type '{job_type}'.")
        if not records:
            raise ValidationError("An import job needs at least one record.")

        chunks = [
            list(records[start : start + self._batch_size])
            for start in range(0, len(records), self._batch_size)
        ]
        trace_id = new_trace_id(parameters)

        try:
            job = self._jobs.create_job(
                source_id=source_id,
                job_type=job_type,
                total_records=len(records),
                parameters=parameters,
                created_by=created_by,
            )
            batch_ids: list[uuid.UUID] = []
            for batch_number, chunk in enumerate(chunks, start=1):
                batch = self._jobs.create_batch(
                    job_id=job.id,
                    batch_number=batch_number,
                    item_count=len(chunk),
                )
                batch_ids.append(batch.id)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to schedule import job source_id=%s job_type=%s", source_id, job_type)
            raise StoreError("Could not schedule import job.") from exc

        timestamp = utc_now().isoformat()
        messages = [
            {
                "jobId": str(job.id),
                "batchId": str(batch_id),
                "data": chunk,
                "metadata": {"traceId": trace_id, "timestamp": timestamp},
            }
            for batch_id, chunk in zip(batch_ids, chunks)
        ]
        logger.info(
            "Scheduled import job job_id=%s source_id=%s job_type=%s total_records=%s batches=%s",
            job.id,
            source_id,
            job_type,
            len(records),
            len(chunks),
        )
        return ScheduledImport(job=job, messages=messages)
