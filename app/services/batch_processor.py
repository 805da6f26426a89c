"""
app/services/batch_processor.py

Runs one import batch through claim -> per-item validate/upsert -> finish.

Batch lifecycle: PENDING -> IN_PROGRESS -> COMPLETED | COMPLETED_WITH_ERRORS
| FAILED. The claim is committed before any item is touched, and every item
commits on its own, so items that succeeded before an infrastructure fault
are kept. Finishing the batch, applying the job counters and storing the
lifecycle event share one transaction guarded by the batch status, so the
counters move exactly once per batch.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import timedelta
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import DataError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_import_pipeline_settings
from app.domain.events import (
    EventEnvelope,
    ImportEventType,
    batch_completed_detail,
    batch_failed_detail,
    new_trace_id,
)
from app.domain.imports import BatchItemError, BatchProcessingResult
from app.events.publisher import EventPublisher, OutboxEventPublisher
from app.logging_utils import elapsed_ms, log_event
from app.services.record_upsert_service import RecordUpsertService
from app.validators.import_record_validator import external_id_of, validate_import_record
from db.base import utc_now
from db.models.import_job import ImportBatch, ImportJob, ImportStatus
from db.repositories.errors import NotFoundError, StoreError, ValidationError
from db.repositories.import_job_repository import ImportJobRepository

logger = logging.getLogger(__name__)


def parse_uuid(value: Any, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError(f"Field '{field_name}' must be a UUID.") from exc


class BatchProcessor:
    """
    Processes import batches on one session. Commits as it goes.
    """

    def __init__(
        self,
        session: Session,
        *,
        publisher: EventPublisher | None = None,
        event_source: str | None = None,
        claim_ttl_seconds: int | None = None,
        upserter: RecordUpsertService | None = None,
    ) -> None:
        settings = get_import_pipeline_settings()
        self._session = session
        self._jobs = ImportJobRepository(session)
        self._publisher = publisher or OutboxEventPublisher()
        self._event_source = event_source or settings.event_source
        self._claim_ttl = timedelta(
            seconds=settings.claim_ttl_seconds if claim_ttl_seconds is None else claim_ttl_seconds
        )
        self._upserter = upserter or RecordUpsertService(session)

    def process_batch(
        self,
        job_id: uuid.UUID | str,
        batch_id: uuid.UUID | str,
        items: Sequence[Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> BatchProcessingResult:
        """
        Process ``items`` for a batch, at most once per batch.

        A batch that cannot be claimed (already claimed, or terminal) is a
        no-op reported with ``skipped=True``. Raises ``NotFoundError`` for an
        unknown job/batch, ``ValidationError`` when ``items`` does not hold
        exactly the batch's ``item_count`` records, and ``StoreError`` on
        infrastructure faults.
        """

        job_id = parse_uuid(job_id, "jobId")
        batch_id = parse_uuid(batch_id, "batchId")
        trace_id = new_trace_id(metadata)
        started = time.monotonic()

        job, batch, claimed = self._claim(job_id, batch_id, item_count=len(items))
        if not claimed:
            log_event(
                logger,
                logging.INFO,
                "import_batch_skipped",
                job_id=job_id,
                batch_id=batch_id,
                status=batch.status,
                trace_id=trace_id,
            )
            return BatchProcessingResult(
                job_id=job_id,
                batch_id=batch_id,
                status=batch.status,
                skipped=True,
            )

        log_event(
            logger,
            logging.INFO,
            "import_batch_started",
            job_id=job_id,
            batch_id=batch_id,
            job_type=job.job_type,
            item_count=len(items),
            trace_id=trace_id,
        )

        success_count = 0
        errors: list[BatchItemError] = []
        try:
            for raw in items:
                item_id = external_id_of(raw)
                try:
                    record = validate_import_record(job.job_type, raw)
                    self._upserter.upsert(job.source_id, record)
                    self._session.commit()
                    success_count += 1
                except ValidationError as exc:
                    self._session.rollback()
                    errors.append(BatchItemError(item=item_id, error=str(exc)))
                except DataError as exc:
                    self._session.rollback()
                    errors.append(BatchItemError(item=item_id, error=str(exc.orig or exc)))
        except Exception as exc:
            self._session.rollback()
            self._fail(job, batch, success_count=success_count, error=str(exc), trace_id=trace_id)
            raise StoreError(f"Batch {batch_id} failed: {exc}") from exc

        status = ImportStatus.COMPLETED_WITH_ERRORS if errors else ImportStatus.COMPLETED
        finished = self._finish(
            job,
            batch,
            status=status,
            success_count=success_count,
            errors=errors,
            trace_id=trace_id,
        )

        log_event(
            logger,
            logging.INFO if finished else logging.WARNING,
            "import_batch_finished" if finished else "import_batch_claim_lost",
            job_id=job_id,
            batch_id=batch_id,
            status=status,
            success_count=success_count,
            error_count=len(errors),
            duration_ms=elapsed_ms(started),
            trace_id=trace_id,
        )
        return BatchProcessingResult(
            job_id=job_id,
            batch_id=batch_id,
            status=status if finished else ImportStatus.IN_PROGRESS,
            success_count=success_count,
            error_count=len(errors),
            errors=tuple(errors),
            skipped=not finished,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _claim(
        self,
        job_id: uuid.UUID,
        batch_id: uuid.UUID,
        *,
        item_count: int,
    ) -> tuple[ImportJob, ImportBatch, bool]:
        try:
            job = self._jobs.get_job(job_id)
            batch = self._jobs.get_batch(batch_id)
            if job is None:
                raise NotFoundError(f"Import job not found: {job_id}")
            if batch is None or batch.job_id != job_id:
                raise NotFoundError(f"Import batch {batch_id} not found for job {job_id}")
            if item_count != batch.item_count:
                raise ValidationError(
                    f"Batch {batch_id} expects {batch.item_count} records, message carries {item_count}."
                )

            claimed = self._jobs.claim_batch(
                batch_id=batch_id,
                stale_before=utc_now() - self._claim_ttl,
            )
            if claimed:
                self._jobs.mark_job_started(job_id=job_id)
                self._session.commit()
            else:
                self._session.rollback()
            return job, batch, claimed
        except ValidationError:
            self._session.rollback()
            raise
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to claim import batch job_id=%s batch_id=%s", job_id, batch_id)
            raise StoreError(f"Could not claim batch {batch_id}: {exc}") from exc

    def _finish(
        self,
        job: ImportJob,
        batch: ImportBatch,
        *,
        status: str,
        success_count: int,
        errors: list[BatchItemError],
        trace_id: str,
    ) -> bool:
        error_dicts = [error.to_dict() for error in errors]
        try:
            finished = self._jobs.finish_batch(
                batch_id=batch.id,
                status=status,
                error_details={"errors": error_dicts} if error_dicts else None,
            )
            if not finished:
                self._session.rollback()
                return False

            self._jobs.apply_batch_counts(
                job_id=job.id,
                success_count=success_count,
                error_count=len(errors),
            )
            self._publisher.publish(
                EventEnvelope(
                    detail_type=ImportEventType.BATCH_COMPLETED,
                    source=self._event_source,
                    detail=batch_completed_detail(
                        job_id=str(job.id),
                        batch_id=str(batch.id),
                        success_count=success_count,
                        error_count=len(errors),
                        errors=error_dicts,
                        trace_id=trace_id,
                    ),
                ),
                session=self._session,
            )
            self._session.commit()
            return True
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception("Failed to finish import batch job_id=%s batch_id=%s", job.id, batch.id)
            raise StoreError(f"Could not finish batch {batch.id}: {exc}") from exc

    def _fail(
        self,
        job: ImportJob,
        batch: ImportBatch,
        *,
        success_count: int,
        error: str,
        trace_id: str,
    ) -> None:
        logger.error(
            "Import batch failed job_id=%s batch_id=%s success_count=%s error=%s",
            job.id,
            batch.id,
            success_count,
            error,
        )
        try:
            if self._jobs.finish_batch(
                batch_id=batch.id,
                status=ImportStatus.FAILED,
                error_details={"error": error},
            ):
                self._jobs.apply_batch_counts(
                    job_id=job.id,
                    success_count=success_count,
                    error_count=max(0, batch.item_count - success_count),
                )
                self._publisher.publish(
                    EventEnvelope(
                        detail_type=ImportEventType.BATCH_FAILED,
                        source=self._event_source,
                        detail=batch_failed_detail(
                            job_id=str(job.id),
                            batch_id=str(batch.id),
                            error=error,
                            trace_id=trace_id,
                        ),
                    ),
                    session=self._session,
                )
            self._session.commit()
        except SQLAlchemyError:
            # Batch stays IN_PROGRESS and becomes reclaimable after the claim TTL.
            self._session.rollback()
            logger.exception(
                "Could not record batch failure job_id=%s batch_id=%s",
                job.id,
                batch.id,
            )
