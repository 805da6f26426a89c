"""
Repository for import job / batch lifecycle persistence and status lookup.

State transitions are compare-and-swap UPDATE statements guarded on the
current status, so two workers racing on the same batch cannot both win.
The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Select, and_, or_, select, update
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.import_job import TERMINAL_STATUSES, ImportBatch, ImportJob, ImportStatus


class ImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_job(
        self,
        *,
        source_id: str,
        job_type: str,
        total_records: int,
        parameters: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> ImportJob:
        job = ImportJob(
            source_id=source_id,
            job_type=job_type,
            status=ImportStatus.PENDING,
            total_records=total_records,
            processed_records=0,
            success_records=0,
            error_records=0,
            parameters=parameters,
            created_by=created_by,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def create_batch(
        self,
        *,
        job_id: uuid.UUID,
        batch_number: int,
        item_count: int,
    ) -> ImportBatch:
        batch = ImportBatch(
            job_id=job_id,
            batch_number=batch_number,
            status=ImportStatus.PENDING,
            item_count=item_count,
        )
        self._session.add(batch)
        self._session.flush()
        self._session.refresh(batch)
        return batch

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_job(self, job_id: uuid.UUID) -> ImportJob | None:
        return self._session.get(ImportJob, job_id, populate_existing=True)

    def get_batch(self, batch_id: uuid.UUID) -> ImportBatch | None:
        return self._session.get(ImportBatch, batch_id, populate_existing=True)

    def list_jobs(
        self,
        *,
        limit: int = 100,
        job_type: str | None = None,
        status: str | None = None,
    ) -> list[ImportJob]:
        stmt: Select[tuple[ImportJob]] = select(ImportJob)

        if job_type:
            stmt = stmt.where(ImportJob.job_type == job_type)
        if status:
            stmt = stmt.where(ImportJob.status == status)

        stmt = stmt.order_by(ImportJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def list_batches(self, job_id: uuid.UUID) -> list[ImportBatch]:
        stmt = (
            select(ImportBatch)
            .where(ImportBatch.job_id == job_id)
            .order_by(ImportBatch.batch_number)
        )
        return list(self._session.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Batch transitions
    # ------------------------------------------------------------------

    def claim_batch(
        self,
        *,
        batch_id: uuid.UUID,
        stale_before: datetime | None = None,
    ) -> bool:
        """
        Move a batch PENDING -> IN_PROGRESS.

        When ``stale_before`` is given, a batch stuck IN_PROGRESS with a claim
        older than that instant may be claimed again. Returns True only for
        the caller that won the transition.
        """

        claimable = ImportBatch.status == ImportStatus.PENDING
        if stale_before is not None:
            claimable = or_(
                claimable,
                and_(
                    ImportBatch.status == ImportStatus.IN_PROGRESS,
                    ImportBatch.claimed_at < stale_before,
                ),
            )

        now = utc_now()
        stmt = (
            update(ImportBatch)
            .where(ImportBatch.id == batch_id, claimable)
            .values(status=ImportStatus.IN_PROGRESS, claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount == 1

    def finish_batch(
        self,
        *,
        batch_id: uuid.UUID,
        status: str,
        error_details: dict[str, Any] | None = None,
    ) -> bool:
        """
        Move a batch IN_PROGRESS -> ``status`` (a terminal status).

        Returns False when the batch is no longer IN_PROGRESS, in which case
        nothing is written.
        """

        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Not a terminal batch status: {status}")

        now = utc_now()
        stmt = (
            update(ImportBatch)
            .where(
                ImportBatch.id == batch_id,
                ImportBatch.status == ImportStatus.IN_PROGRESS,
            )
            .values(
                status=status,
                error_details=error_details,
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount == 1

    # ------------------------------------------------------------------
    # Job transitions
    # ------------------------------------------------------------------

    def mark_job_started(self, *, job_id: uuid.UUID) -> None:
        now = utc_now()
        stmt = (
            update(ImportJob)
            .where(ImportJob.id == job_id, ImportJob.status == ImportStatus.PENDING)
            .values(status=ImportStatus.IN_PROGRESS, started_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self._session.execute(stmt)

    def apply_batch_counts(
        self,
        *,
        job_id: uuid.UUID,
        success_count: int,
        error_count: int,
    ) -> ImportJob | None:
        """
        Add one batch's outcome to the job's running totals.

        Counters are incremented in SQL so concurrent batches of the same job
        never lose updates. Once ``processed_records`` reaches
        ``total_records`` the job is moved to its terminal status.
        """

        now = utc_now()
        stmt = (
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .values(
                processed_records=ImportJob.processed_records + success_count + error_count,
                success_records=ImportJob.success_records + success_count,
                error_records=ImportJob.error_records + error_count,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        self._session.execute(stmt)

        job = self.get_job(job_id)
        if job is None:
            return None

        if job.processed_records >= job.total_records and not job.is_terminal:
            terminal_status = _terminal_job_status(job)
            finish = (
                update(ImportJob)
                .where(
                    ImportJob.id == job_id,
                    ImportJob.status.in_([ImportStatus.PENDING, ImportStatus.IN_PROGRESS]),
                )
                .values(status=terminal_status, completed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            self._session.execute(finish)
            job = self.get_job(job_id)
        return job


def _terminal_job_status(job: ImportJob) -> str:
    # Item errors never make a job FAILED.
    if job.error_records == 0:
        return ImportStatus.COMPLETED
    return ImportStatus.COMPLETED_WITH_ERRORS
