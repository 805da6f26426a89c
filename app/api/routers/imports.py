"""
Import job scheduling, status and batch processing endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_event_publisher, to_http_error
from app.domain.imports import BatchProcessingResult
from app.events.publisher import EventPublisher
from app.schemas.imports import (
    BatchItemErrorResponse,
    BatchProcessingResponse,
    ImportBatchListResponse,
    ImportBatchMessageRequest,
    ImportBatchResponse,
    ImportJobListResponse,
    ImportJobResponse,
    ImportJobScheduledResponse,
    ScheduleImportRequest,
)
from app.services.batch_processor import BatchProcessor
from app.services.import_scheduler_service import ImportSchedulerService
from db.models.import_job import ImportBatch, ImportJob
from db.repositories.errors import PipelineError
from db.repositories.import_job_repository import ImportJobRepository
from db.session import get_db

router = APIRouter(prefix="/imports", tags=["imports"])


@router.post(
    "/jobs",
    status_code=status.HTTP_201_CREATED,
    response_model=ImportJobScheduledResponse,
)
def schedule_import_job(
    request: ScheduleImportRequest,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> ImportJobScheduledResponse:
    try:
        scheduled = ImportSchedulerService(db).schedule(
            source_id=request.source_id,
            job_type=request.job_type,
            records=request.records,
            parameters=request.parameters,
            created_by=request.created_by,
        )
        if request.process_inline:
            processor = BatchProcessor(db, publisher=publisher)
            for message in scheduled.messages:
                processor.process_batch(
                    message["jobId"],
                    message["batchId"],
                    message["data"],
                    message["metadata"],
                )
    except PipelineError as exc:
        raise to_http_error(exc) from exc

    job = ImportJobRepository(db).get_job(scheduled.job.id) or scheduled.job
    return ImportJobScheduledResponse(
        job=_to_job_response(job),
        batch_ids=[UUID(message["batchId"]) for message in scheduled.messages],
    )


@router.get("/jobs", response_model=ImportJobListResponse)
def list_import_jobs(
    job_type: str | None = Query(default=None, description="Optional job type filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
) -> ImportJobListResponse:
    jobs = ImportJobRepository(db).list_jobs(limit=limit, job_type=job_type, status=status_filter)
    return ImportJobListResponse(jobs=[_to_job_response(job) for job in jobs])


@router.get("/jobs/{job_id}", response_model=ImportJobResponse)
def get_import_job(job_id: UUID, db: Session = Depends(get_db)) -> ImportJobResponse:
    job = ImportJobRepository(db).get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import job not found: {job_id}",
        )
    return _to_job_response(job)


@router.get("/jobs/{job_id}/batches", response_model=ImportBatchListResponse)
def list_import_batches(job_id: UUID, db: Session = Depends(get_db)) -> ImportBatchListResponse:
    repository = ImportJobRepository(db)
    if repository.get_job(job_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import job not found: {job_id}",
        )
    return ImportBatchListResponse(
        batches=[_to_batch_response(batch) for batch in repository.list_batches(job_id)]
    )


@router.post("/batches:process", response_model=BatchProcessingResponse)
def process_import_batch(
    message: ImportBatchMessageRequest,
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> BatchProcessingResponse:
    try:
        result = BatchProcessor(db, publisher=publisher).process_batch(
            message.job_id,
            message.batch_id,
            message.data,
            message.metadata,
        )
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return _to_processing_response(result)


def _to_job_response(job: ImportJob) -> ImportJobResponse:
    return ImportJobResponse(
        job_id=job.id,
        source_id=job.source_id,
        job_type=job.job_type,
        status=job.status,
        total_records=job.total_records,
        processed_records=job.processed_records,
        success_records=job.success_records,
        error_records=job.error_records,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )


def _to_batch_response(batch: ImportBatch) -> ImportBatchResponse:
    return ImportBatchResponse(
        batch_id=batch.id,
        job_id=batch.job_id,
        batch_number=batch.batch_number,
        status=batch.status,
        item_count=batch.item_count,
        error_details=batch.error_details,
        claimed_at=batch.claimed_at,
        completed_at=batch.completed_at,
    )


def _to_processing_response(result: BatchProcessingResult) -> BatchProcessingResponse:
    return BatchProcessingResponse(
        job_id=result.job_id,
        batch_id=result.batch_id,
        status=result.status,
        success_count=result.success_count,
        error_count=result.error_count,
        errors=[BatchItemErrorResponse(item=error.item, error=error.error) for error in result.errors],
        skipped=result.skipped,
    )
