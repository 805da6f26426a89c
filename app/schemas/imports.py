"""
Schemas for import job scheduling, status and batch processing endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ScheduleImportRequest(BaseModel):
    source_id: str = Field(min_length=1, max_length=64)
    job_type: str = Field(description="RESTAURANT or DISH")
    records: list[dict[str, Any]] = Field(min_length=1)
    parameters: dict[str, Any] | None = None
    created_by: str | None = None
    process_inline: bool = Field(
        default=False,
        description="Process every batch in this request instead of leaving them for a consumer",
    )


class ImportJobResponse(BaseModel):
    job_id: UUID
    source_id: str
    job_type: str
    status: str
    total_records: int
    processed_records: int
    success_records: int
    error_records: int
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ImportJobScheduledResponse(BaseModel):
    job: ImportJobResponse
    batch_ids: list[UUID] = Field(default_factory=list)


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobResponse] = Field(default_factory=list)


class ImportBatchResponse(BaseModel):
    batch_id: UUID
    job_id: UUID
    batch_number: int
    status: str
    item_count: int
    error_details: dict[str, Any] | None = None
    claimed_at: datetime | None = None
    completed_at: datetime | None = None


class ImportBatchListResponse(BaseModel):
    batches: list[ImportBatchResponse] = Field(default_factory=list)


class ImportBatchMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: UUID = Field(alias="jobId")
    batch_id: UUID = Field(alias="batchId")
    data: list[Any] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class BatchItemErrorResponse(BaseModel):
    item: str
    error: str


class BatchProcessingResponse(BaseModel):
    job_id: UUID
    batch_id: UUID
    status: str
    success_count: int
    error_count: int
    errors: list[BatchItemErrorResponse] = Field(default_factory=list)
    skipped: bool = False
