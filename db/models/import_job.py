"""
db/models/import_job.py

Import job and import batch models for tracking external data imports.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONDocument, TimestampMixin


class ImportJobType:
    RESTAURANT = "RESTAURANT"
    DISH = "DISH"


class ImportStatus:
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset(
    {
        ImportStatus.COMPLETED,
        ImportStatus.COMPLETED_WITH_ERRORS,
        ImportStatus.FAILED,
    }
)

IMPORT_JOB_TYPES = frozenset({ImportJobType.RESTAURANT, ImportJobType.DISH})


class ImportJob(Base, TimestampMixin):
    __tablename__ = "import_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    source_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="External data source identifier",
    )
    job_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="RESTAURANT, DISH",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportStatus.PENDING,
    )
    total_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_records: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parameters: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Job parameters supplied by the scheduler",
    )
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    batches: Mapped[list[ImportBatch]] = relationship(
        back_populates="job",
        order_by="ImportBatch.batch_number",
    )

    __table_args__ = (
        Index("ix_import_jobs_source_id", "source_id"),
        Index("ix_import_jobs_status", "status"),
        Index("ix_import_jobs_job_type", "job_type"),
        Index("ix_import_jobs_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ImportBatch(Base, TimestampMixin):
    __tablename__ = "import_batches"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("import_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    batch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportStatus.PENDING,
    )
    item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="{'errors': [{item, error}]} or {'error': message}",
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    job: Mapped[ImportJob] = relationship(back_populates="batches")

    __table_args__ = (
        UniqueConstraint("job_id", "batch_number", name="uq_import_batches_job_batch_number"),
        Index("ix_import_batches_job_id", "job_id"),
        Index("ix_import_batches_status", "status"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
