"""
app/domain/events.py

Common event envelope shared by every producer and consumer, plus the detail
builders for import batch lifecycle events.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence


class ImportEventType:
    BATCH_COMPLETED = "IMPORT_BATCH_COMPLETED"
    BATCH_FAILED = "IMPORT_BATCH_FAILED"


DEFAULT_IMPORT_EVENT_SOURCE = "foodrank.import"


@dataclass(frozen=True)
class EventEnvelope:
    """
    One event on the bus: what happened (``detail_type``), who said so
    (``source``), the payload (``detail``) and transport metadata.
    """

    detail_type: str
    source: str
    detail: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.detail_type.strip():
            raise ValueError("detail_type must be non-empty.")
        if not self.source.strip():
            raise ValueError("source must be non-empty.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "detailType": self.detail_type,
            "source": self.source,
            "detail": self.detail,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> EventEnvelope:
        return cls(
            detail_type=str(payload.get("detailType") or payload.get("detail_type") or ""),
            source=str(payload.get("source") or ""),
            detail=dict(payload.get("detail") or {}),
            metadata=dict(payload.get("metadata") or {}),
        )


def new_trace_id(metadata: Mapping[str, Any] | None = None) -> str:
    """
    Reuse the caller's ``traceId`` when present, otherwise mint a new one.
    """

    if metadata:
        trace_id = metadata.get("traceId")
        if isinstance(trace_id, str) and trace_id.strip():
            return trace_id.strip()
    return str(uuid.uuid4())


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def batch_completed_detail(
    *,
    job_id: str,
    batch_id: str,
    success_count: int,
    error_count: int,
    errors: Sequence[Mapping[str, str]],
    trace_id: str,
) -> dict[str, Any]:
    detail: dict[str, Any] = {
        "jobId": job_id,
        "batchId": batch_id,
        "successCount": success_count,
        "errorCount": error_count,
        "timestamp": _timestamp(),
        "traceId": trace_id,
    }
    if errors:
        detail["errors"] = [dict(error) for error in errors]
    return detail


def batch_failed_detail(
    *,
    job_id: str,
    batch_id: str,
    error: str,
    trace_id: str,
) -> dict[str, Any]:
    return {
        "jobId": job_id,
        "batchId": batch_id,
        "error": error,
        "timestamp": _timestamp(),
        "traceId": trace_id,
    }
