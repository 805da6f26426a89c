"""
Schemas for analytics event endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AnalyticsEventsRequest(BaseModel):
    events: list[dict[str, Any]] = Field(min_length=1)


class ProcessedEventResponse(BaseModel):
    event_id: str
    status: str
    error: str | None = None
    retryable: bool = False


class AnalyticsEventsResponse(BaseModel):
    results: list[ProcessedEventResponse] = Field(default_factory=list)
    failed: int = 0


class AnalyticsRecordResponse(BaseModel):
    event_id: str
    restaurant_id: str
    timestamp: datetime
    event_type: str
    event_source: str
    user_id: str
    action: str
    data: dict[str, Any] | None = None


class AnalyticsRecordListResponse(BaseModel):
    records: list[AnalyticsRecordResponse] = Field(default_factory=list)


class AnalyticsActionCountsResponse(BaseModel):
    restaurant_id: str
    counts: dict[str, int] = Field(default_factory=dict)


class AggregatedMetricsResponse(BaseModel):
    total_events: int = 0
    unique_users: int = 0
    events_by_type: dict[str, int] = Field(default_factory=dict)
    distribution: dict[str, int] = Field(default_factory=dict)


class EntityMetricsResponse(BaseModel):
    scope: str
    entity_id: str
    total_events: int = 0
    events_by_type: dict[str, int] = Field(default_factory=dict)
    last_event_at: datetime | None = None
