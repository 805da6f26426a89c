"""
app/domain/analytics.py

Analytics event types and per-event processing outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class ProcessedEventStatus:
    SUCCESS = "SUCCESS"
    DUPLICATE = "DUPLICATE"
    FAILURE = "FAILURE"


@dataclass(frozen=True)
class AnalyticsEvent:
    """
    A validated analytics message, ready to persist.
    """

    event_id: str
    event_type: str
    source: str
    restaurant_id: str
    action: str
    timestamp: datetime
    user_id: str = "anonymous"
    data: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessedEvent:
    """
    Outcome for one analytics message.

    A DUPLICATE is not a failure. A FAILURE with ``retryable`` set is worth
    redelivering; one without it never will succeed as-is.
    """

    event_id: str
    status: str
    error: str | None = None
    retryable: bool = False

    @property
    def failed(self) -> bool:
        return self.status == ProcessedEventStatus.FAILURE


class MetricsGranularity:
    DAILY = "daily"
    HOURLY = "hourly"


@dataclass(frozen=True)
class AggregatedMetrics:
    """
    Event totals over a window. ``distribution`` maps each day or hour
    bucket to its total.
    """

    total_events: int = 0
    unique_users: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    distribution: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EntityMetrics:
    scope: str
    entity_id: str
    total_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    last_event_at: datetime | None = None
