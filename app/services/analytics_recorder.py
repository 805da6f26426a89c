"""
app/services/analytics_recorder.py

Validates analytics messages and records each at most once per event id.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_analytics_settings
from app.domain.analytics import ProcessedEvent, ProcessedEventStatus
from app.services.analytics_metrics import AnalyticsMetricsService
from app.validators.analytics_event_validator import AnalyticsEventValidator, derive_event_id
from db.repositories.analytics_repository import AnalyticsRepository
from db.repositories.errors import DuplicateError, StoreError, ValidationError

logger = logging.getLogger(__name__)


class AnalyticsRecorder:
    """
    Records analytics messages independently of each other.

    A message whose event id is already stored is reported DUPLICATE, which
    is a success for delivery purposes. Aggregates are counted in the same
    transaction as the raw insert, so only first deliveries are counted.
    """

    def __init__(
        self,
        session: Session,
        *,
        ttl_days: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._repository = AnalyticsRepository(session)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._validator = AnalyticsEventValidator(clock=self._clock)
        self._metrics = AnalyticsMetricsService(session, clock=self._clock)
        self._ttl = timedelta(days=ttl_days if ttl_days is not None else get_analytics_settings().ttl_days)

    def record(self, message: Any, *, message_id: str | None = None) -> ProcessedEvent:
        """
        Validate and store one message. ``message_id`` keys messages that
        carry neither ``eventId`` nor ``metadata.requestId``.
        """

        try:
            event = self._validator.validate(message, message_id=message_id)
        except ValidationError as exc:
            event_id = (
                derive_event_id(message, message_id=message_id) if isinstance(message, Mapping) else "unknown"
            )
            logger.warning("Analytics event rejected event_id=%s error=%s", event_id, exc)
            return ProcessedEvent(
                event_id=event_id,
                status=ProcessedEventStatus.FAILURE,
                error=str(exc),
                retryable=False,
            )

        expires_at = self._clock() + self._ttl
        try:
            self._repository.create_once(
                event_id=event.event_id,
                restaurant_id=event.restaurant_id,
                timestamp=event.timestamp,
                event_type=event.event_type,
                event_source=event.source,
                user_id=event.user_id,
                action=event.action,
                data=event.data or None,
                event_metadata=event.metadata or None,
                ttl=int(expires_at.timestamp()),
            )
            self._metrics.apply(event)
            self._session.commit()
        except DuplicateError:
            self._session.commit()
            return ProcessedEvent(event_id=event.event_id, status=ProcessedEventStatus.DUPLICATE)
        except (SQLAlchemyError, StoreError) as exc:
            self._session.rollback()
            logger.exception("Failed to store analytics event event_id=%s", event.event_id)
            return ProcessedEvent(
                event_id=event.event_id,
                status=ProcessedEventStatus.FAILURE,
                error=str(exc),
                retryable=True,
            )

        logger.debug(
            "Recorded analytics event event_id=%s restaurant_id=%s action=%s",
            event.event_id,
            event.restaurant_id,
            event.action,
        )
        return ProcessedEvent(event_id=event.event_id, status=ProcessedEventStatus.SUCCESS)

    def record_many(self, messages: Sequence[Any]) -> list[ProcessedEvent]:
        return [self.record(message) for message in messages]
