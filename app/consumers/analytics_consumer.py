"""
app/consumers/analytics_consumer.py

Consumer for analytics event messages.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.consumers.base import BatchConsumer
from app.services.analytics_recorder import AnalyticsRecorder
from db.repositories.errors import StoreError, ValidationError


class AnalyticsEventConsumer(BatchConsumer):
    """
    Records one analytics event per message. Only store faults are
    redelivered; duplicates are acknowledged.
    """

    name = "analytics"

    def handle(self, session: Session, payload: Any, *, message_id: str) -> None:
        outcome = AnalyticsRecorder(session).record(payload, message_id=message_id)
        if not outcome.failed:
            return
        if outcome.retryable:
            raise StoreError(outcome.error or "Analytics store failure.")
        raise ValidationError(outcome.error or "Invalid analytics event.")
