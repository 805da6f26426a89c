"""
app/events/publisher.py

Event publishing seam used by the batch processor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from app.domain.events import EventEnvelope
from db.repositories.outbox_repository import OutboxRepository


class EventPublisher(ABC):
    """
    Publishes envelopes as part of the caller's unit of work.
    """

    @abstractmethod
    def publish(self, envelope: EventEnvelope, *, session: Session) -> None:
        """
        Hand ``envelope`` off for delivery. Must not commit ``session``.
        """


class OutboxEventPublisher(EventPublisher):
    """
    Stores the envelope in the outbox table within ``session``'s transaction;
    ``OutboxRelay`` delivers it once committed.
    """

    def publish(self, envelope: EventEnvelope, *, session: Session) -> None:
        OutboxRepository(session).add(
            source=envelope.source,
            detail_type=envelope.detail_type,
            detail=envelope.detail,
        )


class InMemoryEventPublisher(EventPublisher):
    """
    Collects envelopes in a list. Intended for tests and local runs.
    """

    def __init__(self) -> None:
        self.published: list[EventEnvelope] = []

    def publish(self, envelope: EventEnvelope, *, session: Session) -> None:
        self.published.append(envelope)

    def of_type(self, detail_type: str) -> list[EventEnvelope]:
        return [envelope for envelope in self.published if envelope.detail_type == detail_type]
