"""
app/events/outbox_relay.py

Delivers committed outbox rows to the event bus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.events import EventEnvelope
from app.events.bus import EventBusClient, EventBusError
from app.logging_utils import log_event
from db.models.outbox_event import OutboxStatus
from db.repositories.outbox_repository import OutboxRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelaySummary:
    published: int = 0
    retried: int = 0
    failed: int = 0


class OutboxRelay:
    """
    Publishes pending outbox rows one at a time, oldest first.

    A row that cannot be delivered stays PENDING for the next drain until
    ``max_attempts`` is reached, then it is marked FAILED.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session],
        client: EventBusClient,
        batch_size: int = 100,
        max_attempts: int = 5,
    ) -> None:
        self._session_factory = session_factory
        self._client = client
        self._batch_size = max(1, batch_size)
        self._max_attempts = max(1, max_attempts)

    def drain(self) -> RelaySummary:
        published = retried = failed = 0
        session = self._session_factory()
        try:
            repository = OutboxRepository(session)
            pending = repository.list_pending(limit=self._batch_size)
            for row in pending:
                envelope = EventEnvelope(
                    detail_type=row.detail_type,
                    source=row.source,
                    detail=row.detail,
                    metadata={"outboxId": str(row.id)},
                )
                try:
                    self._client.put_events([envelope])
                except EventBusError as exc:
                    status = repository.record_attempt_failure(
                        event_id=row.id,
                        error=str(exc),
                        max_attempts=self._max_attempts,
                    )
                    session.commit()
                    if status == OutboxStatus.FAILED:
                        failed += 1
                        logger.error(
                            "Outbox event abandoned outbox_id=%s detail_type=%s error=%s",
                            row.id,
                            row.detail_type,
                            exc,
                        )
                    else:
                        retried += 1
                    continue

                repository.mark_published([row.id])
                session.commit()
                published += 1
        except SQLAlchemyError:
            session.rollback()
            logger.exception("Outbox relay store failure")
            raise
        finally:
            session.close()

        summary = RelaySummary(published=published, retried=retried, failed=failed)
        if pending:
            log_event(
                logger,
                logging.INFO,
                "outbox_drained",
                published=published,
                retried=retried,
                failed=failed,
            )
        return summary
