"""
Transactional outbox persistence.

Rows are added in the caller's transaction so an event is stored if and only
if the state change it describes is committed.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.outbox_event import OutboxEvent, OutboxStatus


class OutboxRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(self, *, source: str, detail_type: str, detail: dict[str, Any]) -> OutboxEvent:
        event = OutboxEvent(
            source=source,
            detail_type=detail_type,
            detail=detail,
            status=OutboxStatus.PENDING,
            attempts=0,
            created_at=utc_now(),
        )
        self._session.add(event)
        self._session.flush()
        return event

    def list_pending(self, *, limit: int = 100) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.PENDING)
            .order_by(OutboxEvent.created_at, OutboxEvent.id)
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def list_by_detail_type(self, detail_type: str) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.detail_type == detail_type)
            .order_by(OutboxEvent.created_at, OutboxEvent.id)
        )
        return list(self._session.scalars(stmt).all())

    def mark_published(self, event_ids: list[uuid.UUID]) -> int:
        if not event_ids:
            return 0
        now = utc_now()
        stmt = (
            update(OutboxEvent)
            .where(OutboxEvent.id.in_(event_ids), OutboxEvent.status == OutboxStatus.PENDING)
            .values(
                status=OutboxStatus.PUBLISHED,
                attempts=OutboxEvent.attempts + 1,
                published_at=now,
                last_error=None,
            )
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount

    def record_attempt_failure(
        self,
        *,
        event_id: uuid.UUID,
        error: str,
        max_attempts: int,
    ) -> str | None:
        """
        Count one failed publish attempt.

        The row moves to FAILED once ``max_attempts`` is reached. Returns the
        resulting status, or None when the row is no longer pending.
        """

        event = self._session.get(OutboxEvent, event_id, populate_existing=True)
        if event is None or event.status != OutboxStatus.PENDING:
            return None

        event.attempts += 1
        event.last_error = error[:2000]
        if event.attempts >= max_attempts:
            event.status = OutboxStatus.FAILED
        self._session.flush()
        return event.status
