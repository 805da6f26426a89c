"""
Persistence for analytics records.

``create_once`` is the idempotency guard: it inserts inside a savepoint and
raises ``DuplicateError`` when the event id is already recorded, leaving the
outer transaction usable.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models.analytics_record import AnalyticsRecord
from db.repositories.errors import DuplicateError

logger = logging.getLogger(__name__)


class AnalyticsRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_once(
        self,
        *,
        event_id: str,
        restaurant_id: str,
        timestamp: datetime,
        event_type: str,
        event_source: str,
        user_id: str,
        action: str,
        ttl: int,
        data: dict[str, Any] | None = None,
        event_metadata: dict[str, Any] | None = None,
    ) -> AnalyticsRecord:
        record = AnalyticsRecord(
            event_id=event_id,
            restaurant_id=restaurant_id,
            timestamp=timestamp,
            event_type=event_type,
            event_source=event_source,
            user_id=user_id,
            action=action,
            data=data,
            event_metadata=event_metadata,
            ttl=ttl,
        )
        try:
            with self._session.begin_nested():
                self._session.add(record)
                self._session.flush()
        except IntegrityError as exc:
            logger.info("Analytics record already exists event_id=%s", event_id)
            raise DuplicateError(f"Event already recorded: {event_id}") from exc
        return record

    def get(self, event_id: str) -> AnalyticsRecord | None:
        return self._session.get(AnalyticsRecord, event_id)

    def list_for_restaurant(
        self,
        *,
        restaurant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[AnalyticsRecord]:
        stmt = select(AnalyticsRecord).where(AnalyticsRecord.restaurant_id == restaurant_id)
        if start is not None:
            stmt = stmt.where(AnalyticsRecord.timestamp >= start)
        if end is not None:
            stmt = stmt.where(AnalyticsRecord.timestamp < end)
        stmt = stmt.order_by(AnalyticsRecord.timestamp.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def count_by_action(
        self,
        *,
        restaurant_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> dict[str, int]:
        stmt = (
            select(AnalyticsRecord.action, func.count())
            .where(AnalyticsRecord.restaurant_id == restaurant_id)
            .group_by(AnalyticsRecord.action)
        )
        if start is not None:
            stmt = stmt.where(AnalyticsRecord.timestamp >= start)
        if end is not None:
            stmt = stmt.where(AnalyticsRecord.timestamp < end)
        return {action: int(count) for action, count in self._session.execute(stmt).all()}

    def count_distinct_users(
        self,
        *,
        start: datetime,
        end: datetime,
        exclude_user: str | None = None,
    ) -> int:
        stmt = select(func.count(func.distinct(AnalyticsRecord.user_id))).where(
            AnalyticsRecord.timestamp >= start,
            AnalyticsRecord.timestamp < end,
        )
        if exclude_user is not None:
            stmt = stmt.where(AnalyticsRecord.user_id != exclude_user)
        return int(self._session.scalar(stmt) or 0)

    def delete_expired(self, *, now_epoch: int) -> int:
        """
        Delete records whose ``ttl`` is at or before ``now_epoch``.
        """

        stmt = (
            delete(AnalyticsRecord)
            .where(AnalyticsRecord.ttl <= now_epoch)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount
