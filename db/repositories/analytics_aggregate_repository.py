"""
Persistence for analytics aggregate counters.

Counters are incremented in SQL (``event_count + 1``), never read-modify-
written in Python, so concurrent consumers cannot lose increments. Callers
increment inside the same transaction that inserted the raw record; a
duplicate raw event therefore never reaches the counters.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models.analytics_aggregate import AnalyticsAggregate
from db.repositories.errors import StoreError

logger = logging.getLogger(__name__)


class AnalyticsAggregateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def increment(
        self,
        *,
        scope: str,
        bucket: str,
        event_type: str,
        seen_at: datetime,
        expires_at: int | None = None,
    ) -> None:
        if self._bump(scope=scope, bucket=bucket, event_type=event_type, seen_at=seen_at, expires_at=expires_at):
            return

        try:
            with self._session.begin_nested():
                self._session.execute(
                    insert(AnalyticsAggregate).values(
                        scope=scope,
                        bucket=bucket,
                        event_type=event_type,
                        event_count=1,
                        last_event_at=seen_at,
                        expires_at=expires_at,
                    )
                )
            return
        except IntegrityError:
            # Another writer created the row between our update and insert.
            logger.debug("Aggregate row created concurrently scope=%s bucket=%s", scope, bucket)

        if not self._bump(scope=scope, bucket=bucket, event_type=event_type, seen_at=seen_at, expires_at=expires_at):
            raise StoreError(f"Could not increment aggregate {scope}/{bucket}/{event_type}.")

    def _bump(
        self,
        *,
        scope: str,
        bucket: str,
        event_type: str,
        seen_at: datetime,
        expires_at: int | None,
    ) -> bool:
        stmt = (
            update(AnalyticsAggregate)
            .where(
                AnalyticsAggregate.scope == scope,
                AnalyticsAggregate.bucket == bucket,
                AnalyticsAggregate.event_type == event_type,
            )
            .values(
                event_count=AnalyticsAggregate.event_count + 1,
                last_event_at=seen_at,
                expires_at=expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount == 1

    def counts_by_type(
        self,
        *,
        scope: str,
        bucket_from: str | None = None,
        bucket_to: str | None = None,
        bucket: str | None = None,
        live_at: int | None = None,
    ) -> dict[str, int]:
        """
        Summed counts per event type within ``[bucket_from, bucket_to)``, or
        for the single ``bucket``. ``live_at`` drops rows expired at that epoch.
        """

        stmt = select(AnalyticsAggregate.event_type, func.sum(AnalyticsAggregate.event_count)).where(
            AnalyticsAggregate.scope == scope
        )
        stmt = self._filter(stmt, bucket_from=bucket_from, bucket_to=bucket_to, bucket=bucket, live_at=live_at)
        stmt = stmt.group_by(AnalyticsAggregate.event_type)
        return {event_type: int(total) for event_type, total in self._session.execute(stmt).all()}

    def counts_by_bucket(
        self,
        *,
        scope: str,
        bucket_from: str | None = None,
        bucket_to: str | None = None,
        live_at: int | None = None,
    ) -> dict[str, int]:
        stmt = select(AnalyticsAggregate.bucket, func.sum(AnalyticsAggregate.event_count)).where(
            AnalyticsAggregate.scope == scope
        )
        stmt = self._filter(stmt, bucket_from=bucket_from, bucket_to=bucket_to, live_at=live_at)
        stmt = stmt.group_by(AnalyticsAggregate.bucket).order_by(AnalyticsAggregate.bucket)
        return {bucket: int(total) for bucket, total in self._session.execute(stmt).all()}

    def last_event_at(self, *, scope: str, bucket: str) -> datetime | None:
        stmt = select(func.max(AnalyticsAggregate.last_event_at)).where(
            AnalyticsAggregate.scope == scope,
            AnalyticsAggregate.bucket == bucket,
        )
        return self._session.scalar(stmt)

    def delete_expired(self, *, now_epoch: int) -> int:
        stmt = (
            delete(AnalyticsAggregate)
            .where(AnalyticsAggregate.expires_at.is_not(None), AnalyticsAggregate.expires_at <= now_epoch)
            .execution_options(synchronize_session=False)
        )
        return self._session.execute(stmt).rowcount

    @staticmethod
    def _filter(stmt, *, bucket_from=None, bucket_to=None, bucket=None, live_at=None):
        if bucket is not None:
            stmt = stmt.where(AnalyticsAggregate.bucket == bucket)
        if bucket_from is not None:
            stmt = stmt.where(AnalyticsAggregate.bucket >= bucket_from)
        if bucket_to is not None:
            stmt = stmt.where(AnalyticsAggregate.bucket < bucket_to)
        if live_at is not None:
            stmt = stmt.where(
                or_(AnalyticsAggregate.expires_at.is_(None), AnalyticsAggregate.expires_at > live_at)
            )
        return stmt
