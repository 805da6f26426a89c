"""
app/services/analytics_metrics.py

Aggregate counters kept alongside raw analytics records, and the queries
that read them back.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from sqlalchemy.orm import Session

from app.config import get_analytics_settings
from app.domain.analytics import AggregatedMetrics, AnalyticsEvent, EntityMetrics, MetricsGranularity
from app.validators.analytics_event_validator import ANONYMOUS_USER
from db.models.analytics_aggregate import ENTITY_SCOPES, AggregateScope
from db.repositories.analytics_aggregate_repository import AnalyticsAggregateRepository
from db.repositories.analytics_repository import AnalyticsRepository
from db.repositories.errors import ValidationError

MAX_REALTIME_WINDOW_MINUTES = 24 * 60


def day_bucket(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d")


def hour_bucket(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


def minute_bucket(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M")


class AnalyticsMetricsService:
    """
    Maintains and queries analytics aggregates. ``apply`` does not commit;
    it belongs to the caller's transaction.
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Callable[[], datetime] | None = None,
        realtime_ttl_hours: int | None = None,
    ) -> None:
        self._aggregates = AnalyticsAggregateRepository(session)
        self._records = AnalyticsRepository(session)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        hours = get_analytics_settings().realtime_ttl_hours if realtime_ttl_hours is None else realtime_ttl_hours
        self._realtime_ttl = timedelta(hours=hours)

    def apply(self, event: AnalyticsEvent) -> None:
        """
        Count ``event`` in every bucket it belongs to.
        """

        now = self._clock()
        keys: list[tuple[str, str, int | None]] = [
            (AggregateScope.DAILY, day_bucket(event.timestamp), None),
            (AggregateScope.HOURLY, hour_bucket(event.timestamp), None),
            (AggregateScope.REALTIME, minute_bucket(now), int((now + self._realtime_ttl).timestamp())),
            (AggregateScope.RESTAURANT, event.restaurant_id, None),
        ]
        dish_id = event.data.get("dishId")
        if dish_id is not None and str(dish_id).strip():
            keys.append((AggregateScope.DISH, str(dish_id).strip(), None))
        if event.user_id != ANONYMOUS_USER:
            keys.append((AggregateScope.USER, event.user_id, None))

        for scope, bucket, expires_at in keys:
            self._aggregates.increment(
                scope=scope,
                bucket=bucket,
                event_type=event.event_type,
                seen_at=event.timestamp,
                expires_at=expires_at,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def aggregated_metrics(
        self,
        start_date: date,
        end_date: date,
        granularity: str = MetricsGranularity.DAILY,
    ) -> AggregatedMetrics:
        """
        Totals for the inclusive UTC date range ``start_date..end_date``.

        ``unique_users`` counts distinct identified users among the raw
        records still retained for the range.
        """

        if granularity not in (MetricsGranularity.DAILY, MetricsGranularity.HOURLY):
            raise ValidationError(f"Unknown granularity '{granularity}'.")
        if end_date < start_date:
            raise ValidationError("end_date must not be before start_date.")

        scope = AggregateScope.DAILY if granularity == MetricsGranularity.DAILY else AggregateScope.HOURLY
        # Day and hour buckets both sort lexically, so one half-open range covers both.
        bucket_from = start_date.isoformat()
        bucket_to = (end_date + timedelta(days=1)).isoformat()

        events_by_type = self._aggregates.counts_by_type(scope=scope, bucket_from=bucket_from, bucket_to=bucket_to)
        distribution = self._aggregates.counts_by_bucket(scope=scope, bucket_from=bucket_from, bucket_to=bucket_to)
        unique_users = self._records.count_distinct_users(
            start=datetime.combine(start_date, time.min, tzinfo=timezone.utc),
            end=datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc),
            exclude_user=ANONYMOUS_USER,
        )
        return AggregatedMetrics(
            total_events=sum(events_by_type.values()),
            unique_users=unique_users,
            events_by_type=events_by_type,
            distribution=distribution,
        )

    def entity_metrics(self, scope: str, entity_id: str) -> EntityMetrics:
        if scope not in ENTITY_SCOPES:
            raise ValidationError(f"Unknown metrics scope '{scope}'. Expected one of: {', '.join(ENTITY_SCOPES)}.")

        events_by_type = self._aggregates.counts_by_type(scope=scope, bucket=entity_id)
        return EntityMetrics(
            scope=scope,
            entity_id=entity_id,
            total_events=sum(events_by_type.values()),
            events_by_type=events_by_type,
            last_event_at=self._aggregates.last_event_at(scope=scope, bucket=entity_id),
        )

    def realtime_metrics(self, window_minutes: int = 60) -> AggregatedMetrics:
        """
        Per-minute totals for the last ``window_minutes`` of processing time.
        """

        if not 1 <= window_minutes <= MAX_REALTIME_WINDOW_MINUTES:
            raise ValidationError(f"window_minutes must be between 1 and {MAX_REALTIME_WINDOW_MINUTES}.")

        now = self._clock()
        bucket_from = minute_bucket(now - timedelta(minutes=window_minutes - 1))
        live_at = int(now.timestamp())
        events_by_type = self._aggregates.counts_by_type(
            scope=AggregateScope.REALTIME,
            bucket_from=bucket_from,
            live_at=live_at,
        )
        distribution = self._aggregates.counts_by_bucket(
            scope=AggregateScope.REALTIME,
            bucket_from=bucket_from,
            live_at=live_at,
        )
        return AggregatedMetrics(
            total_events=sum(events_by_type.values()),
            events_by_type=events_by_type,
            distribution=distribution,
        )
