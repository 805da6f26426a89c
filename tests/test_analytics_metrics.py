"""
tests/test_analytics_metrics.py

Aggregate counters maintained on record, and the metrics queries over them.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.domain.analytics import AnalyticsEvent, MetricsGranularity, ProcessedEventStatus
from app.services.analytics_metrics import AnalyticsMetricsService, day_bucket, hour_bucket, minute_bucket
from app.services.analytics_recorder import AnalyticsRecorder
from db.models import AggregateScope, AnalyticsAggregate, AnalyticsRecord
from db.repositories.analytics_aggregate_repository import AnalyticsAggregateRepository
from db.repositories.errors import ValidationError

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _message(event_id: str, *, at: str = "2026-02-28T08:30:00Z", event_type: str = "RESTAURANT_VIEW", **data) -> dict:
    return {
        "eventId": event_id,
        "type": event_type,
        "source": "web",
        "data": {"restaurantId": "r-1", "action": "view", **data},
        "metadata": {"timestamp": at},
    }


def _event(**overrides) -> AnalyticsEvent:
    values = {
        "event_id": "e1",
        "event_type": "RESTAURANT_VIEW",
        "source": "web",
        "restaurant_id": "r-1",
        "action": "view",
        "timestamp": datetime(2026, 2, 28, 8, 30, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return AnalyticsEvent(**values)


@pytest.fixture()
def recorder(session: Session) -> AnalyticsRecorder:
    return AnalyticsRecorder(session, clock=lambda: FIXED_NOW)


@pytest.fixture()
def metrics(session: Session) -> AnalyticsMetricsService:
    return AnalyticsMetricsService(session, clock=lambda: FIXED_NOW)


def _aggregate_rows(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(AnalyticsAggregate))


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


class TestBuckets:
    def test_bucket_formats_are_utc(self) -> None:
        moment = datetime(2026, 2, 28, 23, 45, tzinfo=timezone(timedelta(hours=-5)))

        assert day_bucket(moment) == "2026-03-01"
        assert hour_bucket(moment) == "2026-03-01T04"
        assert minute_bucket(moment) == "2026-03-01T04:45"


# ---------------------------------------------------------------------------
# Counting on record
# ---------------------------------------------------------------------------


class TestCountingOnRecord:
    def test_duplicate_delivery_is_counted_once(
        self,
        session: Session,
        recorder: AnalyticsRecorder,
        metrics: AnalyticsMetricsService,
    ) -> None:
        first = recorder.record(_message("e1"))
        second = recorder.record(_message("e1"))

        assert (first.status, second.status) == (ProcessedEventStatus.SUCCESS, ProcessedEventStatus.DUPLICATE)
        day = metrics.aggregated_metrics(date(2026, 2, 28), date(2026, 2, 28))
        assert day.total_events == 1
        assert metrics.entity_metrics(AggregateScope.RESTAURANT, "r-1").total_events == 1

    def test_every_scope_receives_the_event(self, session: Session, recorder: AnalyticsRecorder) -> None:
        recorder.record(_message("e1", userId="u-1", dishId="d-7"))

        rows = session.execute(
            select(AnalyticsAggregate.scope, AnalyticsAggregate.bucket, AnalyticsAggregate.event_count)
        ).all()
        assert sorted(tuple(row) for row in rows) == [
            ("daily", "2026-02-28", 1),
            ("dish", "d-7", 1),
            ("hourly", "2026-02-28T08", 1),
            ("realtime", "2026-03-01T12:00", 1),
            ("restaurant", "r-1", 1),
            ("user", "u-1", 1),
        ]

    def test_anonymous_and_dishless_events_skip_entity_scopes(
        self,
        session: Session,
        recorder: AnalyticsRecorder,
    ) -> None:
        recorder.record(_message("e1"))

        scopes = set(session.scalars(select(AnalyticsAggregate.scope)).all())
        assert scopes == {"daily", "hourly", "realtime", "restaurant"}

    def test_aggregate_fault_rolls_back_raw_record(
        self,
        session: Session,
        recorder: AnalyticsRecorder,
        monkeypatch,
    ) -> None:
        def boom(self, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        monkeypatch.setattr(AnalyticsAggregateRepository, "increment", boom)

        outcome = recorder.record(_message("e1"))

        assert outcome.status == ProcessedEventStatus.FAILURE
        assert outcome.retryable is True
        assert session.scalar(select(func.count()).select_from(AnalyticsRecord)) == 0
        assert _aggregate_rows(session) == 0

    def test_redelivery_after_fault_counts_once(
        self,
        session: Session,
        recorder: AnalyticsRecorder,
        metrics: AnalyticsMetricsService,
        monkeypatch,
    ) -> None:
        real_increment = AnalyticsAggregateRepository.increment
        calls = {"n": 0}

        def flaky(self, **kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise OperationalError("UPDATE", {}, Exception("database is locked"))
            return real_increment(self, **kwargs)

        monkeypatch.setattr(AnalyticsAggregateRepository, "increment", flaky)

        assert recorder.record(_message("e1")).retryable is True
        assert recorder.record(_message("e1")).status == ProcessedEventStatus.SUCCESS

        assert metrics.aggregated_metrics(date(2026, 2, 28), date(2026, 2, 28)).total_events == 1


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestAggregatedMetrics:
    def _seed(self, recorder: AnalyticsRecorder) -> None:
        recorder.record_many(
            [
                _message("a", at="2026-02-27T23:10:00Z", userId="u-1"),
                _message("b", at="2026-02-28T08:05:00Z", userId="u-1"),
                _message("c", at="2026-02-28T08:40:00Z", userId="u-2", event_type="DISH_VIEW"),
                _message("d", at="2026-02-28T17:00:00Z"),
                _message("e", at="2026-03-02T09:00:00Z", userId="u-3"),
            ]
        )

    def test_daily_range(self, recorder: AnalyticsRecorder, metrics: AnalyticsMetricsService) -> None:
        self._seed(recorder)

        result = metrics.aggregated_metrics(date(2026, 2, 27), date(2026, 2, 28))

        assert result.total_events == 4
        assert result.events_by_type == {"RESTAURANT_VIEW": 3, "DISH_VIEW": 1}
        assert result.distribution == {"2026-02-27": 1, "2026-02-28": 3}
        assert result.unique_users == 2

    def test_hourly_range(self, recorder: AnalyticsRecorder, metrics: AnalyticsMetricsService) -> None:
        self._seed(recorder)

        result = metrics.aggregated_metrics(date(2026, 2, 28), date(2026, 2, 28), MetricsGranularity.HOURLY)

        assert result.total_events == 3
        assert result.distribution == {"2026-02-28T08": 2, "2026-02-28T17": 1}
        assert result.unique_users == 2

    def test_empty_range(self, metrics: AnalyticsMetricsService) -> None:
        result = metrics.aggregated_metrics(date(2026, 1, 1), date(2026, 1, 31))
        assert (result.total_events, result.unique_users, result.distribution) == (0, 0, {})

    @pytest.mark.parametrize(
        ("start", "end", "granularity"),
        [
            (date(2026, 2, 28), date(2026, 2, 27), MetricsGranularity.DAILY),
            (date(2026, 2, 28), date(2026, 2, 28), "weekly"),
        ],
    )
    def test_bad_arguments_rejected(
        self,
        metrics: AnalyticsMetricsService,
        start: date,
        end: date,
        granularity: str,
    ) -> None:
        with pytest.raises(ValidationError):
            metrics.aggregated_metrics(start, end, granularity)


class TestEntityMetrics:
    def test_totals_by_type(self, recorder: AnalyticsRecorder, metrics: AnalyticsMetricsService) -> None:
        recorder.record_many(
            [
                _message("a", dishId="d-1"),
                _message("b", dishId="d-1", event_type="DISH_VIEW"),
                _message("c", dishId="d-2"),
            ]
        )

        dish = metrics.entity_metrics(AggregateScope.DISH, "d-1")

        assert dish.total_events == 2
        assert dish.events_by_type == {"RESTAURANT_VIEW": 1, "DISH_VIEW": 1}
        assert dish.last_event_at is not None

    def test_unknown_entity_is_empty(self, metrics: AnalyticsMetricsService) -> None:
        result = metrics.entity_metrics(AggregateScope.USER, "nobody")
        assert (result.total_events, result.events_by_type, result.last_event_at) == (0, {}, None)

    def test_time_scopes_are_not_entities(self, metrics: AnalyticsMetricsService) -> None:
        with pytest.raises(ValidationError):
            metrics.entity_metrics(AggregateScope.DAILY, "2026-02-28")


class TestRealtimeMetrics:
    def test_counts_within_window_until_expiry(self, session: Session) -> None:
        AnalyticsMetricsService(session, clock=lambda: FIXED_NOW, realtime_ttl_hours=1).apply(_event())
        session.commit()

        soon = AnalyticsMetricsService(session, clock=lambda: FIXED_NOW + timedelta(minutes=30))
        later = AnalyticsMetricsService(session, clock=lambda: FIXED_NOW + timedelta(minutes=90))

        assert soon.realtime_metrics(60).distribution == {"2026-03-01T12:00": 1}
        assert soon.realtime_metrics(20).total_events == 0
        assert later.realtime_metrics(120).total_events == 0

    @pytest.mark.parametrize("window", [0, 24 * 60 + 1])
    def test_window_bounds(self, metrics: AnalyticsMetricsService, window: int) -> None:
        with pytest.raises(ValidationError):
            metrics.realtime_metrics(window)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class TestAggregateRepository:
    def test_increment_accumulates_in_sql(self, session: Session) -> None:
        repository = AnalyticsAggregateRepository(session)
        seen_at = datetime(2026, 2, 28, 8, 30, tzinfo=timezone.utc)

        for _ in range(3):
            repository.increment(scope="daily", bucket="2026-02-28", event_type="T", seen_at=seen_at)
        session.commit()

        assert repository.counts_by_type(scope="daily", bucket="2026-02-28") == {"T": 3}
        assert _aggregate_rows(session) == 1

    def test_delete_expired_keeps_permanent_rows(self, session: Session) -> None:
        repository = AnalyticsAggregateRepository(session)
        seen_at = datetime(2026, 2, 28, 8, 30, tzinfo=timezone.utc)
        repository.increment(scope="daily", bucket="2026-02-28", event_type="T", seen_at=seen_at)
        for bucket, expires_at in (("2026-02-28T08:30", 100), ("2026-02-28T08:31", 300)):
            repository.increment(
                scope="realtime",
                bucket=bucket,
                event_type="T",
                seen_at=seen_at,
                expires_at=expires_at,
            )
        session.commit()

        assert repository.delete_expired(now_epoch=200) == 1
        session.commit()
        assert _aggregate_rows(session) == 2
