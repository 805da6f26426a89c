"""
Analytics event recording and query endpoints.
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import to_http_error
from app.domain.analytics import AggregatedMetrics, MetricsGranularity
from app.schemas.analytics import (
    AggregatedMetricsResponse,
    AnalyticsActionCountsResponse,
    AnalyticsEventsRequest,
    AnalyticsEventsResponse,
    AnalyticsRecordListResponse,
    AnalyticsRecordResponse,
    EntityMetricsResponse,
    ProcessedEventResponse,
)
from app.services.analytics_metrics import AnalyticsMetricsService
from app.services.analytics_recorder import AnalyticsRecorder
from db.repositories.analytics_repository import AnalyticsRepository
from db.repositories.errors import PipelineError
from db.session import get_db

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/events", response_model=AnalyticsEventsResponse)
def record_analytics_events(
    request: AnalyticsEventsRequest,
    db: Session = Depends(get_db),
) -> AnalyticsEventsResponse:
    outcomes = AnalyticsRecorder(db).record_many(request.events)
    return AnalyticsEventsResponse(
        results=[
            ProcessedEventResponse(
                event_id=outcome.event_id,
                status=outcome.status,
                error=outcome.error,
                retryable=outcome.retryable,
            )
            for outcome in outcomes
        ],
        failed=sum(1 for outcome in outcomes if outcome.failed),
    )


@router.get("/restaurants/{restaurant_id}/events", response_model=AnalyticsRecordListResponse)
def list_restaurant_events(
    restaurant_id: str,
    start: datetime | None = Query(default=None, description="Inclusive lower bound"),
    end: datetime | None = Query(default=None, description="Exclusive upper bound"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> AnalyticsRecordListResponse:
    records = AnalyticsRepository(db).list_for_restaurant(
        restaurant_id=restaurant_id,
        start=start,
        end=end,
        limit=limit,
    )
    return AnalyticsRecordListResponse(
        records=[
            AnalyticsRecordResponse(
                event_id=record.event_id,
                restaurant_id=record.restaurant_id,
                timestamp=record.timestamp,
                event_type=record.event_type,
                event_source=record.event_source,
                user_id=record.user_id,
                action=record.action,
                data=record.data,
            )
            for record in records
        ]
    )


@router.get("/restaurants/{restaurant_id}/actions", response_model=AnalyticsActionCountsResponse)
def count_restaurant_actions(
    restaurant_id: str,
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> AnalyticsActionCountsResponse:
    counts = AnalyticsRepository(db).count_by_action(restaurant_id=restaurant_id, start=start, end=end)
    return AnalyticsActionCountsResponse(restaurant_id=restaurant_id, counts=counts)


@router.get("/metrics", response_model=AggregatedMetricsResponse)
def get_aggregated_metrics(
    start_date: date = Query(description="First UTC day, inclusive"),
    end_date: date = Query(description="Last UTC day, inclusive"),
    granularity: str = Query(default=MetricsGranularity.DAILY, description="daily or hourly"),
    db: Session = Depends(get_db),
) -> AggregatedMetricsResponse:
    try:
        metrics = AnalyticsMetricsService(db).aggregated_metrics(start_date, end_date, granularity)
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return _to_metrics_response(metrics)


@router.get("/metrics/realtime", response_model=AggregatedMetricsResponse)
def get_realtime_metrics(
    minutes: int = Query(default=60, ge=1, le=24 * 60),
    db: Session = Depends(get_db),
) -> AggregatedMetricsResponse:
    return _to_metrics_response(AnalyticsMetricsService(db).realtime_metrics(minutes))


@router.get("/metrics/{scope}/{entity_id}", response_model=EntityMetricsResponse)
def get_entity_metrics(scope: str, entity_id: str, db: Session = Depends(get_db)) -> EntityMetricsResponse:
    try:
        metrics = AnalyticsMetricsService(db).entity_metrics(scope, entity_id)
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return EntityMetricsResponse(
        scope=metrics.scope,
        entity_id=metrics.entity_id,
        total_events=metrics.total_events,
        events_by_type=metrics.events_by_type,
        last_event_at=metrics.last_event_at,
    )


def _to_metrics_response(metrics: AggregatedMetrics) -> AggregatedMetricsResponse:
    return AggregatedMetricsResponse(
        total_events=metrics.total_events,
        unique_users=metrics.unique_users,
        events_by_type=metrics.events_by_type,
        distribution=metrics.distribution,
    )
