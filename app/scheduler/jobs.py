"""
app/scheduler/jobs.py

APScheduler-based background jobs for the pipeline.

Schedule (all times UTC)
--------------------------
  outbox_relay          every OUTBOX_RELAY_INTERVAL_SECONDS
  analytics_ttl_purge   04:00 every day

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError

from app.config import get_event_bus_settings, get_outbox_relay_settings
from app.events.bus import HttpEventBusClient
from app.events.outbox_relay import OutboxRelay
from db.repositories.analytics_aggregate_repository import AnalyticsAggregateRepository
from db.repositories.analytics_repository import AnalyticsRepository
from db.session import SessionLocal, session_scope

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Outbox relay
# ---------------------------------------------------------------------------


def run_outbox_relay() -> None:
    """
    Deliver pending outbox events to the event bus.
    """
    settings = get_outbox_relay_settings()
    relay = OutboxRelay(
        session_factory=SessionLocal,
        client=HttpEventBusClient(settings=get_event_bus_settings()),
        batch_size=settings.batch_size,
        max_attempts=settings.max_attempts,
    )
    try:
        summary = relay.drain()
    except SQLAlchemyError as exc:
        logger.warning("Scheduler: outbox_relay failed: %s", exc)
        return
    if summary.published or summary.retried or summary.failed:
        logger.info(
            "Scheduler: outbox_relay published=%s retried=%s failed=%s",
            summary.published,
            summary.retried,
            summary.failed,
        )


# ---------------------------------------------------------------------------
# Job: Analytics TTL purge
# ---------------------------------------------------------------------------


def run_analytics_ttl_purge() -> None:
    """
    Delete analytics records past their ``ttl`` and expired real-time
    aggregate buckets.
    """
    logger.info("Scheduler: analytics_ttl_purge starting")
    now_epoch = int(datetime.now(tz=timezone.utc).timestamp())

    try:
        with session_scope() as db:
            deleted = AnalyticsRepository(db).delete_expired(now_epoch=now_epoch)
            buckets = AnalyticsAggregateRepository(db).delete_expired(now_epoch=now_epoch)
    except SQLAlchemyError as exc:
        logger.warning("Scheduler: analytics_ttl_purge failed: %s", exc)
        return

    logger.info("Scheduler: analytics_ttl_purge complete deleted=%s buckets=%s", deleted, buckets)


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points. The outbox relay is only registered when
    ``EVENT_BUS_URL`` is configured.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    if get_event_bus_settings().url:
        scheduler.add_job(
            run_outbox_relay,
            trigger="interval",
            seconds=get_outbox_relay_settings().interval_seconds,
            id="outbox_relay",
            name="Outbox relay",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    else:
        logger.warning("EVENT_BUS_URL not set; outbox relay job not scheduled")

    scheduler.add_job(
        run_analytics_ttl_purge,
        trigger="cron",
        hour=4,
        minute=0,
        id="analytics_ttl_purge",
        name="Analytics TTL purge",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler
