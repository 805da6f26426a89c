"""
tests/test_scheduler_jobs.py

Background job registration, the analytics TTL purge and ``session_scope``.
"""

from __future__ import annotations

from contextlib import contextmanager

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from app.config import EventBusSettings
from app.scheduler import jobs
from db.base import utc_now
from db.models import AnalyticsRecord
from db.repositories.analytics_repository import AnalyticsRepository
from db.session import session_scope


def _store(session: Session, event_id: str, ttl: int) -> None:
    AnalyticsRepository(session).create_once(
        event_id=event_id,
        restaurant_id="r-1",
        timestamp=utc_now(),
        event_type="RESTAURANT_VIEW",
        event_source="web",
        user_id="anonymous",
        action="view",
        ttl=ttl,
    )


class TestBuildScheduler:
    def test_relay_registered_only_with_bus_url(self, monkeypatch) -> None:
        monkeypatch.setattr(jobs, "get_event_bus_settings", lambda: EventBusSettings(url=None))
        assert {job.id for job in jobs.build_scheduler().get_jobs()} == {"analytics_ttl_purge"}

        monkeypatch.setattr(
            jobs,
            "get_event_bus_settings",
            lambda: EventBusSettings(url="https://bus.example.test/events"),
        )
        assert {job.id for job in jobs.build_scheduler().get_jobs()} == {
            "analytics_ttl_purge",
            "outbox_relay",
        }


class TestAnalyticsTtlPurge:
    def test_deletes_only_expired(
        self,
        session: Session,
        session_factory: sessionmaker[Session],
        monkeypatch,
    ) -> None:
        now_epoch = int(utc_now().timestamp())
        _store(session, "old", now_epoch - 60)
        _store(session, "fresh", now_epoch + 3600)
        session.commit()

        @contextmanager
        def scope():
            with session_scope(session_factory) as db:
                yield db

        monkeypatch.setattr(jobs, "session_scope", scope)

        jobs.run_analytics_ttl_purge()

        remaining = session.scalars(select(AnalyticsRecord.event_id)).all()
        assert remaining == ["fresh"]


class TestSessionScope:
    def test_commits_on_success(self, session: Session, session_factory: sessionmaker[Session]) -> None:
        with session_scope(session_factory) as db:
            _store(db, "e1", 0)

        assert session.scalar(select(func.count()).select_from(AnalyticsRecord)) == 1

    def test_rolls_back_on_error(self, session: Session, session_factory: sessionmaker[Session]) -> None:
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as db:
                _store(db, "e1", 0)
                raise RuntimeError("abort")

        assert session.scalar(select(func.count()).select_from(AnalyticsRecord)) == 0
