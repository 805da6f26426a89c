"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with the full schema and the
project session factory bound to it.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from db.base import Base
from db.models.import_job import ImportBatch, ImportJob
from db.repositories.import_job_repository import ImportJobRepository
from db.session import build_session_factory


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT support.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_job(session: Session) -> Callable[..., tuple[ImportJob, list[ImportBatch]]]:
    """
    Create a job with one PENDING batch per entry of ``batch_sizes``.
    """

    def _make(
        *,
        job_type: str = "RESTAURANT",
        source_id: str = "yelp",
        batch_sizes: tuple[int, ...] = (5,),
    ) -> tuple[ImportJob, list[ImportBatch]]:
        repository = ImportJobRepository(session)
        job = repository.create_job(
            source_id=source_id,
            job_type=job_type,
            total_records=sum(batch_sizes),
        )
        batches = [
            repository.create_batch(job_id=job.id, batch_number=number, item_count=size)
            for number, size in enumerate(batch_sizes, start=1)
        ]
        session.commit()
        return job, batches

    return _make


def restaurant_item(index: int, **overrides: Any) -> dict[str, Any]:
    item: dict[str, Any] = {
        "externalId": f"ext-{index}",
        "name": f"Restaurant {index}",
        "city": "Kuala Lumpur",
        "cuisineType": "Malaysian",
    }
    item.update(overrides)
    return item


def dish_item(index: int, **overrides: Any) -> dict[str, Any]:
    item: dict[str, Any] = {
        "externalId": f"dish-{index}",
        "name": f"Nasi Lemak {index}",
        "restaurantId": str(uuid.uuid4()),
        "restaurantName": "Village Park",
        "price": "12.50",
    }
    item.update(overrides)
    return item
