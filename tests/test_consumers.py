"""
tests/test_consumers.py

Queue consumers: per-message isolation and partial batch responses.
"""

from __future__ import annotations

import json
import threading
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from app.consumers.analytics_consumer import AnalyticsEventConsumer
from app.consumers.base import BatchConsumer, BatchResponse, QueueMessage
from app.consumers.import_batch_consumer import ImportBatchConsumer, parse_import_message
from app.domain.analytics import ProcessedEvent, ProcessedEventStatus
from app.events.publisher import InMemoryEventPublisher
from app.services.analytics_recorder import AnalyticsRecorder
from conftest import restaurant_item
from db.models import AnalyticsRecord, ImportBatch, ImportStatus
from db.repositories.errors import StoreError, ValidationError


class RecordingConsumer(BatchConsumer):
    """Fails messages whose payload says so."""

    name = "recording"

    def __init__(self, session_factory, **kwargs) -> None:
        super().__init__(session_factory, **kwargs)
        self.handled: list[Any] = []

    def handle(self, session: Session, payload: Any, *, message_id: str) -> None:
        outcome = payload.get("outcome")
        if outcome == "invalid":
            raise ValidationError("bad message")
        if outcome == "store":
            raise StoreError("database unavailable")
        if outcome == "crash":
            raise RuntimeError("unexpected")
        self.handled.append(payload)


class BlockingConsumer(BatchConsumer):
    name = "blocking"

    def __init__(self, session_factory, release: threading.Event, **kwargs) -> None:
        super().__init__(session_factory, **kwargs)
        self._release = release

    def handle(self, session: Session, payload: Any, *, message_id: str) -> None:
        if payload.get("block"):
            self._release.wait(timeout=5)


def _msg(message_id: str, body: Any) -> QueueMessage:
    return QueueMessage(message_id=message_id, body=json.dumps(body) if not isinstance(body, str) else body)


# ---------------------------------------------------------------------------
# Base consumer
# ---------------------------------------------------------------------------


class TestBatchConsumer:
    def test_only_retryable_failures_reported(self, session_factory: sessionmaker[Session]) -> None:
        consumer = RecordingConsumer(session_factory, max_workers=2)

        response = consumer.process_batch(
            [
                _msg("m1", {"outcome": "ok"}),
                _msg("m2", {"outcome": "store"}),
                _msg("m3", {"outcome": "invalid"}),
                _msg("m4", {"outcome": "crash"}),
                _msg("m5", {"outcome": "ok"}),
            ]
        )

        assert response.batch_item_failures == ["m2", "m4"]
        assert len(consumer.handled) == 2

    def test_invalid_json_is_acknowledged(self, session_factory: sessionmaker[Session]) -> None:
        consumer = RecordingConsumer(session_factory)
        response = consumer.process_batch([_msg("m1", "{not json")])
        assert response.batch_item_failures == []

    def test_timeout_is_reported(self, session_factory: sessionmaker[Session]) -> None:
        release = threading.Event()
        consumer = BlockingConsumer(session_factory, release, max_workers=2, message_timeout_seconds=0.05)
        try:
            response = consumer.process_batch([_msg("slow", {"block": True}), _msg("fast", {})])
        finally:
            release.set()

        assert "slow" in response.batch_item_failures
        assert "fast" not in response.batch_item_failures

    def test_empty_batch(self, session_factory: sessionmaker[Session]) -> None:
        assert RecordingConsumer(session_factory).process_batch([]).batch_item_failures == []

    def test_response_shape(self) -> None:
        assert BatchResponse(batch_item_failures=["a", "b"]).to_dict() == {
            "batchItemFailures": [{"itemIdentifier": "a"}, {"itemIdentifier": "b"}]
        }
        assert BatchResponse().to_dict() == {"batchItemFailures": []}

    def test_queue_message_from_dict(self) -> None:
        message = QueueMessage.from_dict({"messageId": "m1", "body": '{"a": 1}'})
        assert message.payload() == {"a": 1}
        assert QueueMessage.from_dict({"message_id": "m2", "body": {"b": 2}}).payload() == {"b": 2}
        with pytest.raises(ValueError):
            QueueMessage.from_dict({"body": "{}"})


# ---------------------------------------------------------------------------
# Import batch consumer
# ---------------------------------------------------------------------------


class TestImportBatchConsumer:
    def test_processes_batch_message(
        self,
        session: Session,
        session_factory: sessionmaker[Session],
        make_job,
    ) -> None:
        job, [batch] = make_job(batch_sizes=(2,))
        publisher = InMemoryEventPublisher()
        consumer = ImportBatchConsumer(session_factory, publisher=publisher)

        response = consumer.process_batch(
            [
                _msg(
                    "m1",
                    {
                        "jobId": str(job.id),
                        "batchId": str(batch.id),
                        "data": [restaurant_item(1), restaurant_item(2)],
                        "metadata": {"traceId": "trace-7"},
                    },
                )
            ]
        )

        assert response.batch_item_failures == []
        stored = session.get(ImportBatch, batch.id, populate_existing=True)
        assert stored.status == ImportStatus.COMPLETED
        [event] = publisher.published
        assert event.detail["traceId"] == "trace-7"

    def test_unknown_job_is_acknowledged(self, session_factory: sessionmaker[Session]) -> None:
        consumer = ImportBatchConsumer(session_factory, publisher=InMemoryEventPublisher())
        response = consumer.process_batch(
            [
                _msg(
                    "m1",
                    {
                        "jobId": "00000000-0000-0000-0000-000000000001",
                        "batchId": "00000000-0000-0000-0000-000000000002",
                        "data": [],
                    },
                )
            ]
        )
        assert response.batch_item_failures == []

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"batchId": "b", "data": []},
            {"jobId": "j", "batchId": "b", "data": {"not": "a list"}},
            {"jobId": "j", "batchId": "b", "data": [], "metadata": "trace"},
        ],
    )
    def test_malformed_message_rejected(self, payload: Any) -> None:
        with pytest.raises(ValidationError):
            parse_import_message(payload)


# ---------------------------------------------------------------------------
# Analytics consumer
# ---------------------------------------------------------------------------


def _analytics(event_id: str, **data: Any) -> dict:
    return {
        "eventId": event_id,
        "type": "RESTAURANT_VIEW",
        "source": "web",
        "data": {"restaurantId": "r-1", "action": "view", **data},
    }


class TestAnalyticsEventConsumer:
    def test_duplicates_and_invalid_not_redelivered(
        self,
        session: Session,
        session_factory: sessionmaker[Session],
    ) -> None:
        consumer = AnalyticsEventConsumer(session_factory)

        response = consumer.process_batch(
            [
                _msg("m1", _analytics("e1")),
                _msg("m2", _analytics("e1")),
                _msg("m3", {"type": "RESTAURANT_VIEW", "source": "web", "data": {}}),
            ]
        )

        assert response.batch_item_failures == []
        assert session.scalar(select(func.count()).select_from(AnalyticsRecord)) == 1

    def test_copies_without_event_id_kept_apart_by_message_id(
        self,
        session: Session,
        session_factory: sessionmaker[Session],
    ) -> None:
        body = {"type": "RESTAURANT_VIEW", "source": "web", "data": {"restaurantId": "r-1", "action": "view"}}
        consumer = AnalyticsEventConsumer(session_factory, max_workers=1)

        consumer.process_batch([_msg("m1", body), _msg("m2", body)])
        consumer.process_batch([_msg("m1", body)])

        assert session.scalar(select(func.count()).select_from(AnalyticsRecord)) == 2

    def test_store_fault_redelivered(self, session_factory: sessionmaker[Session], monkeypatch) -> None:
        def failing_record(self, message, *, message_id=None):
            return ProcessedEvent(
                event_id="e1",
                status=ProcessedEventStatus.FAILURE,
                error="database unavailable",
                retryable=True,
            )

        monkeypatch.setattr(AnalyticsRecorder, "record", failing_record)

        response = AnalyticsEventConsumer(session_factory).process_batch([_msg("m1", _analytics("e1"))])

        assert response.batch_item_failures == ["m1"]
