"""
tests/test_batch_processor.py

Batch processing state machine against an in-memory database.

Coverage
--------
- partial failure isolation (item 3 of 5 invalid)
- job terminal transitions across one and several batches
- at-most-once processing under redelivery
- infrastructure fault: FAILED batch, failure event, successes retained
- stale claim recovery
- unknown job / batch
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.domain.events import ImportEventType
from app.events.publisher import InMemoryEventPublisher
from app.services.batch_processor import BatchProcessor
from app.services.record_upsert_service import RecordUpsertService
from conftest import dish_item, restaurant_item
from db.base import utc_now
from db.models import ImportBatch, ImportStatus, Restaurant
from db.repositories.errors import NotFoundError, StoreError, ValidationError
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.outbox_repository import OutboxRepository


def _restaurant_count(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(Restaurant))


def _five_items_third_invalid() -> list[dict]:
    items = [restaurant_item(i) for i in range(1, 6)]
    del items[2]["name"]
    return items


class FlakyUpserter:
    """Delegates to the real upserter, raising a store fault on call ``fail_on``."""

    def __init__(self, session: Session, *, fail_on: int) -> None:
        self._delegate = RecordUpsertService(session)
        self._fail_on = fail_on
        self.calls = 0

    def upsert(self, source_id, record):
        self.calls += 1
        if self.calls == self._fail_on:
            raise OperationalError("INSERT INTO restaurants", {}, Exception("server closed the connection"))
        return self._delegate.upsert(source_id, record)


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class TestBatchCompletion:
    def test_partial_failure_isolation(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(5,))

        result = BatchProcessor(session).process_batch(job.id, batch.id, _five_items_third_invalid())

        assert result.success_count == 4
        assert result.error_count == 1
        assert result.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert result.errors[0].item == "ext-3"
        assert "name" in result.errors[0].error

        repository = ImportJobRepository(session)
        stored_batch = repository.get_batch(batch.id)
        assert stored_batch.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert stored_batch.error_details == {"errors": [{"item": "ext-3", "error": result.errors[0].error}]}
        assert stored_batch.completed_at is not None

        stored_job = repository.get_job(job.id)
        assert stored_job.processed_records == 5
        assert stored_job.success_records == 4
        assert stored_job.error_records == 1
        assert stored_job.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert stored_job.completed_at is not None
        assert _restaurant_count(session) == 4

    def test_clean_batch_completes_and_stores_event(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(3,))
        items = [restaurant_item(i) for i in range(1, 4)]

        result = BatchProcessor(session).process_batch(
            str(job.id),
            str(batch.id),
            items,
            {"traceId": "trace-abc"},
        )

        assert result.status == ImportStatus.COMPLETED
        assert ImportJobRepository(session).get_job(job.id).status == ImportStatus.COMPLETED

        (event,) = OutboxRepository(session).list_by_detail_type(ImportEventType.BATCH_COMPLETED)
        assert event.source == "foodrank.import"
        assert event.detail["jobId"] == str(job.id)
        assert event.detail["batchId"] == str(batch.id)
        assert event.detail["successCount"] == 3
        assert event.detail["errorCount"] == 0
        assert event.detail["traceId"] == "trace-abc"
        assert "errors" not in event.detail
        assert "timestamp" in event.detail

    def test_job_stays_in_progress_until_last_batch(self, session: Session, make_job) -> None:
        job, (first, second) = make_job(batch_sizes=(2, 2))
        processor = BatchProcessor(session)
        repository = ImportJobRepository(session)

        processor.process_batch(job.id, first.id, [restaurant_item(1), restaurant_item(2)])
        mid = repository.get_job(job.id)
        assert mid.status == ImportStatus.IN_PROGRESS
        assert mid.started_at is not None
        assert mid.processed_records == 2

        processor.process_batch(job.id, second.id, [restaurant_item(3), {"name": "no id"}])
        done = repository.get_job(job.id)
        assert done.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert done.processed_records == done.success_records + done.error_records == 4

    def test_all_items_invalid_completes_job_with_errors(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(job_type="DISH", batch_sizes=(2,))
        items = [dish_item(1, restaurantId=None), dish_item(2, restaurantName="  ")]

        result = BatchProcessor(session).process_batch(job.id, batch.id, items)

        assert result.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert [error.item for error in result.errors] == ["dish-1", "dish-2"]
        stored_job = ImportJobRepository(session).get_job(job.id)
        assert stored_job.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert (stored_job.success_records, stored_job.error_records) == (0, 2)

    def test_error_item_without_external_id_is_unknown(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(1,))
        result = BatchProcessor(session).process_batch(job.id, batch.id, [{"name": "Nameless"}])
        assert result.errors[0].item == "unknown"

    def test_custom_publisher_receives_envelope(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(1,))
        publisher = InMemoryEventPublisher()

        BatchProcessor(session, publisher=publisher).process_batch(job.id, batch.id, [restaurant_item(1)])

        (envelope,) = publisher.of_type(ImportEventType.BATCH_COMPLETED)
        assert envelope.detail["successCount"] == 1
        assert OutboxRepository(session).list_pending() == []


# ---------------------------------------------------------------------------
# Redelivery
# ---------------------------------------------------------------------------


class TestAtMostOnce:
    def test_second_call_on_completed_batch_writes_nothing(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(2,))
        items = [restaurant_item(1), restaurant_item(2)]
        processor = BatchProcessor(session)

        processor.process_batch(job.id, batch.id, items)
        job_before = ImportJobRepository(session).get_job(job.id)
        counts_before = (job_before.processed_records, job_before.success_records, job_before.error_records)
        source_counts_before = sorted(session.scalars(select(Restaurant.external_source_count)).all())

        again = processor.process_batch(job.id, batch.id, items)

        assert again.skipped is True
        assert again.status == ImportStatus.COMPLETED
        job_after = ImportJobRepository(session).get_job(job.id)
        assert (job_after.processed_records, job_after.success_records, job_after.error_records) == counts_before
        assert sorted(session.scalars(select(Restaurant.external_source_count)).all()) == source_counts_before
        assert len(OutboxRepository(session).list_by_detail_type(ImportEventType.BATCH_COMPLETED)) == 1

    def test_recently_claimed_batch_is_skipped(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(1,))
        assert ImportJobRepository(session).claim_batch(batch_id=batch.id)
        session.commit()

        result = BatchProcessor(session).process_batch(job.id, batch.id, [restaurant_item(1)])

        assert result.skipped is True
        assert _restaurant_count(session) == 0

    def test_stale_claim_is_reclaimed(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(1,))
        session.execute(
            update(ImportBatch)
            .where(ImportBatch.id == batch.id)
            .values(status=ImportStatus.IN_PROGRESS, claimed_at=utc_now() - timedelta(hours=1))
        )
        session.commit()

        result = BatchProcessor(session, claim_ttl_seconds=60).process_batch(job.id, batch.id, [restaurant_item(1)])

        assert result.skipped is False
        assert result.status == ImportStatus.COMPLETED
        assert _restaurant_count(session) == 1


# ---------------------------------------------------------------------------
# Infrastructure faults
# ---------------------------------------------------------------------------


class TestStoreFault:
    def test_fault_marks_batch_failed_and_keeps_prior_successes(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(5,))
        items = [restaurant_item(i) for i in range(1, 6)]
        processor = BatchProcessor(session, upserter=FlakyUpserter(session, fail_on=3))

        with pytest.raises(StoreError):
            processor.process_batch(job.id, batch.id, items, {"traceId": "t-1"})

        repository = ImportJobRepository(session)
        stored_batch = repository.get_batch(batch.id)
        assert stored_batch.status == ImportStatus.FAILED
        assert "server closed the connection" in stored_batch.error_details["error"]

        stored_job = repository.get_job(job.id)
        assert stored_job.success_records == 2
        assert stored_job.error_records == 3
        assert stored_job.processed_records == 5
        assert stored_job.status == ImportStatus.COMPLETED_WITH_ERRORS
        assert _restaurant_count(session) == 2

        (event,) = OutboxRepository(session).list_by_detail_type(ImportEventType.BATCH_FAILED)
        assert event.detail["batchId"] == str(batch.id)
        assert event.detail["traceId"] == "t-1"
        assert "server closed the connection" in event.detail["error"]

    def test_failed_batch_is_terminal_on_redelivery(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(2,))
        items = [restaurant_item(1), restaurant_item(2)]
        with pytest.raises(StoreError):
            BatchProcessor(session, upserter=FlakyUpserter(session, fail_on=1)).process_batch(job.id, batch.id, items)

        result = BatchProcessor(session).process_batch(job.id, batch.id, items)

        assert result.skipped is True
        assert result.status == ImportStatus.FAILED
        assert _restaurant_count(session) == 0


# ---------------------------------------------------------------------------
# Lookup errors
# ---------------------------------------------------------------------------


class TestLookupErrors:
    def test_unknown_job(self, session: Session, make_job) -> None:
        _, (batch,) = make_job()
        with pytest.raises(NotFoundError):
            BatchProcessor(session).process_batch("00000000-0000-0000-0000-000000000000", batch.id, [])

    def test_batch_of_another_job(self, session: Session, make_job) -> None:
        job_a, _ = make_job()
        _, (batch_b,) = make_job()
        with pytest.raises(NotFoundError):
            BatchProcessor(session).process_batch(job_a.id, batch_b.id, [])

    def test_malformed_ids_are_validation_errors(self, session: Session) -> None:
        with pytest.raises(ValidationError):
            BatchProcessor(session).process_batch("not-a-uuid", "also-not", [])


# ---------------------------------------------------------------------------
# Message size vs batch size
# ---------------------------------------------------------------------------


class TestItemCountMismatch:
    @pytest.mark.parametrize("item_total", [7, 3, 0])
    def test_mismatched_message_is_rejected_before_claim(self, session: Session, make_job, item_total: int) -> None:
        job, (batch,) = make_job(batch_sizes=(5,))
        items = [restaurant_item(i) for i in range(1, item_total + 1)]

        with pytest.raises(ValidationError):
            BatchProcessor(session).process_batch(job.id, batch.id, items)

        repository = ImportJobRepository(session)
        assert repository.get_batch(batch.id).status == ImportStatus.PENDING
        stored_job = repository.get_job(job.id)
        assert stored_job.status == ImportStatus.PENDING
        assert stored_job.processed_records == 0
        assert _restaurant_count(session) == 0

    def test_processed_never_exceeds_total(self, session: Session, make_job) -> None:
        job, (batch,) = make_job(batch_sizes=(5,))
        processor = BatchProcessor(session)

        with pytest.raises(ValidationError):
            processor.process_batch(job.id, batch.id, [restaurant_item(i) for i in range(1, 8)])
        processor.process_batch(job.id, batch.id, [restaurant_item(i) for i in range(1, 6)])

        stored_job = ImportJobRepository(session).get_job(job.id)
        assert stored_job.processed_records == stored_job.total_records == 5
        assert stored_job.status == ImportStatus.COMPLETED
