"""
app/consumers/base.py

Queue-agnostic at-least-once batch consumption.

A consumer receives a batch of messages, handles each independently on its
own session and reports back only the ids that should be redelivered.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from sqlalchemy.orm import Session

from app.config import get_consumer_settings
from app.logging_utils import elapsed_ms, log_event
from db.repositories.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    """
    One delivered message. ``body`` is a JSON string or an already-decoded object.
    """

    message_id: str
    body: str | Mapping[str, Any]

    def payload(self) -> Any:
        if isinstance(self.body, str):
            try:
                return json.loads(self.body)
            except json.JSONDecodeError as exc:
                raise ValidationError(f"Message body is not valid JSON: {exc.msg}") from exc
        return self.body

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> QueueMessage:
        message_id = record.get("messageId") or record.get("message_id")
        if not message_id:
            raise ValueError("Queue message is missing messageId.")
        return cls(message_id=str(message_id), body=record.get("body") or {})


@dataclass(frozen=True)
class BatchResponse:
    batch_item_failures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batchItemFailures": [
                {"itemIdentifier": message_id} for message_id in self.batch_item_failures
            ]
        }


class BatchConsumer(ABC):
    """
    Base class for queue consumers.

    Subclasses implement ``handle``. Returning normally acknowledges the
    message. Raising ``ValidationError`` acknowledges it too, since the same
    input will never succeed; any other exception, or running past
    ``message_timeout_seconds``, reports it for redelivery.
    """

    name = "consumer"

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        max_workers: int | None = None,
        message_timeout_seconds: float | None = None,
    ) -> None:
        settings = get_consumer_settings()
        self._session_factory = session_factory
        self._max_workers = max(1, max_workers or settings.max_workers)
        self._timeout_seconds = message_timeout_seconds or settings.message_timeout_seconds

    @abstractmethod
    def handle(self, session: Session, payload: Any, *, message_id: str) -> None:
        """
        Process one decoded message payload. ``message_id`` is stable across
        redeliveries of the same message.
        """

    def process_batch(self, messages: Sequence[QueueMessage]) -> BatchResponse:
        started = time.monotonic()
        failures: list[str] = []

        executor = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix=f"{self.name}-worker",
        )
        try:
            futures: list[tuple[QueueMessage, Future[bool]]] = [
                (message, executor.submit(self._run_one, message)) for message in messages
            ]
            for message, future in futures:
                try:
                    acknowledged = future.result(timeout=self._timeout_seconds)
                except FutureTimeoutError:
                    logger.error(
                        "Message timed out consumer=%s message_id=%s timeout_seconds=%s",
                        self.name,
                        message.message_id,
                        self._timeout_seconds,
                    )
                    acknowledged = False
                if not acknowledged:
                    failures.append(message.message_id)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        log_event(
            logger,
            logging.INFO,
            "consumer_batch_processed",
            consumer=self.name,
            received=len(messages),
            failed=len(failures),
            duration_ms=elapsed_ms(started),
        )
        return BatchResponse(batch_item_failures=failures)

    def _run_one(self, message: QueueMessage) -> bool:
        session = self._session_factory()
        try:
            self.handle(session, message.payload(), message_id=message.message_id)
            return True
        except ValidationError as exc:
            logger.warning(
                "Dropping invalid message consumer=%s message_id=%s error=%s",
                self.name,
                message.message_id,
                exc,
            )
            return True
        except Exception:
            logger.exception(
                "Message processing failed consumer=%s message_id=%s",
                self.name,
                message.message_id,
            )
            return False
        finally:
            session.close()
