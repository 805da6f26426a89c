"""
app/events/bus.py

HTTP event bus client with retry and exponential backoff.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Sequence

import requests

from app.config import EventBusSettings
from app.domain.events import EventEnvelope

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class EventBusError(RuntimeError):
    """
    Raised when events cannot be delivered to the bus after retries.
    """


class EventBusClient(ABC):
    @abstractmethod
    def put_events(self, envelopes: Sequence[EventEnvelope]) -> None:
        """
        Deliver all ``envelopes`` or raise ``EventBusError``.
        """


class HttpEventBusClient(EventBusClient):
    """
    POSTs ``{"busName": ..., "entries": [envelope, ...]}`` to a configured URL.
    """

    def __init__(
        self,
        *,
        settings: EventBusSettings,
        session: requests.Session | None = None,
    ) -> None:
        if not settings.url:
            raise ValueError("EVENT_BUS_URL must be set to publish events over HTTP.")
        self._url = settings.url
        self._bus_name = settings.bus_name
        self._session = session or requests.Session()
        self._timeout_seconds = settings.timeout_seconds
        self._max_retries = settings.max_retries
        self._backoff_initial_seconds = settings.backoff_initial_seconds
        self._backoff_multiplier = settings.backoff_multiplier

    def put_events(self, envelopes: Sequence[EventEnvelope]) -> None:
        if not envelopes:
            return

        payload = {
            "busName": self._bus_name,
            "entries": [envelope.to_dict() for envelope in envelopes],
        }

        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                response = self._session.post(
                    self._url,
                    json=payload,
                    timeout=self._timeout_seconds,
                )
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise requests.HTTPError(
                        f"Retryable HTTP status code: {response.status_code}",
                        response=response,
                    )
                response.raise_for_status()
                return
            except requests.HTTPError as exc:
                last_error = exc
                status_code = exc.response.status_code if exc.response is not None else None
                if status_code not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        "Event bus rejected events status=%s url=%s error=%s",
                        status_code,
                        self._url,
                        exc,
                    )
                    raise EventBusError("Event bus rejected the request.") from exc
            except (requests.Timeout, requests.ConnectionError) as exc:
                last_error = exc
            except requests.RequestException as exc:
                logger.error("Event bus request could not be sent url=%s error=%s", self._url, exc)
                raise EventBusError(f"Event bus request could not be sent: {exc}") from exc

            if attempt >= self._max_retries:
                break

            backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
            logger.warning(
                "Event bus retry attempt=%s/%s wait_seconds=%.2f url=%s",
                attempt + 1,
                self._max_retries,
                backoff_seconds,
                self._url,
            )
            time.sleep(backoff_seconds)

        logger.error("Event bus exhausted retries url=%s error=%s", self._url, last_error)
        raise EventBusError("Event bus request failed after retries.") from last_error
