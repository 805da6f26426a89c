"""
app/validators/analytics_event_validator.py

Validation of raw analytics messages and derivation of their idempotency key.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from app.domain.analytics import AnalyticsEvent
from db.repositories.errors import ValidationError

_RESERVED_DATA_KEYS = {"restaurantId", "userId", "action"}
ANONYMOUS_USER = "anonymous"


def _non_empty(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def derive_event_id(message: Mapping[str, Any], *, message_id: str | None = None) -> str:
    """
    Idempotency key for a message.

    An explicit ``eventId`` wins, then ``metadata.requestId``; otherwise a
    SHA-256 of the canonical JSON so a redelivered message keeps its key.

    Without ``message_id`` two genuinely separate events with identical
    content (no timestamp, same user, restaurant and action) share a key and
    the second is stored as a duplicate. Queue consumers pass the delivery
    ``message_id``, which is mixed into the hash: redeliveries still collapse
    while separately sent copies do not.
    """

    explicit = _non_empty(message.get("eventId"))
    if explicit:
        return explicit

    metadata = message.get("metadata")
    if isinstance(metadata, Mapping):
        request_id = _non_empty(metadata.get("requestId"))
        if request_id:
            return request_id

    canonical = json.dumps(message, sort_keys=True, separators=(",", ":"), default=str)
    if message_id:
        canonical = f"{message_id}\n{canonical}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_event_timestamp(value: Any) -> datetime | None:
    """
    Parse ISO-8601 strings or epoch seconds/milliseconds into aware UTC.
    Returns None for absent or blank values.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValidationError(f"Invalid event timestamp '{value}'.") from exc

    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"Invalid event timestamp '{value}'.") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class AnalyticsEventValidator:
    """
    Checks ``type``, ``source``, ``data.restaurantId`` and ``data.action``
    are present and non-blank.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(self, message: Any, *, message_id: str | None = None) -> AnalyticsEvent:
        if not isinstance(message, Mapping):
            raise ValidationError("Analytics message must be a JSON object.")

        data = message.get("data")
        if not isinstance(data, Mapping):
            data = {}
        metadata = message.get("metadata")
        if not isinstance(metadata, Mapping):
            metadata = {}

        missing = [
            name
            for name, value in (
                ("type", message.get("type")),
                ("source", message.get("source")),
                ("data.restaurantId", data.get("restaurantId")),
                ("data.action", data.get("action")),
            )
            if _non_empty(value) is None
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}.")

        timestamp = parse_event_timestamp(metadata.get("timestamp")) or self._clock()

        return AnalyticsEvent(
            event_id=derive_event_id(message, message_id=message_id),
            event_type=str(message["type"]).strip(),
            source=str(message["source"]).strip(),
            restaurant_id=str(data["restaurantId"]).strip(),
            action=str(data["action"]).strip(),
            timestamp=timestamp,
            user_id=_non_empty(data.get("userId")) or ANONYMOUS_USER,
            data={key: value for key, value in data.items() if key not in _RESERVED_DATA_KEYS},
            metadata=dict(metadata),
        )
