"""
app/events package marker.
"""

from app.events.bus import EventBusError, EventBusClient, HttpEventBusClient
from app.events.outbox_relay import OutboxRelay, RelaySummary
from app.events.publisher import EventPublisher, InMemoryEventPublisher, OutboxEventPublisher

__all__ = [
    "EventBusClient",
    "EventBusError",
    "EventPublisher",
    "HttpEventBusClient",
    "InMemoryEventPublisher",
    "OutboxEventPublisher",
    "OutboxRelay",
    "RelaySummary",
]
