"""
app/consumers package marker.
"""

from app.consumers.analytics_consumer import AnalyticsEventConsumer
from app.consumers.base import BatchConsumer, BatchResponse, QueueMessage
from app.consumers.import_batch_consumer import ImportBatchConsumer

__all__ = [
    "AnalyticsEventConsumer",
    "BatchConsumer",
    "BatchResponse",
    "ImportBatchConsumer",
    "QueueMessage",
]
