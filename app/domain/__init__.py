"""
app/domain package marker.
"""

from app.domain.analytics import AnalyticsEvent, ProcessedEvent, ProcessedEventStatus
from app.domain.events import EventEnvelope, ImportEventType
from app.domain.imports import (
    BatchItemError,
    BatchProcessingResult,
    DishRecord,
    ImportRecord,
    RestaurantRecord,
    UpsertResult,
)
from app.domain.ranking import RankingCategory, RankingItem, RankingItemWithScore

__all__ = [
    "AnalyticsEvent",
    "BatchItemError",
    "BatchProcessingResult",
    "DishRecord",
    "EventEnvelope",
    "ImportEventType",
    "ImportRecord",
    "ProcessedEvent",
    "ProcessedEventStatus",
    "RankingCategory",
    "RankingItem",
    "RankingItemWithScore",
    "RestaurantRecord",
    "UpsertResult",
]
