"""
app/schemas package marker.
"""

from app.schemas.analytics import (
    AnalyticsActionCountsResponse,
    AnalyticsEventsRequest,
    AnalyticsEventsResponse,
    AnalyticsRecordListResponse,
    ProcessedEventResponse,
)
from app.schemas.imports import (
    BatchProcessingResponse,
    ImportBatchListResponse,
    ImportBatchMessageRequest,
    ImportJobListResponse,
    ImportJobResponse,
    ImportJobScheduledResponse,
    ScheduleImportRequest,
)
from app.schemas.rankings import RankedItemListResponse, RankedItemResponse, RankingInteractionRequest

__all__ = [
    "AnalyticsActionCountsResponse",
    "AnalyticsEventsRequest",
    "AnalyticsEventsResponse",
    "AnalyticsRecordListResponse",
    "BatchProcessingResponse",
    "ImportBatchListResponse",
    "ImportBatchMessageRequest",
    "ImportJobListResponse",
    "ImportJobResponse",
    "ImportJobScheduledResponse",
    "ProcessedEventResponse",
    "RankedItemListResponse",
    "RankedItemResponse",
    "RankingInteractionRequest",
    "ScheduleImportRequest",
]
