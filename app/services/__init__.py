"""
app/services package marker.
"""

from app.services.analytics_metrics import AnalyticsMetricsService
from app.services.analytics_recorder import AnalyticsRecorder
from app.services.batch_processor import BatchProcessor
from app.services.import_scheduler_service import ImportSchedulerService, ScheduledImport
from app.services.ranking_service import RankingQueryService, RankingService
from app.services.record_upsert_service import RecordUpsertService

__all__ = [
    "AnalyticsMetricsService",
    "AnalyticsRecorder",
    "BatchProcessor",
    "ImportSchedulerService",
    "RankingQueryService",
    "RankingService",
    "RecordUpsertService",
    "ScheduledImport",
]
