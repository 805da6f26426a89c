"""
Repository layer exports.
"""

from db.repositories.analytics_aggregate_repository import AnalyticsAggregateRepository
from db.repositories.analytics_repository import AnalyticsRepository
from db.repositories.canonical_entity_repository import CanonicalEntityRepository
from db.repositories.errors import (
    DuplicateError,
    NotFoundError,
    PipelineError,
    StoreError,
    ValidationError,
)
from db.repositories.import_job_repository import ImportJobRepository
from db.repositories.import_link_repository import ImportLinkRepository
from db.repositories.outbox_repository import OutboxRepository
from db.repositories.ranking_repository import RankingRepository

__all__ = [
    "AnalyticsAggregateRepository",
    "AnalyticsRepository",
    "CanonicalEntityRepository",
    "ImportJobRepository",
    "ImportLinkRepository",
    "OutboxRepository",
    "RankingRepository",
    "PipelineError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "DuplicateError",
]
