"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.analytics_aggregate import ENTITY_SCOPES, AggregateScope, AnalyticsAggregate
from db.models.analytics_record import AnalyticsRecord
from db.models.canonical_entity import DataSource, Dish, Restaurant
from db.models.import_job import (
    IMPORT_JOB_TYPES,
    TERMINAL_STATUSES,
    ImportBatch,
    ImportJob,
    ImportJobType,
    ImportStatus,
)
from db.models.import_link import ImportLink, ImportLinkStatus, MatchMethod
from db.models.outbox_event import OutboxEvent, OutboxStatus
from db.models.ranking_interaction import RankingInteraction

__all__ = [
    "AggregateScope",
    "AnalyticsAggregate",
    "AnalyticsRecord",
    "ENTITY_SCOPES",
    "DataSource",
    "Dish",
    "IMPORT_JOB_TYPES",
    "ImportBatch",
    "ImportJob",
    "ImportJobType",
    "ImportLink",
    "ImportLinkStatus",
    "ImportStatus",
    "MatchMethod",
    "OutboxEvent",
    "OutboxStatus",
    "RankingInteraction",
    "Restaurant",
    "TERMINAL_STATUSES",
]
