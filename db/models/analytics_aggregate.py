"""
db/models/analytics_aggregate.py

Running event counters per (scope, bucket, event_type).

Buckets by scope:
  daily       YYYY-MM-DD of the event timestamp (UTC)
  hourly      YYYY-MM-DDTHH of the event timestamp (UTC)
  realtime    YYYY-MM-DDTHH:MM of the processing time, short-lived
  restaurant  restaurant id
  dish        dish id
  user        user id
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class AggregateScope:
    DAILY = "daily"
    HOURLY = "hourly"
    REALTIME = "realtime"
    RESTAURANT = "restaurant"
    DISH = "dish"
    USER = "user"


ENTITY_SCOPES = (AggregateScope.RESTAURANT, AggregateScope.DISH, AggregateScope.USER)


class AnalyticsAggregate(Base):
    __tablename__ = "analytics_aggregates"

    scope: Mapped[str] = mapped_column(String(16), primary_key=True)
    bucket: Mapped[str] = mapped_column(String(128), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(120), primary_key=True)
    event_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_event_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Timestamp of the most recently counted event",
    )
    expires_at: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Expiry as epoch seconds; NULL keeps the row",
    )

    __table_args__ = (Index("ix_analytics_aggregates_expires_at", "expires_at"),)
