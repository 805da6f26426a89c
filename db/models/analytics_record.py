"""
db/models/analytics_record.py

Durable record of one analytics/interaction event, keyed by its idempotency key.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument


class AnalyticsRecord(Base):
    __tablename__ = "analytics_records"

    event_id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        comment="Idempotency key; one row per logical event",
    )
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    event_type: Mapped[str] = mapped_column(String(120), nullable=False)
    event_source: Mapped[str] = mapped_column(String(120), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, default="anonymous")
    action: Mapped[str] = mapped_column(String(120), nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    event_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    ttl: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Expiry as epoch seconds",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_analytics_records_restaurant_timestamp", "restaurant_id", "timestamp"),
        Index("ix_analytics_records_event_type", "event_type"),
        Index("ix_analytics_records_ttl", "ttl"),
    )
