"""
db/models/import_link.py

Join record tying one external identity (source_id, external_id) to a
canonical restaurant or dish.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, Index, String, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin

UQ_IMPORT_LINKS_EXTERNAL_IDENTITY = "uq_import_links_external_identity"
UQ_IMPORT_LINKS_ENTITY_SOURCE = "uq_import_links_entity_source"


class ImportLinkStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class MatchMethod:
    EXACT = "EXACT"
    FUZZY = "FUZZY"
    MANUAL = "MANUAL"


class ImportLink(Base, TimestampMixin):
    __tablename__ = "import_links"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    entity_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="RESTAURANT, DISH",
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    external_menu_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    match_method: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=MatchMethod.EXACT,
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ImportLinkStatus.ACTIVE,
    )
    import_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "source_id",
            "external_id",
            name=UQ_IMPORT_LINKS_EXTERNAL_IDENTITY,
        ),
        UniqueConstraint(
            "entity_type",
            "entity_id",
            "source_id",
            name=UQ_IMPORT_LINKS_ENTITY_SOURCE,
        ),
        Index("ix_import_links_entity", "entity_type", "entity_id"),
    )
