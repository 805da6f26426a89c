"""
db/models/ranking_interaction.py

One user's ranking interaction with a restaurant for a given menu item.
Scores are never stored; they are computed on read.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class RankingInteraction(Base, TimestampMixin):
    __tablename__ = "ranking_interactions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    restaurant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    restaurant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    menu_item: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Dish slug the ranking applies to",
    )
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    rank_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "restaurant_id",
            "menu_item",
            name="uq_ranking_interactions_user_restaurant_item",
        ),
        Index("ix_ranking_interactions_menu_item", "menu_item"),
        Index("ix_ranking_interactions_user_menu_item", "user_id", "menu_item"),
    )
