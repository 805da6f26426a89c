"""
Read/write access to stored ranking interactions.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.base import utc_now
from db.models.ranking_interaction import RankingInteraction


class RankingRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_for_menu_item(
        self,
        *,
        menu_item: str,
        user_id: str | None = None,
    ) -> list[RankingInteraction]:
        stmt = select(RankingInteraction).where(RankingInteraction.menu_item == menu_item)
        if user_id:
            stmt = stmt.where(RankingInteraction.user_id == user_id)
        # Creation order is the encounter order ties fall back to.
        stmt = stmt.order_by(RankingInteraction.created_at, RankingInteraction.id)
        return list(self._session.scalars(stmt).all())

    def save_interaction(
        self,
        *,
        user_id: str,
        restaurant_id: str,
        restaurant_name: str,
        menu_item: str,
        category: str,
        rank_position: int | None = None,
    ) -> RankingInteraction:
        """
        Insert or replace one user's interaction for a restaurant and menu item.
        """

        stmt = select(RankingInteraction).where(
            RankingInteraction.user_id == user_id,
            RankingInteraction.restaurant_id == restaurant_id,
            RankingInteraction.menu_item == menu_item,
        )
        interaction = self._session.scalars(stmt).one_or_none()
        if interaction is None:
            interaction = RankingInteraction(
                user_id=user_id,
                restaurant_id=restaurant_id,
                menu_item=menu_item,
                created_at=utc_now(),
            )
            self._session.add(interaction)

        interaction.restaurant_name = restaurant_name
        interaction.category = category
        interaction.rank_position = rank_position
        self._session.flush()
        return interaction
