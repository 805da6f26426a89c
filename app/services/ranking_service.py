"""
app/services/ranking_service.py

Ranking score engine and its store-backed query service.

Scoring
-------
TOP items are scored by position within their owner's list for a menu item:
the item at position ``p`` of ``N`` gets ``(N + 1 - p) ** 1.5`` raw points,
normalized so one owner's list sums to 1.0. Every other category contributes
a fixed interaction weight instead. ``total_score`` is the sum of the two.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.ranking import (
    INTERACTION_WEIGHTS,
    POSITION_EXPONENT,
    RANKING_CATEGORIES,
    RankingCategory,
    RankingItem,
    RankingItemWithScore,
    normalize_category,
)
from db.repositories.errors import StoreError, ValidationError
from db.repositories.ranking_repository import RankingRepository

logger = logging.getLogger(__name__)

DEFAULT_TOP_LIMIT = 5


class RankingService:
    """
    Pure scoring over in-memory ``RankingItem`` sequences. No I/O.
    """

    def calculate_scores(self, items: Sequence[RankingItem]) -> list[RankingItemWithScore]:
        """
        Score ``items``, returning results in input order.
        """

        categories = [normalize_category(item.category) for item in items]
        positional = self._positional_points(items, categories)

        scored: list[RankingItemWithScore] = []
        for index, (item, category) in enumerate(zip(items, categories)):
            ranking_points, normalized_points = positional.get(index, (0.0, 0.0))
            interaction_points = INTERACTION_WEIGHTS.get(category, 0.0)
            scored.append(
                RankingItemWithScore(
                    id=item.id,
                    name=item.name,
                    category=category,
                    menu_item=item.menu_item,
                    ranking_points=ranking_points,
                    normalized_points=normalized_points,
                    interaction_points=interaction_points,
                    total_score=normalized_points + interaction_points,
                    rank_position=item.rank_position,
                    owner_id=item.owner_id,
                )
            )
        return scored

    def get_top_items(
        self,
        items: Sequence[RankingItem],
        menu_item: str,
        limit: int = DEFAULT_TOP_LIMIT,
    ) -> list[RankingItemWithScore]:
        """
        Highest ``total_score`` items for ``menu_item`` across every category,
        so interaction weights compete with positional points.
        """

        selected = [scored for scored in self.calculate_scores(items) if scored.menu_item == menu_item]
        return _by_score(selected, limit)

    def get_items_by_category(
        self,
        items: Sequence[RankingItem],
        menu_item: str,
        category: str,
        limit: int | None = None,
    ) -> list[RankingItemWithScore]:
        wanted = normalize_category(category)
        selected = [
            scored
            for scored in self.calculate_scores(items)
            if scored.menu_item == menu_item and scored.category == wanted
        ]
        return _by_score(selected, limit)

    def get_trending_items(
        self,
        items: Sequence[RankingItem],
        menu_item: str,
        limit: int = DEFAULT_TOP_LIMIT,
    ) -> list[RankingItemWithScore]:
        return self.get_items_by_category(items, menu_item, RankingCategory.TRENDING, limit)

    def get_recommended_items(
        self,
        items: Sequence[RankingItem],
        menu_item: str,
        limit: int = DEFAULT_TOP_LIMIT,
    ) -> list[RankingItemWithScore]:
        return self.get_items_by_category(items, menu_item, RankingCategory.RECOMMENDED, limit)

    def get_popular_items(
        self,
        items: Sequence[RankingItem],
        menu_item: str,
        limit: int = DEFAULT_TOP_LIMIT,
    ) -> list[RankingItemWithScore]:
        return self.get_items_by_category(items, menu_item, RankingCategory.POPULAR, limit)

    @staticmethod
    def _positional_points(
        items: Sequence[RankingItem],
        categories: Sequence[str],
    ) -> dict[int, tuple[float, float]]:
        """
        Map input index -> (raw points, normalized points) for TOP items.

        A TOP list is one owner's TOP items for one menu item. Items are
        positioned by ``rank_position``; items without one follow, in
        encounter order.
        """

        groups: dict[tuple[str | None, str], list[int]] = defaultdict(list)
        for index, (item, category) in enumerate(zip(items, categories)):
            if category == RankingCategory.TOP:
                groups[(item.owner_id, item.menu_item)].append(index)

        points: dict[int, tuple[float, float]] = {}
        for indexes in groups.values():
            ordered = sorted(
                indexes,
                key=lambda i: (items[i].rank_position is None, items[i].rank_position or 0),
            )
            count = len(ordered)
            raw = [float(count + 1 - position) ** POSITION_EXPONENT for position in range(1, count + 1)]
            total = sum(raw)
            if total <= 0:
                continue
            for index, raw_points in zip(ordered, raw):
                points[index] = (raw_points, raw_points / total)
        return points


class RankingQueryService:
    """
    Loads stored ranking interactions and scores them with ``RankingService``.
    """

    def __init__(self, session: Session, *, engine: RankingService | None = None) -> None:
        self._session = session
        self._repository = RankingRepository(session)
        self._engine = engine or RankingService()

    def load_items(self, menu_item: str, *, user_id: str | None = None) -> list[RankingItem]:
        try:
            interactions = self._repository.list_for_menu_item(menu_item=menu_item, user_id=user_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load ranking interactions menu_item=%s", menu_item)
            raise StoreError(f"Could not load rankings for '{menu_item}'.") from exc
        return list(_to_items(interactions))

    def top(self, menu_item: str, *, limit: int = DEFAULT_TOP_LIMIT) -> list[RankingItemWithScore]:
        return self._engine.get_top_items(self.load_items(menu_item), menu_item, limit)

    def by_category(
        self,
        menu_item: str,
        category: str,
        *,
        limit: int | None = None,
    ) -> list[RankingItemWithScore]:
        if normalize_category(category) not in RANKING_CATEGORIES:
            raise ValidationError(f"Unknown ranking category '{category}'.")
        return self._engine.get_items_by_category(self.load_items(menu_item), menu_item, category, limit)

    def record_interaction(
        self,
        *,
        user_id: str,
        restaurant_id: str,
        restaurant_name: str,
        menu_item: str,
        category: str,
        rank_position: int | None = None,
    ) -> None:
        normalized = normalize_category(category)
        if normalized not in RANKING_CATEGORIES:
            raise ValidationError(f"Unknown ranking category '{category}'.")
        if normalized == RankingCategory.TOP and rank_position is not None and rank_position < 1:
            raise ValidationError("rank_position must be 1 or greater.")
        try:
            self._repository.save_interaction(
                user_id=user_id,
                restaurant_id=restaurant_id,
                restaurant_name=restaurant_name,
                menu_item=menu_item,
                category=normalized,
                rank_position=rank_position,
            )
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.exception(
                "Failed to save ranking interaction user_id=%s restaurant_id=%s menu_item=%s",
                user_id,
                restaurant_id,
                menu_item,
            )
            raise StoreError("Could not save ranking interaction.") from exc


def _to_items(interactions: Iterable) -> Iterable[RankingItem]:
    for interaction in interactions:
        yield RankingItem(
            id=interaction.restaurant_id,
            name=interaction.restaurant_name,
            category=interaction.category,
            menu_item=interaction.menu_item,
            rank_position=interaction.rank_position,
            owner_id=interaction.user_id,
        )


def _by_score(selected: list[RankingItemWithScore], limit: int | None) -> list[RankingItemWithScore]:
    # sorted() is stable, so equal scores keep encounter order.
    ordered = sorted(selected, key=lambda scored: scored.total_score, reverse=True)
    return ordered if limit is None else ordered[: max(0, limit)]
