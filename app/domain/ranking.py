"""
app/domain/ranking.py

Ranking categories, weights and the item types the score engine works on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


class RankingCategory:
    TOP = "TOP"
    TRENDING = "TRENDING"
    RECOMMENDED = "RECOMMENDED"
    POPULAR = "POPULAR"
    GENERAL = "GENERAL"
    VISITED = "VISITED"
    SECOND_CHANCE = "SECOND_CHANCE"
    DISSATISFIED = "DISSATISFIED"
    PLAN_TO_VISIT = "PLAN_TO_VISIT"


RANKING_CATEGORIES: frozenset[str] = frozenset(
    {
        RankingCategory.TOP,
        RankingCategory.TRENDING,
        RankingCategory.RECOMMENDED,
        RankingCategory.POPULAR,
        RankingCategory.GENERAL,
        RankingCategory.VISITED,
        RankingCategory.SECOND_CHANCE,
        RankingCategory.DISSATISFIED,
        RankingCategory.PLAN_TO_VISIT,
    }
)

POSITION_EXPONENT = 1.5

# TOP is scored by position only.
INTERACTION_WEIGHTS: dict[str, float] = {
    RankingCategory.DISSATISFIED: -1.0,
    RankingCategory.SECOND_CHANCE: -0.5,
    RankingCategory.PLAN_TO_VISIT: 0.3,
    RankingCategory.VISITED: 0.0,
    RankingCategory.TOP: 0.0,
}

_CATEGORY_SEPARATORS = re.compile(r"[^A-Z0-9]+")


def normalize_category(label: str | None) -> str:
    """
    Map a display label such as ``"Second Chance"`` or ``"plan-to-visit"``
    onto its category constant. Unknown labels come back normalized but are
    not members of ``RANKING_CATEGORIES``.
    """

    if not label:
        return ""
    return _CATEGORY_SEPARATORS.sub("_", label.strip().upper()).strip("_")


@dataclass(frozen=True)
class RankingItem:
    id: str
    name: str
    category: str
    menu_item: str
    rank_position: int | None = None
    owner_id: str | None = None


@dataclass(frozen=True)
class RankingItemWithScore:
    id: str
    name: str
    category: str
    menu_item: str
    ranking_points: float
    normalized_points: float
    interaction_points: float
    total_score: float
    rank_position: int | None = None
    owner_id: str | None = None
