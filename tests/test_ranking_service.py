"""
tests/test_ranking_service.py

Coverage
--------
- Position scoring: (N + 1 - p) ** 1.5, normalized per owner list
- Interaction weights for non-TOP categories, label normalization
- Category filtering, ordering, limits and stable ties
- RankingQueryService against stored interactions
"""

from __future__ import annotations

import math

import pytest
from sqlalchemy.orm import Session

from app.domain.ranking import RankingCategory, RankingItem, normalize_category
from app.services.ranking_service import RankingQueryService, RankingService
from db.repositories.errors import ValidationError


def _top(item_id: str, position: int | None, *, owner: str = "u-1", menu_item: str = "nasi-lemak") -> RankingItem:
    return RankingItem(
        id=item_id,
        name=f"Restaurant {item_id}",
        category="Top",
        menu_item=menu_item,
        rank_position=position,
        owner_id=owner,
    )


def _other(item_id: str, category: str, *, menu_item: str = "nasi-lemak") -> RankingItem:
    return RankingItem(id=item_id, name=f"Restaurant {item_id}", category=category, menu_item=menu_item)


@pytest.fixture()
def scorer() -> RankingService:
    return RankingService()


# ---------------------------------------------------------------------------
# Position scoring
# ---------------------------------------------------------------------------


class TestPositionScoring:
    def test_three_item_list(self, scorer: RankingService) -> None:
        scored = scorer.calculate_scores([_top("a", 1), _top("b", 2), _top("c", 3)])

        assert [round(s.ranking_points, 3) for s in scored] == [5.196, 2.828, 1.0]
        assert [round(s.normalized_points, 3) for s in scored] == [0.576, 0.313, 0.111]
        assert [s.total_score for s in scored] == [s.normalized_points for s in scored]

    @pytest.mark.parametrize("count", [1, 2, 5, 10])
    def test_normalized_points_sum_to_one_and_decrease(self, scorer: RankingService, count: int) -> None:
        scored = scorer.calculate_scores([_top(str(i), i) for i in range(1, count + 1)])
        normalized = [s.normalized_points for s in scored]

        assert math.isclose(sum(normalized), 1.0)
        assert normalized == sorted(normalized, reverse=True)

    def test_single_item_scores_one(self, scorer: RankingService) -> None:
        [only] = scorer.calculate_scores([_top("a", 1)])
        assert only.ranking_points == 1.0
        assert only.normalized_points == 1.0

    def test_results_keep_input_order_and_positions_drive_points(self, scorer: RankingService) -> None:
        scored = scorer.calculate_scores([_top("c", 3), _top("a", 1), _top("b", 2)])

        assert [s.id for s in scored] == ["c", "a", "b"]
        assert scored[1].normalized_points > scored[2].normalized_points > scored[0].normalized_points

    def test_missing_positions_rank_last(self, scorer: RankingService) -> None:
        scored = scorer.calculate_scores([_top("x", None), _top("a", 1)])
        by_id = {s.id: s for s in scored}
        assert by_id["a"].ranking_points > by_id["x"].ranking_points
        assert by_id["x"].ranking_points == 1.0

    def test_each_owner_list_normalized_independently(self, scorer: RankingService) -> None:
        items = [
            _top("a", 1, owner="u-1"),
            _top("b", 2, owner="u-1"),
            _top("a", 1, owner="u-2"),
        ]
        scored = scorer.calculate_scores(items)

        assert math.isclose(scored[0].normalized_points + scored[1].normalized_points, 1.0)
        assert scored[2].normalized_points == 1.0

    def test_menu_items_are_separate_lists(self, scorer: RankingService) -> None:
        scored = scorer.calculate_scores([_top("a", 1), _top("b", 1, menu_item="laksa")])
        assert [s.normalized_points for s in scored] == [1.0, 1.0]


# ---------------------------------------------------------------------------
# Interaction weights
# ---------------------------------------------------------------------------


class TestInteractionWeights:
    @pytest.mark.parametrize(
        "label, expected",
        [
            ("Dissatisfied", -1.0),
            ("Second Chance", -0.5),
            ("plan-to-visit", 0.3),
            ("Visited", 0.0),
            ("Trending", 0.0),
            ("Something New", 0.0),
        ],
    )
    def test_weights(self, scorer: RankingService, label: str, expected: float) -> None:
        [scored] = scorer.calculate_scores([_other("a", label)])

        assert scored.interaction_points == expected
        assert scored.ranking_points == 0.0
        assert scored.total_score == expected

    def test_category_normalized_in_output(self, scorer: RankingService) -> None:
        [scored] = scorer.calculate_scores([_other("a", " second chance ")])
        assert scored.category == RankingCategory.SECOND_CHANCE

    @pytest.mark.parametrize(
        "label, expected",
        [("Plan to Visit", "PLAN_TO_VISIT"), ("top", "TOP"), ("", ""), (None, "")],
    )
    def test_normalize_category(self, label, expected: str) -> None:
        assert normalize_category(label) == expected

    def test_owner_without_top_items_gets_no_position_points(self, scorer: RankingService) -> None:
        items = [
            RankingItem(id="a", name="A", category="Visited", menu_item="nasi-lemak", owner_id="u-3"),
            _top("b", 1, owner="u-1"),
        ]
        scored = scorer.calculate_scores(items)
        assert scored[0].normalized_points == 0.0
        assert scored[1].normalized_points == 1.0


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


class TestSelection:
    def test_top_items_sorted_and_limited(self, scorer: RankingService) -> None:
        items = [_top(str(i), i) for i in range(7, 0, -1)] + [_other("v", "Visited")]

        top = scorer.get_top_items(items, "nasi-lemak")

        assert [s.id for s in top] == ["1", "2", "3", "4", "5"]
        assert scorer.get_top_items(items, "nasi-lemak", limit=2)[-1].id == "2"

    def test_top_items_span_categories(self, scorer: RankingService) -> None:
        items = [
            _top("a", 1, menu_item="laksa"),
            _other("b", "Plan to Visit", menu_item="laksa"),
            _other("c", "Dissatisfied", menu_item="laksa"),
            _other("d", "Popular", menu_item="nasi-lemak"),
        ]

        top = scorer.get_top_items(items, "laksa")

        assert [s.id for s in top] == ["a", "b", "c"]
        assert [s.total_score for s in top] == [1.0, 0.3, -1.0]

    def test_other_menu_items_excluded(self, scorer: RankingService) -> None:
        items = [_top("a", 1), _top("b", 1, menu_item="laksa")]
        assert [s.id for s in scorer.get_top_items(items, "laksa")] == ["b"]

    def test_ties_keep_encounter_order(self, scorer: RankingService) -> None:
        items = [_other("first", "Trending"), _other("second", "Trending"), _other("third", "Trending")]
        assert [s.id for s in scorer.get_trending_items(items, "nasi-lemak")] == ["first", "second", "third"]

    def test_category_accessors(self, scorer: RankingService) -> None:
        items = [
            _other("t", "Trending"),
            _other("r", "Recommended"),
            _other("p", "Popular"),
            _other("s", "Second Chance"),
        ]
        assert [s.id for s in scorer.get_recommended_items(items, "nasi-lemak")] == ["r"]
        assert [s.id for s in scorer.get_popular_items(items, "nasi-lemak")] == ["p"]
        assert [s.id for s in scorer.get_items_by_category(items, "nasi-lemak", "second chance")] == ["s"]

    def test_empty_input(self, scorer: RankingService) -> None:
        assert scorer.calculate_scores([]) == []
        assert scorer.get_top_items([], "nasi-lemak") == []


# ---------------------------------------------------------------------------
# Store-backed queries
# ---------------------------------------------------------------------------


class TestRankingQueryService:
    def _seed(self, service: RankingQueryService) -> None:
        for restaurant, position in (("r-2", 2), ("r-1", 1), ("r-3", 3)):
            service.record_interaction(
                user_id="u-1",
                restaurant_id=restaurant,
                restaurant_name=f"Restaurant {restaurant}",
                menu_item="nasi-lemak",
                category="Top",
                rank_position=position,
            )
        service.record_interaction(
            user_id="u-2",
            restaurant_id="r-9",
            restaurant_name="Restaurant r-9",
            menu_item="nasi-lemak",
            category="Second Chance",
        )

    def test_top_from_store(self, session: Session) -> None:
        service = RankingQueryService(session)
        self._seed(service)

        top = service.top("nasi-lemak")

        assert [s.id for s in top] == ["r-1", "r-2", "r-3", "r-9"]
        assert [round(s.normalized_points, 3) for s in top[:3]] == [0.576, 0.313, 0.111]
        assert {s.owner_id for s in top[:3]} == {"u-1"}
        assert top[-1].total_score == -0.5

    def test_by_category_from_store(self, session: Session) -> None:
        service = RankingQueryService(session)
        self._seed(service)

        [second_chance] = service.by_category("nasi-lemak", "second-chance")
        assert second_chance.id == "r-9"
        assert second_chance.total_score == -0.5

    def test_interaction_replaced_not_duplicated(self, session: Session) -> None:
        service = RankingQueryService(session)
        self._seed(service)
        service.record_interaction(
            user_id="u-2",
            restaurant_id="r-9",
            restaurant_name="Restaurant r-9",
            menu_item="nasi-lemak",
            category="Visited",
        )

        items = service.load_items("nasi-lemak", user_id="u-2")
        assert [(item.id, item.category) for item in items] == [("r-9", RankingCategory.VISITED)]

    def test_unknown_category_rejected(self, session: Session) -> None:
        service = RankingQueryService(session)
        with pytest.raises(ValidationError):
            service.by_category("nasi-lemak", "Favourite")
        with pytest.raises(ValidationError):
            service.record_interaction(
                user_id="u-1",
                restaurant_id="r-1",
                restaurant_name="R",
                menu_item="nasi-lemak",
                category="Favourite",
            )

    def test_non_positive_rank_position_rejected(self, session: Session) -> None:
        with pytest.raises(ValidationError):
            RankingQueryService(session).record_interaction(
                user_id="u-1",
                restaurant_id="r-1",
                restaurant_name="R",
                menu_item="nasi-lemak",
                category="Top",
                rank_position=0,
            )
