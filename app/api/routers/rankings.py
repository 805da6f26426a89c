"""
Ranking query and interaction endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import to_http_error
from app.domain.ranking import RankingCategory, RankingItemWithScore, normalize_category
from app.schemas.rankings import RankedItemListResponse, RankedItemResponse, RankingInteractionRequest
from app.services.ranking_service import DEFAULT_TOP_LIMIT, RankingQueryService
from db.repositories.errors import PipelineError
from db.session import get_db

router = APIRouter(prefix="/rankings", tags=["rankings"])


@router.post("/interactions", status_code=status.HTTP_204_NO_CONTENT)
def record_ranking_interaction(
    request: RankingInteractionRequest,
    db: Session = Depends(get_db),
) -> Response:
    try:
        RankingQueryService(db).record_interaction(
            user_id=request.user_id,
            restaurant_id=request.restaurant_id,
            restaurant_name=request.restaurant_name,
            menu_item=request.menu_item,
            category=request.category,
            rank_position=request.rank_position,
        )
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{menu_item}/top", response_model=RankedItemListResponse)
def get_top_ranked(
    menu_item: str,
    limit: int = Query(default=DEFAULT_TOP_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
) -> RankedItemListResponse:
    try:
        items = RankingQueryService(db).top(menu_item, limit=limit)
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return _to_list_response(menu_item, RankingCategory.TOP, items)


@router.get("/{menu_item}/categories/{category}", response_model=RankedItemListResponse)
def get_ranked_by_category(
    menu_item: str,
    category: str,
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
) -> RankedItemListResponse:
    try:
        items = RankingQueryService(db).by_category(menu_item, category, limit=limit)
    except PipelineError as exc:
        raise to_http_error(exc) from exc
    return _to_list_response(menu_item, normalize_category(category), items)


def _to_list_response(
    menu_item: str,
    category: str,
    items: list[RankingItemWithScore],
) -> RankedItemListResponse:
    return RankedItemListResponse(
        menu_item=menu_item,
        category=category,
        items=[
            RankedItemResponse(
                id=item.id,
                name=item.name,
                category=item.category,
                menu_item=item.menu_item,
                rank_position=item.rank_position,
                owner_id=item.owner_id,
                ranking_points=item.ranking_points,
                normalized_points=item.normalized_points,
                interaction_points=item.interaction_points,
                total_score=item.total_score,
            )
            for item in items
        ],
    )
