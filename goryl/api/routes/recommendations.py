"""Recommendation & interaction-tracking routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from goryl.api.dependencies import get_service
from goryl.api.schemas import (
    CacheStatsResponse,
    InteractionCreateRequest,
    InteractionResponse,
    RecommendationItem,
    RecommendationsResponse,
)
from goryl.domain.entities import RecommendationMode, RecommendationRequest
from goryl.domain.errors import ItemNotFound, UpstreamUnavailable, ValidationError
from goryl.services.personalization import PersonalizationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Recommendations"])


def _upstream_error(exc: UpstreamUnavailable) -> HTTPException:
    logger.warning("Upstream unavailable: %s", exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Recommendations are temporarily unavailable",
    )


@router.post(
    "/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_interaction(
    data: InteractionCreateRequest,
    service: PersonalizationService = Depends(get_service),
) -> InteractionResponse:
    """Track a user action on an item. Anonymous actions are accepted but not stored."""
    try:
        event = await service.record(
            data.user_id, data.item_id, data.type, category=data.category
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except UpstreamUnavailable as exc:
        raise _upstream_error(exc)

    if event is None:
        return InteractionResponse(recorded=False, item_id=data.item_id, type=data.type)
    return InteractionResponse(
        recorded=True,
        user_id=event.user_id,
        item_id=event.item_id,
        type=event.type,
        weight=event.weight,
        timestamp=event.timestamp,
    )


@router.get("/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    user_id: str | None = None,
    category: str | None = None,
    limit: int = Query(default=20, gt=0),
    exclude_viewed: bool = True,
    service: PersonalizationService = Depends(get_service),
) -> RecommendationsResponse:
    """Personalized, category-filtered or trending items depending on the parameters."""
    try:
        request = RecommendationRequest(
            user_id=user_id, category=category, limit=limit, exclude_viewed=exclude_viewed
        )
        results = await service.get_recommendations(request)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except UpstreamUnavailable as exc:
        raise _upstream_error(exc)

    return RecommendationsResponse(
        mode=request.mode.value,
        recommendations=[RecommendationItem.from_scored(r) for r in results],
    )


@router.get("/items/{item_id}/similar", response_model=RecommendationsResponse)
async def get_similar_items(
    item_id: str,
    limit: int = Query(default=10, gt=0),
    user_id: str | None = None,
    service: PersonalizationService = Depends(get_service),
) -> RecommendationsResponse:
    """Items in the same category as ``item_id``."""
    try:
        results = await service.get_similar_items(item_id, limit=limit, user_id=user_id)
    except ItemNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    except UpstreamUnavailable as exc:
        raise _upstream_error(exc)

    return RecommendationsResponse(
        mode=RecommendationMode.SIMILAR.value,
        recommendations=[RecommendationItem.from_scored(r) for r in results],
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def cache_stats(
    service: PersonalizationService = Depends(get_service),
) -> CacheStatsResponse:
    return CacheStatsResponse(
        entries=len(service.coordinator), **service.coordinator.stats.as_dict()
    )


@router.delete("/cache", status_code=status.HTTP_200_OK)
async def clear_cache(
    prefix: str = "",
    service: PersonalizationService = Depends(get_service),
) -> dict[str, int]:
    """Drop cached results whose key starts with ``prefix`` (all when empty)."""
    return {"cleared": service.coordinator.clear(prefix)}
