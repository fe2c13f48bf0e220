"""Feed router – exposes the personalized feed over HTTP.

GET /feed
    Personalized feed configured through query parameters.

POST /feed
    Same, configured through a JSON body (supports post type filters).

GET /feed/hot, /feed/new, /feed/top, /feed/discover
    Presets that fix the sort mode and the time decay factor.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from ..lib.errors import InvalidArgument, NotFound
from ..lib.feed import FeedService
from ..models import FeedResult, PostType, SortMode
from ..security import verify_service_key

router = APIRouter(tags=["feed"], dependencies=[Depends(verify_service_key)])

logger = logging.getLogger(__name__)

# Time decay factor applied by each preset endpoint.
PRESET_DECAY_FACTORS = {
    SortMode.HOT: 2.0,
    SortMode.NEW: 0.1,
    SortMode.TOP: 0.5,
    SortMode.DISCOVER: 1.5,
}


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class FeedQueryBody(BaseModel):
    """Request body for ``POST /feed``.

    Fields are deliberately loose; range checks happen in the feed validator
    so every entry point reports the same errors.
    """

    user_id: int | None = Field(None, description="Viewer's user id")
    limit: int | None = Field(None, description="Number of posts to return (1-100, default 20)")
    sort_mode: str | None = Field(None, description="algorithm, hot, new, top or discover")
    post_types: list[PostType] | None = Field(None, description="Only return these post types")
    include_nsfw: bool = Field(False, description="Include NSFW posts")
    following_only: bool = Field(False, description="Only posts from subscribed communities")
    time_decay_factor: float | None = Field(
        None, description="Freshness decay multiplier (0.1-5.0, default 1.0)"
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _feed_service(request: Request) -> FeedService:
    return request.app.state.feed_service


async def _serve(service: FeedService, raw: dict[str, Any]) -> FeedResult:
    """Run the feed service, mapping client errors to HTTP status codes."""
    try:
        return await service.get_personalized_feed(raw)
    except InvalidArgument as exc:
        logger.warning("Invalid feed request: %s", exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFound as exc:
        logger.warning("Feed requested for unknown user: %s", exc)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


async def _preset_feed(
    request: Request,
    sort_mode: SortMode,
    user_id: int | None,
    limit: int | None,
) -> FeedResult:
    logger.info("Generating %s feed for user %s with limit %s", sort_mode.value, user_id, limit)
    return await _serve(
        _feed_service(request),
        {
            "user_id": user_id,
            "limit": limit,
            "sort_mode": sort_mode,
            "time_decay_factor": PRESET_DECAY_FACTORS[sort_mode],
        },
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/feed", response_model=FeedResult)
async def feed_get(
    request: Request,
    user_id: int | None = Query(None, description="Viewer's user id"),
    limit: int | None = Query(None, description="Number of posts to return (1-100, default 20)"),
    sort_mode: str | None = Query(None, description="algorithm, hot, new, top or discover"),
    include_nsfw: bool = Query(False),
    following_only: bool = Query(False),
    time_decay_factor: float | None = Query(None, description="Freshness decay (0.1-5.0)"),
) -> FeedResult:
    """Return the personalized feed for ``user_id``."""
    logger.info("Generating personalized feed for user %s with limit %s", user_id, limit)
    return await _serve(
        _feed_service(request),
        {
            "user_id": user_id,
            "limit": limit,
            "sort_mode": sort_mode,
            "include_nsfw": include_nsfw,
            "following_only": following_only,
            "time_decay_factor": time_decay_factor,
        },
    )


@router.post("/feed", response_model=FeedResult)
async def feed_post(request: Request, payload: FeedQueryBody) -> FeedResult:
    """Personalized feed with post type filters and the full option set."""
    return await _serve(_feed_service(request), payload.model_dump())


@router.get("/feed/hot", response_model=FeedResult)
async def feed_hot(
    request: Request,
    user_id: int | None = Query(None),
    limit: int | None = Query(None),
) -> FeedResult:
    return await _preset_feed(request, SortMode.HOT, user_id, limit)


@router.get("/feed/new", response_model=FeedResult)
async def feed_new(
    request: Request,
    user_id: int | None = Query(None),
    limit: int | None = Query(None),
) -> FeedResult:
    return await _preset_feed(request, SortMode.NEW, user_id, limit)


@router.get("/feed/top", response_model=FeedResult)
async def feed_top(
    request: Request,
    user_id: int | None = Query(None),
    limit: int | None = Query(None),
) -> FeedResult:
    return await _preset_feed(request, SortMode.TOP, user_id, limit)


@router.get("/feed/discover", response_model=FeedResult)
async def feed_discover(
    request: Request,
    user_id: int | None = Query(None),
    limit: int | None = Query(None),
) -> FeedResult:
    return await _preset_feed(request, SortMode.DISCOVER, user_id, limit)
