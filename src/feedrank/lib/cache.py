"""Read-through cache for generated feeds, backed by Redis.

Feeds are stored as JSON under ``feed:{user_id}:{sort_mode}:{limit}:{nsfw}``
with a TTL.  A hit is returned without any freshness check, so staleness is
bounded by the TTL alone.  The cache is best-effort: Redis failures are
logged and behave like a miss (reads) or a skipped write (writes).
"""

import logging

from pydantic import ValidationError

from ..models import FeedRequest, FeedResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600


def feed_cache_key(request: FeedRequest) -> str:
    nsfw = "nsfw" if request.include_nsfw else "sfw"
    return f"feed:{request.user_id}:{request.sort_mode.value}:{request.limit}:{nsfw}"


class FeedCache:
    """Stores ``FeedResult`` objects in Redis.

    ``client`` is a ``redis.asyncio.Redis`` (or anything with async
    ``get``/``set``).  With ``client=None`` caching is disabled.
    """

    def __init__(self, client=None, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self._client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> FeedResult | None:
        if self._client is None:
            return None
        try:
            data = await self._client.get(key)
        except Exception:
            logger.exception("Failed to read cached feed %s", key)
            return None

        if not data:
            return None
        try:
            return FeedResult.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding unreadable cached feed %s", key)
            return None

    async def set(self, key: str, result: FeedResult) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.set(key, result.model_dump_json(), ex=self.ttl_seconds)
        except Exception:
            logger.exception("Failed to cache feed %s", key)
            return False
        logger.debug("Cached feed %s for %ds", key, self.ttl_seconds)
        return True
