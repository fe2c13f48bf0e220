"""Elasticsearch-backed implementation of :class:`FeedDataSource`.

Documents are stored denormalized so a single search returns everything the
feed engine needs:

* ``posts``          one document per post with ``author`` and ``subreddit``
  objects embedded.
* ``users``          one document per account.
* ``votes``          ``{user_id, post_id, vote_type}``.
* ``subscriptions``  ``{user_id, subreddit: {...}}``.
"""

import logging

from elasticsearch import ApiError, TransportError
from pydantic import BaseModel, ValidationError

from ...models import PageSpec, Post, Subreddit, User, Vote
from ..elasticsearch import hit_sources
from ..errors import DataAccessError, NotFound
from .base import FeedDataSource

logger = logging.getLogger(__name__)

# Upper bounds for unpaged reads.
MAX_VOTES = 10_000
MAX_SUBSCRIPTIONS = 1_000


def _parse_all(model: type[BaseModel], sources: list[dict], index: str) -> list:
    """Validate each document into *model*, skipping malformed ones."""
    parsed = []
    for src in sources:
        try:
            parsed.append(model.model_validate(src))
        except ValidationError:
            logger.warning("Skipping malformed document in %s index", index)
    return parsed


class ElasticsearchFeedDataSource(FeedDataSource):
    """Reads feed inputs from an ``AsyncElasticsearch`` client."""

    def __init__(self, es):
        self._es = es

    async def _search(self, index: str, **kwargs) -> list[dict]:
        try:
            resp = await self._es.search(index=index, **kwargs)
        except (ApiError, TransportError) as exc:
            logger.error("Elasticsearch search on %s failed: %s", index, exc)
            raise DataAccessError(f"Search on {index} failed") from exc
        return hit_sources(resp)

    async def _search_posts(self, query: dict, page: PageSpec) -> list[Post]:
        sources = await self._search(
            "posts",
            query=query,
            size=page.size,
            from_=page.offset,
            sort=[{page.sort_by: "desc"}],
        )
        return _parse_all(Post, sources, "posts")

    async def get_user_by_id(self, user_id: int) -> User:
        sources = await self._search(
            "users",
            query={"bool": {"filter": [{"term": {"id": user_id}}]}},
            size=1,
        )
        users = _parse_all(User, sources, "users")
        if not users:
            raise NotFound(f"User not found: {user_id}")
        return users[0]

    async def get_votes_by_user(self, user_id: int) -> list[Vote]:
        sources = await self._search(
            "votes",
            query={"bool": {"filter": [{"term": {"user_id": user_id}}]}},
            size=MAX_VOTES,
        )
        return _parse_all(Vote, sources, "votes")

    async def get_subscribed_subreddits(self, user_id: int) -> set[Subreddit]:
        sources = await self._search(
            "subscriptions",
            query={"bool": {"filter": [{"term": {"user_id": user_id}}]}},
            size=MAX_SUBSCRIPTIONS,
            _source=["subreddit"],
        )
        docs = [src["subreddit"] for src in sources if src.get("subreddit")]
        return set(_parse_all(Subreddit, docs, "subscriptions"))

    async def get_subscribed_subreddit_ids(self, user_id: int) -> set[int]:
        sources = await self._search(
            "subscriptions",
            query={"bool": {"filter": [{"term": {"user_id": user_id}}]}},
            size=MAX_SUBSCRIPTIONS,
            _source=["subreddit.id"],
        )
        ids = set()
        for src in sources:
            subreddit_id = (src.get("subreddit") or {}).get("id")
            if isinstance(subreddit_id, int):
                ids.add(subreddit_id)
        return ids

    async def get_recent_posts_by_author(self, user_id: int, limit: int) -> list[Post]:
        return await self._search_posts(
            {"bool": {"filter": [{"term": {"author.id": user_id}}]}},
            PageSpec(size=limit, sort_by="created_at"),
        )

    async def get_candidate_posts(
        self,
        page: PageSpec,
        subreddit_ids: set[int] | None = None,
    ) -> list[Post]:
        filters = []
        if subreddit_ids:
            filters.append({"terms": {"subreddit.id": sorted(subreddit_ids)}})
        query = {"bool": {"filter": filters}} if filters else {"match_all": {}}
        return await self._search_posts(query, page)

    async def get_popular_posts(self, page: PageSpec) -> list[Post]:
        return await self._search_posts({"match_all": {}}, page)

    async def get_posts_by_subreddit(self, subreddit_id: int, page: PageSpec) -> list[Post]:
        return await self._search_posts(
            {"bool": {"filter": [{"term": {"subreddit.id": subreddit_id}}]}},
            page,
        )
