"""Candidate selection.

Fetches a pool of recent posts to score.  The pool is over-fetched
(``limit * OVERFETCH_FACTOR``) because the scoring pass drops candidates that
score zero or less, and asking for exactly ``limit`` would risk an
under-filled feed.
"""

import logging

from ...models import FeedRequest, PageSpec, Post
from ..datasource import FeedDataSource, guarded_read
from .snapshot import InteractionSnapshot

logger = logging.getLogger(__name__)

OVERFETCH_FACTOR = 3


def candidate_page(request: FeedRequest) -> PageSpec:
    return PageSpec(offset=0, size=request.limit * OVERFETCH_FACTOR, sort_by="created_at")


def apply_content_filters(posts: list[Post], request: FeedRequest) -> list[Post]:
    """Drop NSFW posts (unless requested) and posts outside the type filter.

    Retrieval order is preserved.
    """
    return [
        p for p in posts
        if (request.include_nsfw or not p.is_over_18)
        and (request.post_types is None or p.post_type in request.post_types)
    ]


class CandidateSelector:
    def __init__(self, source: FeedDataSource):
        self._source = source

    async def select_candidates(
        self,
        snapshot: InteractionSnapshot,
        request: FeedRequest,
    ) -> list[Post]:
        page = candidate_page(request)

        subreddit_filter = None
        if request.following_only and snapshot.subscribed_subreddit_ids:
            subreddit_filter = set(snapshot.subscribed_subreddit_ids)

        posts = await guarded_read(
            "candidate posts", self._source.get_candidate_posts(page, subreddit_filter)
        )
        candidates = apply_content_filters(posts, request)

        if not candidates:
            logger.info("No candidate posts for user %s", request.user_id)
        return candidates
