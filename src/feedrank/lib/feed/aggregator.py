"""Interaction aggregation.

Builds the :class:`InteractionSnapshot` for a user from three independent
reads (votes, subscriptions, recent posts) issued concurrently under a shared
deadline.  There is no partial snapshot: if any read fails the others are
cancelled and the aggregation fails as a whole.
"""

import logging

from ...models import User
from ..concurrency import run_all
from ..datasource import FeedDataSource, guarded_read
from ..errors import DataAccessError
from .snapshot import InteractionSnapshot

logger = logging.getLogger(__name__)

# How many of the user's own posts feed the activity and type preferences.
RECENT_POSTS_LIMIT = 100

DEFAULT_TIMEOUT_SECONDS = 5.0


class InteractionAggregator:
    """Collects a user's interaction history into a snapshot."""

    def __init__(
        self,
        source: FeedDataSource,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        recent_posts_limit: int = RECENT_POSTS_LIMIT,
    ):
        self._source = source
        self._timeout = timeout
        self._recent_posts_limit = recent_posts_limit

    async def resolve_user(self, user_id: int) -> User:
        """Return the user or raise ``NotFound``."""
        return await guarded_read("user", self._source.get_user_by_id(user_id))

    async def aggregate(self, user_id: int) -> InteractionSnapshot:
        await self.resolve_user(user_id)

        try:
            votes, subscribed, recent_posts = await run_all(
                guarded_read("votes", self._source.get_votes_by_user(user_id)),
                guarded_read(
                    "subscriptions", self._source.get_subscribed_subreddits(user_id)
                ),
                guarded_read(
                    "post history",
                    self._source.get_recent_posts_by_author(user_id, self._recent_posts_limit),
                ),
                timeout=self._timeout,
            )
        except TimeoutError as exc:
            logger.warning(
                "Interaction reads for user %s exceeded %.1fs deadline", user_id, self._timeout
            )
            raise DataAccessError("Interaction aggregation timed out") from exc

        snapshot = InteractionSnapshot.build(votes, subscribed, recent_posts)
        logger.debug(
            "Aggregated user %s: %d upvotes, %d downvotes, %d subscriptions, %d posts",
            user_id,
            len(snapshot.upvoted_post_ids),
            len(snapshot.downvoted_post_ids),
            len(snapshot.subscribed_subreddit_ids),
            len(snapshot.recent_user_posts),
        )
        return snapshot
