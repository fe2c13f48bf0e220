"""Read-only data layer consumed by the feed engine.

The feed engine never loads relations lazily: every method returns fully
materialized DTOs from :mod:`feedrank.models`.  Implementations raise
:class:`~feedrank.lib.errors.DataAccessError` for backend failures and
:class:`~feedrank.lib.errors.NotFound` for unknown users.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable

from ...models import PageSpec, Post, Subreddit, User, Vote
from ..errors import DataAccessError, FeedError

logger = logging.getLogger(__name__)


async def guarded_read(label: str, aw: Awaitable):
    """Await one data-layer read, wrapping unexpected failures in ``DataAccessError``."""
    try:
        return await aw
    except FeedError:
        raise
    except Exception as exc:
        logger.error("Reading %s failed: %s", label, exc)
        raise DataAccessError(f"Reading {label} failed") from exc


class FeedDataSource(ABC):
    """Abstract base class for the persistence collaborator."""

    @abstractmethod
    async def get_user_by_id(self, user_id: int) -> User:
        """Return the user or raise ``NotFound``."""
        ...

    @abstractmethod
    async def get_votes_by_user(self, user_id: int) -> list[Vote]:
        """All votes cast by *user_id*."""
        ...

    @abstractmethod
    async def get_subscribed_subreddits(self, user_id: int) -> set[Subreddit]:
        ...

    async def get_subscribed_subreddit_ids(self, user_id: int) -> set[int]:
        return {s.id for s in await self.get_subscribed_subreddits(user_id)}

    @abstractmethod
    async def get_recent_posts_by_author(self, user_id: int, limit: int) -> list[Post]:
        """The author's most recent posts, newest first."""
        ...

    @abstractmethod
    async def get_candidate_posts(
        self,
        page: PageSpec,
        subreddit_ids: set[int] | None = None,
    ) -> list[Post]:
        """A page of posts, optionally restricted to *subreddit_ids*.

        Parameters
        ----------
        page:
            Offset, size and descending sort field.
        subreddit_ids:
            When given, only posts from these communities are returned.
        """
        ...

    @abstractmethod
    async def get_popular_posts(self, page: PageSpec) -> list[Post]:
        """Platform-wide posts ordered by score, used by the fallback feed."""
        ...

    @abstractmethod
    async def get_posts_by_subreddit(self, subreddit_id: int, page: PageSpec) -> list[Post]:
        ...
