"""Shared fakes and builders for the feed engine tests."""

from datetime import datetime, timedelta, timezone

import pytest

from .lib.datasource import FeedDataSource
from .lib.errors import NotFound
from .models import PageSpec, Post, PostType, Subreddit, User, Vote, VoteType

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def build_user(user_id: int = 1, **overrides) -> User:
    fields = {"id": user_id, "username": f"user{user_id}", "karma": 0, "is_verified": False}
    fields.update(overrides)
    return User(**fields)


def build_subreddit(subreddit_id: int = 1, **overrides) -> Subreddit:
    fields = {"id": subreddit_id, "name": f"community{subreddit_id}"}
    fields.update(overrides)
    return Subreddit(**fields)


def build_post(
    post_id: int,
    *,
    author: User | None = None,
    subreddit: Subreddit | None = None,
    age: timedelta = timedelta(minutes=30),
    now: datetime = NOW,
    **overrides,
) -> Post:
    fields = {
        "id": post_id,
        "title": f"post {post_id}",
        "post_type": PostType.TEXT,
        "upvote_count": 1,
        "downvote_count": 0,
        "comment_count": 0,
        "view_count": 0,
        "author": author or build_user(1000 + post_id),
        "subreddit": subreddit or build_subreddit(1),
        "created_at": now - age,
    }
    fields.update(overrides)
    return Post(**fields)


# ---------------------------------------------------------------------------
# Fake data source
# ---------------------------------------------------------------------------

class FakeDataSource(FeedDataSource):
    """In-memory data layer.

    ``failures`` maps a method name to an exception that method raises;
    ``calls`` records every method invocation in order.
    """

    def __init__(
        self,
        users: list[User] | None = None,
        posts: list[Post] | None = None,
        votes: list[Vote] | None = None,
        subscriptions: dict[int, set[Subreddit]] | None = None,
        popular: list[Post] | None = None,
    ):
        self.users = {u.id: u for u in (users or [])}
        self.posts = list(posts or [])
        self.votes = list(votes or [])
        self.subscriptions = subscriptions or {}
        self.popular = popular
        self.failures: dict[str, BaseException] = {}
        self.calls: list[tuple] = []

    def _enter(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    async def get_user_by_id(self, user_id):
        self._enter("get_user_by_id", user_id)
        if user_id not in self.users:
            raise NotFound(f"User not found: {user_id}")
        return self.users[user_id]

    async def get_votes_by_user(self, user_id):
        self._enter("get_votes_by_user", user_id)
        return [v for v in self.votes if v.user_id == user_id]

    async def get_subscribed_subreddits(self, user_id):
        self._enter("get_subscribed_subreddits", user_id)
        return set(self.subscriptions.get(user_id, set()))

    async def get_recent_posts_by_author(self, user_id, limit):
        self._enter("get_recent_posts_by_author", user_id, limit)
        mine = [p for p in self.posts if p.author.id == user_id]
        mine.sort(key=lambda p: p.created_at, reverse=True)
        return mine[:limit]

    async def get_candidate_posts(self, page: PageSpec, subreddit_ids=None):
        self._enter("get_candidate_posts", page, subreddit_ids)
        pool = [
            p for p in self.posts
            if subreddit_ids is None or p.subreddit.id in subreddit_ids
        ]
        pool.sort(key=lambda p: p.created_at, reverse=True)
        return pool[page.offset:page.offset + page.size]

    async def get_popular_posts(self, page: PageSpec):
        self._enter("get_popular_posts", page)
        pool = list(self.popular if self.popular is not None else self.posts)
        pool.sort(key=lambda p: p.score, reverse=True)
        return pool[page.offset:page.offset + page.size]

    async def get_posts_by_subreddit(self, subreddit_id, page: PageSpec):
        self._enter("get_posts_by_subreddit", subreddit_id, page)
        pool = [p for p in self.posts if p.subreddit.id == subreddit_id]
        pool.sort(key=lambda p: p.created_at, reverse=True)
        return pool[page.offset:page.offset + page.size]


def upvote(user_id: int, post_id: int) -> Vote:
    return Vote(user_id=user_id, post_id=post_id, vote_type=VoteType.UPVOTE)


def downvote(user_id: int, post_id: int) -> Vote:
    return Vote(user_id=user_id, post_id=post_id, vote_type=VoteType.DOWNVOTE)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def viewer():
    return build_user(1, username="viewer")


@pytest.fixture
def data_source(viewer):
    return FakeDataSource(users=[viewer])
