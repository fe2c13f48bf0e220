"""Per-request view of a user's interaction history."""

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ...models import Post, PostType, Subreddit, Vote, VoteType


@dataclass(frozen=True)
class InteractionSnapshot:
    """Immutable aggregate built once per request by the aggregator.

    Collections are frozen (``frozenset``, ``tuple``, read-only mappings) so
    the scoring pass cannot mutate what it was given.
    """

    upvoted_post_ids: frozenset[int] = frozenset()
    downvoted_post_ids: frozenset[int] = frozenset()
    subscribed_subreddit_ids: frozenset[int] = frozenset()
    subscribed_subreddits: frozenset[Subreddit] = frozenset()
    preferred_post_types: frozenset[PostType] = frozenset()
    subreddit_activity_score: Mapping[int, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    post_type_counts: Mapping[PostType, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    recent_user_posts: tuple[Post, ...] = ()

    @classmethod
    def build(
        cls,
        votes: Iterable[Vote],
        subscribed: Iterable[Subreddit],
        recent_posts: Iterable[Post],
    ) -> "InteractionSnapshot":
        votes = list(votes)
        subscribed = frozenset(subscribed)
        recent_posts = tuple(recent_posts)

        activity = Counter(p.subreddit.id for p in recent_posts)
        type_counts = Counter(p.post_type for p in recent_posts)

        return cls(
            upvoted_post_ids=frozenset(
                v.post_id for v in votes if v.vote_type == VoteType.UPVOTE
            ),
            downvoted_post_ids=frozenset(
                v.post_id for v in votes if v.vote_type == VoteType.DOWNVOTE
            ),
            subscribed_subreddit_ids=frozenset(s.id for s in subscribed),
            subscribed_subreddits=subscribed,
            preferred_post_types=frozenset(type_counts),
            subreddit_activity_score=MappingProxyType(dict(activity)),
            post_type_counts=MappingProxyType(dict(type_counts)),
            recent_user_posts=recent_posts,
        )

    def post_type_share(self, post_type: PostType) -> float:
        """Fraction of the user's recent posts that have *post_type*."""
        total = len(self.recent_user_posts)
        if not total:
            return 0.0
        return self.post_type_counts.get(post_type, 0) / total
