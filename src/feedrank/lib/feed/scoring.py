"""Relevance scoring for feed candidates.

Each candidate gets a weighted sum of five sub-scores, each normalized to
0-100:

* **popularity** (0.25): net votes and engagement.
* **freshness** (0.20): exponential decay ``100 * e^(-λ·hours)`` with
  ``λ = 0.05 * time_decay_factor``.  At the default factor of 1.0 a post loses
  half its freshness in roughly 14 hours.
* **community affinity** (0.25): subscribed > previously active > unknown.
* **content-type preference** (0.15): how often the user posts this type.
* **author reputation** (0.10): karma plus a verification bonus.

Posts the viewer already upvoted or downvoted are then damped
multiplicatively.  Candidates whose final score is not positive never reach
the feed.

The reasons attached to each candidate are for display only and play no
part in the ordering.

Scoring is pure: no I/O happens here.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from ...models import FeedRequest, Post, User
from .snapshot import InteractionSnapshot

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

POPULARITY_WEIGHT = 0.25
FRESHNESS_WEIGHT = 0.20
AFFINITY_WEIGHT = 0.25
CONTENT_TYPE_WEIGHT = 0.15
AUTHOR_WEIGHT = 0.10

# Decay rate per hour at time_decay_factor == 1.0.
BASE_DECAY_RATE = 0.05

SUBSCRIBED_AFFINITY = 100.0
ACTIVITY_POINTS_PER_POST = 10.0
UNKNOWN_COMMUNITY_AFFINITY = 30.0

NEUTRAL_CONTENT_TYPE = 50.0
PREFERRED_TYPE_BASE = 80.0
# Preferred types land in [80, 99] depending on how often the user posts them.
PREFERRED_TYPE_SPREAD = 19.0
OTHER_CONTENT_TYPE = 40.0

KARMA_PER_POINT = 100.0
VERIFIED_AUTHOR_BONUS = 20.0

UPVOTED_MULTIPLIER = 0.3
DOWNVOTED_MULTIPLIER = 0.1

# Thresholds for the display reasons.
POPULAR_UPVOTES = 100
TRENDING_COMMENTS = 50
FRESH_HOURS = 6

FACTORS_CONSIDERED = [
    "User engagement history",
    "Post popularity (upvotes/downvotes)",
    "Time decay (freshness)",
    "Subreddit affinity",
    "Content type preferences",
    "Author reputation",
]


@dataclass(frozen=True)
class ScoredCandidate:
    post: Post
    score: float
    reasons: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------

def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def hours_old(post: Post, now: datetime) -> float:
    """Fractional age of *post* in hours; posts dated in the future count as new."""
    created = post.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return max(0.0, (now - created).total_seconds() / 3600.0)


def popularity_score(post: Post) -> float:
    net_votes = post.upvote_count - post.downvote_count
    engagement = post.comment_count + post.view_count // 100
    return _clamp(net_votes * 2 + engagement * 0.5)


def freshness_score(post: Post, time_decay_factor: float, now: datetime) -> float:
    decay_rate = BASE_DECAY_RATE * time_decay_factor
    return _clamp(100.0 * math.exp(-decay_rate * hours_old(post, now)))


def community_affinity_score(post: Post, snapshot: InteractionSnapshot) -> float:
    subreddit_id = post.subreddit.id
    if subreddit_id in snapshot.subscribed_subreddit_ids:
        return SUBSCRIBED_AFFINITY

    activity = snapshot.subreddit_activity_score.get(subreddit_id)
    if activity is not None:
        return min(100.0, activity * ACTIVITY_POINTS_PER_POST)

    return UNKNOWN_COMMUNITY_AFFINITY


def content_type_score(post: Post, snapshot: InteractionSnapshot) -> float:
    if not snapshot.preferred_post_types:
        return NEUTRAL_CONTENT_TYPE
    if post.post_type in snapshot.preferred_post_types:
        share = snapshot.post_type_share(post.post_type)
        return PREFERRED_TYPE_BASE + PREFERRED_TYPE_SPREAD * share
    return OTHER_CONTENT_TYPE


def author_reputation_score(author: User) -> float:
    score = min(100.0, author.karma / KARMA_PER_POINT)
    if author.is_verified:
        score += VERIFIED_AUTHOR_BONUS
    return min(100.0, score)


# ---------------------------------------------------------------------------
# Combined score
# ---------------------------------------------------------------------------

def weighted_score(
    post: Post,
    snapshot: InteractionSnapshot,
    request: FeedRequest,
    now: datetime,
) -> float:
    """The weighted sum of the five sub-scores, before personalization."""
    return (
        popularity_score(post) * POPULARITY_WEIGHT
        + freshness_score(post, request.time_decay_factor, now) * FRESHNESS_WEIGHT
        + community_affinity_score(post, snapshot) * AFFINITY_WEIGHT
        + content_type_score(post, snapshot) * CONTENT_TYPE_WEIGHT
        + author_reputation_score(post.author) * AUTHOR_WEIGHT
    )


def score_reasons(post: Post, snapshot: InteractionSnapshot, now: datetime) -> list[str]:
    reasons: list[str] = []
    if post.subreddit.id in snapshot.subscribed_subreddit_ids:
        reasons.append("From your subscribed community")
    if post.upvote_count > POPULAR_UPVOTES:
        reasons.append("Popular post")
    if post.comment_count > TRENDING_COMMENTS:
        reasons.append("Trending discussion")
    if hours_old(post, now) < FRESH_HOURS:
        reasons.append("Fresh content")
    if post.post_type in snapshot.preferred_post_types:
        reasons.append("Matches your content preferences")
    if post.author.is_verified:
        reasons.append("From verified user")
    return reasons


def score(
    post: Post,
    snapshot: InteractionSnapshot,
    request: FeedRequest,
    now: datetime | None = None,
) -> tuple[float, list[str]]:
    """Score one candidate for the viewer described by *snapshot*."""
    now = now or datetime.now(timezone.utc)

    value = weighted_score(post, snapshot, request, now)
    if post.id in snapshot.upvoted_post_ids:
        value *= UPVOTED_MULTIPLIER
    if post.id in snapshot.downvoted_post_ids:
        value *= DOWNVOTED_MULTIPLIER

    return value, score_reasons(post, snapshot, now)


def rank(
    posts: list[Post],
    snapshot: InteractionSnapshot,
    request: FeedRequest,
    now: datetime | None = None,
) -> list[ScoredCandidate]:
    """Score *posts*, drop non-positive scores and sort best first.

    The sort is stable, so equal scores keep their retrieval order.
    """
    now = now or datetime.now(timezone.utc)

    scored: list[ScoredCandidate] = []
    for post in posts:
        value, reasons = score(post, snapshot, request, now)
        if value > 0:
            scored.append(ScoredCandidate(post=post, score=value, reasons=tuple(reasons)))

    scored.sort(key=lambda c: c.score, reverse=True)
    return scored
