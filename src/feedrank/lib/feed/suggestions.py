"""Suggested accounts to follow.

Candidates are authors of recent posts in the communities the viewer has
posted in.  Discovery does I/O; ranking (``rank_accounts``) is pure.

Discovery fans out one read per community and two per discovered author, so
it runs with a bounded number of reads in flight and under one deadline.
"""

import asyncio
import logging
from dataclasses import dataclass

from ...models import AccountType, PageSpec, SuggestedAccount, User
from ..concurrency import run_all
from ..datasource import FeedDataSource, guarded_read
from ..errors import DataAccessError, NotFound
from .snapshot import InteractionSnapshot

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
MAX_COMMON_INTERESTS = 3
POSTS_PER_COMMUNITY = 20

MUTUAL_COMMUNITY_POINTS = 20.0
CONTRIBUTOR_KARMA = 1000
CONTRIBUTOR_POINTS = 30.0
VERIFIED_POINTS = 20.0

INFLUENCER_KARMA = 10_000

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_CONCURRENT_READS = 10


def account_type(user: User) -> AccountType:
    if user.karma > INFLUENCER_KARMA:
        return AccountType.INFLUENCER
    if user.is_verified:
        return AccountType.VERIFIED
    return AccountType.REGULAR


@dataclass(frozen=True)
class AccountCandidate:
    """A discovered account together with the ids of the communities it follows."""

    user: User
    subscribed_ids: frozenset[int] = frozenset()


def score_account(candidate: AccountCandidate, snapshot: InteractionSnapshot) -> SuggestedAccount:
    user = candidate.user
    reasons: list[str] = []

    mutual = sorted(
        (s for s in snapshot.subscribed_subreddits if s.id in candidate.subscribed_ids),
        key=lambda s: s.id,
    )
    score = 0.0
    if mutual:
        score += len(mutual) * MUTUAL_COMMUNITY_POINTS
        reasons.append(f"Active in {len(mutual)} communities you follow")
    if user.karma > CONTRIBUTOR_KARMA:
        score += CONTRIBUTOR_POINTS
        reasons.append("Active contributor")
    if user.is_verified:
        score += VERIFIED_POINTS
        reasons.append("Verified user")

    return SuggestedAccount(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        bio=user.bio,
        avatar_url=user.avatar_url,
        karma=user.karma,
        is_verified=user.is_verified,
        type=account_type(user),
        relevance_score=min(100.0, score),
        reasons=reasons,
        mutual_community_count=len(mutual),
        common_interests=[s.name for s in mutual[:MAX_COMMON_INTERESTS]],
    )


def rank_accounts(
    candidates: list[AccountCandidate],
    snapshot: InteractionSnapshot,
    limit: int = MAX_SUGGESTIONS,
) -> list[SuggestedAccount]:
    scored = [score_account(c, snapshot) for c in candidates]
    scored.sort(key=lambda s: s.relevance_score, reverse=True)
    return scored[:limit]


class AccountSuggester:
    def __init__(
        self,
        source: FeedDataSource,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_concurrent_reads: int = DEFAULT_MAX_CONCURRENT_READS,
    ):
        self._source = source
        self._timeout = timeout
        self._max_concurrent_reads = max_concurrent_reads

    async def _community_authors(self, snapshot: InteractionSnapshot, user_id: int) -> list[int]:
        page = PageSpec(size=POSTS_PER_COMMUNITY, sort_by="created_at")
        pages = await run_all(
            *(
                guarded_read("community posts", self._source.get_posts_by_subreddit(sid, page))
                for sid in snapshot.subreddit_activity_score
            ),
            limit=self._max_concurrent_reads,
        )

        # dict keeps first-seen order
        authors: dict[int, None] = {}
        for posts in pages:
            for post in posts:
                if post.author.id != user_id:
                    authors.setdefault(post.author.id, None)
        return list(authors)

    async def _load_candidate(self, account_id: int) -> AccountCandidate | None:
        try:
            user = await guarded_read("account", self._source.get_user_by_id(account_id))
        except NotFound:
            logger.debug("Suggested account %s no longer exists", account_id)
            return None
        subscribed_ids = await guarded_read(
            "account subscriptions", self._source.get_subscribed_subreddit_ids(account_id)
        )
        return AccountCandidate(user=user, subscribed_ids=frozenset(subscribed_ids))

    async def suggest_accounts(
        self,
        snapshot: InteractionSnapshot,
        user_id: int,
    ) -> list[SuggestedAccount]:
        if not snapshot.subreddit_activity_score:
            return []

        try:
            async with asyncio.timeout(self._timeout):
                account_ids = await self._community_authors(snapshot, user_id)
                loaded = await run_all(
                    *(self._load_candidate(aid) for aid in account_ids),
                    limit=self._max_concurrent_reads,
                )
        except TimeoutError as exc:
            logger.warning(
                "Account suggestions for user %s exceeded %.1fs deadline", user_id, self._timeout
            )
            raise DataAccessError("Account suggestion timed out") from exc

        candidates = [c for c in loaded if c is not None]
        return rank_accounts(candidates, snapshot)
