"""Turns ranked candidates into the ``FeedResult`` response shape."""

from ...models import (
    AlgorithmInfo,
    FeedPost,
    FeedRequest,
    FeedResult,
    Post,
    PostAuthorInfo,
    SubredditInfo,
    SuggestedAccount,
    UserInteraction,
)
from ..metrics import record_feed_generated
from .scoring import FACTORS_CONSIDERED, ScoredCandidate
from .snapshot import InteractionSnapshot
from .suggestions import account_type


def to_feed_post(
    post: Post,
    score: float,
    reasons: list[str],
    snapshot: InteractionSnapshot | None = None,
) -> FeedPost:
    """Build the presentation form of *post*.

    Without a snapshot (the fallback feed) the viewer-specific flags are
    all false.
    """
    subscribed = upvoted = downvoted = False
    if snapshot is not None:
        subscribed = post.subreddit.id in snapshot.subscribed_subreddit_ids
        upvoted = post.id in snapshot.upvoted_post_ids
        downvoted = post.id in snapshot.downvoted_post_ids

    author = post.author
    subreddit = post.subreddit
    return FeedPost(
        id=post.id,
        title=post.title,
        content=post.content,
        url=post.url,
        post_type=post.post_type,
        thumbnail_url=post.thumbnail_url,
        flair_text=post.flair_text,
        is_spoiler=post.is_spoiler,
        is_over_18=post.is_over_18,
        score=post.score,
        upvote_count=post.upvote_count,
        downvote_count=post.downvote_count,
        comment_count=post.comment_count,
        view_count=post.view_count,
        algorithm_score=score,
        reasons=list(reasons),
        author=PostAuthorInfo(
            id=author.id,
            username=author.username,
            display_name=author.display_name,
            avatar_url=author.avatar_url,
            karma=author.karma,
            is_verified=author.is_verified,
            type=account_type(author),
        ),
        subreddit=SubredditInfo(
            id=subreddit.id,
            name=subreddit.name,
            title=subreddit.title,
            icon_image_url=subreddit.icon_image_url,
            is_user_subscribed=subscribed,
        ),
        created_at=post.created_at,
        user_interaction=UserInteraction(has_upvoted=upvoted, has_downvoted=downvoted),
    )


def assemble(
    request: FeedRequest,
    ranked: list[ScoredCandidate],
    suggestions: list[SuggestedAccount],
    snapshot: InteractionSnapshot,
    processing_time_ms: int,
) -> FeedResult:
    """Truncate *ranked* to the request limit and package the response."""
    posts = [
        to_feed_post(c.post, c.score, list(c.reasons), snapshot)
        for c in ranked[:request.limit]
    ]

    result = FeedResult(
        ranked_posts=posts,
        suggested_accounts=suggestions,
        algorithm_info=AlgorithmInfo(
            mode=request.sort_mode.value,
            decay_factor=request.time_decay_factor,
            factors_considered=list(FACTORS_CONSIDERED),
            processing_time_ms=processing_time_ms,
        ),
        total_candidates=len(ranked),
        has_more=len(ranked) > request.limit,
    )

    record_feed_generated(len(posts), len(suggestions))
    return result
