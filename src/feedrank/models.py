from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PostType(str, Enum):
    TEXT = "TEXT"
    LINK = "LINK"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    POLL = "POLL"


class VoteType(str, Enum):
    UPVOTE = "UPVOTE"
    DOWNVOTE = "DOWNVOTE"


class SortMode(str, Enum):
    ALGORITHM = "algorithm"
    HOT = "hot"
    NEW = "new"
    TOP = "top"
    DISCOVER = "discover"


class AccountType(str, Enum):
    REGULAR = "REGULAR"
    INFLUENCER = "INFLUENCER"
    VERIFIED = "VERIFIED"


# ---------------------------------------------------------------------------
# Data-layer DTOs (read-only, fully materialized)
# ---------------------------------------------------------------------------

class User(BaseModel):
    """An account as returned by the data layer."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    karma: int = 0
    is_verified: bool = False


class Subreddit(BaseModel):
    """A community."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    title: str | None = None
    icon_image_url: str | None = None


class Post(BaseModel):
    """A post with its author and community embedded."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    content: str | None = None
    url: str | None = None
    post_type: PostType = PostType.TEXT
    thumbnail_url: str | None = None
    flair_text: str | None = None
    is_spoiler: bool = False
    is_over_18: bool = False
    score: int = 1
    upvote_count: int = 1
    downvote_count: int = 0
    comment_count: int = 0
    view_count: int = 0
    author: User
    subreddit: Subreddit
    created_at: datetime


class Vote(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    post_id: int
    vote_type: VoteType


class PageSpec(BaseModel):
    """Offset/size paging with a descending sort field."""

    model_config = ConfigDict(frozen=True)

    offset: int = Field(0, ge=0)
    size: int = Field(20, ge=1)
    sort_by: str = Field("created_at", description="Field to sort on, descending")


# ---------------------------------------------------------------------------
# Feed request / response
# ---------------------------------------------------------------------------

class FeedRequest(BaseModel):
    """A normalized feed request.  Build through ``validator.validate``."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    limit: int = Field(20, ge=1, le=100)
    sort_mode: SortMode = SortMode.ALGORITHM
    post_types: frozenset[PostType] | None = Field(
        None, description="Only return posts of these types (all types when omitted)"
    )
    include_nsfw: bool = False
    following_only: bool = Field(
        False, description="Only return posts from subscribed communities"
    )
    time_decay_factor: float = Field(1.0, ge=0.1, le=5.0)


class PostAuthorInfo(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    karma: int = 0
    is_verified: bool = False
    type: AccountType = AccountType.REGULAR


class SubredditInfo(BaseModel):
    id: int
    name: str
    title: str | None = None
    icon_image_url: str | None = None
    is_user_subscribed: bool = False


class UserInteraction(BaseModel):
    has_upvoted: bool = False
    has_downvoted: bool = False


class FeedPost(BaseModel):
    """Presentation form of a ranked post."""

    id: int
    title: str
    content: str | None = None
    url: str | None = None
    post_type: PostType
    thumbnail_url: str | None = None
    flair_text: str | None = None
    is_spoiler: bool = False
    is_over_18: bool = False
    score: int = 0
    upvote_count: int = 0
    downvote_count: int = 0
    comment_count: int = 0
    view_count: int = 0
    algorithm_score: float = Field(..., description="Relevance score computed for this viewer")
    reasons: list[str] = Field(default_factory=list)
    author: PostAuthorInfo
    subreddit: SubredditInfo
    created_at: datetime
    user_interaction: UserInteraction = Field(default_factory=UserInteraction)


class SuggestedAccount(BaseModel):
    """An account the viewer might want to follow."""

    id: int
    username: str
    display_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    karma: int = 0
    is_verified: bool = False
    type: AccountType = AccountType.REGULAR
    relevance_score: float = 0.0
    reasons: list[str] = Field(default_factory=list)
    mutual_community_count: int = 0
    common_interests: list[str] = Field(default_factory=list, max_length=3)


class AlgorithmInfo(BaseModel):
    mode: str
    decay_factor: float
    factors_considered: list[str] = Field(default_factory=list)
    processing_time_ms: int = 0


class FeedResult(BaseModel):
    """The response of a feed request and the unit stored in the cache."""

    ranked_posts: list[FeedPost] = Field(default_factory=list)
    suggested_accounts: list[SuggestedAccount] = Field(default_factory=list)
    algorithm_info: AlgorithmInfo
    total_candidates: int = 0
    has_more: bool = False

    @classmethod
    def empty(cls) -> "FeedResult":
        return cls(algorithm_info=AlgorithmInfo(mode="none", decay_factor=0.0))
