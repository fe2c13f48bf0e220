"""Tests for the feed service: caching, retries, the breaker and fallback."""

from datetime import datetime, timedelta, timezone

import pytest

from ...config import FeedSettings
from ...conftest import FakeDataSource, build_post, build_subreddit, build_user, upvote
from ...models import FeedResult
from ..cache import FeedCache
from ..errors import DataAccessError, InvalidArgument, NotFound
from ..resilience import CircuitBreaker, CircuitState
from . import scoring
from .service import FeedService

# no waiting between retries
FAST = FeedSettings(retry_initial_backoff=0, retry_max_backoff=0)

CACHE_KEY = "feed:1:algorithm:20:sfw"


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` the cache uses."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.expiry: dict[str, int | None] = {}
        self.broken = False

    async def get(self, key):
        if self.broken:
            raise ConnectionError("redis unavailable")
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self.broken:
            raise ConnectionError("redis unavailable")
        self.store[key] = value
        self.expiry[key] = ex
        return True


def fresh_posts(count, **overrides):
    now = datetime.now(timezone.utc)
    return [
        build_post(i, age=timedelta(minutes=i), now=now, **overrides)
        for i in range(1, count + 1)
    ]


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def source(viewer):
    return FakeDataSource(users=[viewer], posts=fresh_posts(60))


@pytest.fixture
def service(source, redis):
    return FeedService(source, cache=FeedCache(redis, ttl_seconds=600), settings=FAST)


# ---------------------------------------------------------------------------
# Personalized path
# ---------------------------------------------------------------------------

class TestPersonalizedFeed:
    @pytest.mark.asyncio
    async def test_limit_and_has_more(self, service):
        result = await service.get_personalized_feed({"user_id": 1, "limit": 20})

        assert len(result.ranked_posts) == 20
        assert result.total_candidates == 60
        assert result.has_more is True
        assert result.algorithm_info.mode == "algorithm"
        assert result.algorithm_info.decay_factor == 1.0
        scores = [p.algorithm_score for p in result.ranked_posts]
        assert scores == sorted(scores, reverse=True)
        assert all(s > 0 for s in scores)

    @pytest.mark.asyncio
    async def test_upvoted_post_reports_interaction(self, viewer):
        source = FakeDataSource(
            users=[viewer], posts=fresh_posts(3), votes=[upvote(viewer.id, 2)]
        )
        result = await FeedService(source, settings=FAST).get_personalized_feed(
            {"user_id": 1, "limit": 5}
        )
        assert result.has_more is False
        flags = {p.id: p.user_interaction.has_upvoted for p in result.ranked_posts}
        assert flags == {1: False, 2: True, 3: False}

    @pytest.mark.asyncio
    async def test_no_candidates_is_an_empty_personalized_feed(self, viewer, redis):
        source = FakeDataSource(users=[viewer])
        service = FeedService(source, cache=FeedCache(redis), settings=FAST)

        result = await service.get_personalized_feed({"user_id": 1})

        assert result.ranked_posts == []
        assert result.algorithm_info.mode == "algorithm"
        assert redis.store == {}


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------

class TestCaching:
    @pytest.mark.asyncio
    async def test_miss_then_hit(self, service, source, redis):
        first = await service.get_personalized_feed({"user_id": 1})
        assert CACHE_KEY in redis.store
        assert redis.expiry[CACHE_KEY] == 600

        second = await service.get_personalized_feed({"user_id": 1})
        assert second == first
        assert len(source.calls_to("get_user_by_id")) == 1

    @pytest.mark.asyncio
    async def test_key_depends_on_request_shape(self, service, redis):
        await service.get_personalized_feed({"user_id": 1, "limit": 10, "include_nsfw": True})
        await service.get_personalized_feed({"user_id": 1, "sort_mode": "hot"})
        assert set(redis.store) == {"feed:1:algorithm:10:nsfw", "feed:1:hot:20:sfw"}

    @pytest.mark.asyncio
    async def test_cached_empty_feed_is_ignored(self, service, source, redis):
        redis.store[CACHE_KEY] = FeedResult.empty().model_dump_json()

        result = await service.get_personalized_feed({"user_id": 1})

        assert result.ranked_posts
        assert source.calls_to("get_user_by_id")

    @pytest.mark.asyncio
    async def test_broken_cache_does_not_break_the_feed(self, service, redis):
        redis.broken = True
        result = await service.get_personalized_feed({"user_id": 1})
        assert len(result.ranked_posts) == 20

    @pytest.mark.asyncio
    async def test_without_cache_client(self, source):
        service = FeedService(source, settings=FAST)
        await service.get_personalized_feed({"user_id": 1})
        await service.get_personalized_feed({"user_id": 1})
        assert len(source.calls_to("get_user_by_id")) == 2


# ---------------------------------------------------------------------------
# Errors that reach the caller
# ---------------------------------------------------------------------------

class TestClientErrors:
    @pytest.mark.asyncio
    async def test_unknown_user(self, service, source):
        with pytest.raises(NotFound):
            await service.get_personalized_feed({"user_id": 404})
        assert source.calls_to("get_popular_posts") == []
        assert len(source.calls_to("get_user_by_id")) == 1
        assert service.breaker.failure_rate == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"limit": 0}, {"time_decay_factor": float("nan")}, {"include_nsfw": "sometimes"}],
    )
    async def test_invalid_request(self, service, source, overrides):
        with pytest.raises(InvalidArgument):
            await service.get_personalized_feed({"user_id": 1, **overrides})
        assert source.calls == []


# ---------------------------------------------------------------------------
# Degraded mode
# ---------------------------------------------------------------------------

class TestFallback:
    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_then_fall_back(self, service, source, redis):
        source.failures["get_votes_by_user"] = DataAccessError("db down")

        result = await service.get_personalized_feed({"user_id": 1})

        assert len(source.calls_to("get_votes_by_user")) == 3
        assert result.algorithm_info.mode == "fallback"
        assert result.algorithm_info.factors_considered == ["Fallback: Popular posts only"]
        assert result.suggested_accounts == []
        assert len(result.ranked_posts) == 20
        assert all(p.algorithm_score == 50.0 for p in result.ranked_posts)
        assert all(p.reasons == ["Popular post"] for p in result.ranked_posts)
        assert redis.store == {}

    @pytest.mark.asyncio
    async def test_recovers_when_a_retry_succeeds(self, service, source):
        calls = 0
        original = source.get_candidate_posts

        async def flaky(page, subreddit_ids=None):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise TimeoutError("search timed out")
            return await original(page, subreddit_ids)

        source.get_candidate_posts = flaky
        result = await service.get_personalized_feed({"user_id": 1})

        assert calls == 2
        assert result.algorithm_info.mode == "algorithm"

    @pytest.mark.asyncio
    async def test_selector_failure_falls_back(self, service, source):
        source.failures["get_candidate_posts"] = RuntimeError("index missing")
        result = await service.get_personalized_feed({"user_id": 1})
        assert result.algorithm_info.mode == "fallback"

    @pytest.mark.asyncio
    async def test_unexpected_errors_fall_back_without_retry(self, service, source, monkeypatch):
        def broken_rank(*args, **kwargs):
            raise ValueError("bad weights")

        monkeypatch.setattr(scoring, "rank", broken_rank)
        result = await service.get_personalized_feed({"user_id": 1})

        assert result.algorithm_info.mode == "fallback"
        assert len(source.calls_to("get_user_by_id")) == 1

    @pytest.mark.asyncio
    async def test_fallback_is_filtered_and_limited(self, viewer):
        popular = [build_post(i, score=100 - i) for i in range(1, 31)]
        popular.append(build_post(99, score=500, is_over_18=True))
        source = FakeDataSource(users=[viewer], popular=popular)
        source.failures["get_votes_by_user"] = DataAccessError("db down")

        result = await FeedService(source, settings=FAST).get_personalized_feed(
            {"user_id": 1, "limit": 10}
        )

        # the NSFW post takes one of the ten slots before it is filtered out
        ids = [p.id for p in result.ranked_posts]
        assert ids == list(range(1, 10))
        assert result.has_more is False
        assert result.total_candidates == len(ids)
        (_, page), = source.calls_to("get_popular_posts")
        assert page.size == 10
        assert page.sort_by == "score"

    @pytest.mark.asyncio
    async def test_empty_feed_when_fallback_fails_too(self, service, source):
        source.failures["get_votes_by_user"] = DataAccessError("db down")
        source.failures["get_popular_posts"] = DataAccessError("db down")

        result = await service.get_personalized_feed({"user_id": 1})

        assert result.ranked_posts == []
        assert result.suggested_accounts == []
        assert result.algorithm_info.mode == "none"

    @pytest.mark.asyncio
    async def test_fallback_never_reports_viewer_state(self, viewer):
        community = build_subreddit(1)
        source = FakeDataSource(
            users=[viewer],
            popular=[build_post(5, author=build_user(2), subreddit=community)],
            votes=[upvote(viewer.id, 5)],
            subscriptions={viewer.id: {community}},
        )
        source.failures["get_votes_by_user"] = DataAccessError("db down")

        result = await FeedService(source, settings=FAST).get_personalized_feed({"user_id": 1})

        (post,) = result.ranked_posts
        assert post.subreddit.is_user_subscribed is False
        assert post.user_interaction.has_upvoted is False


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------

class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_open_breaker_skips_the_pipeline(self, source):
        source.failures["get_votes_by_user"] = DataAccessError("db down")
        service = FeedService(source, settings=FAST)

        for _ in range(5):
            result = await service.get_personalized_feed({"user_id": 1})
            assert result.algorithm_info.mode == "fallback"
        assert service.breaker.state == CircuitState.OPEN
        attempts = len(source.calls_to("get_votes_by_user"))
        assert attempts == 15

        result = await service.get_personalized_feed({"user_id": 1})
        assert result.algorithm_info.mode == "fallback"
        assert len(source.calls_to("get_votes_by_user")) == attempts

    @pytest.mark.asyncio
    async def test_breaker_closes_after_successful_trials(self, source):
        now = [0.0]
        breaker = CircuitBreaker("test", minimum_calls=1, open_seconds=30, clock=lambda: now[0])
        service = FeedService(source, settings=FAST, breaker=breaker)

        source.failures["get_votes_by_user"] = DataAccessError("db down")
        await service.get_personalized_feed({"user_id": 1})
        assert breaker.state == CircuitState.OPEN

        del source.failures["get_votes_by_user"]
        now[0] = 31.0
        for _ in range(3):
            result = await service.get_personalized_feed({"user_id": 1, "limit": 5})
            assert result.algorithm_info.mode == "algorithm"
        assert breaker.state == CircuitState.CLOSED
