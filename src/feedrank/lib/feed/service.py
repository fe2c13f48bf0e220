"""Personalized feed generation with caching and graceful degradation.

``FeedService.get_personalized_feed`` is the entry point used by the API.
The failure handling is composed explicitly, outermost first::

    cache lookup
      -> circuit breaker
           -> retry (DataAccessError only)
                -> pipeline: aggregate -> select -> score/rank
                             -> suggest accounts -> assemble
      -> fallback (popular posts) when the breaker refuses or the
         pipeline still fails after retries
      -> empty feed when the fallback fails too

Only ``InvalidArgument`` and ``NotFound`` are raised to the caller.
Successful personalized feeds are cached; fallback feeds never are, so the
next request tries the full pipeline again.
"""

import logging
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ...config import FeedSettings
from ...models import AlgorithmInfo, FeedRequest, FeedResult, PageSpec
from ..cache import FeedCache, feed_cache_key
from ..datasource import FeedDataSource, guarded_read
from ..errors import CLIENT_ERRORS, DataAccessError, FallbackError
from ..metrics import observe_generation_duration, record_fallback, record_feed_error
from ..resilience import CircuitBreaker, with_exponential_backoff
from . import scoring
from .aggregator import InteractionAggregator
from .assembler import assemble, to_feed_post
from .candidates import CandidateSelector, apply_content_filters
from .suggestions import AccountSuggester
from .validator import validate

logger = logging.getLogger(__name__)

FALLBACK_MODE = "fallback"
FALLBACK_SCORE = 50.0
FALLBACK_REASONS = ["Popular post"]
FALLBACK_FACTORS = ["Fallback: Popular posts only"]


class FeedService:
    """Builds personalized feeds from a :class:`FeedDataSource`."""

    def __init__(
        self,
        source: FeedDataSource,
        cache: FeedCache | None = None,
        settings: FeedSettings | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        settings = settings or FeedSettings()
        self._source = source
        self._cache = cache or FeedCache(ttl_seconds=settings.cache_ttl_seconds)
        self._aggregator = InteractionAggregator(
            source, timeout=settings.aggregation_timeout_seconds
        )
        self._selector = CandidateSelector(source)
        self._suggester = AccountSuggester(
            source,
            timeout=settings.aggregation_timeout_seconds,
            max_concurrent_reads=settings.suggestion_max_concurrent_reads,
        )

        self.breaker = breaker or CircuitBreaker(
            "feedService",
            failure_rate_threshold=settings.circuit_failure_rate_threshold,
            sliding_window_size=settings.circuit_sliding_window_size,
            minimum_calls=settings.circuit_minimum_calls,
            open_seconds=settings.circuit_open_seconds,
            half_open_calls=settings.circuit_half_open_calls,
        )
        self._generate_with_retry = with_exponential_backoff(
            max_attempts=settings.retry_max_attempts,
            initial_backoff=settings.retry_initial_backoff,
            max_backoff=settings.retry_max_backoff,
            backoff_factor=settings.retry_backoff_factor,
            retry_on=(DataAccessError,),
        )(self.generate)

    # -----------------------------------------------------------------------
    # Public entry point
    # -----------------------------------------------------------------------

    async def get_personalized_feed(self, raw: FeedRequest | Mapping[str, Any]) -> FeedResult:
        """Return the feed for the request, degrading instead of failing.

        Raises ``InvalidArgument`` for malformed requests and ``NotFound``
        for unknown users; every other failure yields a fallback or empty
        ``FeedResult``.
        """
        request = validate(raw)
        key = feed_cache_key(request)

        cached = await self._cache.get(key)
        if cached is not None and cached.ranked_posts:
            logger.debug("Serving cached feed %s", key)
            return cached

        try:
            result = await self.breaker.call(self._generate_with_retry, request)
        except CLIENT_ERRORS:
            raise
        except DataAccessError as exc:
            # includes CircuitOpenError: the breaker routes straight here
            record_feed_error()
            return await self.fallback_feed(request, exc)
        except Exception as exc:
            logger.exception("Unexpected failure generating feed for user %s", request.user_id)
            record_feed_error()
            return await self.fallback_feed(request, exc)

        if result.ranked_posts:
            await self._cache.set(key, result)
        return result

    # -----------------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------------

    async def generate(self, request: FeedRequest) -> FeedResult:
        """Run the personalized pipeline once, without caching or fallback."""
        started = time.perf_counter()
        now = datetime.now(timezone.utc)

        snapshot = await self._aggregator.aggregate(request.user_id)
        candidates = await self._selector.select_candidates(snapshot, request)
        ranked = scoring.rank(candidates, snapshot, request, now)
        suggestions = await self._suggester.suggest_accounts(snapshot, request.user_id)

        elapsed = time.perf_counter() - started
        observe_generation_duration(elapsed)
        return assemble(request, ranked, suggestions, snapshot, int(elapsed * 1000))

    # -----------------------------------------------------------------------
    # Degraded mode
    # -----------------------------------------------------------------------

    async def _popular_feed(self, request: FeedRequest) -> FeedResult:
        try:
            posts = await guarded_read(
                "popular posts",
                self._source.get_popular_posts(PageSpec(size=request.limit, sort_by="score")),
            )
            posts = apply_content_filters(posts, request)[:request.limit]
            feed_posts = [
                to_feed_post(p, FALLBACK_SCORE, FALLBACK_REASONS) for p in posts
            ]
            return FeedResult(
                ranked_posts=feed_posts,
                suggested_accounts=[],
                algorithm_info=AlgorithmInfo(
                    mode=FALLBACK_MODE,
                    decay_factor=0.0,
                    factors_considered=list(FALLBACK_FACTORS),
                    processing_time_ms=0,
                ),
                total_candidates=len(feed_posts),
                has_more=False,
            )
        except Exception as exc:
            raise FallbackError("Popular posts fallback failed") from exc

    async def fallback_feed(self, request: FeedRequest, cause: BaseException | None = None) -> FeedResult:
        """Non-personalized popular posts; an empty feed if even that fails."""
        logger.warning("Using fallback feed for user %s due to: %s", request.user_id, cause)
        try:
            result = await self._popular_feed(request)
        except FallbackError as exc:
            logger.error(
                "Fallback feed also failed for user %s: %s", request.user_id, exc.__cause__
            )
            record_fallback("empty")
            return FeedResult.empty()

        record_fallback("served")
        return result
