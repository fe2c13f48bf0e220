"""Prometheus metrics for feed generation.

The ``record_*`` hooks are fire-and-forget: they never raise, so a metrics
problem cannot change the outcome of a feed request.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

FEEDS_GENERATED = Counter(
    "feed_generated_total",
    "Number of personalized feeds generated",
)

FEED_POSTS_SERVED = Counter(
    "feed_posts_served_total",
    "Number of ranked posts returned in personalized feeds",
)

FEED_SUGGESTIONS_SERVED = Counter(
    "feed_suggestions_served_total",
    "Number of suggested accounts returned in personalized feeds",
)

FEED_ERRORS = Counter(
    "feed_errors_total",
    "Number of failed personalized feed pipeline runs",
)

FEED_FALLBACKS = Counter(
    "feed_fallback_total",
    "Number of degraded responses served",
    ["outcome"],
)

FEED_GENERATION_DURATION = Histogram(
    "feed_generation_duration_seconds",
    "Time taken to generate a personalized feed",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def record_feed_generated(post_count: int, suggestion_count: int) -> None:
    try:
        FEEDS_GENERATED.inc()
        FEED_POSTS_SERVED.inc(post_count)
        FEED_SUGGESTIONS_SERVED.inc(suggestion_count)
    except Exception:
        logger.exception("Failed to record feed generation metrics")


def record_feed_error() -> None:
    try:
        FEED_ERRORS.inc()
    except Exception:
        logger.exception("Failed to record feed error metric")


def record_fallback(outcome: str) -> None:
    """*outcome* is ``served`` or ``empty``."""
    try:
        FEED_FALLBACKS.labels(outcome=outcome).inc()
    except Exception:
        logger.exception("Failed to record fallback metric")


def observe_generation_duration(seconds: float) -> None:
    try:
        FEED_GENERATION_DURATION.observe(seconds)
    except Exception:
        logger.exception("Failed to record feed duration metric")
