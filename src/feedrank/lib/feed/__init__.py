"""Personalized feed ranking.

The pipeline stages live in their own modules (validator, aggregator,
candidates, scoring, suggestions, assembler); :class:`FeedService` composes
them with caching, retry, circuit breaking and the fallback feed.
"""

from .scoring import ScoredCandidate
from .service import FeedService
from .snapshot import InteractionSnapshot
from .validator import validate

__all__ = [
    "FeedService",
    "InteractionSnapshot",
    "ScoredCandidate",
    "validate",
]
