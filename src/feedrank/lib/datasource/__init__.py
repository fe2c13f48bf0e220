"""Data-layer access for the feed engine.

The engine only depends on :class:`FeedDataSource`; the Elasticsearch
implementation is wired in by the app lifespan.
"""

from .base import FeedDataSource, guarded_read
from .elasticsearch import ElasticsearchFeedDataSource

__all__ = [
    "FeedDataSource",
    "ElasticsearchFeedDataSource",
    "guarded_read",
]
