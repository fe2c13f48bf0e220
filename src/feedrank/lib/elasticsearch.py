"""Shared Elasticsearch utilities.

Helpers for working with Elasticsearch responses that are used by the
Elasticsearch-backed data source.
"""

import logging

from elastic_transport import ObjectApiResponse

from .errors import DataAccessError

logger = logging.getLogger(__name__)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises ``DataAccessError`` if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise DataAccessError("Invalid Elasticsearch response")


def hit_sources(resp) -> list[dict]:
    """Return the ``_source`` documents of a search response, skipping empty hits."""
    data = unwrap_es_response(resp)
    sources: list[dict] = []
    for hit in data.get("hits", {}).get("hits", []):
        src = hit.get("_source")
        if src:
            sources.append(src)
    return sources
