"""Exception hierarchy for feed generation.

Only :class:`InvalidArgument` and :class:`NotFound` are meant to reach the
HTTP layer.  Every other failure is turned into a degraded response by
:class:`~feedrank.lib.feed.service.FeedService`.
"""


class FeedError(Exception):
    """Base class for all feed generation errors."""


class InvalidArgument(FeedError):
    """The caller supplied a malformed or out-of-range request."""


class NotFound(FeedError):
    """A requested user or account does not exist."""


class DataAccessError(FeedError):
    """Reading from the data layer failed (timeouts, transport errors...)."""


class CircuitOpenError(DataAccessError):
    """The circuit breaker refused the call without attempting it."""


class FallbackError(FeedError):
    """The degraded popular-posts path failed as well."""


# Caller errors. These skip retry and the circuit breaker and reach the router.
CLIENT_ERRORS = (InvalidArgument, NotFound)
