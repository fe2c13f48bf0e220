"""Retry and circuit-breaker primitives for the feed pipeline.

``with_exponential_backoff`` retries an async callable on a configurable set
of transient exceptions.  ``CircuitBreaker`` tracks the outcome of recent
calls in a count-based sliding window and refuses calls for a cooldown period
once the failure rate crosses its threshold.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import wraps
from typing import Any, TypeVar

from .errors import CLIENT_ERRORS, CircuitOpenError, DataAccessError

logger = logging.getLogger(__name__)

T = TypeVar("T")
AsyncFunc = Callable[..., Awaitable[T]]


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

def with_exponential_backoff(
    max_attempts: int = 3,
    initial_backoff: float = 1.0,
    max_backoff: float = 8.0,
    backoff_factor: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (DataAccessError,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable[[AsyncFunc[T]], AsyncFunc[T]]:
    """Decorator retrying async functions with exponential backoff.

    Args:
        max_attempts: Total number of attempts, including the first one
        initial_backoff: Wait before the second attempt, in seconds
        max_backoff: Upper bound for a single wait
        backoff_factor: Multiplier applied to the wait after each failure
        retry_on: Exception types considered transient; anything else is
            raised immediately
        sleep: Awaitable used to wait between attempts

    Returns:
        Decorator function
    """
    def decorator(func: AsyncFunc[T]) -> AsyncFunc[T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            backoff = initial_backoff

            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt >= max_attempts:
                        logger.error("Giving up after %d attempts: %s", attempt, e)
                        raise

                    logger.warning(
                        "Transient error: %s. Retrying in %.2fs (%d/%d)",
                        e, backoff, attempt + 1, max_attempts,
                    )
                    await sleep(backoff)
                    attempt += 1
                    backoff = min(backoff * backoff_factor, max_backoff)

        return wrapper
    return decorator


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------

class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Count-based circuit breaker.

    CLOSED
        Calls go through.  Once at least ``minimum_calls`` outcomes are in the
        window and the failure rate reaches ``failure_rate_threshold`` percent
        the breaker opens.
    OPEN
        Calls are refused with :class:`CircuitOpenError` until
        ``open_seconds`` have passed, then the breaker turns half-open.
    HALF_OPEN
        Up to ``half_open_calls`` trial calls are let through.  A failing
        trial re-opens the breaker; once every trial has succeeded it closes
        with a fresh window.

    Client errors (``InvalidArgument``/``NotFound``) are not outcomes of the
    protected backend and are ignored.
    """

    def __init__(
        self,
        name: str,
        failure_rate_threshold: float = 50.0,
        sliding_window_size: int = 10,
        minimum_calls: int = 5,
        open_seconds: float = 30.0,
        half_open_calls: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_rate_threshold = failure_rate_threshold
        self.minimum_calls = minimum_calls
        self.open_seconds = open_seconds
        self.half_open_calls = half_open_calls
        self._clock = clock

        self._window: deque[bool] = deque(maxlen=sliding_window_size)
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._trials_started = 0
        self._trials_succeeded = 0
        # bumped on every transition; outcomes of calls admitted under an
        # earlier generation are dropped
        self._generation = 0

    @property
    def state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._clock() - self._opened_at >= self.open_seconds
        ):
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def failure_rate(self) -> float:
        if not self._window:
            return 0.0
        failures = sum(1 for ok in self._window if not ok)
        return failures * 100.0 / len(self._window)

    def _transition(self, state: CircuitState) -> None:
        if state == self._state:
            return
        logger.warning("Circuit '%s' %s -> %s", self.name, self._state.value, state.value)
        self._state = state
        self._generation += 1
        if state == CircuitState.OPEN:
            self._opened_at = self._clock()
        elif state == CircuitState.HALF_OPEN:
            self._trials_started = 0
            self._trials_succeeded = 0
        elif state == CircuitState.CLOSED:
            self._window.clear()

    def _acquire(self) -> int:
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitOpenError(f"Circuit '{self.name}' is open")
        if state == CircuitState.HALF_OPEN:
            if self._trials_started >= self.half_open_calls:
                raise CircuitOpenError(f"Circuit '{self.name}' is half-open and busy")
            self._trials_started += 1
        return self._generation

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._trials_succeeded += 1
            if self._trials_succeeded >= self.half_open_calls:
                self._transition(CircuitState.CLOSED)
            return
        self._window.append(True)

    def record_failure(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
            return
        self._window.append(False)
        if (
            len(self._window) >= self.minimum_calls
            and self.failure_rate >= self.failure_rate_threshold
        ):
            self._transition(CircuitState.OPEN)

    async def call(self, func: AsyncFunc[T], *args: Any, **kwargs: Any) -> T:
        """Invoke *func* under the breaker, recording its outcome."""
        admitted = self._acquire()
        try:
            result = await func(*args, **kwargs)
        except CLIENT_ERRORS + (asyncio.CancelledError,):
            if admitted == self._generation and self._state == CircuitState.HALF_OPEN:
                # the trial told us nothing about the backend
                self._trials_started -= 1
            raise
        except Exception:
            if admitted == self._generation:
                self.record_failure()
            raise
        if admitted == self._generation:
            self.record_success()
        return result
