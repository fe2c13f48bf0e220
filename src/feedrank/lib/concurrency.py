"""All-or-nothing concurrent fan-out."""

import asyncio
from collections.abc import Awaitable


async def _gated(gate: asyncio.Semaphore, aw: Awaitable):
    try:
        async with gate:
            return await aw
    finally:
        # a task cancelled while queued never started its coroutine
        if asyncio.iscoroutine(aw):
            aw.close()


async def run_all(
    *aws: Awaitable,
    timeout: float | None = None,
    limit: int | None = None,
) -> list:
    """Run *aws* concurrently and return their results in order.

    Built on ``asyncio.TaskGroup``: the first failure cancels every task still
    in flight and is re-raised on its own (not wrapped in an exception group).
    When *timeout* is given all tasks share that deadline and ``TimeoutError``
    is raised once it passes.  *limit* caps how many of the awaitables run at
    the same time; the rest wait their turn.
    """
    gate = asyncio.Semaphore(limit) if limit else None
    try:
        async with asyncio.timeout(timeout):
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(_gated(gate, aw) if gate is not None else aw)
                    for aw in aws
                ]
    except BaseExceptionGroup as group:
        error = _first_leaf(group)
    else:
        return [t.result() for t in tasks]
    # raised outside the handler so the leaf keeps its own __cause__
    raise error


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc
