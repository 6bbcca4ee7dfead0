"""Bounded Fan-out: run one coroutine per item with a concurrency cap, join all.

Invariants:
    - At most `limit` calls in flight at any moment
    - Results are returned in input order
    - Join semantics: the first failure propagates; remaining calls are cancelled
"""

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    call: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    if limit < 1:
        raise ValueError("fan-out limit must be >= 1")
    semaphore = asyncio.Semaphore(limit)

    async def _run(item: T) -> R:
        async with semaphore:
            return await call(item)

    tasks = [asyncio.ensure_future(_run(item)) for item in items]
    if not tasks:
        return []
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
