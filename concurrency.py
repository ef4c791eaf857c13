"""Bounded admission for detail-page work."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY_LIMIT = 3


class ConcurrencyLimiter:
    """Run at most ``limit`` coroutines at once.

    Waiting tasks are admitted in the order they were submitted. ``active``
    and ``peak`` report how many tasks are running now and the most that
    ever ran together.
    """

    def __init__(self, limit: int = DEFAULT_CONCURRENCY_LIMIT):
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1")
        self.limit = limit
        self.active = 0
        self.peak = 0
        self._semaphore = asyncio.Semaphore(limit)

    async def run(self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        async with self._semaphore:
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                return await fn(*args, **kwargs)
            finally:
                self.active -= 1

    async def map(self, fn: Callable[[T], Awaitable[R]], items: Iterable[T]) -> List[R]:
        """Apply ``fn`` to every item; results keep the input order."""
        return list(await asyncio.gather(*(self.run(fn, item) for item in items)))
