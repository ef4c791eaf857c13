"""Randomized waits used to pace requests against listing sites."""
from __future__ import annotations

import asyncio
import random


def jitter_ms(min_ms: int, max_ms: int) -> int:
    """Return a random delay in milliseconds within ``[min_ms, max_ms]``."""
    if max_ms < min_ms:
        min_ms, max_ms = max_ms, min_ms
    return random.randint(min_ms, max_ms)


async def random_delay(min_ms: int = 2000, max_ms: int = 5000) -> int:
    """Sleep for a random interval and return the chosen delay in ms."""
    delay = jitter_ms(min_ms, max_ms)
    await asyncio.sleep(delay / 1000)
    return delay


async def backoff(attempt: int) -> int:
    """Linear backoff between navigation retries: 2s, 4s, 6s, ..."""
    wait_seconds = (attempt + 1) * 2
    await asyncio.sleep(wait_seconds)
    return wait_seconds
