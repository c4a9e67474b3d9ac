"""Backoff helpers used when a store write loses a version race."""

from __future__ import annotations

import asyncio
import random


def compute_backoff(attempt: int, base: float = 0.01, factor: float = 2.0, jitter: float = 0.01) -> float:
    """Compute exponential backoff with jitter for conflict retries."""
    delay = base * factor ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int) -> None:
    """Sleep for computed backoff delay before re-running a transition."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)
