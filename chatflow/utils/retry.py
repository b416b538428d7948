"""Backoff helpers for retrying transient collaborator failures."""

from __future__ import annotations

import asyncio
import random

MAX_BACKOFF_SECONDS = 8.0


def compute_backoff(
    attempt: int,
    base: float = 0.5,
    factor: float = 2.0,
    jitter: float = 0.25,
) -> float:
    """Delay before retry number ``attempt`` (1-based), capped, with jitter."""
    delay = min(base * factor ** (attempt - 1), MAX_BACKOFF_SECONDS)
    return delay + random.uniform(0, jitter)


async def sleep_before_retry(attempt: int) -> float:
    """Sleep for the computed backoff delay and return it."""
    delay = compute_backoff(attempt)
    await asyncio.sleep(delay)
    return delay
