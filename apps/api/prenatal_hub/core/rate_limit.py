from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass

from fastapi import HTTPException, status


@dataclass
class WindowCounter:
    start: float
    count: int


_lock = asyncio.Lock()
_counters: dict[str, WindowCounter] = {}
_MAX_KEYS = 20_000


def reset() -> None:
    _counters.clear()


async def consume(*, key: str, limit: int, window_seconds: int) -> None:
    """
    In-memory fixed-window rate limiter.

    Counters live in process memory, so limits apply per worker.
    """
    if limit <= 0:
        return

    now = time.time()
    async with _lock:
        if len(_counters) > _MAX_KEYS:
            _counters.clear()

        c = _counters.get(key)
        if c is None or (now - c.start) >= window_seconds:
            _counters[key] = WindowCounter(start=now, count=1)
            return

        if c.count >= limit:
            retry_after = max(1, math.ceil(window_seconds - (now - c.start)))
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "message": "Too many requests.",
                    "hint": "Please slow down and try again.",
                    "code": "RATE_LIMITED",
                },
                headers={"Retry-After": str(retry_after)},
            )

        c.count += 1
