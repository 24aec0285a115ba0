"""
Bounded retry with linear backoff for the commentary backend.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ``max_attempts`` times; after failed attempt ``i`` (1-based) wait
    ``base_delay_s * i`` before the next one. No wait follows the last attempt.
    """
    max_attempts: int = 3
    base_delay_s: float = 5.0
    sleep: Sleep = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")

    def delay_after(self, attempt: int) -> float:
        return self.base_delay_s * attempt

    def is_last(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    async def backoff(self, attempt: int) -> float:
        delay = self.delay_after(attempt)
        await self.sleep(delay)
        return delay
