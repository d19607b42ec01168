"""
Pacing for external AI provider calls.

One limiter per provider is shared by every caller in the process. A call
holds a concurrency slot for its whole duration and is admitted only when
the sliding one-minute window has room and the minimum spacing since the
previous admission has passed.

Failed calls are never retried here; callers decide whether to try again.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional


logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_concurrent: int = 3  # Max concurrent API calls
    requests_per_minute: int = 50
    min_delay_between_calls: float = 0.1  # Seconds


class ProviderRateLimiter:
    """
    Rate limiter shared by every caller of one provider.

    Example:
        limiter = ProviderRateLimiter.for_embeddings()

        async with limiter.acquire():
            result = await provider_call()
    """

    _embeddings_instance: Optional["ProviderRateLimiter"] = None
    _chat_instance: Optional["ProviderRateLimiter"] = None

    def __init__(self, config: Optional[RateLimitConfig] = None, name: str = "provider"):
        self.config = config or RateLimitConfig()
        self.name = name
        self._slots = asyncio.Semaphore(self.config.max_concurrent)
        self._admitted: Deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    def for_embeddings(cls) -> "ProviderRateLimiter":
        """Shared limiter for the embeddings provider."""
        if cls._embeddings_instance is None:
            cls._embeddings_instance = cls(RateLimitConfig(
                max_concurrent=5,
                requests_per_minute=200,
                min_delay_between_calls=0.05
            ), name="embeddings")
        return cls._embeddings_instance

    @classmethod
    def for_chat(cls) -> "ProviderRateLimiter":
        """Shared limiter for the chat completion provider."""
        if cls._chat_instance is None:
            cls._chat_instance = cls(RateLimitConfig(
                max_concurrent=3,
                requests_per_minute=50,
                min_delay_between_calls=0.2
            ), name="chat")
        return cls._chat_instance

    @classmethod
    def reset_instances(cls):
        """Drop the shared limiters (their asyncio primitives are loop-bound)."""
        cls._embeddings_instance = None
        cls._chat_instance = None

    def acquire(self) -> "_ProviderSlot":
        """Async context manager holding one slot for the duration of a call."""
        return _ProviderSlot(self)

    def _delay_needed(self, now: float) -> float:
        while self._admitted and now - self._admitted[0] >= WINDOW_SECONDS:
            self._admitted.popleft()

        delay = 0.0
        if len(self._admitted) >= self.config.requests_per_minute:
            delay = WINDOW_SECONDS - (now - self._admitted[0])
        if self._admitted:
            delay = max(delay, self.config.min_delay_between_calls - (now - self._admitted[-1]))
        return max(delay, 0.0)

    async def _admit(self):
        async with self._lock:
            delay = self._delay_needed(time.monotonic())
            while delay > 0:
                if delay > 1:
                    logger.info(f"{self.name} rate limit reached; waiting {delay:.1f}s")
                await asyncio.sleep(delay)
                delay = self._delay_needed(time.monotonic())
            self._admitted.append(time.monotonic())


class _ProviderSlot:
    def __init__(self, limiter: ProviderRateLimiter):
        self.limiter = limiter

    async def __aenter__(self):
        await self.limiter._slots.acquire()
        try:
            await self.limiter._admit()
        except BaseException:
            self.limiter._slots.release()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.limiter._slots.release()
        return False
