"""Retry with exponential backoff for remote AI calls.

Only ``RateLimitedError`` is retried: payment, schema and transport failures
are deterministic enough that repeating the call just burns quota.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from frameperfect.config import Settings
from frameperfect.exceptions import RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Up to ``max_attempts`` calls; delay before retry k is ``initial_delay * 2**(k-1)``."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.ai_max_attempts,
            initial_delay=settings.ai_retry_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.initial_delay * (2 ** (attempt - 1))

    async def call(self, fn: Callable[[], Awaitable[T]], *, label: str = "AI call") -> T:
        last_error: RateLimitedError | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except RateLimitedError as e:
                last_error = e
                if attempt >= self.max_attempts:
                    logger.error(
                        "%s rate limited, giving up after %d attempts", label, attempt
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d rate limited, retry in %.1fs",
                    label,
                    attempt,
                    self.max_attempts,
                    delay,
                )
                await self._sleep(delay)

        raise last_error  # type: ignore[misc]
