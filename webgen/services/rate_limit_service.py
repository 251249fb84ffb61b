"""
Rate limiting service for image provider calls.

Wraps a single RateWindow shared by every in-flight request so the
provider never sees more than the configured number of calls per
window, whichever user triggered them.
"""

from typing import Awaitable, Callable, Optional, Tuple
import asyncio
import time

from webgen.models.rate_limit import RateWindow
from webgen.config import get_settings
from webgen.utils.logger import get_logger

logger = get_logger("services.rate_limit")


class RateLimitExhaustedError(Exception):
    """Raised when a call is still throttled after the maximum retries."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Rate limit exceeded after {attempts} attempts")


class RateLimitService:
    """
    Serialized rate limiter with fixed backoff and bounded retries.

    Attributes:
        window: The one RateWindow all callers contend for
        backoff_seconds: Fixed delay before retrying a refused call
        max_retries: Retries after the first refusal before giving up
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        interval_seconds: Optional[float] = None,
        backoff_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limit service.

        Args:
            limit: Override config image_rate_limit
            interval_seconds: Override config image_rate_interval_seconds
            backoff_seconds: Override config image_backoff_seconds
            max_retries: Override config image_max_retries
            sleep: Coroutine used to wait between attempts
            clock: Monotonic time source
        """
        settings = get_settings()
        self.window = RateWindow(
            limit=limit or settings.image_rate_limit,
            interval_seconds=interval_seconds or settings.image_rate_interval_seconds,
        )
        self.backoff_seconds = (
            settings.image_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self.max_retries = settings.image_max_retries if max_retries is None else max_retries

        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._total_granted = 0
        self._total_refused = 0

        logger.info(
            f"RateLimitService initialized: {self.window.limit} calls/"
            f"{self.window.interval_seconds}s, backoff={self.backoff_seconds}s, "
            f"max_retries={self.max_retries}"
        )

    async def try_acquire(self) -> Tuple[bool, float]:
        """
        Make one atomic acquisition attempt.

        Returns:
            Tuple of (granted, seconds_until_reset)
        """
        async with self._lock:
            granted, seconds_until_reset = self.window.try_acquire(self._clock())
            if granted:
                self._total_granted += 1
            else:
                self._total_refused += 1
            return (granted, seconds_until_reset)

    async def acquire(self) -> int:
        """
        Wait until a call is granted.

        Sleeps the fixed backoff after every refusal and gives up after
        ``max_retries`` retries.

        Returns:
            Number of attempts it took

        Raises:
            RateLimitExhaustedError: If every attempt was refused
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            granted, seconds_until_reset = await self.try_acquire()
            if granted:
                return attempt

            if attempt == attempts:
                break

            logger.warning(
                f"Image rate limit reached, retrying in {self.backoff_seconds}s "
                f"(attempt {attempt}/{attempts}, window resets in {seconds_until_reset:.1f}s)"
            )
            await self._sleep(self.backoff_seconds)

        logger.error(f"Image rate limit exhausted after {attempts} attempts")
        raise RateLimitExhaustedError(attempts)

    async def backoff(self, attempt: int) -> None:
        """
        Wait before retrying a call the provider itself throttled.

        Args:
            attempt: Attempt number that was throttled (for logging)
        """
        logger.warning(
            f"Provider throttled attempt {attempt}, retrying in {self.backoff_seconds}s"
        )
        await self._sleep(self.backoff_seconds)

    async def reset(self) -> None:
        """Clear the current window (admin override)."""
        async with self._lock:
            self.window.reset()
            logger.info("Image rate limit window reset")

    def get_stats(self) -> dict:
        """Get service statistics for monitoring."""
        return {
            **self.window.to_dict(),
            "backoff_seconds": self.backoff_seconds,
            "max_retries": self.max_retries,
            "total_granted": self._total_granted,
            "total_refused": self._total_refused,
        }


# Process-wide instance shared by all requests; lives until
# close_rate_limit_service() is called at shutdown.
_rate_limit_service: Optional[RateLimitService] = None


def get_rate_limit_service() -> RateLimitService:
    """Get or create the global RateLimitService instance."""
    global _rate_limit_service
    if _rate_limit_service is None:
        _rate_limit_service = RateLimitService()
    return _rate_limit_service


def close_rate_limit_service() -> None:
    """Drop the global RateLimitService instance."""
    global _rate_limit_service
    _rate_limit_service = None
