"""Fixed-window rate limiting.

One ``RateLimiter`` instance throttles callers by client address; a second,
independent instance throttles tool calls by tool name. Both share this
implementation and differ only in the identifiers they are fed.
"""

import asyncio
import threading
import time
from typing import Callable, Iterable, Optional

from shared.logging import get_logger
from shared.models import RateLimitEntry

logger = get_logger(__name__)

Clock = Callable[[], float]


class RateLimiter:
    """
    Fixed-window request counter keyed by an arbitrary identifier.

    The check-and-increment runs under a single lock, so concurrent callers
    for the same identifier can never both take the last slot of a window.
    ``cleanup`` takes the same lock and holds it for one pass over the
    live entries.
    """

    def __init__(self, name: str = "default", clock: Optional[Clock] = None) -> None:
        self.name = name
        self._clock = clock or time.monotonic
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(
        self,
        identifier: str,
        max_requests: int = 100,
        window_ms: int = 60_000
    ) -> bool:
        """
        Count a request for ``identifier`` and report whether it is admitted.

        Args:
            identifier: Bucket key (client address, tool name, ...)
            max_requests: Requests admitted per window
            window_ms: Window length in milliseconds

        Returns:
            True if admitted, False if the window is exhausted
        """
        with self._lock:
            now = self._clock()
            entry = self._entries.get(identifier)

            if entry is None or now > entry.reset_time:
                self._entries[identifier] = RateLimitEntry(
                    count=1,
                    reset_time=now + window_ms / 1000
                )
                return True

            if entry.count >= max_requests:
                return False

            entry.count += 1
            return True

    def get(self, identifier: str) -> Optional[RateLimitEntry]:
        """Return a copy of the current entry for ``identifier``, if any."""
        with self._lock:
            entry = self._entries.get(identifier)
            return entry.model_copy() if entry is not None else None

    def cleanup(self) -> int:
        """
        Remove every entry whose window has expired.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now > entry.reset_time]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Rate limit entries evicted", limiter=self.name, count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def run_periodic_cleanup(
    limiters: Iterable[RateLimiter],
    interval_seconds: float = 300
) -> None:
    """
    Sweep expired entries from each limiter on a fixed interval.

    Runs until cancelled; meant to be started as a background task.
    """
    limiters = list(limiters)
    logger.info(
        "Rate limit cleanup started",
        limiters=[limiter.name for limiter in limiters],
        interval_seconds=interval_seconds
    )
    while True:
        await asyncio.sleep(interval_seconds)
        for limiter in limiters:
            limiter.cleanup()
