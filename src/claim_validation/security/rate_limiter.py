"""Fixed-window request limiter, partitioned by caller identity."""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from claim_validation.config.settings import RateLimitConfig
from claim_validation.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Counts requests per caller in fixed windows.

    Each caller gets its own window that starts on its first request and
    resets once ``window_seconds`` have elapsed.  The counter table is the
    only state shared between concurrent validations, so every access
    holds the lock.  Expired windows are dropped at most once per window
    length, on the next request.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.Lock()
        # caller_id -> (window_start, count)
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._last_sweep = clock()

    def try_acquire(self, caller_id: str) -> Tuple[bool, float]:
        """Count one request for ``caller_id``.

        Returns:
            Tuple of (allowed, retry_after_seconds). ``retry_after_seconds``
            is 0 when the request is allowed.
        """
        now = self._clock()
        window = self.config.window_seconds
        with self._lock:
            if now - self._last_sweep >= window:
                self._sweep(now)
            start, count = self._windows.get(caller_id, (now, 0))
            if now - start >= window:
                start, count = now, 0
            if count >= self.config.max_requests:
                return False, max(0.0, start + window - now)
            self._windows[caller_id] = (start, count + 1)
            return True, 0.0

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        window = self.config.window_seconds
        expired = [cid for cid, (start, _) in self._windows.items() if now - start >= window]
        for cid in expired:
            del self._windows[cid]
        self._last_sweep = now
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate-limit window(s)")

    def check(self, caller_id: str) -> None:
        """Count one request, raising when the caller is over quota.

        Raises:
            RateLimitExceededError: Caller exceeded ``max_requests`` in the
                current window.
        """
        allowed, retry_after = self.try_acquire(caller_id)
        if not allowed:
            logger.warning(f"Rate limit exceeded for caller '{caller_id}'")
            raise RateLimitExceededError(
                f"Rate limit of {self.config.max_requests} requests per "
                f"{self.config.window_seconds:g}s exceeded",
                retry_after_seconds=retry_after,
            )

    def remaining(self, caller_id: str) -> int:
        now = self._clock()
        with self._lock:
            start, count = self._windows.get(caller_id, (now, 0))
            if now - start >= self.config.window_seconds:
                count = 0
            return max(0, self.config.max_requests - count)

    @property
    def tracked_callers(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
