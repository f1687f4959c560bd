"""Per-source request budget: a call quota per run plus minimum spacing."""

import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


class QuotaExhausted(RuntimeError):
    """Raised when a metered source has used up its calls for this run."""


class RateLimiter:
    """Allow at most ``quota`` calls, at least ``min_interval`` seconds apart.

    The quota is a fixed window that starts at the first call and lasts
    ``window`` seconds (one script run by default, so effectively forever).
    ``clock`` and ``sleep`` are injectable for tests.
    """

    def __init__(
        self,
        name: str,
        quota: int | None = None,
        min_interval: float = 0.0,
        window: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.name = name
        self.quota = quota
        self.min_interval = min_interval
        self.window = window
        self.clock = clock
        self.sleep = sleep
        self.calls = 0
        self._window_start: float | None = None
        self._last_call: float | None = None

    @property
    def remaining(self) -> int | None:
        if self.quota is None:
            return None
        return max(self.quota - self.calls, 0)

    def acquire(self) -> None:
        """Block until the next call is allowed, or raise QuotaExhausted."""
        now = self.clock()
        if self.window is not None and self._window_start is not None:
            if now - self._window_start >= self.window:
                self._window_start = now
                self.calls = 0

        if self.quota is not None and self.calls >= self.quota:
            raise QuotaExhausted(f"{self.name}: quota of {self.quota} calls used")

        if self._last_call is not None and self.min_interval > 0:
            elapsed = now - self._last_call
            if elapsed < self.min_interval:
                self.sleep(self.min_interval - elapsed)
                now = self.clock()

        if self._window_start is None:
            self._window_start = now
        self._last_call = now
        self.calls += 1
        if self.quota is not None and self.remaining == 0:
            logger.info("%s: last call of this run's quota", self.name)
