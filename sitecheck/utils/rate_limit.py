import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window counter keyed by an arbitrary string. Each instance owns
    its own state; construct one per component that needs limiting.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        if max_requests < 1 or window_seconds <= 0:
            raise ValueError("max_requests must be >= 1 and window_seconds > 0")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> RateLimitResult:
        now = self._clock()
        count, reset_at = self._windows.get(key, (0, 0.0))
        if now >= reset_at:
            count, reset_at = 0, now + self.window_seconds
        if count >= self.max_requests:
            self._windows[key] = (count, reset_at)
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)
        count += 1
        self._windows[key] = (count, reset_at)
        return RateLimitResult(allowed=True, remaining=self.max_requests - count, reset_at=reset_at)

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, reset_at) in self._windows.items() if now >= reset_at]
        for k in expired:
            del self._windows[k]
        return len(expired)
