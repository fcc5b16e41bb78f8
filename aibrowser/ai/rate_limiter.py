import time
from typing import Callable, List


class RateLimiter:
    """Sliding-window admission: at most ``max_requests`` per ``window`` seconds."""

    def __init__(self, max_requests: int = 20, window: float = 60.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: List[float] = []

    def _prune(self, now: float) -> None:
        self._requests = [t for t in self._requests if now - t < self.window]

    def check_limit(self) -> bool:
        now = self._clock()
        self._prune(now)
        if len(self._requests) >= self.max_requests:
            return False
        self._requests.append(now)
        return True

    def retry_after(self) -> float:
        now = self._clock()
        self._prune(now)
        if not self._requests or len(self._requests) < self.max_requests:
            return 0.0
        return max(0.0, self._requests[0] + self.window - now)

    def remaining(self) -> int:
        self._prune(self._clock())
        return max(0, self.max_requests - len(self._requests))

    def reset(self) -> None:
        self._requests = []
