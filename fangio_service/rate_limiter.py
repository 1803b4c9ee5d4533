import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass
class _Window:
    count: int
    start_ms: float


class FixedWindowRateLimiter:
    """Fixed-window request counter keyed by client address.

    Coarse on purpose: no sliding window and no shared state between
    processes. It only has to blunt request storms from a single origin.
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_ms: int = 60000,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.max_requests = max_requests if max_requests > 0 else 30
        self.window_ms = window_ms if window_ms > 0 else 60000
        self._clock = clock or (lambda: time.time() * 1000)
        self._windows: Dict[str, _Window] = {}

    def is_limited(self, key: str) -> bool:
        """Count a request for ``key`` and report whether it must be rejected."""
        now_ms = self._clock()
        window = self._windows.get(key)

        if window is None or now_ms - window.start_ms >= self.window_ms:
            self._windows[key] = _Window(count=1, start_ms=now_ms)
            return False

        if window.count >= self.max_requests:
            return True

        window.count += 1
        return False

    def reset(self) -> None:
        self._windows.clear()
