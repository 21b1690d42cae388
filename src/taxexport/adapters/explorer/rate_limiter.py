import random
import threading
import time

from taxexport.config import settings


class SimpleRateLimiter:
    def __init__(self, requests_per_sec: float) -> None:
        if requests_per_sec <= 0:
            raise ValueError("requests_per_sec must be > 0")
        self._min_interval = 1.0 / requests_per_sec
        self._last_ts = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            sleep_for = self._min_interval - (now - self._last_ts)
            if sleep_for > 0:
                time.sleep(sleep_for)
            self._last_ts = time.monotonic()


def backoff_delay(attempt: int, rate_limited: bool = False) -> float:
    """
    Seconds to wait before retry number `attempt` (0-based): doubling from
    the base up to the cap, jittered by +/-30%. A rate-limited reply never
    waits less than the explorer's metering window.
    """
    delay = min(settings.BLOCKSCOUT_BACKOFF_CAP_SEC, settings.BLOCKSCOUT_BACKOFF_BASE_SEC * (2 ** attempt))
    if rate_limited:
        delay = max(delay, settings.BLOCKSCOUT_RATE_LIMIT_FLOOR_SEC)
    return delay * random.uniform(0.7, 1.3)


def backoff_sleep(attempt: int, rate_limited: bool = False) -> None:
    time.sleep(backoff_delay(attempt, rate_limited=rate_limited))
