import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum spacing between calls to one external service; callers block until their slot"""

    def __init__(
        self,
        min_interval: float,
        name: str = 'api',
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self.name = name
        self.clock = clock
        self.sleep = sleep
        self.last_call = None
        self.total_wait = 0.0
        self._lock = threading.Lock()

    def wait(self):
        """Sleep until min_interval has passed since the previous call, then claim the slot"""
        with self._lock:
            if self.last_call is not None:
                remaining = self.min_interval - (self.clock() - self.last_call)
                if remaining > 0:
                    logger.debug(f"Rate limiting {self.name}: sleeping {remaining:.2f} seconds")
                    self.sleep(remaining)
                    self.total_wait += remaining
            self.last_call = self.clock()
