import logging
import time

from partsfeed.config import settings

logger = logging.getLogger(__name__)


# Simple token bucket rate limiter; rate_per_min <= 0 disables throttling.
# At most `burst` calls go out back to back, after that calls are spaced 60/rate seconds apart.
class RateLimiter:
    def __init__(self, rate_per_min: int, burst: int = 1) -> None:
        self.rate = max(0, int(rate_per_min))
        self.capacity = max(1, int(burst))
        self.tokens = float(self.capacity)
        self.refill_time = 60.0
        self.last = time.monotonic()

    def acquire(self) -> None:
        if self.rate <= 0:
            return
        now = time.monotonic()
        elapsed = now - self.last
        self.last = now
        self.tokens = min(self.capacity, self.tokens + elapsed * (self.rate / self.refill_time))
        if self.tokens < 1:
            sleep_for = (1 - self.tokens) * (self.refill_time / self.rate)
            logger.debug("Rate limit reached; sleeping %.2fs", sleep_for)
            time.sleep(max(0.0, sleep_for))
            self.last = time.monotonic()
            self.tokens = 1
        self.tokens -= 1


def shopify_limiter() -> RateLimiter:
    return RateLimiter(settings.SHOPIFY_RATE_LIMIT_PER_MIN, settings.SHOPIFY_BURST)
