"""
Rate limiters decide how long a failed item waits before the workqueue hands
it out again. They follow the limiters of client-go's workqueue.
"""
import dataclasses
import math
import time

from typing import Dict, List


class RateLimiter:
    # Interface

    def delay(self, item):
        """Record a failure of item, return the seconds it has to wait."""
        raise NotImplementedError()

    def forget(self, item):
        """Drop the failure history of item, e.g. once it was processed."""
        raise NotImplementedError()

    def count(self, item):
        """Return the number of failures recorded for item."""
        raise NotImplementedError()


@dataclasses.dataclass
class ItemExponentialFailureRateLimiter(RateLimiter):
    """Per item backoff of base_delay * 2^failures, capped at max_delay."""

    base_delay: float = 0.005
    max_delay: float = 1000
    failures: Dict[object, int] = dataclasses.field(default_factory=dict, init=False)

    def delay(self, item):
        exponent = self.failures.get(item, 0)
        self.failures[item] = exponent + 1
        try:
            return min(math.ldexp(self.base_delay, exponent), self.max_delay)
        except OverflowError:
            return self.max_delay

    def forget(self, item):
        self.failures.pop(item, None)

    def count(self, item):
        return self.failures.get(item, 0)


@dataclasses.dataclass
class BucketRateLimiter(RateLimiter):
    """Token bucket shared by all items.

    Bursts of up to `capacity` items pass without delay. Once the bucket is
    empty every further item waits one refill interval longer than the one
    before it.
    """

    capacity: int = 100
    # Tokens added per second.
    rate: float = 10
    max_delay: float = 1000

    def __post_init__(self):
        self._tokens = float(self.capacity)
        self._refilled = time.monotonic()
        self._backlog = 0

    def _refill(self):
        now = time.monotonic()
        self._tokens = min(self.capacity, self._tokens + (now - self._refilled) * self.rate)
        self._refilled = now

    def delay(self, item):
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            self._backlog = 0
            return 0
        self._backlog += 1
        return min(self._backlog / self.rate, self.max_delay)

    def forget(self, item):
        pass

    def count(self, item):
        return 0


class MaxOfRateLimiter(RateLimiter):
    """Asks every limiter and goes with the longest delay."""

    def __init__(self, *limiters):
        self.limiters: List[RateLimiter] = list(limiters)

    def __repr__(self):
        return f'<MaxOfRateLimiter {self.limiters!r}>'

    def delay(self, item):
        return max(limiter.delay(item) for limiter in self.limiters)

    def forget(self, item):
        for limiter in self.limiters:
            limiter.forget(item)

    def count(self, item):
        return max(limiter.count(item) for limiter in self.limiters)


def default_rate_limiter(settings=None):
    """Per item backoff combined with an overall bucket, tuned by the given
    QueueSettings.
    """
    if settings is None:
        return MaxOfRateLimiter(ItemExponentialFailureRateLimiter(), BucketRateLimiter())
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
        ),
        BucketRateLimiter(
            capacity=settings.bucket_capacity,
            rate=settings.bucket_rate,
        ),
    )
