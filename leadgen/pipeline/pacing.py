"""
Pacing policies — explicit delay between external calls.

Stages call pacer.pace() between operations. Production uses a fixed interval
(1s per item, 2s per page); tests inject NoopPacer or a recording fake.
"""
import logging
import time

logger = logging.getLogger('pipeline.pacing')


class Pacer:
    """Base policy: pace() blocks until the next operation may proceed."""

    def pace(self):
        raise NotImplementedError


class NoopPacer(Pacer):
    def pace(self):
        return None


class FixedIntervalPacer(Pacer):
    """Sleep a fixed number of seconds on every call."""

    def __init__(self, interval: float, sleep=time.sleep):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self._sleep = sleep

    def pace(self):
        if self.interval:
            self._sleep(self.interval)


class TokenBucketPacer(Pacer):
    """
    Allow bursts up to `capacity` calls, refilling at `rate` tokens/second.

    pace() consumes one token, sleeping just long enough for one to be
    available when the bucket is empty.
    """

    def __init__(self, rate: float, capacity: int = 1, clock=time.monotonic, sleep=time.sleep):
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last = clock()

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last = now

    def pace(self):
        self._refill()
        if self._tokens < 1:
            wait = (1 - self._tokens) / self.rate
            logger.debug("Token bucket empty, waiting %.2fs", wait)
            self._sleep(wait)
            self._refill()
            # Clock may not advance under a fake sleep; the wait paid for one token.
            self._tokens = max(self._tokens, 1.0)
        self._tokens -= 1


def fixed_or_noop(interval: float, sleep=time.sleep) -> Pacer:
    """FixedIntervalPacer for a positive interval, NoopPacer otherwise."""
    if interval and interval > 0:
        return FixedIntervalPacer(interval, sleep=sleep)
    return NoopPacer()
