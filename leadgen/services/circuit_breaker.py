"""
Redis-backed circuit breakers for the external services the pipeline calls
(GitHub, OpenAI, Resend).

States:
  - CLOSED    → calls pass through
  - OPEN      → `failure_threshold` consecutive failures; calls raise CircuitOpenError
  - HALF_OPEN → `reset_timeout` seconds after the last failure; one trial call allowed

State lives in Redis so every web process and RQ worker shares it. If Redis
itself is unreachable the breaker fails open (calls proceed).
"""
import logging
import time
from functools import wraps

from leadgen.errors import LeadgenError

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(LeadgenError):
    """Raised when calling through an open circuit breaker."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN — service unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('github', redis_client, failure_threshold=5, reset_timeout=120)
        page = cb.call(session.get, url, params=params)
    """

    PREFIX = 'cb'

    def __init__(self, name, redis_client, failure_threshold=3, reset_timeout=300):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    def _key(self, suffix):
        return f'{self.PREFIX}:{self.name}:{suffix}'

    # ── State ─────────────────────────────────────────────────────────

    @property
    def state(self):
        try:
            current = self.redis.get(self._key('state'))
            if current is None:
                return CLOSED
            if current == OPEN:
                last = self.redis.get(self._key('last_failure'))
                if last and (time.time() - float(last)) > self.reset_timeout:
                    self.redis.set(self._key('state'), HALF_OPEN)
                    return HALF_OPEN
            return current
        except Exception:
            return CLOSED

    @property
    def failure_count(self):
        try:
            value = self.redis.get(self._key('failures'))
            return int(value) if value else 0
        except Exception:
            return 0

    def get_health(self):
        """Counters for the /api/health endpoint."""
        try:
            data = self.redis.hgetall(self._key('health')) or {}
        except Exception:
            data = {}
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': self.failure_count,
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(data.get('success', 0)),
            'total_failure': int(data.get('failure', 0)),
            'last_error': data.get('last_error', ''),
        }

    # ── Calls ─────────────────────────────────────────────────────────

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker."""
        if self.state == OPEN:
            retry_after = None
            try:
                last = self.redis.get(self._key('last_failure'))
                if last:
                    retry_after = max(0, self.reset_timeout - (time.time() - float(last)))
            except Exception:
                pass
            raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def protect(self, func):
        """Decorator form of call()."""
        @wraps(func)
        def wrapper(*args, **kwargs):
            return self.call(func, *args, **kwargs)
        return wrapper

    def reset(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.delete(self._key('last_failure'))
            pipe.execute()
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except Exception as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def _on_success(self):
        try:
            pipe = self.redis.pipeline()
            pipe.set(self._key('state'), CLOSED)
            pipe.set(self._key('failures'), 0)
            pipe.hincrby(self._key('health'), 'success', 1)
            pipe.execute()
        except Exception:
            pass

    def _on_failure(self, error):
        try:
            count = int(self.redis.incr(self._key('failures')))
            self.redis.set(self._key('last_failure'), str(time.time()))
            pipe = self.redis.pipeline()
            pipe.hincrby(self._key('health'), 'failure', 1)
            pipe.hset(self._key('health'), 'last_error', str(error)[:200])
            pipe.execute()
        except Exception:
            return
        if count >= self.failure_threshold:
            self.redis.set(self._key('state'), OPEN)
            logger.warning("Circuit '%s' OPENED after %d failures: %s", self.name, count, error)
        else:
            logger.info("Circuit '%s' failure %d/%d: %s", self.name, count, self.failure_threshold, error)


# ── Registry ──────────────────────────────────────────────────────────────────

_registry = {}

# name → (failure_threshold, reset_timeout)
SERVICE_LIMITS = {
    'github': (5, 120),
    'openai': (5, 60),
    'resend': (3, 180),
}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named breaker (one per name per process)."""
    if name not in _registry:
        if redis_client is None:
            from leadgen.extensions import redis_client as rc
            redis_client = rc
        threshold, timeout = SERVICE_LIMITS.get(name, (3, 300))
        kwargs.setdefault('failure_threshold', threshold)
        kwargs.setdefault('reset_timeout', timeout)
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the standard breakers against a Redis client."""
    for name, (threshold, timeout) in SERVICE_LIMITS.items():
        _registry[name] = CircuitBreaker(
            name, redis_client, failure_threshold=threshold, reset_timeout=timeout,
        )
    return dict(_registry)
