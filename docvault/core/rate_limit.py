"""Rate limiting with swappable storage.

``RateLimiter`` holds the policy (requests per minute); a ``RateLimitStore``
holds the counters. ``MemoryRateLimitStore`` keeps token buckets in the
process and suits a single instance. ``RedisRateLimitStore`` keeps
fixed-window counters in Redis so several instances share one budget.
"""

import logging
import threading
import time
from typing import Optional, Protocol

import redis

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    def hit(self, key: str, max_per_minute: int, now: Optional[float] = None) -> tuple[bool, float]:
        """Count one request for *key*. Returns ``(allowed, retry_after)``."""
        ...


class MemoryRateLimitStore:
    """Token bucket per key, guarded by a lock.

    Bucket state: {key: (available_tokens, last_refill_timestamp)}.
    Stale entries are evicted every ``evict_every`` calls so rotating client
    addresses cannot grow the map without bound.
    """

    def __init__(self, evict_every: int = 100, evict_age: float = 120.0):
        self._buckets: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()
        self._calls = 0
        self._evict_every = evict_every
        self._evict_age = evict_age

    def __len__(self) -> int:
        return len(self._buckets)

    def hit(self, key: str, max_per_minute: int, now: Optional[float] = None) -> tuple[bool, float]:
        if now is None:
            now = time.monotonic()
        with self._lock:
            self._calls += 1
            if self._calls % self._evict_every == 0:
                cutoff = now - self._evict_age
                for stale in [k for k, (_, ts) in self._buckets.items() if ts < cutoff]:
                    del self._buckets[stale]

            refill_rate = max_per_minute / 60.0  # tokens per second
            if key in self._buckets:
                tokens, last_refill = self._buckets[key]
                tokens = min(max_per_minute, tokens + (now - last_refill) * refill_rate)
            else:
                tokens = float(max_per_minute)

            if tokens >= 1.0:
                self._buckets[key] = (tokens - 1.0, now)
                return True, 0.0

            self._buckets[key] = (tokens, now)
            return False, (1.0 - tokens) / refill_rate


class RedisRateLimitStore:
    """Fixed one-minute windows: ``INCR`` a per-window key, ``EXPIRE`` it.

    If Redis is unreachable the request is allowed and a warning logged;
    losing the limiter must not take the API down.
    """

    WINDOW_SECONDS = 60

    def __init__(self, client: "redis.Redis", prefix: str = "docvault:rate:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "docvault:rate:") -> "RedisRateLimitStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
        return cls(client, prefix=prefix)

    def hit(self, key: str, max_per_minute: int, now: Optional[float] = None) -> tuple[bool, float]:
        if now is None:
            now = time.time()
        window = int(now // self.WINDOW_SECONDS)
        full_key = f"{self._prefix}{key}:{window}"
        try:
            pipe = self._client.pipeline()
            pipe.incr(full_key)
            pipe.expire(full_key, self.WINDOW_SECONDS)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            logger.warning("Rate limit store unavailable, allowing request: %s", e)
            return True, 0.0

        if int(count) <= max_per_minute:
            return True, 0.0
        return False, self.WINDOW_SECONDS - (now % self.WINDOW_SECONDS)


class RateLimiter:
    """A request budget backed by an injected store."""

    def __init__(self, store: RateLimitStore, max_per_minute: int, scope: str = "general"):
        self.store = store
        self.max_per_minute = max_per_minute
        self.scope = scope

    def check(self, client_key: str, now: Optional[float] = None) -> tuple[bool, float]:
        """``(allowed, retry_after)`` for one request from *client_key*.

        A limit of zero or less disables the limiter.
        """
        if self.max_per_minute <= 0:
            return True, 0.0
        return self.store.hit(f"{self.scope}:{client_key}", self.max_per_minute, now)


def build_rate_limiter(settings, max_per_minute: int, scope: str) -> RateLimiter:
    """Limiter using the store selected by ``settings.rate_limit_backend``."""
    if settings.rate_limit_backend == "redis":
        store: RateLimitStore = RedisRateLimitStore.from_url(settings.redis_url)
    else:
        store = MemoryRateLimitStore()
    return RateLimiter(store, max_per_minute, scope=scope)
