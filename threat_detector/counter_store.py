"""Counter store — per-(rule, source IP) counters with a TTL.

A counter plus a TTL gives each rule a fixed trailing window: once the TTL
lapses the key disappears and the next increment starts again at 1.  This is
not a true sliding log, so a burst straddling the expiry can undercount.

Counters are shared by every worker thread (and every detector replica), so
all correctness comes from the store's atomic INCR.  Nothing in-process
locks around a read-modify-write.

Two implementations:
  - RedisCounterStore     production; INCR + EXPIRE against Redis
  - InMemoryCounterStore  tests and single-process local runs
"""

import logging
import threading
import time

import redis

from threat_detector.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def counter_key(rule_name: str, source_ip: str) -> str:
    """Key for one rule's counter for one source, e.g. ``failed_auth:10.0.0.5``."""
    return f"{rule_name}:{source_ip}"


class CounterStore:
    """Capability the counted rules depend on.  Subclass and implement all three."""

    def incr(self, key: str) -> int:
        """Atomically add one and return the post-increment value (1 if absent)."""
        raise NotImplementedError

    def expire(self, key: str, seconds: int) -> None:
        """Set or refresh the key's time-to-live.  Idempotent."""
        raise NotImplementedError

    def close(self) -> None:
        pass


class RedisCounterStore(CounterStore):

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCounterStore":
        # The connection pool inside redis.Redis is thread-safe; all workers
        # share this one client.
        return cls(redis.Redis.from_url(url, socket_timeout=2.0))

    def incr(self, key: str) -> int:
        try:
            return int(self._client.incr(key))
        except redis.RedisError as e:
            raise StoreUnavailable(f"INCR {key} failed: {e}") from e

    def expire(self, key: str, seconds: int) -> None:
        try:
            self._client.expire(key, seconds)
        except redis.RedisError as e:
            raise StoreUnavailable(f"EXPIRE {key} failed: {e}") from e

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as e:
            logger.warning("Error closing Redis client: %s", e)


class InMemoryCounterStore(CounterStore):
    """Dict-backed store with the same TTL semantics as Redis.

    Expiry is evaluated lazily against time.monotonic(), so tests can move
    time forward by patching ``threat_detector.counter_store.time``.  Keys
    that are never touched again are swept out by incr() at most once per
    sweep_interval seconds, the way Redis evicts them on its own.
    fail() / recover() simulate a store outage.
    """

    def __init__(self, sweep_interval: float = 60.0):
        self._lock = threading.Lock()
        # key -> [count, expires_at or None]
        self._counters: dict[str, list] = {}
        self._down = False
        self._sweep_interval = sweep_interval
        self._next_sweep = time.monotonic() + sweep_interval

    def incr(self, key: str) -> int:
        with self._lock:
            self._check_available()
            now = time.monotonic()
            if now >= self._next_sweep:
                self._sweep(now)
            entry = self._live_entry(key, now)
            if entry is None:
                entry = self._counters[key] = [0, None]
            entry[0] += 1
            return entry[0]

    def expire(self, key: str, seconds: int) -> None:
        with self._lock:
            self._check_available()
            now = time.monotonic()
            entry = self._live_entry(key, now)
            if entry is not None:
                entry[1] = now + seconds

    def get(self, key: str) -> int:
        """Current value, 0 when absent or expired.  Not part of CounterStore."""
        with self._lock:
            entry = self._live_entry(key, time.monotonic())
            return entry[0] if entry else 0

    def ttl(self, key: str) -> float | None:
        with self._lock:
            now = time.monotonic()
            entry = self._live_entry(key, now)
            if entry is None or entry[1] is None:
                return None
            return entry[1] - now

    def fail(self) -> None:
        self._down = True

    def recover(self) -> None:
        self._down = False

    def _check_available(self) -> None:
        if self._down:
            raise StoreUnavailable("in-memory store is marked down")

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._counters.items()
                   if expires_at is not None and expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._next_sweep = now + self._sweep_interval

    def _live_entry(self, key: str, now: float) -> list | None:
        entry = self._counters.get(key)
        if entry is not None and entry[1] is not None and entry[1] <= now:
            del self._counters[key]
            return None
        return entry

    def __len__(self) -> int:
        return len(self._counters)
