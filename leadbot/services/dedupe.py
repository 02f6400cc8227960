import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from leadbot.logging_config import get_logger

logger = get_logger("dedupe")

DEFAULT_TTL_SECONDS = 86400
DEFAULT_MAX_ENTRIES = 10000


class DedupeGuard:
    """Remembers inbound message ids for a bounded window.

    Ids expire after ``ttl_seconds`` and the oldest ids are evicted once
    ``max_entries`` is reached, so memory stays bounded for a long-lived process.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._seen: OrderedDict[str, float] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._seen)

    def _purge_expired(self, now: float) -> None:
        while self._seen:
            oldest_id, seen_at = next(iter(self._seen.items()))
            if now - seen_at < self.ttl_seconds:
                break
            del self._seen[oldest_id]

    def seen(self, message_id: Optional[str]) -> bool:
        """Return True if the id was already presented; record it otherwise."""
        if not message_id:
            return False

        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if message_id in self._seen:
                return True
            self._seen[message_id] = now
            while len(self._seen) > self.max_entries:
                self._seen.popitem(last=False)
            return False

    async def is_duplicate(self, message_id: Optional[str]) -> bool:
        return self.seen(message_id)


class RedisDedupeGuard:
    """Dedupe shared across workers and restarts, backed by ``SET NX EX`` on redis.asyncio."""

    def __init__(
        self,
        redis_client,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = "leadbot:dedup",
        fallback: Optional[DedupeGuard] = None,
    ):
        self.redis = redis_client
        self.ttl_seconds = int(ttl_seconds)
        self.key_prefix = key_prefix
        self.fallback = fallback if fallback is not None else DedupeGuard(ttl_seconds=ttl_seconds)

    async def is_duplicate(self, message_id: Optional[str]) -> bool:
        if not message_id:
            return False

        key = f"{self.key_prefix}:{message_id}"
        try:
            was_set = await self.redis.set(key, "1", ex=self.ttl_seconds, nx=True)
        except Exception as e:
            logger.warning(
                "Dedup redis unavailable, falling back to in-memory guard",
                extra={"context": {"message_id": message_id, "error": str(e)}},
            )
            return self.fallback.seen(message_id)
        return not was_set
