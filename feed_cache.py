"""
Process-lifetime memoization for third-party feeds.

One FeedCache per integration, each with its own TTL. On a miss or an
expired entry the upstream fetch runs; if it fails, whatever entry exists
(even expired) is served flagged as stale. Only when nothing was ever cached
does the failure surface as UpstreamUnavailable.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from errors import UpstreamUnavailable

logger = logging.getLogger("feed_cache")


@dataclass
class CacheEntry:
    payload: Any
    fetched_at: float


@dataclass
class FeedResult:
    payload: Any
    cached: bool
    stale: bool
    fetched_at: float

    @property
    def last_updated(self) -> datetime:
        return datetime.fromtimestamp(self.fetched_at, tz=timezone.utc)


class FeedCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time, name: str = "feed"):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.name = name
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.fetched_at < self.ttl_seconds

    def peek(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, payload: Any) -> CacheEntry:
        entry = CacheEntry(payload=payload, fetched_at=self.clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def get(self, key: str, fetch: Callable[[], Any]) -> FeedResult:
        entry = self.peek(key)
        if entry is not None and self._is_fresh(entry):
            logger.info("%s cache hit: %s", self.name, key)
            return FeedResult(entry.payload, cached=True, stale=False, fetched_at=entry.fetched_at)

        return self.refresh(key, fetch)

    def refresh(self, key: str, fetch: Callable[[], Any]) -> FeedResult:
        """Fetch now; the existing entry is replaced only when the fetch succeeds."""
        try:
            payload = fetch()
        except Exception as exc:
            # Re-read: another request may have refreshed it meanwhile
            entry = self.peek(key)
            if entry is None:
                logger.error("%s upstream failed with no cached entry for %s: %s", self.name, key, exc)
                raise UpstreamUnavailable(f"{self.name} service unavailable") from exc
            logger.warning("%s upstream failed, serving stale entry for %s: %s", self.name, key, exc)
            return FeedResult(entry.payload, cached=True, stale=True, fetched_at=entry.fetched_at)

        fresh = self.set(key, payload)
        logger.info("%s cache refreshed: %s", self.name, key)
        return FeedResult(payload, cached=False, stale=False, fetched_at=fresh.fetched_at)

    def clear(self, key: Optional[str] = None):
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
        logger.info("%s cache cleared (%s)", self.name, key or "all")

    def status(self) -> Dict[str, dict]:
        now = self.clock()
        with self._lock:
            items = list(self._entries.items())
        return {
            key: {
                "timestamp": datetime.fromtimestamp(entry.fetched_at, tz=timezone.utc),
                "age": now - entry.fetched_at,
                "fresh": now - entry.fetched_at < self.ttl_seconds,
                "size": len(entry.payload) if hasattr(entry.payload, "__len__") else None,
            }
            for key, entry in items
        }
