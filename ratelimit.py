import logging
import threading
import time
from typing import Callable, Dict, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from errors import RateLimited

logger = logging.getLogger("ratelimit")

# Admin login and bulk upload are never throttled
BYPASS_PREFIXES = ("/api/admin-auth", "/api/trade-data/upload")


class RateLimiter:
    def consume(self, key: str) -> bool:
        raise NotImplementedError


class NoopRateLimiter(RateLimiter):
    def consume(self, key: str) -> bool:
        return True


class FixedWindowRateLimiter(RateLimiter):
    """At most `max_requests` per key in each `window_seconds` window."""

    def __init__(self, max_requests: int, window_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def consume(self, key: str) -> bool:
        now = self.clock()
        with self._lock:
            self._drop_expired(now)
            count, started = self._counters.get(key, (0, now))
            if now - started >= self.window_seconds:
                count, started = 0, now
            if count >= self.max_requests:
                self._counters[key] = (count, started)
                return False
            self._counters[key] = (count + 1, started)
            return True

    def _drop_expired(self, now: float):
        # At most once per window; caller holds the lock
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in [k for k, (_, started) in self._counters.items() if now - started >= self.window_seconds]:
            del self._counters[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Reads the limiter from app.state so tests can swap it."""

    async def dispatch(self, request: Request, call_next):
        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or request.url.path.startswith(BYPASS_PREFIXES):
            return await call_next(request)
        key = request.client.host if request.client else "unknown"
        if not limiter.consume(key):
            logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            return JSONResponse(
                status_code=RateLimited.status_code,
                content={"success": False, "message": RateLimited.default_message},
            )
        return await call_next(request)
