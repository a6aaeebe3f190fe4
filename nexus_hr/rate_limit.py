from __future__ import annotations

import threading
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone

from fastapi import Request

from nexus_hr.errors import ApiError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlidingWindowCounter:
    """Per-key hit counter over a trailing time window, safe across threadpool workers."""

    def __init__(self, *, max_hits: int, window: timedelta):
        self.max_hits = max_hits
        self.window = window
        self._lock = threading.Lock()
        self._hits: dict[str, deque[datetime]] = defaultdict(deque)

    def _cleanup(self, key: str, now: datetime) -> None:
        queue = self._hits[key]
        threshold = now - self.window
        while queue and queue[0] < threshold:
            queue.popleft()
        if not queue:
            self._hits.pop(key, None)

    def is_exhausted(self, key: str, *, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        with self._lock:
            self._cleanup(key, now)
            return len(self._hits.get(key, ())) >= self.max_hits

    def hit(self, key: str, *, now: datetime | None = None) -> int:
        now = now or _utcnow()
        with self._lock:
            self._cleanup(key, now)
            queue = self._hits[key]
            queue.append(now)
            return len(queue)

    def clear(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RequestRateLimiter:
    """Counts every ``/api`` request per client IP; the request that goes over the limit gets a 429."""

    def __init__(self, *, max_requests: int, window_seconds: int, path_prefix: str = "/api"):
        self.counter = SlidingWindowCounter(max_hits=max_requests, window=timedelta(seconds=window_seconds))
        self.path_prefix = path_prefix

    def check(self, request: Request) -> None:
        if not request.url.path.startswith(self.path_prefix):
            return
        hits = self.counter.hit(client_ip(request))
        if hits > self.counter.max_hits:
            raise ApiError(
                status_code=429,
                code="TOO_MANY_REQUESTS",
                message="Too many requests from this IP, please try again later.",
            )

    def reset(self) -> None:
        self.counter.reset()
