"""
Per-IP rate limiting.

Sliding-log accounting: every admitted request leaves a timestamped entry
under its key, and a request is admitted only while fewer than ``limit``
entries are younger than the window. That keeps the bound for every interval
of the configured length, not just for aligned windows.

Policies:
- general API: 100 requests / 15 minutes on /api/
- auth: 5 requests / 15 minutes on /api/auth, successful responses released
- registration: 10 requests / hour on /api/students/register

The limiter object is built by the application factory and handed to the
middleware; tests reach it through ``app.state.rate_limiter``.
"""

import logging
import math
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from school_backend.app.core.context import client_ip
from school_backend.app.core.exceptions import RateLimitError, error_response

logger = logging.getLogger("school_registry")


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    path_prefix: str
    limit: int
    window_seconds: int
    message: str
    skip_successful_requests: bool = False
    standard_headers: bool = False

    def matches(self, path: str) -> bool:
        prefix = self.path_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    token: Optional[str] = None


def seconds_until_reset(oldest: float, now: float, window_seconds: int) -> int:
    """Whole seconds until the oldest entry leaves the window, never above the window."""
    remaining = window_seconds - (now - oldest)
    return max(0, min(window_seconds, math.ceil(round(remaining, 6))))


class MemoryRateLimitStorage:
    """
    In-process sliding log. State lives for the lifetime of the process.

    The critical section has no awaits, so a plain threading lock makes
    each hit atomic per key for coroutines and worker threads alike.
    Keys whose log empties are dropped, and every ``sweep_every`` hits the
    whole map is swept for keys that went quiet.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 1000):
        self._clock = clock
        self._hits: Dict[str, Deque[Tuple[float, str]]] = {}
        self._windows: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._sweep_every = sweep_every
        self._since_sweep = 0

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            window_seconds = self._windows[key]
            while hits and hits[0][0] <= now - window_seconds:
                hits.popleft()
            if not hits:
                del self._hits[key]
                del self._windows[key]

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            self._since_sweep += 1
            if self._since_sweep >= self._sweep_every:
                self._since_sweep = 0
                self._sweep(now)

            hits = self._hits.get(key)
            if hits is None:
                hits = self._hits[key] = deque()
            self._windows[key] = window_seconds
            while hits and hits[0][0] <= now - window_seconds:
                hits.popleft()

            if len(hits) >= limit:
                return RateLimitResult(False, limit, 0, seconds_until_reset(hits[0][0], now, window_seconds))

            token = uuid.uuid4().hex
            hits.append((now, token))
            reset_after = seconds_until_reset(hits[0][0], now, window_seconds)
            return RateLimitResult(True, limit, limit - len(hits), reset_after, token)

    async def release(self, key: str, token: str) -> None:
        with self._lock:
            hits = self._hits.get(key)
            if not hits:
                return
            for entry in hits:
                if entry[1] == token:
                    hits.remove(entry)
                    break
            if not hits:
                del self._hits[key]
                del self._windows[key]

    async def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()
            self._since_sweep = 0


class RedisRateLimitStorage:
    """
    Sliding log in a Redis sorted set per key (score = timestamp).

    The prune/add/count runs in one MULTI. An over-limit add is removed
    again, so concurrent callers may be over-rejected but never over-admitted.
    """

    KEY_PREFIX = "ratelimit:"

    def __init__(self, client, clock: Callable[[], float] = time.time):
        self.client = client
        self._clock = clock

    async def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        redis_key = f"{self.KEY_PREFIX}{key}"
        token = f"{now:.6f}:{uuid.uuid4().hex}"

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
            pipe.zadd(redis_key, {token: now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, window_seconds)
            _, _, count, oldest, _ = await pipe.execute()

        oldest_score = oldest[0][1] if oldest else now
        reset_after = seconds_until_reset(oldest_score, now, window_seconds)

        if count > limit:
            await self.client.zrem(redis_key, token)
            return RateLimitResult(False, limit, 0, reset_after)

        return RateLimitResult(True, limit, limit - count, reset_after, token)

    async def release(self, key: str, token: str) -> None:
        await self.client.zrem(f"{self.KEY_PREFIX}{key}", token)

    async def reset(self) -> None:
        async for redis_key in self.client.scan_iter(match=f"{self.KEY_PREFIX}*"):
            await self.client.delete(redis_key)


DEFAULT_POLICIES = (
    RateLimitPolicy(
        name="general",
        path_prefix="/api/",
        limit=100,
        window_seconds=15 * 60,
        message="Too many requests from this IP, please try again later.",
        standard_headers=True,
    ),
    RateLimitPolicy(
        name="auth",
        path_prefix="/api/auth",
        limit=5,
        window_seconds=15 * 60,
        message="Too many login attempts, please try again later.",
        skip_successful_requests=True,
    ),
    RateLimitPolicy(
        name="registration",
        path_prefix="/api/students/register",
        limit=10,
        window_seconds=60 * 60,
        message="Too many registration attempts, please try again later.",
    ),
)


class RateLimiter:
    """Applies a set of policies on top of one counter storage."""

    def __init__(self, storage, policies=DEFAULT_POLICIES, enabled: bool = True):
        self.storage = storage
        self.policies: List[RateLimitPolicy] = list(policies)
        self.enabled = enabled

    def policies_for(self, path: str) -> List[RateLimitPolicy]:
        return [policy for policy in self.policies if policy.matches(path)]

    async def hit(self, policy: RateLimitPolicy, ip: str) -> RateLimitResult:
        return await self.storage.hit(f"{policy.name}:{ip}", policy.limit, policy.window_seconds)

    async def release(self, policy: RateLimitPolicy, ip: str, token: str) -> None:
        await self.storage.release(f"{policy.name}:{ip}", token)

    async def reset(self) -> None:
        await self.storage.reset()


class RateLimitMiddleware:
    def __init__(self, app: ASGIApp, limiter: RateLimiter):
        self.app = app
        self.limiter = limiter

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.limiter.enabled:
            await self.app(scope, receive, send)
            return

        ip = client_ip(scope)
        reservations: List[Tuple[RateLimitPolicy, RateLimitResult]] = []

        for policy in self.limiter.policies_for(scope["path"]):
            result = await self.limiter.hit(policy, ip)
            if not result.allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"policy": policy.name, "ip": ip, "path": scope["path"]},
                )
                response = error_response(RateLimitError(policy.message, result.reset_after))
                await response(scope, receive, send)
                return
            reservations.append((policy, result))

        status_code = None

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                for policy, result in reservations:
                    if policy.standard_headers:
                        headers["RateLimit-Limit"] = str(result.limit)
                        headers["RateLimit-Remaining"] = str(result.remaining)
                        headers["RateLimit-Reset"] = str(result.reset_after)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            if status_code is not None and status_code < 400:
                for policy, result in reservations:
                    if policy.skip_successful_requests:
                        await self.limiter.release(policy, ip, result.token)
