from collections import OrderedDict
from dataclasses import dataclass
import math
import time

from fastapi import Request, status
from fastapi.responses import JSONResponse
import redis
import structlog

from slot_telemetry.core.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_after: int  # whole seconds until the client's window restarts


@dataclass
class _Window:
    started: float
    hits: int = 0


class ClientRateLimiter:
    """
    Fixed-window request counter per client key.

    Each client gets `rate` requests per `period` seconds, counted from its
    first request in the window. Counters live in Redis when a client is
    given (shared across workers), otherwise in process memory.

    In memory, windows are kept in start order so expired ones are swept from
    the front on every hit, and at most `max_clients` are tracked at once.
    When the cap is hit the oldest window is dropped and that client simply
    starts a fresh window on its next request.
    """

    def __init__(
        self,
        rate: int,
        period: int,
        max_clients: int,
        redis_client: "redis.Redis | None" = None,
        clock=time.monotonic,
    ):
        self.rate = rate
        self.period = period
        self.max_clients = max_clients
        self.redis_client = redis_client
        self._clock = clock
        self._windows: OrderedDict[str, _Window] = OrderedDict()

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for key and decide whether it may proceed"""
        if self.redis_client is not None:
            try:
                return self._hit_redis(key)
            except redis.RedisError as e:
                logger.warning("rate_limiter_redis_failed_using_memory", error=str(e))
        return self._hit_memory(key)

    def _hit_redis(self, key: str) -> RateLimitDecision:
        redis_key = f"rate_limit:{key}"
        pipe = self.redis_client.pipeline()
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        count, ttl = pipe.execute()

        # First hit of a window, or a key that lost its expiry
        if ttl < 0:
            self.redis_client.expire(redis_key, self.period)
            ttl = self.period

        return RateLimitDecision(
            allowed=count <= self.rate,
            remaining=max(0, self.rate - count),
            reset_after=max(1, ttl),
        )

    def _hit_memory(self, key: str) -> RateLimitDecision:
        now = self._clock()
        self._sweep(now)

        window = self._windows.get(key)
        if window is None:
            window = self._windows[key] = _Window(started=now)
            while len(self._windows) > self.max_clients:
                self._windows.popitem(last=False)

        window.hits += 1
        reset_after = max(1, math.ceil(window.started + self.period - now))
        return RateLimitDecision(
            allowed=window.hits <= self.rate,
            remaining=max(0, self.rate - window.hits),
            reset_after=reset_after,
        )

    def _sweep(self, now: float):
        """Drop windows that have run out, oldest first"""
        cutoff = now - self.period
        while self._windows:
            oldest = next(iter(self._windows.values()))
            if oldest.started > cutoff:
                break
            self._windows.popitem(last=False)

    def reset(self):
        """Forget all in-memory windows"""
        self._windows.clear()


def build_rate_limiter() -> ClientRateLimiter:
    """Limiter from settings, shared through Redis when it answers"""
    redis_client = None
    if settings.redis_url:
        try:
            redis_client = redis.from_url(settings.redis_url, decode_responses=False)
            redis_client.ping()
            logger.info("rate_limiter_using_redis")
        except (redis.RedisError, ValueError) as e:
            logger.warning("rate_limiter_redis_failed_using_memory", error=str(e))
            redis_client = None
    else:
        logger.info("rate_limiter_using_memory")

    return ClientRateLimiter(
        rate=settings.rate_limit_requests,
        period=settings.rate_limit_period,
        max_clients=settings.rate_limit_max_clients,
        redis_client=redis_client,
    )


rate_limiter = build_rate_limiter()


def client_key(request: Request) -> str:
    """Client identity as seen behind the reverse proxy"""
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return f"ip:{real_ip.strip()}"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return f"ip:{forwarded_for.split(',')[0].strip()}"

    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"


def _limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(rate_limiter.rate),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_after),
    }


async def rate_limit_middleware(request: Request, call_next):
    """Per-client request limit; /health is never counted"""
    if request.url.path == "/health":
        return await call_next(request)

    key = client_key(request)
    decision = rate_limiter.hit(key)

    if not decision.allowed:
        logger.warning("rate_limit_exceeded", key=key, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"error": "Too many requests"},
            headers={**_limit_headers(decision), "Retry-After": str(decision.reset_after)},
        )

    response = await call_next(request)
    response.headers.update(_limit_headers(decision))
    return response
