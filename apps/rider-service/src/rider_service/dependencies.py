from __future__ import annotations

import logging
import time

from fastapi import Request

from rider_service.broadcast import ProximityBroadcastService
from rider_service.config import RiderServiceSettings
from rider_service.errors import ApiError
from rider_service.events import EventDispatcher
from rider_service.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitStore,
    RedisRateLimitStore,
    SlidingWindowRateLimiter,
)

logger = logging.getLogger(__name__)


def build_rate_limit_store(settings: RiderServiceSettings) -> RateLimitStore:
    if not settings.REDIS_URL:
        return InMemoryRateLimitStore()
    try:
        import redis.asyncio as redis

        client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    except Exception:
        logger.exception("redis_rate_limit_store_unavailable", extra={"component": "rider_service"})
        return InMemoryRateLimitStore()
    return RedisRateLimitStore(client, window_seconds=60)


def get_broadcast_service(request: Request) -> ProximityBroadcastService:
    return request.app.state.broadcast_service


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def get_emergency_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.emergency_rate_limiter


def _resolve_client_key(request: Request) -> str:
    forwarded = request.headers.get("x-client-id")
    if forwarded:
        return forwarded
    if request.client:
        return request.client.host
    return "anonymous"


async def _enforce(limiter: SlidingWindowRateLimiter, request: Request, message: str) -> None:
    allowed = await limiter.allow(_resolve_client_key(request), now_seconds=time.time())
    if not allowed:
        raise ApiError("RATE_LIMIT_EXCEEDED", message, 429)


async def enforce_rate_limit(request: Request) -> None:
    await _enforce(get_rate_limiter(request), request, "Too many requests")


async def enforce_emergency_rate_limit(request: Request) -> None:
    await _enforce(
        get_emergency_rate_limiter(request),
        request,
        "Emergency alert rate limit exceeded, please wait before sending another alert",
    )
