from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Protocol
from uuid import uuid4


class RateLimitStore(ABC):
    @abstractmethod
    async def add_request(self, key: str, now_seconds: float) -> None:
        raise NotImplementedError

    @abstractmethod
    async def count_since(self, key: str, cutoff_seconds: float) -> int:
        raise NotImplementedError


class RedisLikeClient(Protocol):
    async def zadd(self, key: str, mapping: dict[str, float]) -> int: ...

    async def zremrangebyscore(self, key: str, min: float, max: float) -> int: ...

    async def zcard(self, key: str) -> int: ...

    async def expire(self, key: str, time: int) -> bool: ...


class InMemoryRateLimitStore(RateLimitStore):
    def __init__(self) -> None:
        self._requests: dict[str, deque[float]] = defaultdict(deque)

    async def add_request(self, key: str, now_seconds: float) -> None:
        self._requests[key].append(now_seconds)

    async def count_since(self, key: str, cutoff_seconds: float) -> int:
        queue = self._requests[key]
        while queue and queue[0] < cutoff_seconds:
            queue.popleft()
        if not queue:
            del self._requests[key]
            return 0
        return len(queue)


class RedisRateLimitStore(RateLimitStore):
    """Sorted set per key, scored by request time."""

    def __init__(self, client: RedisLikeClient, window_seconds: int = 60) -> None:
        self._client = client
        self._window_seconds = window_seconds

    async def add_request(self, key: str, now_seconds: float) -> None:
        redis_key = self._redis_key(key)
        await self._client.zadd(redis_key, {f"{now_seconds:.6f}:{uuid4()}": now_seconds})
        await self._client.expire(redis_key, self._window_seconds + 5)

    async def count_since(self, key: str, cutoff_seconds: float) -> int:
        redis_key = self._redis_key(key)
        await self._client.zremrangebyscore(redis_key, float("-inf"), cutoff_seconds - 1e-9)
        return await self._client.zcard(redis_key)

    def _redis_key(self, key: str) -> str:
        return f"rider_service:rate_limit:{key}"


class SlidingWindowRateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        limit: int = 100,
        window_seconds: int = 60,
        scope: str = "api",
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._scope = scope

    async def allow(self, client_key: str, now_seconds: float) -> bool:
        key = f"{self._scope}:{client_key}"
        request_count = await self._store.count_since(key, now_seconds - self._window_seconds)
        if request_count >= self._limit:
            return False
        await self._store.add_request(key, now_seconds)
        return True
