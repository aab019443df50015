from __future__ import annotations

import logging
import threading
from time import monotonic, time
from typing import Dict, Tuple

from fastapi import HTTPException, Request

from app.config import REDIS_URL

logger = logging.getLogger("printshelf.rate_limit")


class RateLimiter:
    """Fixed window rate limiter keyed per client, shared through Redis when configured."""

    def __init__(self, limit: int, window_seconds: int = 60, namespace: str = "default") -> None:
        self.limit = max(limit, 1)
        self.window_seconds = window_seconds
        self.namespace = namespace
        self._clients: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._redis_client = self._connect_redis()

    def _connect_redis(self):
        if not REDIS_URL:
            return None
        try:
            import redis

            client = redis.from_url(REDIS_URL)
            client.ping()
            return client
        except Exception as exc:
            logger.warning("event=rate_limit_redis_unavailable namespace=%s error=%s", self.namespace, exc)
            return None

    def hit(self, key: str) -> Tuple[bool, int]:
        """
        Register a hit for the given key.
        Returns (allowed, retry_after_seconds).
        """
        if self._redis_client is not None:
            return self._hit_redis(key)
        return self._hit_memory(key)

    def reset(self) -> None:
        with self._lock:
            self._clients.clear()

    def _hit_redis(self, key: str) -> Tuple[bool, int]:
        import redis

        # One counter per client per window; the key expires with the window.
        window = int(time() // self.window_seconds)
        redis_key = f"rate_limit:{self.namespace}:{key}:{window}"
        try:
            pipe = self._redis_client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds)
            count, _ = pipe.execute()
        except redis.RedisError as exc:
            logger.warning("event=rate_limit_redis_error namespace=%s error=%s", self.namespace, exc)
            return self._hit_memory(key)

        retry_after = max(1, int((window + 1) * self.window_seconds - time()))
        if int(count) > self.limit:
            return False, retry_after
        return True, retry_after

    def _hit_memory(self, key: str) -> Tuple[bool, int]:
        now = monotonic()
        with self._lock:
            count, reset_at = self._clients.get(key, (0, now + self.window_seconds))
            if now > reset_at:
                count = 0
                reset_at = now + self.window_seconds
            if count >= self.limit:
                retry_after = max(0, int(reset_at - now))
                return False, retry_after or 1

            self._clients[key] = (count + 1, reset_at)
            retry_after = max(0, int(reset_at - now))
            return True, retry_after


def rate_limit_dependency(limiter: RateLimiter):
    """Build a FastAPI dependency enforcing `limiter` for the calling client."""

    async def enforce(request: Request) -> None:
        client = request.client.host if request.client else "unknown"
        allowed, retry_after = limiter.hit(client)
        if not allowed:
            logger.warning("event=rate_limited namespace=%s client=%s", limiter.namespace, client)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )

    return enforce
