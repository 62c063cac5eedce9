"""Redis-backed session store.

Each wizard entry is a JSON string written with SETEX, so an abandoned
wizard disappears on its own after `ttl` seconds. Every write refreshes
the TTL.

Keys: {prefix}{session_id}:wizard_steps-{wizard}
"""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from formwizard.middleware.exceptions import SessionStoreUnavailable

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "formwizard:session:"


class RedisSessionStore:
    def __init__(self, url: str, ttl: int = 7200, prefix: str = DEFAULT_PREFIX, client: Optional[redis.Redis] = None):
        self.url = url
        self.ttl = ttl
        self.prefix = prefix
        self._client = client

    def _redis(self) -> redis.Redis:
        """Get or create the Redis client (connections are made lazily)."""
        if self._client is None:
            self._client = redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=50,
            )
        return self._client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str, default: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
        try:
            raw = await self._redis().get(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis error reading session {key}: {e}")
            raise SessionStoreUnavailable() from e

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable session payload for {key}")
            return default

    async def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self._redis().setex(self._key(key), self.ttl, json.dumps(value))
        except redis.RedisError as e:
            logger.warning(f"Redis error writing session {key}: {e}")
            raise SessionStoreUnavailable() from e

    async def delete(self, key: str) -> None:
        try:
            await self._redis().delete(self._key(key))
        except redis.RedisError as e:
            logger.warning(f"Redis error deleting session {key}: {e}")
            raise SessionStoreUnavailable() from e

    async def ping(self) -> bool:
        try:
            return bool(await self._redis().ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        """Close the Redis connection pool (call on app shutdown)."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
