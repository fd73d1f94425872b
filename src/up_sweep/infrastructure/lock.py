"""RedisSweepLock: SET NX EX run lock.

The TTL bounds how long a crashed run can block the next one. Release only
deletes the key if it still holds our token, so a run that outlived its TTL
cannot free a lock taken by its successor.
"""
import logging
import secrets
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis

from src.up_common.redis_client import get_redis

logger = logging.getLogger(__name__)

_LOCK_KEY = "up:sweep:lock"

# compare-and-delete
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisSweepLock:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        key: str = _LOCK_KEY,
    ) -> None:
        self._redis_factory = redis_factory
        self._key = key

    async def acquire(self, ttl_seconds: int) -> str | None:
        redis = await self._redis_factory()
        token = secrets.token_hex(8)
        acquired = await redis.set(self._key, token, nx=True, ex=ttl_seconds)
        return token if acquired else None

    async def release(self, token: str) -> None:
        redis = await self._redis_factory()
        released = await redis.eval(_RELEASE_SCRIPT, 1, self._key, token)
        if not released:
            logger.warning("sweep lock %s expired before release", self._key)
