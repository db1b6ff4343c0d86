"""Redis-backed counter store.

The increment and the conditional expiry run inside one Lua script, so the
operation is a single atomic round trip. Two concurrent first requests can
never both miss the expiry.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)

INCR_WITH_EXPIRY_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return current
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store over a shared Redis instance."""

    def __init__(self, client: Redis) -> None:
        self._client = client
        self._script = client.register_script(INCR_WITH_EXPIRY_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 2.0) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL.
            socket_timeout: Connect/read timeout in seconds.
        """
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        try:
            value = await self._script(keys=[key], args=[ttl_seconds])
        except RedisError as exc:
            logger.error(
                "counter_store.unavailable",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StoreUnavailableAppError(
                code="counter_store_unavailable",
                message="Rate limit backend is unavailable",
            ) from exc
        return int(value)

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            logger.warning(
                "counter_store.ping_failed",
                extra={"error_type": type(exc).__name__},
            )
            return False

    async def close(self) -> None:
        await self._client.aclose()
