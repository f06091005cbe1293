"""Redis-backed counter store.

Uses INCR, which Redis executes atomically, so concurrent requests from any
number of workers or hosts sharing one Redis never lose an increment.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis
from redis.exceptions import RedisError

from request_throttling.adapters.counter_store.base import AbstractCounterStore
from request_throttling.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class RedisCounterStore(AbstractCounterStore):
    """Counter store backed by a shared Redis keyspace."""

    def __init__(self, client: Redis, *, key_prefix: str = "throttle:") -> None:
        """Initialize the store.

        Args:
            client: Connected (or lazily connecting) async Redis client. The
                store takes ownership and closes it in ``close``.
            key_prefix: Namespace prepended to every throttle key.
        """
        self._client = client
        self._key_prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "throttle:",
        socket_timeout_seconds: float = 1.0,
    ) -> "RedisCounterStore":
        """Build a store with its own client for ``url``."""
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout_seconds,
            socket_connect_timeout=socket_timeout_seconds,
        )
        return cls(client, key_prefix=key_prefix)

    def _namespaced(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def _store_error(self, operation: str, exc: RedisError) -> StoreUnavailableError:
        return StoreUnavailableError(
            code="counter_store_unavailable",
            message="Counter store is unavailable",
            details={
                "backend": "redis",
                "operation": operation,
                "context": {"error_type": type(exc).__name__},
            },
        )

    async def increment(self, key: str) -> int:
        try:
            return int(await self._client.incr(self._namespaced(key)))
        except RedisError as exc:
            raise self._store_error("incr", exc) from exc

    async def expire(self, key: str, seconds: int) -> None:
        try:
            await self._client.expire(self._namespaced(key), seconds)
        except RedisError as exc:
            raise self._store_error("expire", exc) from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError:
            logger.warning("counter_store.ping_failed", extra={"backend": "redis"})
            return False

    async def close(self) -> None:
        await self._client.aclose()
