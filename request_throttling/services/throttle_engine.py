"""Fixed-window request throttling.

Each request is mapped to a throttle key, the shared counter for that key is
atomically incremented, and the request is rejected once the count for the
current window exceeds the configured maximum.

The window starts with the first request for a key: when an increment
returns 1 the engine arms the key's TTL to ``period_seconds``. Once the TTL
elapses the store drops the key and the next request starts a fresh window.

Increment and expiry are two separate store calls. If the process dies (or
the expiry call fails) between them, the key stays in the store without a TTL
and keeps counting until it is removed by hand.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import Request, status

from request_throttling.adapters.counter_store.base import AbstractCounterStore
from request_throttling.core.config import ThrottleSettings

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_KEY = "unknown"
REJECT_MESSAGE = "Too many requests"

KeyFunc = Callable[[Request], str]


def client_ip_key(request: Request) -> str:
    """Throttle by the client network address.

    Requests whose address is not available (e.g., some proxy or test
    transports) all share the "unknown" bucket.
    """
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_KEY


def forwarded_ip_key(request: Request) -> str:
    """Throttle by the first X-Forwarded-For hop, falling back to the client address.

    Only use behind a proxy that overwrites X-Forwarded-For, since clients can
    otherwise pick their own key.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or client_ip_key(request)


KEY_FUNCS: dict[str, KeyFunc] = {
    "client": client_ip_key,
    "forwarded": forwarded_ip_key,
}


def hash_throttle_key(key: str) -> str:
    """Hash the throttle key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class ThrottleConfig:
    """Immutable throttling limits.

    Attributes:
        max_requests: Requests allowed per key in one window.
        period_seconds: Window length in seconds.
    """

    max_requests: int
    period_seconds: int

    @classmethod
    def from_settings(cls, throttle_settings: ThrottleSettings) -> "ThrottleConfig":
        return cls(
            max_requests=throttle_settings.max_requests,
            period_seconds=throttle_settings.period_seconds,
        )

    @property
    def is_enabled(self) -> bool:
        """Throttling is active only when both limits are positive."""
        return self.max_requests > 0 and self.period_seconds > 0


@dataclass(frozen=True)
class ThrottleVerdict:
    """Outcome of evaluating one request.

    Attributes:
        allowed: Whether the request may proceed.
        key: Throttle key the request was counted under.
        count: Counter value after this request (0 when throttling is off).
        limit: Configured maximum per window.
    """

    allowed: bool
    key: str
    count: int
    limit: int

    @property
    def status_code(self) -> int | None:
        return None if self.allowed else status.HTTP_429_TOO_MANY_REQUESTS

    @property
    def message(self) -> str | None:
        return None if self.allowed else REJECT_MESSAGE


class ThrottleEngine:
    """Counts requests per throttle key and decides allow or reject.

    The engine keeps no per-request state; all counting happens in the shared
    store, so one instance can serve concurrent requests without locking.
    """

    def __init__(
        self,
        config: ThrottleConfig,
        store: AbstractCounterStore,
        *,
        key_func: KeyFunc = client_ip_key,
    ) -> None:
        self._config = config
        self._store = store
        self._key_func = key_func

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    def is_enabled(self) -> bool:
        return self._config.is_enabled

    def derive_key(self, request: Request) -> str:
        return self._key_func(request)

    async def evaluate(self, request: Request) -> ThrottleVerdict:
        """Count the request and decide whether it may proceed.

        Args:
            request: Incoming request; only its identifying attributes are read.

        Returns:
            ThrottleVerdict for this request.

        Raises:
            StoreUnavailableError: If the counter store fails.
        """
        key = self.derive_key(request)
        limit = self._config.max_requests

        if not self.is_enabled():
            return ThrottleVerdict(allowed=True, key=key, count=0, limit=limit)

        count = await self._store.increment(key)
        if count == 1:
            await self._store.expire(key, self._config.period_seconds)

        verdict = ThrottleVerdict(allowed=count <= limit, key=key, count=count, limit=limit)
        if not verdict.allowed:
            logger.warning(
                "throttle.rejected",
                extra={
                    "key_hash": hash_throttle_key(key),
                    "count": count,
                    "limit": limit,
                    "window_s": self._config.period_seconds,
                },
            )
        return verdict
