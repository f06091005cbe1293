"""Factory pattern for creating counter store instances."""

from request_throttling.adapters.counter_store.base import AbstractCounterStore
from request_throttling.adapters.counter_store.in_memory import InMemoryCounterStore
from request_throttling.adapters.counter_store.redis_store import RedisCounterStore
from request_throttling.core.config import StoreSettings, settings
from request_throttling.core.errors import ValidationAppError


def create_counter_store(store_settings: StoreSettings | None = None) -> AbstractCounterStore:
    """Factory function to instantiate the configured counter store.

    Reads configuration from request_throttling.core.config.settings unless
    explicit settings are provided.

    Returns:
        AbstractCounterStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is not supported.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisCounterStore.from_url(
            cfg.redis_url,
            key_prefix=cfg.key_prefix,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryCounterStore()

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown counter store backend: '{backend}'. Supported backends: redis, memory",
    )
