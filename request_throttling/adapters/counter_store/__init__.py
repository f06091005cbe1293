"""Counter store adapter layer - abstracts over the shared counting backend."""

from request_throttling.adapters.counter_store.base import AbstractCounterStore
from request_throttling.adapters.counter_store.factory import create_counter_store
from request_throttling.adapters.counter_store.in_memory import InMemoryCounterStore
from request_throttling.adapters.counter_store.redis_store import RedisCounterStore

__all__ = [
    "AbstractCounterStore",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_counter_store",
]
