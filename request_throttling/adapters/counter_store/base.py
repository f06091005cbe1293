"""Counter store interfaces.

The throttle engine depends on this abstraction (not the concrete
implementation) so the shared store can be Redis in production and an
in-process fake in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for shared counter stores with per-key expiry.

    Implementations must make ``increment`` atomic per key: concurrent callers
    never lose an update and each observes a distinct post-increment value.
    """

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically increment the counter stored at ``key``.

        A missing (or expired) key is created at 0 before incrementing.

        Args:
            key: Throttle key.

        Returns:
            The counter value after the increment.

        Raises:
            StoreUnavailableError: If the store cannot be reached or the
                operation fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        """Set the time-to-live of ``key``.

        Args:
            key: Throttle key.
            seconds: Time-to-live in seconds.

        Raises:
            StoreUnavailableError: If the store cannot be reached or the
                operation fails.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True if the store is reachable."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
