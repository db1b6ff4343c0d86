"""Counter store interface.

A counter store provides one primitive: an atomic increment that sets the
key's expiry only when the increment creates the key. The TTL is never
extended by later increments, so a window ends at a fixed time regardless of
traffic inside it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractCounterStore(ABC):
    """Interface for counter backends."""

    @abstractmethod
    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key`` and set its TTL if this created it.

        Args:
            key: Counter key.
            ttl_seconds: Expiry applied when the post-increment value is 1.

        Returns:
            The post-increment value.

        Raises:
            StoreUnavailableAppError: If the backend cannot be reached.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Return True when the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None
