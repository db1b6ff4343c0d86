"""Dual-window rate limiter.

Each identity gets two fixed-window counters: a short window (minute-scale)
and a long window (day-scale). A request is admitted only when both counters,
after incrementing, stay within their limits.

Over-limit increments are NOT rolled back. A rejected request still consumes
a slot in its window, so a burst of retries cannot reset or shrink the
counter. Do not "fix" this into a rollback.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.config import RelayConfig
from app.core.errors import StoreUnavailableAppError

logger = logging.getLogger(__name__)

SHORT_WINDOW = "short"
LONG_WINDOW = "long"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admission check.

    Attributes:
        admitted: Whether the request may proceed.
        window: Window that rejected the request, or None when admitted.
        limit: Limit of the deciding window.
        count: Post-increment count of the deciding window (0 when degraded).
        reset_at: UNIX epoch seconds when the deciding window resets.
        retry_after_seconds: Suggested wait when rejected.
        degraded: True when admitted only because the store was unreachable
            and the limiter is configured to fail open.
    """

    admitted: bool
    window: str | None
    limit: int
    count: int
    reset_at: int
    retry_after_seconds: int | None = None
    degraded: bool = False

    @property
    def reason(self) -> str | None:
        """Machine-readable rejection code (``rate_limit_short``/``rate_limit_long``)."""
        if self.admitted or self.window is None:
            return None
        return f"rate_limit_{self.window}"


def hash_identity(identity: str) -> str:
    """Short, non-reversible identity fingerprint for logs."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


class DualWindowRateLimiter:
    """Admit or reject identities under a short and a long quota."""

    def __init__(
        self,
        store: AbstractCounterStore,
        config: RelayConfig,
        *,
        key_prefix: str = "relay",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config = config
        self._key_prefix = key_prefix
        self._clock = clock

    def _bucket(self, now: float, window_seconds: int) -> tuple[int, int]:
        """Return ``(bucket_number, reset_at)`` for a fixed window."""
        bucket = int(now // window_seconds)
        return bucket, (bucket + 1) * window_seconds

    def _key(self, window: str, identity: str, bucket: int) -> str:
        return f"{self._key_prefix}:rl:{window}:{identity}:{bucket}"

    async def _check(
        self,
        *,
        window: str,
        identity: str,
        limit: int,
        window_seconds: int,
        now: float,
    ) -> RateLimitDecision:
        bucket, reset_at = self._bucket(now, window_seconds)
        count = await self._store.incr_with_expiry(
            self._key(window, identity, bucket), window_seconds
        )
        if count > limit:
            return RateLimitDecision(
                admitted=False,
                window=window,
                limit=limit,
                count=count,
                reset_at=reset_at,
                retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
            )
        return RateLimitDecision(
            admitted=True,
            window=None,
            limit=limit,
            count=count,
            reset_at=reset_at,
        )

    async def admit(
        self,
        identity: str,
        short_limit: int | None = None,
        long_limit: int | None = None,
    ) -> RateLimitDecision:
        """Consume one slot in both windows for ``identity``.

        The long window is only touched when the short window admits.

        Args:
            identity: Rate limit partition key.
            short_limit: Override for the configured short-window limit.
            long_limit: Override for the configured long-window limit.

        Returns:
            RateLimitDecision for this request.

        Raises:
            StoreUnavailableAppError: If the store is unreachable and the
                limiter is configured to fail closed.
        """
        cfg = self._config
        short_limit = cfg.short_limit if short_limit is None else short_limit
        long_limit = cfg.long_limit if long_limit is None else long_limit
        now = self._clock()

        try:
            decision = await self._check(
                window=SHORT_WINDOW,
                identity=identity,
                limit=short_limit,
                window_seconds=cfg.short_window_seconds,
                now=now,
            )
            if decision.admitted:
                decision = await self._check(
                    window=LONG_WINDOW,
                    identity=identity,
                    limit=long_limit,
                    window_seconds=cfg.long_window_seconds,
                    now=now,
                )
        except StoreUnavailableAppError:
            if not cfg.fail_open:
                raise
            logger.warning(
                "rate_limit.fail_open",
                extra={"identity_hash": hash_identity(identity)},
            )
            _, reset_at = self._bucket(now, cfg.short_window_seconds)
            return RateLimitDecision(
                admitted=True,
                window=None,
                limit=short_limit,
                count=0,
                reset_at=reset_at,
                degraded=True,
            )

        if decision.admitted:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "identity_hash": hash_identity(identity),
                    "count": decision.count,
                    "limit": decision.limit,
                },
            )
        else:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "identity_hash": hash_identity(identity),
                    "window": decision.window,
                    "count": decision.count,
                    "limit": decision.limit,
                    "retry_after_s": decision.retry_after_seconds,
                },
            )
        return decision
