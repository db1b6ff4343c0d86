"""Webhook dispatcher with bounded, immediate failover.

Endpoints are tried in rotation starting at the selected shard, at most once
each and at most ``max_attempts`` in total. There is no delay between
attempts; a request that cannot be delivered within its budget is dropped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterator, Sequence

import httpx

from app.services.payload import DispatchPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchAttempt:
    """One outbound call.

    Attributes:
        index: Endpoint index in the configured list.
        status_code: HTTP status returned, or None on transport failure.
        error: Transport error class name, if any.
        elapsed_ms: Wall time of the attempt.
    """

    index: int
    status_code: int | None
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of walking the endpoint rotation.

    ``shard_index`` is set only when an endpoint accepted the payload.
    """

    delivered: bool
    shard_index: int | None
    attempts: tuple[DispatchAttempt, ...] = field(default_factory=tuple)
    short_circuited: bool = False


def is_retryable_status(status_code: int) -> bool:
    """Throttling and server-side errors. Other 4xx also fail over by default."""
    return status_code == 429 or status_code >= 500


def rotation(
    endpoints: Sequence[str], start_index: int, max_attempts: int
) -> Iterator[tuple[int, str]]:
    """Yield ``(index, url)`` for distinct endpoints starting at ``start_index``.

    Yields at most ``min(max_attempts, len(endpoints))`` pairs, wrapping
    around the end of the list.
    """
    count = len(endpoints)
    if count == 0:
        return
    budget = min(max_attempts, count)
    for attempt in range(budget):
        index = (start_index + attempt) % count
        yield index, endpoints[index]


class WebhookDispatcher:
    """Send a payload to the first endpoint that accepts it."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 5.0,
        short_circuit_statuses: frozenset[int] = frozenset(),
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            timeout_seconds: Timeout applied to each attempt.
            short_circuit_statuses: Statuses that end the walk immediately
                because they would reproduce on every shard (e.g. 413).
            transport: Optional httpx transport (tests use MockTransport).
        """
        self._timeout = httpx.Timeout(timeout_seconds)
        self._short_circuit_statuses = short_circuit_statuses
        self._transport = transport

    async def _attempt(
        self, client: httpx.AsyncClient, index: int, url: str, body: dict
    ) -> DispatchAttempt:
        start = time.perf_counter()
        try:
            response = await client.post(url, json=body)
        except httpx.HTTPError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "dispatch.attempt_failed",
                extra={
                    "shard": index,
                    "error_type": type(exc).__name__,
                    "elapsed_ms": round(elapsed_ms, 2),
                },
            )
            return DispatchAttempt(
                index=index,
                status_code=None,
                error=type(exc).__name__,
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = (time.perf_counter() - start) * 1000
        attempt = DispatchAttempt(
            index=index,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )
        if not attempt.ok:
            logger.warning(
                "dispatch.attempt_rejected",
                extra={
                    "shard": index,
                    "status_code": response.status_code,
                    "retryable": is_retryable_status(response.status_code),
                    "elapsed_ms": round(elapsed_ms, 2),
                },
            )
        return attempt

    async def dispatch(
        self,
        payload: DispatchPayload,
        endpoints: Sequence[str],
        start_index: int,
        max_attempts: int,
    ) -> DispatchOutcome:
        """Walk the endpoint rotation until one accepts the payload.

        Args:
            payload: Message to send.
            endpoints: Ordered endpoint URLs.
            start_index: Shard selected for this identity.
            max_attempts: Upper bound on endpoints tried.

        Returns:
            DispatchOutcome; ``delivered`` is False when every attempt failed.
        """
        body = payload.to_json()
        attempts: list[DispatchAttempt] = []

        # A fresh client per request keeps connection state isolated.
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            for index, url in rotation(endpoints, start_index, max_attempts):
                attempt = await self._attempt(client, index, url, body)
                attempts.append(attempt)
                if attempt.ok:
                    logger.info(
                        "dispatch.delivered",
                        extra={
                            "shard": index,
                            "attempts": len(attempts),
                            "status_code": attempt.status_code,
                        },
                    )
                    return DispatchOutcome(
                        delivered=True,
                        shard_index=index,
                        attempts=tuple(attempts),
                    )
                if attempt.status_code in self._short_circuit_statuses:
                    logger.warning(
                        "dispatch.short_circuit",
                        extra={"shard": index, "status_code": attempt.status_code},
                    )
                    return DispatchOutcome(
                        delivered=False,
                        shard_index=None,
                        attempts=tuple(attempts),
                        short_circuited=True,
                    )

        logger.error(
            "dispatch.exhausted",
            extra={
                "attempts": len(attempts),
                "statuses": [a.status_code for a in attempts],
            },
        )
        return DispatchOutcome(delivered=False, shard_index=None, attempts=tuple(attempts))
