"""Relay service: one inbound request, start to finish.

The service is the composition root for a single request. It runs the state
machine

    received -> authenticated -> parsed -> admitted -> shard selected
             -> dispatched -> delivered | exhausted

and stops at the first failing step by raising the matching ``AppError``.
It holds no per-request state; cross-request state lives in the counter
store only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from app.core.auth import authenticate
from app.core.config import RelayConfig
from app.core.errors import (
    DispatchExhaustedAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.schemas.relay import RelayRequest
from app.services.dispatcher import WebhookDispatcher
from app.services.payload import build_payload
from app.services.rate_limiter import DualWindowRateLimiter, hash_identity
from app.services.shard_selector import select_shard

logger = logging.getLogger(__name__)

UNKNOWN_ORIGIN = "unknown"


@dataclass(frozen=True)
class RelayOutcome:
    """A delivered message.

    Rejections and exhaustion are raised as errors, so a returned outcome is
    always ``delivered``.
    """

    shard_index: int
    attempts: int
    identity: str
    truncated: bool = False
    degraded: bool = False


class RelayService:
    """Authenticate, parse, rate limit, select a shard and dispatch."""

    def __init__(
        self,
        config: RelayConfig,
        limiter: DualWindowRateLimiter,
        dispatcher: WebhookDispatcher,
        *,
        shard_selector: Callable[[str, int], int] = select_shard,
    ) -> None:
        self.config = config
        self._limiter = limiter
        self._dispatcher = dispatcher
        self._select_shard = shard_selector

    def parse(self, body: bytes) -> RelayRequest:
        """Parse and validate an inbound JSON body.

        Raises:
            ValidationAppError: If the body is too large, not a JSON object,
                fails schema validation or carries nothing to send.
        """
        if len(body) > self.config.max_body_bytes:
            raise ValidationAppError(
                code="payload_too_large",
                message="Request body exceeds maximum size",
                details={"max_bytes": self.config.max_body_bytes, "actual_bytes": len(body)},
            )

        try:
            data = json.loads(body or b"{}")
        except (ValueError, UnicodeDecodeError, RecursionError) as exc:
            # RecursionError: nesting deeper than the decoder's stack allows.
            raise ValidationAppError(code="invalid_json", message="Invalid JSON") from exc

        if not isinstance(data, dict):
            raise ValidationAppError(
                code="invalid_json",
                message="Request body must be a JSON object",
            )

        try:
            request = RelayRequest.model_validate(data)
        except ValidationError as exc:
            raise ValidationAppError(
                code="bad_input",
                message="Request body failed validation",
                details={
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]}
                        for err in exc.errors()
                    ]
                },
            ) from exc

        if request.embeds and len(request.embeds) > self.config.max_embeds:
            raise ValidationAppError(
                code="bad_input",
                message=f"At most {self.config.max_embeds} embeds are allowed",
            )
        if not request.content and not request.embeds:
            raise ValidationAppError(
                code="empty_message",
                message="Provide content or at least one embed",
            )
        return request

    def resolve_identity(self, request: RelayRequest, origin: str | None) -> str:
        """Caller-supplied identity, or the network origin as fallback.

        The length cap applies to both sources: a forwarded-for origin is as
        caller-controlled as the body field.

        Raises:
            ValidationAppError: If the resulting identity is too long.
        """
        identity = (request.identity or "").strip() or (origin or "").strip() or UNKNOWN_ORIGIN
        if len(identity) > self.config.max_identity_chars:
            raise ValidationAppError(
                code="identity_too_long",
                message="Identity exceeds maximum length",
                details={"max_chars": self.config.max_identity_chars},
            )
        return identity

    async def handle(
        self,
        *,
        credential: str | None,
        body: bytes,
        origin: str | None = None,
    ) -> RelayOutcome:
        """Relay one inbound request.

        Args:
            credential: API key presented by the caller.
            body: Raw request body.
            origin: Network origin used when the body names no identity.

        Returns:
            RelayOutcome for a delivered message.

        Raises:
            AuthenticationAppError: Bad or missing credential.
            ValidationAppError: Unparseable, malformed or oversized body.
            RateLimitAppError: Short or long window exceeded.
            StoreUnavailableAppError: Counter store down while failing closed.
            ConfigurationAppError: No endpoints configured.
            DispatchExhaustedAppError: Every attempted endpoint failed.
        """
        cfg = self.config
        authenticate(credential, cfg.api_keys)

        request = self.parse(body)
        identity = self.resolve_identity(request, origin)
        identity_hash = hash_identity(identity)

        decision = await self._limiter.admit(identity, cfg.short_limit, cfg.long_limit)
        if not decision.admitted:
            raise RateLimitAppError(
                code=decision.reason or "rate_limit",
                message=f"Rate limit exceeded ({decision.window} window). Try again later.",
                details={
                    "window": decision.window or "",
                    "limit": decision.limit,
                    "retry_after": decision.retry_after_seconds or 0,
                    "reset_at": decision.reset_at,
                },
                window=decision.window or "",
                retry_after_seconds=decision.retry_after_seconds or 0,
                limit=decision.limit,
                reset_at=decision.reset_at,
            )

        start_index = self._select_shard(identity, len(cfg.endpoints))
        payload = build_payload(request, cfg)

        outcome = await self._dispatcher.dispatch(
            payload, cfg.endpoints, start_index, cfg.max_attempts
        )
        if not outcome.delivered or outcome.shard_index is None:
            raise DispatchExhaustedAppError(
                code="all_destinations_failed",
                message="All destinations failed",
                details={
                    "attempts": len(outcome.attempts),
                    "statuses": [a.status_code for a in outcome.attempts],
                },
            )

        logger.info(
            "relay.delivered",
            extra={
                "identity_hash": identity_hash,
                "start_shard": start_index,
                "shard": outcome.shard_index,
                "attempts": len(outcome.attempts),
                "truncated": payload.truncated,
            },
        )
        return RelayOutcome(
            shard_index=outcome.shard_index,
            attempts=len(outcome.attempts),
            identity=identity,
            truncated=payload.truncated,
            degraded=decision.degraded,
        )
