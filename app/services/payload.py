"""Outbound webhook payload construction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.core.config import RelayConfig
from app.schemas.relay import RelayRequest

# Mention categories understood by Discord-compatible webhooks.
BROAD_MENTIONS = ("users", "roles", "everyone")


def _truncate(text: str, max_chars: int) -> tuple[str, bool]:
    """Truncate text to max_chars if needed.

    Returns:
        Tuple of (truncated_text, was_truncated).
    """
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars], True


@dataclass(frozen=True)
class DispatchPayload:
    """Normalized outbound message, built fresh per request."""

    content: str
    username: str
    allow_mentions: bool = False
    embeds: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    truncated: bool = False

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "content": self.content,
            "username": self.username,
            "allowed_mentions": {
                "parse": list(BROAD_MENTIONS) if self.allow_mentions else [],
            },
        }
        if self.embeds:
            body["embeds"] = list(self.embeds)
        return body


def build_payload(request: RelayRequest, config: RelayConfig) -> DispatchPayload:
    """Build the outbound payload from a parsed inbound request.

    Content is capped at ``config.max_content_chars``; broad mentions are
    suppressed unless the caller explicitly allowed them.
    """
    content, truncated = _truncate(request.content or "", config.max_content_chars)
    return DispatchPayload(
        content=content,
        username=config.username,
        allow_mentions=request.allow_mentions,
        embeds=tuple(request.embeds or ()),
        truncated=truncated,
    )
