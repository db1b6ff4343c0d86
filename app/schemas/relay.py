"""Pydantic schemas for relay requests and responses."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class RelayRequest(BaseModel):
    """Inbound message submitted by a caller."""

    model_config = ConfigDict(extra="ignore")

    identity: str | None = Field(
        default=None,
        description="Rate limit key. Falls back to the caller's network origin.",
    )
    content: str | None = Field(
        default=None,
        description="Message text. Truncated to the configured cap before forwarding.",
    )
    embeds: List[Dict[str, Any]] | None = Field(
        default=None,
        description="Optional rich-content blocks forwarded as-is.",
    )
    allow_mentions: bool = Field(
        default=False,
        description="Allow @everyone/@here, role and user mentions to ping.",
    )


class RelayResponse(BaseModel):
    """Successful delivery."""

    success: bool = Field(True, description="Always true for delivered messages.")
    shard: int = Field(..., description="Index of the endpoint that accepted the message.")
    attempts: int = Field(..., description="Number of endpoints tried, including the successful one.")
    truncated: bool = Field(False, description="Whether content was cut to the cap.")
    request_id: str | None = Field(None, description="Correlation id of this request.")


class HealthResponse(BaseModel):
    status: str = "ok"
