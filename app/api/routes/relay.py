from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from app.core.auth import extract_credential
from app.core.dependencies import get_relay_service
from app.core.logging import get_request_id
from app.schemas.relay import HealthResponse, RelayResponse
from app.services.relay_service import RelayService

router = APIRouter(tags=["Relay"])


def client_origin(request: Request, trust_forwarded_for: bool) -> str | None:
    """Network origin of the caller, used as the fallback identity.

    The first ``X-Forwarded-For`` hop is preferred when forwarded headers are
    trusted (the relay normally runs behind a proxy).
    """
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return request.client.host if request.client else None


@router.get("/relay", response_model=HealthResponse)
def relay_liveness() -> HealthResponse:
    """Liveness probe on the relay path. No auth, rate limiting or dispatch."""
    return HealthResponse()


@router.post("/relay", response_model=RelayResponse)
async def relay_message(
    request: Request,
    service: Annotated[RelayService, Depends(get_relay_service)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> RelayResponse:
    """Relay a message to one of the configured webhooks.

    The body is read raw and parsed by the relay service so that the
    credential is checked before the payload is even decoded.

    Returns:
        RelayResponse: Delivered shard index and attempt count.

    Raises:
        AppError: Mapped to 400/401/429/500/502/503 by the exception handlers.
    """
    body = await request.body()
    outcome = await service.handle(
        credential=extract_credential(x_api_key, authorization),
        body=body,
        origin=client_origin(request, service.config.trust_forwarded_for),
    )
    return RelayResponse(
        shard=outcome.shard_index,
        attempts=outcome.attempts,
        truncated=outcome.truncated,
        request_id=get_request_id(),
    )
