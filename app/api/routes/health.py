from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.dependencies import get_counter_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a static status without touching the counter store or webhooks.
    """

    return {"status": "ok"}


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """Readiness check: 200 when the counter store answers, 503 otherwise."""

    if await get_counter_store().ping():
        return JSONResponse({"status": "ready"})
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "reason": "counter_store_unavailable"},
    )
