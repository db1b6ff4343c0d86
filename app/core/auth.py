"""API key authentication logic.

Callers present a key via ``X-API-Key`` or ``Authorization`` (``Bearer <key>``
or the bare key). Keys are compared in constant time against the configured
set. Authentication runs before any counter or webhook side effect.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import AbstractSet

from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def extract_credential(x_api_key: str | None, authorization: str | None) -> str | None:
    """Pick the presented credential from the supported headers.

    ``X-API-Key`` wins when both are present.
    """
    if x_api_key:
        return x_api_key.strip() or None
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if token and scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip() or None


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def authenticate(provided_key: str | None, valid_keys: AbstractSet[str]) -> None:
    """Validate that the provided API key matches a configured key.

    Args:
        provided_key: Credential presented by the caller, if any.
        valid_keys: Configured keys.

    Raises:
        AuthenticationAppError: If keys are not configured, or the credential
            is missing or does not match.
    """
    if not valid_keys:
        logger.error(
            "auth.failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set RELAY_API_KEYS to a comma-separated list of keys"},
        )

    if not provided_key:
        logger.warning("auth.failed", extra={"reason": "missing_api_key"})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key or Authorization header.",
        )

    provided = provided_key.encode()
    matched = False
    for key in valid_keys:
        # No early exit: every configured key is compared.
        matched |= hmac.compare_digest(provided, key.encode())

    if not matched:
        logger.warning(
            "auth.failed",
            extra={"reason": "invalid_api_key", "api_key_hash": _hash_key(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )

    logger.debug("auth.success", extra={"api_key_hash": _hash_key(provided_key)})
