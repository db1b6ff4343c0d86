"""Deterministic identity-to-shard mapping.

Uses 32-bit FNV-1a: fast, non-cryptographic and stable across processes
(unlike ``hash()``, which is salted per interpreter).
"""

from __future__ import annotations

from app.core.errors import ConfigurationAppError

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193
_MASK32 = 0xFFFFFFFF


def fnv1a_32(data: bytes) -> int:
    """Return the 32-bit FNV-1a hash of ``data``."""
    h = FNV32_OFFSET_BASIS
    for byte in data:
        h ^= byte
        h = (h * FNV32_PRIME) & _MASK32
    return h


def select_shard(identity: str, endpoint_count: int) -> int:
    """Map ``identity`` to a starting index in ``range(endpoint_count)``.

    Raises:
        ConfigurationAppError: If no endpoints are configured.
    """
    if endpoint_count <= 0:
        raise ConfigurationAppError(
            code="no_endpoints_configured",
            message="No webhook endpoints are configured",
            details={"hint": "Set RELAY_WEBHOOK_URLS to a comma-separated list of URLs"},
        )
    if endpoint_count == 1:
        return 0
    return fnv1a_32(identity.encode("utf-8")) % endpoint_count
