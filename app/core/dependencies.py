"""Process-wide wiring of the relay components.

Builds the immutable ``RelayConfig`` once and hands it to the counter store,
rate limiter, dispatcher and relay service. Instances are cached in-module
so the store's connection pool is shared across requests. Tests replace
``get_relay_service`` through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.counter_store.in_memory import InMemoryCounterStore
from app.adapters.counter_store.redis_store import RedisCounterStore
from app.core.config import RelayConfig, Settings, settings
from app.core.errors import ConfigurationAppError
from app.services.dispatcher import WebhookDispatcher
from app.services.rate_limiter import DualWindowRateLimiter
from app.services.relay_service import RelayService

logger = logging.getLogger(__name__)


_relay_config: RelayConfig | None = None
_counter_store: AbstractCounterStore | None = None
_relay_service: RelayService | None = None


def build_counter_store(app_settings: Settings) -> AbstractCounterStore:
    """Create the counter store selected by ``RELAY_COUNTER_BACKEND``.

    Raises:
        ConfigurationAppError: If the backend name is unknown.
    """
    backend = app_settings.relay.counter_backend.lower()
    if backend == "memory":
        logger.warning(
            "counter_store.in_memory",
            extra={"hint": "limits are per-process; use redis with multiple workers"},
        )
        return InMemoryCounterStore()
    if backend == "redis":
        return RedisCounterStore.from_url(
            app_settings.redis.url,
            socket_timeout=app_settings.redis.socket_timeout_seconds,
        )
    raise ConfigurationAppError(
        code="unknown_counter_backend",
        message=f"Unknown counter backend: {backend}",
        details={"hint": "Set RELAY_COUNTER_BACKEND to 'redis' or 'memory'"},
    )


def get_relay_config() -> RelayConfig:
    """Return the process-wide relay configuration."""
    global _relay_config

    if _relay_config is None:
        _relay_config = RelayConfig.from_settings(settings.relay)
        if not _relay_config.endpoints:
            logger.error("config.no_endpoints")
        logger.info(
            "config.loaded",
            extra={
                "endpoints": len(_relay_config.endpoints),
                "short_limit": _relay_config.short_limit,
                "short_window_s": _relay_config.short_window_seconds,
                "long_limit": _relay_config.long_limit,
                "long_window_s": _relay_config.long_window_seconds,
                "max_attempts": _relay_config.max_attempts,
                "fail_open": _relay_config.fail_open,
            },
        )
    return _relay_config


def get_counter_store() -> AbstractCounterStore:
    """Return the process-wide counter store."""
    global _counter_store

    if _counter_store is None:
        _counter_store = build_counter_store(settings)
    return _counter_store


def get_relay_service() -> RelayService:
    """FastAPI dependency returning the process-wide relay service."""
    global _relay_service

    if _relay_service is None:
        config = get_relay_config()
        limiter = DualWindowRateLimiter(
            get_counter_store(),
            config,
            key_prefix=settings.redis.key_prefix,
        )
        dispatcher = WebhookDispatcher(
            timeout_seconds=config.attempt_timeout_seconds,
            short_circuit_statuses=config.short_circuit_statuses,
        )
        _relay_service = RelayService(config, limiter, dispatcher)
    return _relay_service


async def close_dependencies() -> None:
    """Release the counter store and forget cached instances."""
    global _relay_config, _counter_store, _relay_service

    if _counter_store is not None:
        await _counter_store.close()
    _relay_config = None
    _counter_store = None
    _relay_service = None
