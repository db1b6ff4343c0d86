"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app module is imported so the
global settings pick them up.
"""

from __future__ import annotations

import os
from typing import Callable
from unittest.mock import Mock

import httpx
import pytest

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RELAY_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault(
    "RELAY_WEBHOOK_URLS",
    "https://hooks.test/0,https://hooks.test/1,https://hooks.test/2",
)
os.environ.setdefault("RELAY_COUNTER_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.adapters.counter_store.in_memory import InMemoryCounterStore  # noqa: E402
from app.core.config import RelayConfig  # noqa: E402
from app.services.dispatcher import WebhookDispatcher  # noqa: E402
from app.services.rate_limiter import DualWindowRateLimiter  # noqa: E402
from app.services.relay_service import RelayService  # noqa: E402

API_KEY = "test-api-key-123"
ENDPOINTS = (
    "https://hooks.test/0",
    "https://hooks.test/1",
    "https://hooks.test/2",
)


class WebhookRecorder:
    """MockTransport handler returning scripted responses per endpoint.

    ``responses`` maps an endpoint URL to a status code or an exception
    instance; unmapped endpoints answer 204.
    """

    def __init__(self, responses: dict[str, int | Exception] | None = None) -> None:
        self.responses = responses or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.get(str(request.url), 204)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, request=request)

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1000.0)


@pytest.fixture
def store(clock: Mock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(api_keys=frozenset({API_KEY}), endpoints=ENDPOINTS)


@pytest.fixture
def recorder() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def make_service(store: InMemoryCounterStore, clock: Mock, recorder: WebhookRecorder) -> Callable[..., RelayService]:
    """Factory building a RelayService over the in-memory store and recorder."""

    def _make(config: RelayConfig, *, counter_store=None) -> RelayService:
        limiter = DualWindowRateLimiter(counter_store or store, config, clock=clock)
        dispatcher = WebhookDispatcher(
            timeout_seconds=config.attempt_timeout_seconds,
            short_circuit_statuses=config.short_circuit_statuses,
            transport=httpx.MockTransport(recorder),
        )
        return RelayService(config, limiter, dispatcher)

    return _make


@pytest.fixture
def make_recorder() -> type[WebhookRecorder]:
    return WebhookRecorder
