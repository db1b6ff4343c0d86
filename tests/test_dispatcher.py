"""Tests for the webhook dispatcher and its failover walk."""

import json

import httpx
import pytest

from app.services.dispatcher import WebhookDispatcher, is_retryable_status, rotation
from app.services.payload import DispatchPayload

ENDPOINTS = tuple(f"https://hooks.test/{i}" for i in range(5))


def _dispatcher(recorder, **kwargs) -> WebhookDispatcher:
    return WebhookDispatcher(transport=httpx.MockTransport(recorder), **kwargs)


@pytest.fixture
def payload() -> DispatchPayload:
    return DispatchPayload(content="hello", username="Relay Protector")


class TestRotation:
    def test_wraps_around_from_start(self) -> None:
        assert [i for i, _ in rotation(ENDPOINTS, 3, 4)] == [3, 4, 0, 1]

    def test_bounded_by_endpoint_count(self) -> None:
        assert [i for i, _ in rotation(ENDPOINTS[:2], 1, 10)] == [1, 0]

    def test_bounded_by_max_attempts(self) -> None:
        assert len(list(rotation(ENDPOINTS, 0, 2))) == 2

    def test_empty_endpoint_list(self) -> None:
        assert list(rotation((), 0, 3)) == []


@pytest.mark.parametrize(
    ("status", "retryable"),
    [(429, True), (500, True), (503, True), (400, False), (404, False), (413, False)],
)
def test_status_classification(status: int, retryable: bool) -> None:
    assert is_retryable_status(status) is retryable


@pytest.mark.asyncio
async def test_first_success_stops_after_one_call(payload, make_recorder) -> None:
    recorder = make_recorder()

    outcome = await _dispatcher(recorder).dispatch(payload, ENDPOINTS, 2, 3)

    assert outcome.delivered is True
    assert outcome.shard_index == 2
    assert recorder.call_count == 1
    assert recorder.urls == [ENDPOINTS[2]]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 502, 503])
async def test_exhausts_exactly_max_attempts(payload, make_recorder, status: int) -> None:
    recorder = make_recorder({url: status for url in ENDPOINTS})

    outcome = await _dispatcher(recorder).dispatch(payload, ENDPOINTS, 4, 3)

    assert outcome.delivered is False
    assert outcome.shard_index is None
    assert recorder.urls == [ENDPOINTS[4], ENDPOINTS[0], ENDPOINTS[1]]
    assert [a.status_code for a in outcome.attempts] == [status] * 3


@pytest.mark.asyncio
async def test_each_endpoint_tried_at_most_once(payload, make_recorder) -> None:
    endpoints = ENDPOINTS[:2]
    recorder = make_recorder({url: 500 for url in endpoints})

    outcome = await _dispatcher(recorder).dispatch(payload, endpoints, 0, 10)

    assert outcome.delivered is False
    assert recorder.urls == list(endpoints)


@pytest.mark.asyncio
async def test_client_error_fails_over_by_default(payload, make_recorder) -> None:
    recorder = make_recorder({ENDPOINTS[0]: 400})

    outcome = await _dispatcher(recorder).dispatch(payload, ENDPOINTS, 0, 3)

    assert outcome.delivered is True
    assert outcome.shard_index == 1
    assert recorder.call_count == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_transport_failure_fails_over(payload, make_recorder, error: Exception) -> None:
    recorder = make_recorder({ENDPOINTS[0]: error})

    outcome = await _dispatcher(recorder).dispatch(payload, ENDPOINTS, 0, 3)

    assert outcome.shard_index == 1
    assert outcome.attempts[0].status_code is None
    assert outcome.attempts[0].error == type(error).__name__


@pytest.mark.asyncio
async def test_short_circuit_status_stops_walk(payload, make_recorder) -> None:
    recorder = make_recorder({url: 413 for url in ENDPOINTS})

    outcome = await _dispatcher(
        recorder, short_circuit_statuses=frozenset({413})
    ).dispatch(payload, ENDPOINTS, 0, 3)

    assert outcome.delivered is False
    assert outcome.short_circuited is True
    assert recorder.call_count == 1


@pytest.mark.asyncio
async def test_posts_json_payload(payload, make_recorder) -> None:
    recorder = make_recorder()

    await _dispatcher(recorder).dispatch(payload, ENDPOINTS, 0, 1)

    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {
        "content": "hello",
        "username": "Relay Protector",
        "allowed_mentions": {"parse": []},
    }


@pytest.mark.asyncio
async def test_no_endpoints_is_exhausted(payload, make_recorder) -> None:
    recorder = make_recorder()

    outcome = await _dispatcher(recorder).dispatch(payload, (), 0, 3)

    assert outcome.delivered is False
    assert recorder.call_count == 0
