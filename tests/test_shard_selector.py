"""Tests for deterministic shard selection."""

import pytest

from app.core.errors import ConfigurationAppError
from app.services.shard_selector import fnv1a_32, select_shard


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (b"", 0x811C9DC5),
        (b"a", 0xE40C292C),
        (b"foobar", 0xBF9CF968),
    ],
)
def test_fnv1a_reference_vectors(data: bytes, expected: int) -> None:
    assert fnv1a_32(data) == expected


def test_hash_stays_within_32_bits() -> None:
    assert 0 <= fnv1a_32(b"x" * 10_000) <= 0xFFFFFFFF


def test_hash_is_order_sensitive() -> None:
    assert fnv1a_32(b"ab") != fnv1a_32(b"ba")


def test_selection_is_deterministic() -> None:
    first = select_shard("user-42", 7)

    assert all(select_shard("user-42", 7) == first for _ in range(100))
    # Equal to the raw hash reduction, independent of interpreter hash seed.
    assert first == fnv1a_32(b"user-42") % 7


def test_single_endpoint_always_index_zero() -> None:
    assert {select_shard(f"user-{i}", 1) for i in range(200)} == {0}


def test_indices_are_valid_and_spread() -> None:
    indices = [select_shard(f"user-{i}", 3) for i in range(300)]

    assert set(indices) == {0, 1, 2}


def test_non_ascii_identity() -> None:
    assert select_shard("usuário-ü", 5) == fnv1a_32("usuário-ü".encode("utf-8")) % 5


@pytest.mark.parametrize("count", [0, -1])
def test_no_endpoints_is_configuration_error(count: int) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        select_shard("user-1", count)

    assert exc_info.value.code == "no_endpoints_configured"
