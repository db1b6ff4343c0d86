"""Unit tests for API key authentication module."""

import pytest

from app.core.auth import authenticate, extract_credential
from app.core.errors import AuthenticationAppError


class TestExtractCredential:
    """Test header precedence and Authorization parsing."""

    def test_x_api_key_header(self) -> None:
        assert extract_credential("abc", None) == "abc"

    def test_x_api_key_wins_over_authorization(self) -> None:
        assert extract_credential("abc", "Bearer xyz") == "abc"

    @pytest.mark.parametrize("header", ["Bearer xyz", "bearer xyz", "  Bearer   xyz "])
    def test_bearer_token(self, header: str) -> None:
        assert extract_credential(None, header) == "xyz"

    def test_bare_authorization_value(self) -> None:
        assert extract_credential(None, "xyz") == "xyz"

    @pytest.mark.parametrize(("x_api_key", "authorization"), [(None, None), ("", ""), ("  ", None)])
    def test_missing_credential(self, x_api_key, authorization) -> None:
        assert extract_credential(x_api_key, authorization) is None


class TestAuthenticate:
    """Test core API key validation logic."""

    def test_accepts_any_configured_key(self) -> None:
        keys = frozenset({"valid-key-1", "valid-key-2"})

        authenticate("valid-key-1", keys)
        authenticate("valid-key-2", keys)

    def test_rejects_invalid_key(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate("invalid-key", frozenset({"valid-key"}))

        assert exc_info.value.code == "invalid_api_key"
        assert "Invalid or missing API key" in exc_info.value.message

    @pytest.mark.parametrize("provided", [None, ""])
    def test_rejects_missing_key(self, provided) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate(provided, frozenset({"valid-key"}))

        assert exc_info.value.code == "missing_api_key"

    def test_rejects_when_no_keys_configured(self) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate("some-key", frozenset())

        assert exc_info.value.code == "api_keys_not_configured"
        assert "no valid keys are configured" in exc_info.value.message

    def test_rejects_key_prefix_and_padding(self) -> None:
        keys = frozenset({"key1"})

        with pytest.raises(AuthenticationAppError):
            authenticate("key", keys)
        with pytest.raises(AuthenticationAppError):
            authenticate(" key1 ", keys)
        with pytest.raises(AuthenticationAppError):
            authenticate("prefix-key1", keys)
