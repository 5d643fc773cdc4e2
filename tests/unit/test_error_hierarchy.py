"""Tests for error hierarchy."""

import pytest

from chatloop.errors import (
    AbortedError,
    ChatLoopError,
    ConfigError,
    ProviderError,
    StreamParseError,
    ToolError,
    raise_for_status_payload,
)


def test_hierarchy() -> None:
    assert issubclass(ConfigError, ChatLoopError)
    assert issubclass(ProviderError, ChatLoopError)
    assert issubclass(StreamParseError, ChatLoopError)
    assert issubclass(ToolError, ChatLoopError)
    assert issubclass(AbortedError, ChatLoopError)


def test_codes_and_retryable_defaults() -> None:
    assert ChatLoopError("x").code == 500
    assert ChatLoopError("x").retryable is False
    assert ConfigError("x", missing=["key"]).code == 400
    assert ConfigError("x", missing=["key"]).missing == ["key"]
    assert ProviderError("x").retryable is True
    assert AbortedError().code == 499
    assert str(AbortedError()) == "request aborted"


def test_status_payload_extracts_nested_error_message() -> None:
    with pytest.raises(ProviderError) as exc_info:
        raise_for_status_payload(401, {"error": {"message": "bad key"}})
    assert exc_info.value.code == 401
    assert str(exc_info.value) == "authentication failed: bad key"
    assert exc_info.value.retryable is False


def test_status_payload_rate_limit_is_retryable() -> None:
    with pytest.raises(ProviderError) as exc_info:
        raise_for_status_payload(429, {"message": "slow down"})
    assert exc_info.value.retryable is True
    assert str(exc_info.value) == "rate limit exceeded: slow down"


def test_status_payload_falls_back_to_text_and_status() -> None:
    with pytest.raises(ProviderError) as exc_info:
        raise_for_status_payload(502, None, "upstream exploded")
    assert str(exc_info.value) == "upstream exploded"
    assert exc_info.value.retryable is True
    assert exc_info.value.body == "upstream exploded"

    with pytest.raises(ProviderError) as exc_info:
        raise_for_status_payload(418)
    assert str(exc_info.value) == "provider request failed with status 418"


def test_catch_as_chatloop_error() -> None:
    try:
        raise ProviderError("test", code=503)
    except ChatLoopError as exc:
        assert exc.code == 503
        assert exc.retryable is True
