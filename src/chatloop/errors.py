"""chatloop exception hierarchy.

All chatloop-specific exceptions inherit from ChatLoopError and carry an
HTTP-style ``code`` so they can be folded into a completion payload.
"""

from typing import Any


class ChatLoopError(Exception):
    """Base exception for all chatloop errors."""

    default_code = 500

    def __init__(
        self, message: str = "", *, code: int | None = None, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.code = self.default_code if code is None else code
        self.retryable = retryable


class ConfigError(ChatLoopError):
    """Invalid or missing provider configuration."""

    default_code = 400

    def __init__(self, message: str = "", *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = list(missing or [])


class ProviderError(ChatLoopError):
    """Non-success response from an LLM provider."""

    def __init__(
        self,
        message: str = "",
        *,
        code: int | None = None,
        retryable: bool = True,
        body: Any = None,
    ) -> None:
        super().__init__(message, code=code, retryable=retryable)
        self.body = body


class StreamParseError(ChatLoopError):
    """A streamed chunk could not be interpreted."""

    def __init__(self, message: str = "", *, chunk: str = "") -> None:
        super().__init__(message)
        self.chunk = chunk


class ToolError(ChatLoopError):
    """Tool identity or bookkeeping error."""


class AbortedError(ChatLoopError):
    """The in-flight round-trip was cancelled."""

    default_code = 499

    def __init__(self, message: str = "request aborted") -> None:
        super().__init__(message)


_STATUS_PREFIXES = {
    401: "authentication failed",
    403: "permission denied",
    404: "model or endpoint not found",
    429: "rate limit exceeded",
}


def _extract_message(json_body: Any, text: str | None) -> str:
    if isinstance(json_body, dict):
        error = json_body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        elif isinstance(error, str) and error.strip():
            return error.strip()
        message = json_body.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    if text and text.strip():
        return text.strip()[:500]
    return ""


def raise_for_status_payload(status: int, json_body: Any = None, text: str | None = None) -> None:
    """Raise a classified ProviderError for a non-success response body."""
    detail = _extract_message(json_body, text)
    prefix = _STATUS_PREFIXES.get(status)
    if prefix and detail:
        message = f"{prefix}: {detail}"
    elif prefix:
        message = prefix
    else:
        message = detail or f"provider request failed with status {status}"
    retryable = status == 429 or status >= 500
    raise ProviderError(
        message,
        code=status,
        retryable=retryable,
        body=json_body if json_body is not None else text,
    )
