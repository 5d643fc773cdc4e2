"""Provider contracts.

A provider is three injected strategies (payload builder, stream parser
factory, HTTP request shape) plus the provider's tool-message conventions.
The orchestrator only ever talks to these seams.
"""

from __future__ import annotations

import re
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from chatloop.errors import ConfigError
from chatloop.types import RequestMessage, StreamReadResult, ToolCall

API_SCHEMA_FIELDS = ("model", "base", "key")

_TAG_RE = re.compile(r"<[^>]+>")


async def _noop(*_args: object) -> None:
    return None


@dataclass(slots=True)
class ApiSettings:
    base: str = ""
    key: str = ""
    model: str = ""
    model_mapping: Mapping[str, str] = field(default_factory=dict)
    temperature: float | None = 0.7
    max_tokens: int | None = None

    def resolve_model(self, selected: str | None = None) -> str:
        name = (selected or self.model).strip()
        return self.model_mapping.get(name) or name


@dataclass(slots=True)
class ParserCallbacks:
    on_progress: Callable[[str], Awaitable[None]] = _noop
    on_tool_call: Callable[[str], Awaitable[None]] = _noop
    on_error: Callable[[Exception], Awaitable[None]] = _noop


class StreamParser(Protocol):
    async def read(
        self, chunks: AsyncIterator[bytes], callbacks: ParserCallbacks
    ) -> StreamReadResult: ...


class PayloadBuilder(Protocol):
    def __call__(
        self,
        messages: Sequence[RequestMessage],
        *,
        model: str,
        api: ApiSettings,
        tools: list[dict[str, Any]],
    ) -> dict[str, Any]: ...


class RequestShape(Protocol):
    def url(self, api: ApiSettings) -> str: ...

    def headers(self, api: ApiSettings) -> dict[str, str]: ...


ParserFactory = Callable[[], StreamParser]
ToolMessageBuilder = Callable[[ToolCall, Any, str], list[RequestMessage]]
ToolSchemaBuilder = Callable[[Mapping[str, Any]], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    name: str
    api_schema: tuple[str, ...]
    default_base_url: str
    payload_builder: PayloadBuilder
    parser_factory: ParserFactory
    request_shape: RequestShape
    tool_messages: ToolMessageBuilder
    make_tool: ToolSchemaBuilder


def missing_settings(provider: ProviderSpec, api: ApiSettings) -> list[str]:
    missing: list[str] = []
    for name in provider.api_schema:
        if name not in API_SCHEMA_FIELDS:
            continue
        value = getattr(api, name, "")
        if not isinstance(value, str) or not value.strip():
            missing.append(name)
    return missing


def is_ready(provider: ProviderSpec, api: ApiSettings) -> bool:
    return not missing_settings(provider, api)


def ensure_ready(provider: ProviderSpec, api: ApiSettings) -> None:
    missing = missing_settings(provider, api)
    if missing:
        raise ConfigError(
            f"provider {provider.name} is not configured: missing {', '.join(missing)}",
            missing=missing,
        )


def strip_html_tags(text: str) -> str:
    return _TAG_RE.sub("", text or "")
