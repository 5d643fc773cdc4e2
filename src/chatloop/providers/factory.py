"""Provider catalogue and construction helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from chatloop.config import Settings
from chatloop.context import ConversationContext
from chatloop.errors import ConfigError
from chatloop.providers.base import ApiSettings, ProviderSpec
from chatloop.providers.openai import (
    BearerRequestShape,
    OpenAIStreamParser,
    build_chat_payload,
    build_tool_messages,
    make_tool,
)
from chatloop.tools.runtime import ToolHost

if TYPE_CHECKING:
    from chatloop.orchestrator.engine import ChatOrchestrator


def _openai_compatible(
    name: str,
    *,
    default_base_url: str,
    api_schema: tuple[str, ...] = ("model", "base", "key"),
    path: str = "/v1/chat/completions",
) -> ProviderSpec:
    return ProviderSpec(
        name=name,
        api_schema=api_schema,
        default_base_url=default_base_url,
        payload_builder=build_chat_payload,
        parser_factory=OpenAIStreamParser,
        request_shape=BearerRequestShape(path=path),
        tool_messages=build_tool_messages,
        make_tool=make_tool,
    )


PROVIDERS: dict[str, ProviderSpec] = {
    "openai": _openai_compatible("openai", default_base_url="https://api.openai.com"),
    "moonshot": _openai_compatible("moonshot", default_base_url="https://api.moonshot.cn"),
    "deepseek": _openai_compatible(
        "deepseek",
        default_base_url="https://api.deepseek.com",
        path="/chat/completions",
    ),
    "ollama": _openai_compatible(
        "ollama",
        default_base_url="http://localhost:11434",
        api_schema=("model", "base"),
    ),
}


def resolve_provider_name(settings: Settings) -> str:
    return settings.chat_provider.strip().lower() or "openai"


def get_provider(name: str) -> ProviderSpec:
    provider = PROVIDERS.get(name.strip().lower())
    if provider is None:
        known = ", ".join(sorted(PROVIDERS))
        raise ConfigError(f"unknown provider {name!r} (known: {known})")
    return provider


def build_api_settings(settings: Settings, provider: ProviderSpec) -> ApiSettings:
    return ApiSettings(
        base=settings.chat_api_base.strip() or provider.default_base_url,
        key=settings.chat_api_key.strip(),
        model=settings.chat_model.strip(),
        model_mapping=dict(settings.chat_model_mapping),
        temperature=settings.chat_temperature,
        max_tokens=settings.chat_max_tokens or None,
    )


def build_orchestrator(
    settings: Settings,
    *,
    provider_name: str | None = None,
    model: str | None = None,
    tool_host: ToolHost | None = None,
    context: ConversationContext | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatOrchestrator:
    """Assemble an orchestrator for the configured (or given) provider."""
    from chatloop.orchestrator.engine import ChatOrchestrator

    provider = get_provider(provider_name or resolve_provider_name(settings))
    api = build_api_settings(settings, provider)
    if model:
        api.model = model.strip()
    return ChatOrchestrator(
        provider,
        api,
        context=context,
        tool_host=tool_host,
        max_depth=settings.chat_max_recursion_depth,
        timeout_seconds=settings.chat_request_timeout_seconds,
        transport=transport,
    )
