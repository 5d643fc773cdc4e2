"""Click CLI group: ask and providers commands."""

from __future__ import annotations

import asyncio
import json

import click

from chatloop.config import get_settings, validate_settings_for_env
from chatloop.context import InMemoryConversation, ModelSpec
from chatloop.errors import ConfigError
from chatloop.logging import configure_logging
from chatloop.orchestrator.engine import ChatHandlers, ChatOrchestrator
from chatloop.providers.base import is_ready, missing_settings
from chatloop.providers.factory import (
    PROVIDERS,
    build_api_settings,
    build_orchestrator,
    resolve_provider_name,
)
from chatloop.sink import MessageRecordSink
from chatloop.tools.builtin import register_builtin_tools
from chatloop.tools.registry import ToolRegistry
from chatloop.tools.runtime import ToolRuntime
from chatloop.types import ChatOutcome, RequestMessage


def _stream_handlers(sink: MessageRecordSink, *, echo_stream: bool) -> ChatHandlers:
    def on_progress(chunk: str) -> None:
        if echo_stream:
            click.echo(chunk, nl=False)

    def on_tool_call_started(name: str) -> None:
        if echo_stream:
            click.echo(f"\n[tool] {name}", err=True)

    def on_error(error: Exception, aborted: bool) -> None:
        if echo_stream and not aborted:
            click.echo(f"\n[error] {error}", err=True)

    return ChatHandlers(
        on_progress=on_progress,
        on_tool_call_started=on_tool_call_started,
        on_error=on_error,
        on_complete=sink,
    )


async def run_ask(
    orchestrator: ChatOrchestrator,
    conversation: InMemoryConversation,
    message: str,
    *,
    echo_stream: bool,
) -> ChatOutcome:
    conversation.new_message()
    handlers = _stream_handlers(MessageRecordSink(conversation), echo_stream=echo_stream)
    return await orchestrator.chat([RequestMessage.user(message)], handlers=handlers)


@click.group()
def cli() -> None:
    """Streaming chat orchestrator CLI."""
    settings = get_settings()
    configure_logging(settings=settings)


@cli.command()
@click.argument("message")
@click.option("--provider", "provider_name", type=str, default=None, help="Provider to use.")
@click.option("--model", type=str, default=None, help="Override CHAT_MODEL.")
@click.option("--json", "json_output", is_flag=True, help="Print structured JSON outcome.")
def ask(message: str, provider_name: str | None, model: str | None, json_output: bool) -> None:
    """Send MESSAGE and stream the reply."""
    settings = get_settings()
    try:
        validate_settings_for_env(settings)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    registry = ToolRegistry()
    register_builtin_tools(registry)
    conversation = InMemoryConversation(model=ModelSpec(name=(model or settings.chat_model).strip()))
    try:
        orchestrator = build_orchestrator(
            settings,
            provider_name=provider_name,
            model=model,
            tool_host=ToolRuntime(registry),
            context=conversation,
        )
        outcome = asyncio.run(
            run_ask(orchestrator, conversation, message, echo_stream=not json_output)
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(json.dumps(outcome.to_payload(), default=str))
    else:
        click.echo()
        if outcome.error is not None:
            raise click.ClickException(f"chat failed ({outcome.error.code}): {outcome.error.message}")


@cli.command()
def providers() -> None:
    """List providers and whether the current settings make them ready."""
    settings = get_settings()
    selected = resolve_provider_name(settings)
    for name, provider in sorted(PROVIDERS.items()):
        api = build_api_settings(settings, provider)
        marker = "*" if name == selected else " "
        if is_ready(provider, api):
            click.echo(f"{marker} {name}: ready ({api.base})")
        else:
            missing = ", ".join(missing_settings(provider, api))
            click.echo(f"{marker} {name}: missing {missing}")
