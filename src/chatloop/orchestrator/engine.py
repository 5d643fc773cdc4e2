"""Streaming chat orchestration with tool-call round-trips.

One top-level ``chat`` call drives a chain of round-trips: each one streams
a provider response, and when the model asks for a tool the result is fed
back and the chain recurses, bounded by ``max_depth``. Whatever happens, the
chain ends in exactly one ChatOutcome delivered to ``on_complete``.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from chatloop.cancellation import CancellationToken
from chatloop.config import DEFAULT_MAX_RECURSION_DEPTH
from chatloop.context import ConversationContext, ModelSpec, new_id
from chatloop.errors import AbortedError, ChatLoopError, ToolError, raise_for_status_payload
from chatloop.logging import bound_context
from chatloop.providers.base import (
    ApiSettings,
    ParserCallbacks,
    ProviderSpec,
    ensure_ready,
    missing_settings,
)
from chatloop.toolcalls import merge_tool_calls, tool_call_summary
from chatloop.tools.runtime import ToolHost, tool_failure
from chatloop.types import (
    ChatOutcome,
    ErrorInfo,
    RequestMessage,
    StreamReadResult,
    ToolCall,
    ToolIdentity,
)

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[str], Awaitable[None] | None]
ToolCallStartedHandler = Callable[[str], Awaitable[None] | None]
ErrorHandler = Callable[[Exception, bool], Awaitable[None] | None]
CompleteHandler = Callable[[ChatOutcome], Awaitable[None] | None]

DEPTH_EXCEEDED_CODE = 500


async def _maybe_await(value: object) -> None:
    if inspect.isawaitable(value):
        await value


def _log_progress(chunk: str) -> None:
    logger.debug("reading chunk: %s", chunk[:100])


def _log_tool_call(name: str) -> None:
    logger.debug("tool called: %s", name)


def _log_error(error: Exception, aborted: bool) -> None:
    logger.debug("chat error (aborted=%s): %s", aborted, error)


def _log_complete(outcome: ChatOutcome) -> None:
    logger.debug(
        "chat complete",
        extra={
            "content_preview": outcome.content[:100],
            "tool_calls": tool_call_summary(outcome.tool_calls),
            "error": outcome.error.to_dict() if outcome.error else None,
        },
    )


@dataclass(slots=True)
class ChatHandlers:
    on_progress: ProgressHandler = _log_progress
    on_tool_call_started: ToolCallStartedHandler = _log_tool_call
    on_error: ErrorHandler = _log_error
    on_complete: CompleteHandler = _log_complete


@dataclass(slots=True)
class _ChainState:
    """Everything one top-level call accumulates across its round-trips."""

    call_id: str
    depth: int = 0
    reply: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finalized: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(slots=True)
class _RoundResult:
    read: StreamReadResult
    next_messages: list[RequestMessage] | None = None


def _error_code(exc: Exception, aborted: bool) -> int:
    if aborted:
        return AbortedError.default_code
    if isinstance(exc, ChatLoopError):
        return exc.code
    if isinstance(exc, httpx.TimeoutException):
        return 504
    if isinstance(exc, httpx.TransportError):
        return 503
    code = getattr(exc, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code
    return 500


class ChatOrchestrator:
    def __init__(
        self,
        provider: ProviderSpec,
        api: ApiSettings,
        context: ConversationContext | None = None,
        tool_host: ToolHost | None = None,
        *,
        max_depth: int = DEFAULT_MAX_RECURSION_DEPTH,
        timeout_seconds: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be >= 1")
        self.provider = provider
        self.api = api
        self.context = context
        self.tool_host = tool_host
        self.max_depth = max_depth
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._handlers = ChatHandlers()
        self._inflight: set[CancellationToken] = set()

    def on_progress(self, callback: ProgressHandler) -> None:
        self._handlers.on_progress = callback

    def on_tool_call_started(self, callback: ToolCallStartedHandler) -> None:
        self._handlers.on_tool_call_started = callback

    def on_error(self, callback: ErrorHandler) -> None:
        self._handlers.on_error = callback

    def on_complete(self, callback: CompleteHandler) -> None:
        self._handlers.on_complete = callback

    def missing_settings(self) -> list[str]:
        return missing_settings(self.provider, self.api)

    def is_ready(self) -> bool:
        return not self.missing_settings()

    @property
    def in_flight(self) -> bool:
        return bool(self._inflight)

    def abort(self) -> None:
        if not self._inflight:
            logger.debug("abort requested with nothing in flight")
            return
        logger.info("aborting %d in-flight round-trip(s)", len(self._inflight))
        for token in list(self._inflight):
            token.cancel()

    async def chat(
        self,
        messages: Sequence[RequestMessage],
        *,
        handlers: ChatHandlers | None = None,
    ) -> ChatOutcome:
        """Run one top-level call and return its outcome.

        The outcome is also passed to ``on_complete``. ConfigError (a provider
        that is not ready) and exceptions raised by ``on_complete`` itself
        escape; every other failure, including a raising ``on_progress`` or
        ``on_tool_call_started``, ends up in ``outcome.error``.
        """
        ensure_ready(self.provider, self.api)
        state = _ChainState(call_id=new_id("chat"))
        with bound_context(chat_call_id=state.call_id, provider=self.provider.name):
            return await self._step(list(messages), state, handlers or self._handlers)

    async def _step(
        self,
        messages: list[RequestMessage],
        state: _ChainState,
        handlers: ChatHandlers,
    ) -> ChatOutcome:
        if state.depth >= self.max_depth:
            logger.warning(
                "maximum recursion depth reached",
                extra={"depth": state.depth, "max_depth": self.max_depth},
            )
            error = ErrorInfo(
                code=DEPTH_EXCEEDED_CODE,
                message=f"Maximum recursion depth ({self.max_depth}) reached for tool calls.",
            )
            return await self._finish(state, handlers, error=error)

        state.depth += 1
        try:
            token = CancellationToken()
            self._inflight.add(token)
            try:
                round_result = await self._round_trip(messages, state, handlers, token)
            except Exception as exc:
                aborted = token.cancelled or isinstance(exc, AbortedError)
                if aborted:
                    logger.info("chat aborted at depth %d", state.depth)
                else:
                    logger.warning(
                        "chat round-trip failed at depth %d: %s: %s",
                        state.depth,
                        type(exc).__name__,
                        exc,
                    )
                await self._report_error(handlers, exc, aborted)
                error = ErrorInfo(
                    code=_error_code(exc, aborted),
                    message=str(exc) or type(exc).__name__,
                    aborted=aborted,
                )
                return await self._finish(state, handlers, error=error)
            finally:
                self._inflight.discard(token)

            if round_result.next_messages is not None:
                logger.debug(
                    "recursing with %d message(s)",
                    len(round_result.next_messages),
                    extra={"depth": state.depth, "tool_calls": len(state.tool_calls)},
                )
                return await self._step(round_result.next_messages, state, handlers)
            return await self._finish(state, handlers, error=round_result.read.error)
        finally:
            state.depth -= 1

    async def _finish(
        self,
        state: _ChainState,
        handlers: ChatHandlers,
        *,
        error: ErrorInfo | None,
    ) -> ChatOutcome:
        outcome = ChatOutcome(
            content=state.reply,
            tool_calls=tuple(merge_tool_calls(state.tool_calls, state.finalized)),
            input_tokens=state.input_tokens,
            output_tokens=state.output_tokens,
            error=error,
        )
        state.input_tokens = 0
        state.output_tokens = 0
        logger.info(
            "chat finished",
            extra={
                "reply_chars": len(outcome.content),
                "tool_calls": len(outcome.tool_calls),
                "input_tokens": outcome.input_tokens,
                "output_tokens": outcome.output_tokens,
                "error_code": error.code if error else None,
            },
        )
        await _maybe_await(handlers.on_complete(outcome))
        return outcome

    async def _report_error(
        self, handlers: ChatHandlers, exc: Exception, aborted: bool
    ) -> None:
        try:
            await _maybe_await(handlers.on_error(exc, aborted))
        except Exception:
            logger.exception("on_error handler failed; completing anyway")

    def _tool_schemas(self, model: ModelSpec | None) -> list[dict[str, Any]]:
        if self.tool_host is None:
            return []
        if model is not None and not model.supports_tools:
            logger.debug("model %s does not take tools; sending none", model.name)
            return []
        return [self.provider.make_tool(definition) for definition in self.tool_host.list_tools()]

    async def _round_trip(
        self,
        messages: list[RequestMessage],
        state: _ChainState,
        handlers: ChatHandlers,
        token: CancellationToken,
    ) -> _RoundResult:
        offset = len(state.reply)
        announced: set[str] = set()
        model = self.context.get_model() if self.context is not None else None
        api = self.api
        if model is not None and model.max_tokens:
            api = replace(api, max_tokens=model.max_tokens)
        payload = self.provider.payload_builder(
            messages,
            model=api.resolve_model(model.name if model is not None else None),
            api=api,
            tools=self._tool_schemas(model),
        )
        url = self.provider.request_shape.url(self.api)
        logger.debug(
            "starting round-trip",
            extra={"depth": state.depth, "message_count": len(messages), "url": url},
        )

        async def on_progress(chunk: str) -> None:
            state.reply += chunk
            await _maybe_await(handlers.on_progress(chunk))

        async def on_tool_call(name: str) -> None:
            announced.add(name)
            await _maybe_await(handlers.on_tool_call_started(name))

        async def on_parse_error(error: Exception) -> None:
            logger.warning("stream reported an error: %s", error)
            await _maybe_await(handlers.on_error(error, False))

        callbacks = ParserCallbacks(
            on_progress=on_progress,
            on_tool_call=on_tool_call,
            on_error=on_parse_error,
        )
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            transport=self._transport,
        ) as client:
            request = client.build_request(
                "POST",
                url,
                headers=self.provider.request_shape.headers(self.api),
                content=json.dumps(payload),
            )
            response = await token.run(client.send(request, stream=True))
            try:
                logger.debug("response status %d", response.status_code)
                if not response.is_success:
                    await self._raise_for_response(response, token)
                parser = self.provider.parser_factory()
                read = await parser.read(token.iterate(response.aiter_bytes()), callbacks)
            finally:
                await response.aclose()

        state.input_tokens += read.input_tokens
        state.output_tokens += read.output_tokens
        if read.tool_calls:
            state.finalized.extend(call.shifted(offset) for call in read.tool_calls)
        if read.tool is None:
            return _RoundResult(read=read)

        tool = read.tool.shifted(offset)
        if tool.position is None:
            tool.position = len(state.reply)
        tool.id = tool.id or new_id("call")
        if tool.name not in announced:
            await _maybe_await(handlers.on_tool_call_started(tool.name))
        if read.error is not None:
            logger.warning("round-trip reported %s alongside a tool call", read.error.message)

        result = await self._invoke_tool(tool, token)
        tool.attach_response(result)
        state.tool_calls.append(tool)
        next_messages = [
            *messages,
            *self.provider.tool_messages(tool, result, state.reply[offset:]),
        ]
        return _RoundResult(read=read, next_messages=next_messages)

    async def _invoke_tool(self, tool: ToolCall, token: CancellationToken) -> Any:
        try:
            identity = ToolIdentity.parse(tool.name)
        except ToolError as exc:
            logger.warning("cannot dispatch tool call: %s", exc)
            return tool_failure(str(exc))
        if self.tool_host is None:
            return tool_failure(f"no tool host available for {tool.name}")
        logger.info(
            "dispatching tool call %s",
            identity.qualified,
            extra={"client": identity.client, "tool": identity.name},
        )
        try:
            return await token.run(
                self.tool_host.call_tool(identity.client, identity.name, dict(tool.args))
            )
        except AbortedError:
            raise
        except Exception as exc:
            logger.exception("Tool host failed for '%s'", identity.qualified)
            return tool_failure(f"{type(exc).__name__}: {exc}")

    async def _raise_for_response(
        self, response: httpx.Response, token: CancellationToken
    ) -> None:
        await token.run(response.aread())
        content_type = response.headers.get("content-type", "")
        json_body: Any = None
        text: str | None = None
        if "application/json" in content_type:
            try:
                json_body = response.json()
            except ValueError:
                text = response.text
        else:
            text = response.text
        raise_for_status_payload(response.status_code, json_body, text)
