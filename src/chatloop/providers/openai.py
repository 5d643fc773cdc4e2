"""OpenAI-compatible chat completions strategies (streamed over SSE)."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from chatloop.context import new_id
from chatloop.errors import ProviderError, StreamParseError
from chatloop.providers.base import ApiSettings, ParserCallbacks, strip_html_tags
from chatloop.types import ErrorInfo, RequestMessage, StreamReadResult, ToolCall

logger = logging.getLogger(__name__)


def _coerce_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        chunks: list[str] = []
        for item in value:
            if isinstance(item, str):
                chunks.append(item)
            elif isinstance(item, dict):
                text = item.get("text")
                if isinstance(text, str):
                    chunks.append(text)
        return "".join(chunks)
    return ""


def _convert_message(message: RequestMessage) -> dict[str, Any]:
    payload = message.to_dict()
    if message.role != "user":
        return payload
    content = payload.get("content")
    if isinstance(content, str):
        payload["content"] = strip_html_tags(content)
    elif isinstance(content, list):
        for part in content:
            if part.get("type") == "text":
                part["text"] = strip_html_tags(str(part.get("text", "")))
    return payload


def build_chat_payload(
    messages: Sequence[RequestMessage],
    *,
    model: str,
    api: ApiSettings,
    tools: list[dict[str, Any]],
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": model,
        "messages": [_convert_message(message) for message in messages],
        "stream": True,
        "stream_options": {"include_usage": True},
    }
    if api.temperature is not None:
        payload["temperature"] = api.temperature
    if api.max_tokens:
        payload["max_tokens"] = api.max_tokens
    if tools:
        payload["tools"] = tools
    return payload


def make_tool(definition: Mapping[str, Any]) -> dict[str, Any]:
    name = definition.get("name")
    if not isinstance(name, str) or not name:
        raise ValueError("tool definition requires a name")
    params = definition.get("parameters")
    function: dict[str, Any] = {
        "name": name,
        "parameters": params if isinstance(params, dict) else {"type": "object", "properties": {}},
    }
    description = definition.get("description")
    if isinstance(description, str) and description:
        function["description"] = description
    return {"type": "function", "function": function}


def _result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def build_tool_messages(tool: ToolCall, result: Any, assistant_text: str) -> list[RequestMessage]:
    call_id = tool.id or new_id("call")
    return [
        RequestMessage(
            role="assistant",
            content=assistant_text,
            tool_calls=(
                {
                    "id": call_id,
                    "type": "function",
                    "function": {"name": tool.name, "arguments": json.dumps(tool.args)},
                },
            ),
        ),
        RequestMessage(
            role="tool",
            content=_result_text(result),
            name=tool.name,
            tool_call_id=call_id,
        ),
    ]


@dataclass(frozen=True, slots=True)
class BearerRequestShape:
    path: str = "/v1/chat/completions"

    def url(self, api: ApiSettings) -> str:
        return f"{api.base.rstrip('/')}{self.path}"

    def headers(self, api: ApiSettings) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if api.key:
            headers["Authorization"] = f"Bearer {api.key}"
        return headers


async def iter_lines(chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    async for chunk in chunks:
        buffer += decoder.decode(chunk)
        *lines, buffer = buffer.split("\n")
        for line in lines:
            yield line
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer


@dataclass(slots=True)
class _ToolCallFragments:
    position: int
    id: str | None = None
    name: str = ""
    arguments: str = ""

    def to_tool_call(self) -> ToolCall:
        args: dict[str, Any] = {}
        raw = self.arguments.strip()
        if raw:
            try:
                decoded = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("tool call %s has undecodable arguments", self.name)
                decoded = {}
            if isinstance(decoded, dict):
                args = decoded
        return ToolCall(name=self.name, args=args, position=self.position, id=self.id)


def _stream_error(payload: object) -> ErrorInfo:
    code = 500
    message = "provider reported an error"
    if isinstance(payload, dict):
        raw_code = payload.get("code")
        if isinstance(raw_code, int):
            code = raw_code
        elif isinstance(raw_code, str) and raw_code.isdigit():
            code = int(raw_code)
        raw_message = payload.get("message")
        if isinstance(raw_message, str) and raw_message:
            message = raw_message
    elif isinstance(payload, str) and payload:
        message = payload
    return ErrorInfo(code=code, message=message)


class OpenAIStreamParser:
    """Drain one ``chat.completions`` SSE stream into a StreamReadResult.

    Tool-call fragments are stitched together by their ``index``. Only the
    first completed call is returned as the pending ``tool``; the engine
    handles one call per round-trip.
    """

    async def read(
        self, chunks: AsyncIterator[bytes], callbacks: ParserCallbacks
    ) -> StreamReadResult:
        result = StreamReadResult()
        text_parts: list[str] = []
        text_length = 0
        fragments: dict[int, _ToolCallFragments] = {}

        async for raw in iter_lines(chunks):
            line = raw.strip()
            if not line.startswith("data:"):
                continue
            data = line[len("data:") :].strip()
            if not data:
                continue
            if data == "[DONE]":
                break
            try:
                event = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("skipping undecodable stream chunk: %s", data[:200])
                await callbacks.on_error(
                    StreamParseError("undecodable stream chunk", chunk=data[:500])
                )
                continue
            if not isinstance(event, dict):
                continue

            if event.get("error"):
                result.error = _stream_error(event["error"])
                await callbacks.on_error(
                    ProviderError(result.error.message, code=result.error.code, body=event)
                )
                continue

            usage = event.get("usage")
            if isinstance(usage, dict):
                result.input_tokens = int(usage.get("prompt_tokens") or result.input_tokens)
                result.output_tokens = int(usage.get("completion_tokens") or result.output_tokens)

            choices = event.get("choices")
            if not isinstance(choices, list) or not choices:
                continue
            first = choices[0]
            if not isinstance(first, dict):
                continue
            delta = first.get("delta")
            if not isinstance(delta, dict):
                continue

            content = _coerce_text(delta.get("content"))
            if content:
                text_parts.append(content)
                text_length += len(content)
                await callbacks.on_progress(content)

            tool_deltas = delta.get("tool_calls")
            if not isinstance(tool_deltas, list):
                continue
            for item in tool_deltas:
                if not isinstance(item, dict):
                    continue
                index = item.get("index", 0)
                if not isinstance(index, int):
                    index = 0
                slot = fragments.get(index)
                if slot is None:
                    slot = _ToolCallFragments(position=text_length)
                    fragments[index] = slot
                call_id = item.get("id")
                if isinstance(call_id, str) and call_id:
                    slot.id = call_id
                function = item.get("function")
                if not isinstance(function, dict):
                    continue
                name = function.get("name")
                if isinstance(name, str) and name and not slot.name:
                    slot.name = name
                    await callbacks.on_tool_call(name)
                arguments = function.get("arguments")
                if isinstance(arguments, str):
                    slot.arguments += arguments
                elif isinstance(arguments, dict):
                    slot.arguments = json.dumps(arguments)

        result.content = "".join(text_parts)
        calls = [fragments[index].to_tool_call() for index in sorted(fragments) if fragments[index].name]
        if calls:
            result.tool = calls[0]
            if len(calls) > 1:
                logger.warning(
                    "model requested %d tool calls in one round-trip; processing %s only",
                    len(calls),
                    calls[0].name,
                )
        return result
