"""Request, tool-call and outcome data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from chatloop.errors import ToolError

TOOL_SEPARATOR = "--"


@dataclass(frozen=True, slots=True)
class ContentPart:
    type: str
    text: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.type == "image_url":
            return {"type": "image_url", "image_url": {"url": self.image_url or ""}}
        return {"type": self.type, "text": self.text or ""}


@dataclass(frozen=True, slots=True)
class RequestMessage:
    role: str
    content: str | tuple[ContentPart, ...] = ""
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[dict[str, Any], ...] = ()

    @classmethod
    def system(cls, text: str) -> RequestMessage:
        return cls(role="system", content=text)

    @classmethod
    def user(cls, content: str | tuple[ContentPart, ...]) -> RequestMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, text: str) -> RequestMessage:
        return cls(role="assistant", content=text)

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(part.text or "" for part in self.content if part.type == "text")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role}
        if isinstance(self.content, str):
            payload["content"] = self.content
        else:
            payload["content"] = [part.to_dict() for part in self.content]
        if self.name:
            payload["name"] = self.name
        if self.tool_call_id:
            payload["tool_call_id"] = self.tool_call_id
        if self.tool_calls:
            payload["tool_calls"] = [dict(item) for item in self.tool_calls]
        return payload


@dataclass(frozen=True, slots=True)
class ToolIdentity:
    """A tool addressed as ``client--name`` on the wire."""

    client: str
    name: str

    @property
    def qualified(self) -> str:
        return f"{self.client}{TOOL_SEPARATOR}{self.name}"

    @classmethod
    def parse(cls, qualified: str) -> ToolIdentity:
        client, sep, name = (qualified or "").partition(TOOL_SEPARATOR)
        if not sep or not client or not name:
            raise ToolError(f"tool name is not qualified as client{TOOL_SEPARATOR}name: {qualified!r}")
        return cls(client=client, name=name)


@dataclass(slots=True)
class ToolCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    response: Any = None
    position: int | None = None
    id: str | None = None
    _answered: bool = field(default=False, repr=False, compare=False)

    @property
    def identity_key(self) -> str | tuple[int | None, str]:
        if self.id:
            return self.id
        return (self.position, self.name)

    @property
    def answered(self) -> bool:
        return self._answered

    def attach_response(self, response: Any) -> None:
        if self._answered:
            raise ToolError(f"tool call {self.name} already has a response")
        self.response = response
        self._answered = True

    def shifted(self, offset: int) -> ToolCall:
        """Return a copy whose position is moved by ``offset``."""
        position = None if self.position is None else self.position + offset
        copy = ToolCall(
            name=self.name,
            args=dict(self.args),
            response=self.response,
            position=position,
            id=self.id,
        )
        copy._answered = self._answered
        return copy

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name, "args": self.args, "response": self.response}
        if self.position is not None:
            payload["position"] = self.position
        if self.id:
            payload["id"] = self.id
        return payload


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    code: int
    message: str
    aborted: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.aborted:
            payload["aborted"] = True
        return payload


@dataclass(slots=True)
class StreamReadResult:
    content: str = ""
    tool: ToolCall | None = None
    tool_calls: list[ToolCall] | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    error: ErrorInfo | None = None


@dataclass(frozen=True, slots=True)
class ChatOutcome:
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    input_tokens: int = 0
    output_tokens: int = 0
    error: ErrorInfo | None = None

    @property
    def aborted(self) -> bool:
        return self.error is not None and self.error.aborted

    def to_payload(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "toolCalls": [call.to_dict() for call in self.tool_calls],
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "error": self.error.to_dict() if self.error else None,
        }
