"""Tool registration helpers."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from chatloop.types import TOOL_SEPARATOR, ToolIdentity

ToolCallable = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(slots=True)
class ToolDef:
    identity: ToolIdentity
    description: str
    handler: ToolCallable
    parameters: dict[str, object] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


def _validate_part(kind: str, value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"tool {kind} must not be empty")
    if TOOL_SEPARATOR in cleaned:
        raise ValueError(f"tool {kind} {cleaned!r} must not contain {TOOL_SEPARATOR!r}")
    return cleaned


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[ToolIdentity, ToolDef] = {}

    def register(
        self,
        client: str,
        name: str,
        description: str,
        handler: ToolCallable,
        parameters: dict[str, object] | None = None,
    ) -> ToolIdentity:
        identity = ToolIdentity(
            client=_validate_part("client", client),
            name=_validate_part("name", name),
        )
        self._tools[identity] = ToolDef(
            identity=identity,
            description=description,
            handler=handler,
            parameters=parameters or {"type": "object", "properties": {}},
        )
        return identity

    def get(self, identity: ToolIdentity) -> ToolDef | None:
        return self._tools.get(identity)

    def __len__(self) -> int:
        return len(self._tools)

    def schemas(self) -> list[dict[str, object]]:
        return [
            {
                "name": tool.identity.qualified,
                "description": tool.description,
                "parameters": tool.parameters,
            }
            for tool in self._tools.values()
        ]
