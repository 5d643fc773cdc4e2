"""In-process tool host."""

import logging
import time
from typing import Any, Protocol

from chatloop.tools.registry import ToolRegistry
from chatloop.types import ToolIdentity

logger = logging.getLogger(__name__)


class ToolHost(Protocol):
    def list_tools(self) -> list[dict[str, object]]: ...

    async def call_tool(self, client: str, name: str, args: dict[str, Any]) -> Any: ...


def tool_failure(message: str) -> dict[str, Any]:
    return {"isError": True, "content": [{"type": "text", "text": message}]}


def is_tool_failure(result: object) -> bool:
    return isinstance(result, dict) and result.get("isError") is True


class ToolRuntime:
    """Runs registered tools and reports failures on the result channel."""

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def list_tools(self) -> list[dict[str, object]]:
        return self.registry.schemas()

    async def call_tool(self, client: str, name: str, args: dict[str, Any]) -> Any:
        identity = ToolIdentity(client=client, name=name)
        tool = self.registry.get(identity)
        if tool is None:
            logger.warning("tool call for unknown tool %s", identity.qualified)
            return tool_failure(f"unknown tool: {identity.qualified}")

        started = time.perf_counter()
        logger.debug("tool.call.start %s", identity.qualified, extra={"arguments": args})
        try:
            result = await tool.handler(args)
        except Exception as exc:
            logger.exception("Tool execution failed for '%s'", identity.qualified)
            return tool_failure(f"{type(exc).__name__}: {exc}")
        logger.debug(
            "tool.call.end %s",
            identity.qualified,
            extra={"duration_ms": int((time.perf_counter() - started) * 1000)},
        )
        return result
