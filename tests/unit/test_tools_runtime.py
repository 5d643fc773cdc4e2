import pytest

from chatloop.tools.builtin import BUILTIN_CLIENT, register_builtin_tools
from chatloop.tools.registry import ToolRegistry
from chatloop.tools.runtime import ToolRuntime, is_tool_failure


def test_register_rejects_separator_and_empty_names() -> None:
    registry = ToolRegistry()

    async def handler(args):
        return args

    with pytest.raises(ValueError):
        registry.register("web--x", "search", "bad client", handler)
    with pytest.raises(ValueError):
        registry.register("web", "a--b", "bad name", handler)
    with pytest.raises(ValueError):
        registry.register(" ", "search", "empty client", handler)
    assert len(registry) == 0


def test_schemas_use_qualified_names() -> None:
    registry = ToolRegistry()
    register_builtin_tools(registry)
    names = [schema["name"] for schema in ToolRuntime(registry).list_tools()]
    assert names == [f"{BUILTIN_CLIENT}--echo", f"{BUILTIN_CLIENT}--current_time"]


@pytest.mark.asyncio
async def test_call_tool_runs_handler() -> None:
    registry = ToolRegistry()
    register_builtin_tools(registry)
    runtime = ToolRuntime(registry)
    result = await runtime.call_tool(BUILTIN_CLIENT, "echo", {"text": "hi"})
    assert result == {"ok": True, "text": "hi"}

    clock = await runtime.call_tool(BUILTIN_CLIENT, "current_time", {"timezone": "UTC"})
    assert clock["ok"] is True
    bad_zone = await runtime.call_tool(BUILTIN_CLIENT, "current_time", {"timezone": "Mars/Olympus"})
    assert bad_zone["ok"] is False


@pytest.mark.asyncio
async def test_unknown_tool_and_handler_failure_become_results() -> None:
    registry = ToolRegistry()

    async def boom(_args):
        raise RuntimeError("kaput")

    registry.register("lab", "boom", "Always fails", boom)
    runtime = ToolRuntime(registry)

    missing = await runtime.call_tool("lab", "nothing", {})
    assert is_tool_failure(missing)
    assert "unknown tool: lab--nothing" in missing["content"][0]["text"]

    failed = await runtime.call_tool("lab", "boom", {})
    assert is_tool_failure(failed)
    assert failed["content"][0]["text"] == "RuntimeError: kaput"
