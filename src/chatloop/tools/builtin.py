"""Builtin tools exposed under the ``builtin`` client."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chatloop.tools.registry import ToolRegistry

BUILTIN_CLIENT = "builtin"


async def echo(args: dict[str, Any]) -> dict[str, Any]:
    return {"ok": True, "text": str(args.get("text", ""))}


async def current_time(args: dict[str, Any]) -> dict[str, Any]:
    tz_name = str(args.get("timezone") or "UTC").strip()
    try:
        tz = UTC if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return {"ok": False, "error": f"unknown timezone '{tz_name}'"}
    return {"ok": True, "timezone": tz_name, "now": datetime.now(tz).isoformat()}


def register_builtin_tools(registry: ToolRegistry) -> None:
    registry.register(
        BUILTIN_CLIENT,
        "echo",
        "Echo the given text back",
        echo,
        parameters={
            "type": "object",
            "properties": {"text": {"type": "string", "description": "Text to echo"}},
            "required": ["text"],
        },
    )
    registry.register(
        BUILTIN_CLIENT,
        "current_time",
        "Return the current date and time",
        current_time,
        parameters={
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": "IANA timezone name (default UTC)",
                },
            },
        },
    )
