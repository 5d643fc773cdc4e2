"""Tool-call list handling: merge, record normalization, reply segmentation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from chatloop.types import ToolCall

logger = logging.getLogger(__name__)


def check_positions(tool_calls: Sequence[ToolCall]) -> bool:
    """Return False (and log) when positions go backwards."""
    ordered = True
    last: int | None = None
    for call in tool_calls:
        if call.position is None:
            continue
        if last is not None and call.position < last:
            logger.warning(
                "tool call %s at position %d precedes previous position %d",
                call.name,
                call.position,
                last,
            )
            ordered = False
        last = call.position
    return ordered


def merge_tool_calls(
    accumulated: Sequence[ToolCall], finalized: Iterable[ToolCall] | None
) -> list[ToolCall]:
    """Append finalized calls to the accumulated ones, skipping duplicates.

    A finalized call is a duplicate when its id is already present, or,
    lacking an id, when a call with the same ``(position, name)`` is. Request
    order is kept as is; out-of-order positions are only logged.
    """
    check_positions(accumulated)
    merged = list(accumulated)
    seen_ids = {call.id for call in merged if call.id}
    seen_slots = {(call.position, call.name) for call in merged}
    for call in finalized or ():
        if call.id:
            duplicate = call.id in seen_ids
        else:
            duplicate = (call.position, call.name) in seen_slots
        if duplicate:
            logger.debug("dropping duplicate tool call %s", call.name)
            continue
        if call.id:
            seen_ids.add(call.id)
        seen_slots.add((call.position, call.name))
        merged.append(call)
    return merged


def _coerce_record(item: object) -> ToolCall | None:
    if isinstance(item, ToolCall):
        return item if item.name.strip() else None
    if not isinstance(item, dict):
        return None
    name = item.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    args = item.get("args", item.get("arguments", {}))
    position = item.get("position")
    call_id = item.get("id")
    return ToolCall(
        name=name,
        args=args if isinstance(args, dict) else {},
        response=item.get("response"),
        position=position if isinstance(position, int) else None,
        id=call_id if isinstance(call_id, str) and call_id else None,
    )


def normalize_tool_calls(value: object) -> list[ToolCall]:
    """Coerce a stored ``toolCalls`` field into a list of ToolCall.

    Accepts None, a JSON string or a list; anything unparseable yields [].
    """
    if value is None:
        return []
    items: object = value
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            items = json.loads(value)
        except json.JSONDecodeError:
            logger.debug("failed to parse stored tool calls: %s", value[:200])
            return []
    if not isinstance(items, list):
        logger.debug("stored tool calls are not a list: %s", type(items).__name__)
        return []
    calls: list[ToolCall] = []
    for item in items:
        call = _coerce_record(item)
        if call is not None:
            calls.append(call)
    return calls


def serialize_tool_calls(tool_calls: Iterable[ToolCall]) -> str:
    return json.dumps([call.to_dict() for call in tool_calls], default=str)


@dataclass(frozen=True, slots=True)
class ReplySegment:
    text: str = ""
    tool_call: ToolCall | None = None


def segment_reply(content: str, tool_calls: Sequence[ToolCall]) -> list[ReplySegment]:
    """Interleave reply text with tool calls at their positions.

    Calls without a position go after the text.
    """
    segments: list[ReplySegment] = []
    cursor = 0
    positioned = [call for call in tool_calls if call.position is not None]
    trailing = [call for call in tool_calls if call.position is None]
    check_positions(positioned)
    for call in sorted(positioned, key=lambda item: item.position or 0):
        position = min(max(call.position or 0, cursor), len(content))
        if position > cursor:
            segments.append(ReplySegment(text=content[cursor:position]))
            cursor = position
        segments.append(ReplySegment(tool_call=call))
    if cursor < len(content):
        segments.append(ReplySegment(text=content[cursor:]))
    segments.extend(ReplySegment(tool_call=call) for call in trailing)
    return segments


def tool_call_summary(tool_calls: Sequence[ToolCall]) -> list[dict[str, Any]]:
    return [
        {"name": call.name, "has_args": bool(call.args), "has_response": call.response is not None}
        for call in tool_calls
    ]
