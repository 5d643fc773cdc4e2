import json
import logging

from chatloop.toolcalls import (
    check_positions,
    merge_tool_calls,
    normalize_tool_calls,
    segment_reply,
    serialize_tool_calls,
)
from chatloop.types import ToolCall


def test_merge_skips_duplicates_by_id_and_slot() -> None:
    accumulated = [
        ToolCall(name="a--x", position=0, id="call_1"),
        ToolCall(name="a--y", position=5),
    ]
    finalized = [
        ToolCall(name="a--x", position=0, id="call_1"),
        ToolCall(name="a--y", position=5),
        ToolCall(name="a--z", position=9, id="call_3"),
    ]
    merged = merge_tool_calls(accumulated, finalized)
    assert [call.name for call in merged] == ["a--x", "a--y", "a--z"]


def test_merge_keeps_request_order_even_when_positions_decrease(caplog) -> None:
    accumulated = [ToolCall(name="c--t1", position=50), ToolCall(name="c--t2", position=2)]
    with caplog.at_level(logging.WARNING, logger="chatloop.toolcalls"):
        merged = merge_tool_calls(
            accumulated,
            [ToolCall(name="a--none"), ToolCall(name="a--early", position=0)],
        )
    assert [call.name for call in merged] == ["c--t1", "c--t2", "a--none", "a--early"]
    assert "precedes previous position" in caplog.text


def test_merge_without_finalized_returns_copy() -> None:
    accumulated = [ToolCall(name="a--x", position=1)]
    merged = merge_tool_calls(accumulated, None)
    assert merged == accumulated
    assert merged is not accumulated


def test_check_positions_warns_on_decrease(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="chatloop.toolcalls"):
        ok = check_positions([ToolCall(name="a--x", position=9), ToolCall(name="a--y", position=2)])
    assert ok is False
    assert "precedes previous position" in caplog.text
    assert check_positions([ToolCall(name="a--x", position=1), ToolCall(name="a--y")]) is True


def test_normalize_accepts_none_string_and_list() -> None:
    assert normalize_tool_calls(None) == []
    assert normalize_tool_calls("") == []
    assert normalize_tool_calls("{broken") == []
    assert normalize_tool_calls('{"name": "x"}') == []

    stored = json.dumps(
        [
            {"name": "web--search", "args": {"q": "x"}, "response": "ok", "position": 4},
            {"name": "", "args": {}},
            {"args": {}},
            "junk",
        ]
    )
    calls = normalize_tool_calls(stored)
    assert len(calls) == 1
    assert calls[0].name == "web--search"
    assert calls[0].position == 4
    assert calls[0].response == "ok"

    direct = normalize_tool_calls([ToolCall(name="a--b"), ToolCall(name=" ")])
    assert [call.name for call in direct] == ["a--b"]


def test_serialize_round_trips_through_normalize() -> None:
    calls = [ToolCall(name="a--b", args={"k": 1}, response={"ok": True}, position=2, id="call_1")]
    restored = normalize_tool_calls(serialize_tool_calls(calls))
    assert restored[0].to_dict() == calls[0].to_dict()


def test_segment_reply_interleaves_text_and_calls() -> None:
    first = ToolCall(name="a--one", position=5)
    second = ToolCall(name="a--two", position=11)
    trailing = ToolCall(name="a--three")
    segments = segment_reply("Hello world, bye", [second, first, trailing])

    assert [(segment.text, segment.tool_call) for segment in segments] == [
        ("Hello", None),
        ("", first),
        (" world", None),
        ("", second),
        (", bye", None),
        ("", trailing),
    ]


def test_segment_reply_clamps_out_of_range_positions() -> None:
    call = ToolCall(name="a--x", position=99)
    segments = segment_reply("abc", [call])
    assert segments[0].text == "abc"
    assert segments[1].tool_call is call
