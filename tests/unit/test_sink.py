import json

import pytest

from chatloop.context import InMemoryConversation, ModelSpec
from chatloop.sink import MessageRecordSink, build_message_record
from chatloop.toolcalls import normalize_tool_calls
from chatloop.types import ChatOutcome, ToolCall


def test_record_marks_active_when_tools_were_called() -> None:
    outcome = ChatOutcome(
        content="Checked.",
        tool_calls=(ToolCall(name="lab--lookup", args={"q": "x"}, response="ok", position=0),),
        input_tokens=4,
        output_tokens=2,
    )
    record = build_message_record("msg_1", outcome)
    assert record["id"] == "msg_1"
    assert record["reply"] == "Checked."
    assert record["isActive"] == 1
    assert record["inputTokens"] == 4
    assert record["outputTokens"] == 2
    assert json.loads(record["toolCalls"])[0]["name"] == "lab--lookup"

    plain = build_message_record("msg_2", ChatOutcome(content="hi"))
    assert plain["isActive"] == 0
    assert plain["toolCalls"] == "[]"


@pytest.mark.asyncio
async def test_sink_updates_current_message() -> None:
    conversation = InMemoryConversation(model=ModelSpec(name="m"))
    message_id = conversation.new_message()
    sink = MessageRecordSink(conversation)

    await sink(ChatOutcome(content="hello", tool_calls=(ToolCall(name="a--b", position=5),)))

    stored = conversation.messages[message_id]
    assert stored["chatId"] == conversation.chat_id
    assert stored["reply"] == "hello"
    assert [call.name for call in normalize_tool_calls(stored["toolCalls"])] == ["a--b"]


@pytest.mark.asyncio
async def test_sink_skips_without_message_id() -> None:
    conversation = InMemoryConversation(model=ModelSpec(name="m"))
    await MessageRecordSink(conversation)(ChatOutcome(content="lost"))
    assert conversation.messages == {}
