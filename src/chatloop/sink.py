"""Persist a finished chat outcome as a message record."""

from __future__ import annotations

import logging
from typing import Any

from chatloop.context import ConversationContext
from chatloop.toolcalls import serialize_tool_calls
from chatloop.types import ChatOutcome

logger = logging.getLogger(__name__)


def build_message_record(message_id: str, outcome: ChatOutcome) -> dict[str, Any]:
    return {
        "id": message_id,
        "reply": outcome.content,
        "toolCalls": serialize_tool_calls(outcome.tool_calls),
        "inputTokens": outcome.input_tokens,
        "outputTokens": outcome.output_tokens,
        "isActive": 1 if outcome.tool_calls else 0,
    }


class MessageRecordSink:
    """Completion handler that writes the outcome to the current message.

    Usable directly as ``orchestrator.on_complete(MessageRecordSink(ctx))``.
    """

    def __init__(self, context: ConversationContext) -> None:
        self.context = context

    async def __call__(self, outcome: ChatOutcome) -> None:
        message_id = self.context.get_message_id()
        if not message_id:
            logger.warning(
                "no message id allocated for chat %s; outcome not persisted",
                self.context.get_chat_id(),
            )
            return
        record = build_message_record(message_id, outcome)
        await self.context.update_message(record)
        logger.debug(
            "message record updated",
            extra={"message_id": message_id, "tool_calls": len(outcome.tool_calls)},
        )
