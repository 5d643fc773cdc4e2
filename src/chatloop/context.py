"""Conversation context: chat, model and message-id bookkeeping."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


@dataclass(frozen=True, slots=True)
class ModelSpec:
    name: str
    max_tokens: int | None = None
    supports_tools: bool = True


class ConversationContext(Protocol):
    def get_chat_id(self) -> str: ...

    def get_model(self) -> ModelSpec: ...

    def get_message_id(self) -> str | None: ...

    async def update_message(self, record: Mapping[str, Any]) -> None: ...


@dataclass
class InMemoryConversation:
    """Conversation context that keeps message records in a dict."""

    model: ModelSpec
    chat_id: str = field(default_factory=lambda: new_id("chat"))
    messages: dict[str, dict[str, Any]] = field(default_factory=dict)
    _current_message_id: str | None = None

    def get_chat_id(self) -> str:
        return self.chat_id

    def get_model(self) -> ModelSpec:
        return self.model

    def new_message(self) -> str:
        message_id = new_id("msg")
        self.messages[message_id] = {"id": message_id, "chatId": self.chat_id}
        self._current_message_id = message_id
        return message_id

    def get_message_id(self) -> str | None:
        return self._current_message_id

    async def update_message(self, record: Mapping[str, Any]) -> None:
        message_id = str(record["id"])
        existing = self.messages.setdefault(message_id, {"id": message_id, "chatId": self.chat_id})
        existing.update(record)
