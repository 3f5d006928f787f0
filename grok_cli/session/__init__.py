"""Conversation state: model-facing messages and user-facing chat entries."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from grok_cli.llm import Message, ToolCall
from grok_cli.tools.registry import ToolResult

EntryType = Literal["user", "assistant", "tool_call", "tool_result"]
ChunkType = Literal["content", "tool_calls", "tool_result", "done", "token_count"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ChatEntry:
    """One item of the user-visible transcript."""

    type: EntryType
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    is_streaming: bool = False

    def to_message(self) -> Message | None:
        """Render the entry as a chat completions message, if it maps to one.

        Pending ``tool_call`` entries and results without a call have no
        message form and give ``None``.
        """
        if self.type == "user":
            return Message(role="user", content=self.content)
        if self.type == "assistant":
            return Message(role="assistant", content=self.content, tool_calls=self.tool_calls or None)
        if self.type == "tool_result" and self.tool_call is not None:
            return Message(role="tool", content=self.content, tool_call_id=self.tool_call.id)
        return None


@dataclass
class StreamingChunk:
    """One item yielded by the streaming loop."""

    type: ChunkType
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call: ToolCall | None = None
    tool_result: ToolResult | None = None
    token_count: int | None = None


class Conversation:
    """Append-only message list plus the chat history shown to the user.

    ``messages`` is what the model sees, ``chat_history`` is what the user
    sees. Tool-call entries are the only entries ever rewritten: once, in
    place, when their result arrives.
    """

    def __init__(self, system_prompt: str | None = None):
        self.messages: list[Message] = []
        self.chat_history: list[ChatEntry] = []
        if system_prompt:
            self.messages.append(Message(role="system", content=system_prompt))

    def add_message(self, message: Message) -> Message:
        self.messages.append(message)
        return message

    def add_entry(self, entry: ChatEntry) -> ChatEntry:
        self.chat_history.append(entry)
        return entry

    def add_user(self, text: str) -> ChatEntry:
        self.messages.append(Message(role="user", content=text))
        return self.add_entry(ChatEntry(type="user", content=text))

    def add_tool_message(self, tool_call: ToolCall, result: ToolResult) -> Message:
        return self.add_message(
            Message(
                role="tool",
                content=result.message_content(),
                tool_call_id=tool_call.id,
            )
        )

    def complete_tool_call(self, tool_call: ToolCall, result: ToolResult) -> ChatEntry | None:
        """Upgrade the pending ``tool_call`` entry for this call to ``tool_result``."""
        for entry in reversed(self.chat_history):
            if entry.type == "tool_call" and entry.tool_call is not None and entry.tool_call.id == tool_call.id:
                entry.type = "tool_result"
                entry.content = result.display_text()
                entry.tool_result = result
                return entry
        return None

    def snapshot(self) -> list[ChatEntry]:
        return list(self.chat_history)
