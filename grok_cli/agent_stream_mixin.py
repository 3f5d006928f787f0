"""Streaming request orchestration for GrokAgent."""

import asyncio
import time
from contextlib import aclosing
from typing import AsyncIterator

from grok_cli.llm import ToolCall, count_message_tokens, estimate_tokens
from grok_cli.llm.delta import PartialMessage, reduce_chunk
from grok_cli.logging import get_logger
from grok_cli.session import ChatEntry, StreamingChunk
from grok_cli.tools import ToolResult

log = get_logger(__name__)

CANCELLED_NOTICE = "\n\n[Operation cancelled by user]"
TOKEN_UPDATE_INTERVAL = 0.25


def _delta_text(chunk: dict) -> str:
    choices = chunk.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return ""
    content = (choices[0].get("delta") or {}).get("content")
    return content if isinstance(content, str) else ""


class AgentStreamMixin:
    """Streamed variant of the request loop, with cooperative cancellation."""

    def _cancel_pending_calls(self, tool_calls: list[ToolCall]) -> None:
        """Close out calls that will never run so every call keeps a tool reply."""
        cancelled = ToolResult(success=False, error="Operation cancelled by user")
        for tool_call in tool_calls:
            self.conversation.complete_tool_call(tool_call, cancelled)
            self.conversation.add_tool_message(tool_call, cancelled)

    def _cancelled_chunks(self) -> list[StreamingChunk]:
        log.info("Streaming request cancelled", tool_rounds=self.tool_rounds, turns=self.turns)
        return [
            StreamingChunk(type="content", content=CANCELLED_NOTICE),
            StreamingChunk(type="done"),
        ]

    async def process_user_message_stream(self, message: str) -> AsyncIterator[StreamingChunk]:
        """Process one user message, yielding chunks as the model streams.

        Args:
            message: User's message

        Yields:
            ``token_count``, ``content``, ``tool_calls`` and ``tool_result``
            chunks, always terminated by exactly one ``done`` chunk.
        """
        abort_event = asyncio.Event()
        self._abort_event = abort_event

        self.conversation.add_user(message)
        self.tool_rounds = 0
        self.turns = 0
        started = time.monotonic()
        session_id = self.telemetry.start_session()

        input_tokens = count_message_tokens(self.conversation.messages)
        yield StreamingChunk(type="token_count", token_count=input_tokens)

        try:
            tools = self._tool_definitions()
            search_options = self._search_options_for(message)
            output_tokens = 0
            last_entry: ChatEntry | None = None
            finished = False

            while self.tool_rounds < self.max_tool_rounds and self.turns < self.max_turns:
                if abort_event.is_set():
                    for chunk in self._cancelled_chunks():
                        yield chunk
                    return

                accumulator = PartialMessage()
                tool_calls_yielded = False
                last_token_update = 0.0

                log.debug("Streaming model call", turn=self.turns + 1, msg_count=len(self.conversation.messages))
                stream = self.llm.chat_stream(
                    list(self.conversation.messages),
                    tools,
                    search_options=search_options,
                )
                async with aclosing(stream):
                    async for raw in stream:
                        if abort_event.is_set():
                            for chunk in self._cancelled_chunks():
                                yield chunk
                            return

                        accumulator = reduce_chunk(accumulator, raw)

                        if not tool_calls_yielded and accumulator.has_named_tool_call():
                            tool_calls_yielded = True
                            yield StreamingChunk(type="tool_calls", tool_calls=accumulator.to_tool_calls())

                        text = _delta_text(raw)
                        if text:
                            yield StreamingChunk(type="content", content=text)
                            now = time.monotonic()
                            if now - last_token_update > TOKEN_UPDATE_INTERVAL:
                                last_token_update = now
                                yield StreamingChunk(
                                    type="token_count",
                                    token_count=input_tokens
                                    + output_tokens
                                    + estimate_tokens(accumulator.content or ""),
                                )

                self.turns += 1
                output_tokens += estimate_tokens(accumulator.content or "")
                assistant = accumulator.to_message()
                tool_calls = assistant.tool_calls or []
                self.conversation.add_message(assistant)

                if not tool_calls:
                    last_entry = self.conversation.add_entry(
                        ChatEntry(type="assistant", content=accumulator.content or "")
                    )
                    finished = True
                    break

                self.tool_rounds += 1
                last_entry = self.conversation.add_entry(
                    ChatEntry(
                        type="assistant",
                        content=accumulator.content or "Using tools to help you...",
                        tool_calls=tool_calls,
                    )
                )
                if not tool_calls_yielded:
                    yield StreamingChunk(type="tool_calls", tool_calls=tool_calls)
                for tool_call in tool_calls:
                    self.conversation.add_entry(
                        ChatEntry(type="tool_call", content="Executing...", tool_call=tool_call)
                    )

                for idx, tool_call in enumerate(tool_calls):
                    if abort_event.is_set():
                        self._cancel_pending_calls(tool_calls[idx:])
                        for chunk in self._cancelled_chunks():
                            yield chunk
                        return

                    result = await self.execute_tool(tool_call)
                    self.conversation.complete_tool_call(tool_call, result)
                    self.conversation.add_tool_message(tool_call, result)
                    yield StreamingChunk(type="tool_result", tool_call=tool_call, tool_result=result)

                    if abort_event.is_set():
                        self._cancel_pending_calls(tool_calls[idx + 1:])
                        for chunk in self._cancelled_chunks():
                            yield chunk
                        return

                input_tokens = count_message_tokens(self.conversation.messages)
                yield StreamingChunk(type="token_count", token_count=input_tokens + output_tokens)

            if not finished:
                warning = self._bound_warning()
                self.conversation.add_entry(ChatEntry(type="assistant", content=warning))
                yield StreamingChunk(type="content", content=f"\n\n{warning}")

            if last_entry is not None:
                self._track_output(session_id, last_entry.content, started)
            yield StreamingChunk(type="done")

        except Exception as e:
            log.error("Streaming request failed", error=str(e))
            error_text = f"Sorry, I encountered an error: {e}"
            self.conversation.add_entry(ChatEntry(type="assistant", content=error_text))
            yield StreamingChunk(type="content", content=error_text)
            yield StreamingChunk(type="done")
        finally:
            self.telemetry.end_session()
            if self._abort_event is abort_event:
                self._abort_event = None
