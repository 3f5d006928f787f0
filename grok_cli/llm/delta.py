"""Fold streamed chat completion deltas into one assistant message.

A streamed response interleaves text fragments and tool call fragments in an
order not known in advance. Each fragment is merged into an immutable
accumulator:

- a field the accumulator does not have yet is adopted as-is;
- text meets text: concatenated (``content``, ``function.name``,
  ``function.arguments``);
- tool call lists are merged element by element. A fragment carrying an
  ``index`` hint joins the call with the same hint, or starts a new call;
  one without a hint merges by position. Calls are ordered by their hint
  when finalized, so a large or sparse hint never creates empty calls;
- identity fields (``role``, ``id``, ``type``) are kept from the first
  fragment that carries them;
- anything else (type mismatch, missing value) leaves the field unchanged.

Every merge returns a new accumulator; previously merged state is never
mutated.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any
from uuid import uuid4

from grok_cli.llm import FunctionCall, Message, ToolCall


@dataclass(frozen=True)
class PartialFunction:
    name: str | None = None
    arguments: str | None = None


@dataclass(frozen=True)
class PartialToolCall:
    id: str | None = None
    type: str | None = None
    function: PartialFunction | None = None
    index: int | None = None

    @property
    def name(self) -> str:
        return (self.function.name if self.function else None) or ""


@dataclass(frozen=True)
class PartialMessage:
    role: str | None = None
    content: str | None = None
    tool_calls: tuple[PartialToolCall, ...] | None = None
    call_id_prefix: str = field(default_factory=lambda: f"call_{uuid4().hex[:16]}", compare=False, repr=False)

    def has_named_tool_call(self) -> bool:
        """True once at least one accumulated call knows its function name."""
        return any(tc.name for tc in self.tool_calls or ())

    def to_tool_calls(self) -> list[ToolCall]:
        """Finalize accumulated calls.

        Ids missing on the wire are derived from this message's prefix, so
        they are stable across calls and unique across rounds. Slots that
        never received a name or arguments are dropped.
        """
        ordered = sorted(
            enumerate(self.tool_calls or ()),
            key=lambda item: item[1].index if item[1].index is not None else item[0],
        )
        calls: list[ToolCall] = []
        for idx, (_, partial) in enumerate(ordered):
            function = partial.function or PartialFunction()
            if not function.name and not function.arguments:
                continue
            calls.append(
                ToolCall(
                    id=partial.id or f"{self.call_id_prefix}_{idx}",
                    type=partial.type or "function",
                    function=FunctionCall(
                        name=function.name or "",
                        arguments=function.arguments or "",
                    ),
                )
            )
        return calls

    def to_message(self) -> Message:
        return Message(
            role="assistant",
            content=self.content or "",
            tool_calls=self.to_tool_calls() or None,
        )


def _keep_first(existing: str | None, incoming: Any) -> str | None:
    if existing is None and isinstance(incoming, str):
        return incoming
    return existing


def _concat(existing: str | None, incoming: Any) -> str | None:
    if not isinstance(incoming, str):
        return existing
    if existing is None:
        return incoming
    return existing + incoming


def _merge_function(existing: PartialFunction | None, fragment: Any) -> PartialFunction | None:
    if not isinstance(fragment, dict):
        return existing
    base = existing or PartialFunction()
    arguments = fragment.get("arguments")
    if isinstance(arguments, dict) and base.arguments is None:
        arguments = json.dumps(arguments)
    return replace(
        base,
        name=_concat(base.name, fragment.get("name")),
        arguments=_concat(base.arguments, arguments),
    )


def _merge_tool_call(existing: PartialToolCall, fragment: dict[str, Any]) -> PartialToolCall:
    return replace(
        existing,
        id=_keep_first(existing.id, fragment.get("id")),
        type=_keep_first(existing.type, fragment.get("type")),
        function=_merge_function(existing.function, fragment.get("function")),
    )


def _find_hinted(merged: list[PartialToolCall], hint: int) -> int | None:
    for slot, partial in enumerate(merged):
        if partial.index == hint:
            return slot
    return None


def _merge_tool_calls(
    existing: tuple[PartialToolCall, ...],
    fragments: list[Any],
) -> tuple[PartialToolCall, ...]:
    merged = list(existing)
    for position, fragment in enumerate(fragments):
        if not isinstance(fragment, dict):
            continue
        index = fragment.get("index")
        if isinstance(index, int) and not isinstance(index, bool) and index >= 0:
            slot = _find_hinted(merged, index)
            if slot is None:
                merged.append(PartialToolCall(index=index))
                slot = len(merged) - 1
        elif position < len(merged):
            slot = position
        else:
            merged.append(PartialToolCall())
            slot = len(merged) - 1
        merged[slot] = _merge_tool_call(merged[slot], fragment)
    return tuple(merged)



def merge_delta(accumulator: PartialMessage, delta: dict[str, Any] | None) -> PartialMessage:
    """Merge one raw ``choices[0].delta`` mapping into the accumulator."""
    if not delta:
        return accumulator

    tool_calls = accumulator.tool_calls
    fragments = delta.get("tool_calls")
    if isinstance(fragments, list) and fragments:
        tool_calls = _merge_tool_calls(tool_calls or (), fragments)

    return replace(
        accumulator,
        role=_keep_first(accumulator.role, delta.get("role")),
        content=_concat(accumulator.content, delta.get("content")),
        tool_calls=tool_calls,
    )


def reduce_chunk(accumulator: PartialMessage, chunk: dict[str, Any]) -> PartialMessage:
    """Merge the first choice's delta of a raw stream chunk."""
    choices = chunk.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return accumulator
    return merge_delta(accumulator, choices[0].get("delta") or {})
