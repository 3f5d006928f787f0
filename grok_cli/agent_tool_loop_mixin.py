"""Tool-call argument parsing and dispatch for GrokAgent."""

import json
from typing import Any, Awaitable, Callable

from grok_cli.exceptions import ToolArgumentError
from grok_cli.llm import ToolCall
from grok_cli.logging import get_logger
from grok_cli.tools import PLUGIN_TOOL_PREFIX, BuiltinTool, ToolResult

log = get_logger(__name__)

MORPH_UNAVAILABLE = (
    "Morph Fast Apply not available. Please set MORPH_API_KEY environment "
    "variable to use this feature."
)

_Handler = Callable[[dict[str, Any]], Awaitable[ToolResult]]


def parse_tool_arguments(tool_call: ToolCall) -> dict[str, Any]:
    """Decode the JSON argument text of a tool call into a mapping.

    Raises:
        ToolArgumentError if the text is not a JSON object
    """
    raw = (tool_call.function.arguments or "").strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(tool_call.name, str(e)) from e
    if not isinstance(parsed, dict):
        raise ToolArgumentError(tool_call.name, f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


class AgentToolLoopMixin:
    """Route tool calls to built-in handlers or the plugin registry."""

    def _builtin_handlers(self) -> dict[BuiltinTool, _Handler]:
        return {
            BuiltinTool.VIEW_FILE: self._run_view_file,
            BuiltinTool.CREATE_FILE: self._run_create_file,
            BuiltinTool.STR_REPLACE_EDITOR: self._run_str_replace,
            BuiltinTool.EDIT_FILE: self._run_edit_file,
            BuiltinTool.BASH: self._run_bash,
            BuiltinTool.SEARCH: self._run_search,
            BuiltinTool.CREATE_TODO_LIST: self._run_create_todo_list,
            BuiltinTool.UPDATE_TODO_LIST: self._run_update_todo_list,
        }

    async def execute_tool(self, tool_call: ToolCall) -> ToolResult:
        """Run one tool call. Never raises; every failure becomes a ToolResult."""
        name = tool_call.name
        try:
            arguments = parse_tool_arguments(tool_call)

            builtin = BuiltinTool.lookup(name)
            if builtin is not None:
                log.info("Dispatching tool", tool=name, call_id=tool_call.id)
                return await self._builtin_handlers()[builtin](arguments)

            if name.startswith(PLUGIN_TOOL_PREFIX):
                log.info("Dispatching plugin tool", tool=name, call_id=tool_call.id)
                return await self.plugin_registry.execute(name, arguments)

            log.warning("Unknown tool requested", tool=name)
            return ToolResult(success=False, error=f"Unknown tool: {name}")
        except Exception as e:
            log.warning("Tool execution error", tool=name, error=str(e))
            return ToolResult(success=False, error=f"Tool execution error: {e}")

    async def _run_view_file(self, args: dict[str, Any]) -> ToolResult:
        start, end = args.get("start_line"), args.get("end_line")
        view_range = (int(start), int(end)) if start is not None and end is not None else None
        return await self.text_editor.view(args["path"], view_range)

    async def _run_create_file(self, args: dict[str, Any]) -> ToolResult:
        return await self.text_editor.create(args["path"], args["content"])

    async def _run_str_replace(self, args: dict[str, Any]) -> ToolResult:
        return await self.text_editor.str_replace(
            args["path"],
            args["old_str"],
            args["new_str"],
            bool(args.get("replace_all", False)),
        )

    async def _run_edit_file(self, args: dict[str, Any]) -> ToolResult:
        if self.morph_editor is None:
            return ToolResult(success=False, error=MORPH_UNAVAILABLE)
        return await self.morph_editor.edit_file(
            args["target_file"],
            args["instructions"],
            args["code_edit"],
        )

    async def _run_bash(self, args: dict[str, Any]) -> ToolResult:
        return await self.bash.execute(args["command"])

    async def _run_search(self, args: dict[str, Any]) -> ToolResult:
        return await self.search.search(
            args["query"],
            search_type=args.get("search_type") or "both",
            include_pattern=args.get("include_pattern"),
            exclude_pattern=args.get("exclude_pattern"),
            case_sensitive=bool(args.get("case_sensitive", False)),
            whole_word=bool(args.get("whole_word", False)),
            regex=bool(args.get("regex", False)),
            max_results=args.get("max_results"),
            file_types=args.get("file_types"),
            include_hidden=bool(args.get("include_hidden", False)),
        )

    async def _run_create_todo_list(self, args: dict[str, Any]) -> ToolResult:
        return await self.todo.create_todo_list(args["todos"])

    async def _run_update_todo_list(self, args: dict[str, Any]) -> ToolResult:
        return await self.todo.update_todo_list(args["updates"])
