"""Tools package for Grok CLI."""

from grok_cli.tools.registry import (
    PLUGIN_TOOL_PREFIX,
    Tool,
    ToolRegistry,
    ToolResult,
    get_tool_registry,
)
from grok_cli.tools.confirmation import ConfirmationService, get_confirmation_service
from grok_cli.tools.definitions import BuiltinTool, get_all_tools
from grok_cli.tools.text_editor import TextEditorTool
from grok_cli.tools.morph_editor import MorphEditorTool
from grok_cli.tools.bash import BashTool
from grok_cli.tools.search import SearchTool
from grok_cli.tools.todo import TodoTool

__all__ = [
    "PLUGIN_TOOL_PREFIX",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "get_tool_registry",
    "ConfirmationService",
    "get_confirmation_service",
    "BuiltinTool",
    "get_all_tools",
    "TextEditorTool",
    "MorphEditorTool",
    "BashTool",
    "SearchTool",
    "TodoTool",
]
