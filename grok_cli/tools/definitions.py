"""Built-in tool names and the function schemas sent to the model."""

from enum import Enum
from typing import Any

from grok_cli.tools.registry import ToolRegistry


class BuiltinTool(str, Enum):
    VIEW_FILE = "view_file"
    CREATE_FILE = "create_file"
    STR_REPLACE_EDITOR = "str_replace_editor"
    EDIT_FILE = "edit_file"
    BASH = "bash"
    SEARCH = "search"
    CREATE_TODO_LIST = "create_todo_list"
    UPDATE_TODO_LIST = "update_todo_list"

    @classmethod
    def lookup(cls, name: str) -> "BuiltinTool | None":
        try:
            return cls(name)
        except ValueError:
            return None


def _function(name: BuiltinTool, description: str, properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_TODO_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique identifier for the todo item"},
        "content": {"type": "string", "description": "Description of the todo item"},
        "status": {
            "type": "string",
            "enum": ["pending", "in_progress", "completed"],
            "description": "Current status of the todo item",
        },
        "priority": {
            "type": "string",
            "enum": ["high", "medium", "low"],
            "description": "Priority level of the todo item",
        },
    },
    "required": ["id", "content", "status", "priority"],
}

BUILTIN_TOOL_DEFINITIONS: dict[BuiltinTool, dict[str, Any]] = {
    BuiltinTool.VIEW_FILE: _function(
        BuiltinTool.VIEW_FILE,
        "View contents of a file or list directory contents",
        {
            "path": {"type": "string", "description": "Path to file or directory to view"},
            "start_line": {
                "type": "number",
                "description": "Starting line number for partial file view (optional)",
            },
            "end_line": {
                "type": "number",
                "description": "Ending line number for partial file view (optional)",
            },
        },
        ["path"],
    ),
    BuiltinTool.CREATE_FILE: _function(
        BuiltinTool.CREATE_FILE,
        "Create a new file with specified content",
        {
            "path": {"type": "string", "description": "Path where the file should be created"},
            "content": {"type": "string", "description": "Content to write to the file"},
        },
        ["path", "content"],
    ),
    BuiltinTool.STR_REPLACE_EDITOR: _function(
        BuiltinTool.STR_REPLACE_EDITOR,
        "Replace specific text in a file. Use this for single line edits only",
        {
            "path": {"type": "string", "description": "Path to the file to edit"},
            "old_str": {
                "type": "string",
                "description": "Text to replace (must match exactly, or will use fuzzy matching for multi-line strings)",
            },
            "new_str": {"type": "string", "description": "Text to replace with"},
            "replace_all": {
                "type": "boolean",
                "description": "Replace all occurrences (default: false, only replaces first occurrence)",
            },
        },
        ["path", "old_str", "new_str"],
    ),
    BuiltinTool.EDIT_FILE: _function(
        BuiltinTool.EDIT_FILE,
        (
            "Use this tool to make an edit to an existing file. Specify each edit in sequence "
            "and mark unchanged code in between with the comment // ... existing code ... "
            "Include enough unchanged context around each edit to resolve ambiguity, and make "
            "all edits to a file in a single call."
        ),
        {
            "target_file": {"type": "string", "description": "The target file to modify."},
            "instructions": {
                "type": "string",
                "description": "A single sentence instruction describing what you are going to do for the sketched edit.",
            },
            "code_edit": {
                "type": "string",
                "description": "Specify ONLY the precise lines of code that you wish to edit, using // ... existing code ... for unchanged spans.",
            },
        },
        ["target_file", "instructions", "code_edit"],
    ),
    BuiltinTool.BASH: _function(
        BuiltinTool.BASH,
        "Execute a bash command",
        {"command": {"type": "string", "description": "The bash command to execute"}},
        ["command"],
    ),
    BuiltinTool.SEARCH: _function(
        BuiltinTool.SEARCH,
        "Unified search tool for finding text content or files (similar to Cursor's search functionality)",
        {
            "query": {"type": "string", "description": "Text to search for or file name/path pattern"},
            "search_type": {
                "type": "string",
                "enum": ["text", "files", "both"],
                "description": "Type of search: 'text' for content search, 'files' for file names, 'both' for both (default: 'both')",
            },
            "include_pattern": {
                "type": "string",
                "description": "Glob pattern for files to include (e.g. '*.py', '*.{ts,js}')",
            },
            "exclude_pattern": {
                "type": "string",
                "description": "Glob pattern for files to exclude (e.g. '*.log', 'node_modules')",
            },
            "case_sensitive": {
                "type": "boolean",
                "description": "Whether search should be case sensitive (default: false)",
            },
            "whole_word": {"type": "boolean", "description": "Whether to match whole words only (default: false)"},
            "regex": {"type": "boolean", "description": "Whether query is a regex pattern (default: false)"},
            "max_results": {"type": "number", "description": "Maximum number of results to return (default: 50)"},
            "file_types": {
                "type": "array",
                "items": {"type": "string"},
                "description": "File types to search (e.g. ['py', 'ts'])",
            },
            "include_hidden": {
                "type": "boolean",
                "description": "Whether to include hidden files (default: false)",
            },
        },
        ["query"],
    ),
    BuiltinTool.CREATE_TODO_LIST: _function(
        BuiltinTool.CREATE_TODO_LIST,
        "Create a new todo list for planning and tracking tasks",
        {"todos": {"type": "array", "description": "Array of todo items", "items": _TODO_ITEM_SCHEMA}},
        ["todos"],
    ),
    BuiltinTool.UPDATE_TODO_LIST: _function(
        BuiltinTool.UPDATE_TODO_LIST,
        "Update existing todos in the todo list",
        {
            "updates": {
                "type": "array",
                "description": "Array of todo updates",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "ID of the todo item to update"},
                        "status": {"type": "string", "enum": ["pending", "in_progress", "completed"]},
                        "content": {"type": "string"},
                        "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                    },
                    "required": ["id"],
                },
            }
        },
        ["updates"],
    ),
}


def get_all_tools(morph_enabled: bool, registry: ToolRegistry | None = None) -> list[dict[str, Any]]:
    """Schemas offered to the model: built-ins (Morph only when enabled) plus plugins."""
    tools = [
        definition
        for name, definition in BUILTIN_TOOL_DEFINITIONS.items()
        if morph_enabled or name is not BuiltinTool.EDIT_FILE
    ]
    if registry is not None:
        tools.extend(registry.get_definitions())
    return tools
