"""Todo tool for in-session task planning."""

from typing import Any

from pydantic import BaseModel, ValidationError

from grok_cli.logging import get_logger
from grok_cli.tools.registry import ToolResult

log = get_logger(__name__)

_STATUS_MARKERS = {"pending": "○", "in_progress": "◐", "completed": "●"}
_VALID_STATUSES = tuple(_STATUS_MARKERS)
_VALID_PRIORITIES = ("high", "medium", "low")


class TodoItem(BaseModel):
    id: str
    content: str
    status: str = "pending"
    priority: str = "medium"


class TodoTool:
    """Keep a short task list the model updates as it works."""

    def __init__(self) -> None:
        self.todos: list[TodoItem] = []

    def format_todo_list(self) -> str:
        if not self.todos:
            return "No todos created yet"
        lines = []
        for item in self.todos:
            marker = _STATUS_MARKERS.get(item.status, "○")
            lines.append(f"{marker} {item.content} ({item.priority})")
        return "Todo list:\n" + "\n".join(lines)

    @staticmethod
    def _check_fields(status: Any, priority: Any) -> str | None:
        if status is not None and status not in _VALID_STATUSES:
            return f"Invalid status: {status}. Must be one of: {', '.join(_VALID_STATUSES)}"
        if priority is not None and priority not in _VALID_PRIORITIES:
            return f"Invalid priority: {priority}. Must be one of: {', '.join(_VALID_PRIORITIES)}"
        return None

    async def create_todo_list(self, todos: list[dict[str, Any]]) -> ToolResult:
        """Replace the list with ``todos``."""
        items: list[TodoItem] = []
        for raw in todos or []:
            if not isinstance(raw, dict):
                return ToolResult(success=False, error="Each todo must be an object")
            problem = self._check_fields(raw.get("status"), raw.get("priority"))
            if problem:
                return ToolResult(success=False, error=problem)
            if raw.get("id") is not None:
                raw = {**raw, "id": str(raw["id"])}
            try:
                items.append(TodoItem(**raw))
            except ValidationError as e:
                return ToolResult(success=False, error=f"Invalid todo item: {e.errors()[0]['msg']}")

        self.todos = items
        log.debug("Todo list created", count=len(items))
        return ToolResult(success=True, output=self.format_todo_list())

    async def update_todo_list(self, updates: list[dict[str, Any]]) -> ToolResult:
        """Apply partial updates (status, content, priority) by id."""
        by_id = {item.id: item for item in self.todos}
        pending: list[tuple[TodoItem, dict[str, Any]]] = []
        for raw in updates or []:
            if not isinstance(raw, dict):
                return ToolResult(success=False, error="Each update must be an object")
            todo_id = str(raw.get("id", ""))
            item = by_id.get(todo_id)
            if item is None:
                return ToolResult(success=False, error=f"Todo with id {todo_id} not found")
            problem = self._check_fields(raw.get("status"), raw.get("priority"))
            if problem:
                return ToolResult(success=False, error=problem)
            changes = {
                key: raw[key]
                for key in ("status", "content", "priority")
                if raw.get(key) is not None
            }
            pending.append((item, changes))

        # all updates validated before any is applied
        for item, changes in pending:
            for key, value in changes.items():
                setattr(item, key, str(value))
        return ToolResult(success=True, output=self.format_todo_list())
