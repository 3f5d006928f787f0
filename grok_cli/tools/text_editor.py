"""Text editor tool: view, create and edit files with undo."""

import difflib
from dataclasses import dataclass
from pathlib import Path

from grok_cli.logging import get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.confirmation import (
    ConfirmationOptions,
    ConfirmationService,
    get_confirmation_service,
    rejection_message,
)
from grok_cli.tools.registry import ToolResult

log = get_logger(__name__)

_PREVIEW_LINES = 10


@dataclass
class EditRecord:
    """Snapshot taken before an edit; ``previous`` is None for newly created files."""

    operation: str
    path: Path
    previous: str | None


def unified_diff(before: str, after: str, path: str) -> str:
    """Render a unified diff between two versions of a file."""
    diff = difflib.unified_diff(
        before.splitlines(),
        after.splitlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        lineterm="",
    )
    return "\n".join(diff)


class TextEditorTool:
    """View and edit text files relative to the session working directory."""

    def __init__(
        self,
        context: RuntimeContext | None = None,
        confirmation: ConfirmationService | None = None,
    ):
        self.context = context or RuntimeContext()
        self.confirmation = confirmation or get_confirmation_service()
        self._history: list[EditRecord] = []

    async def _confirm(self, operation: str, path: str, preview: str) -> ToolResult | None:
        result = await self.confirmation.request_confirmation(
            ConfirmationOptions(operation=operation, filename=path, content=preview),
            "file",
        )
        if result.confirmed:
            return None
        return ToolResult(success=False, error=rejection_message(operation, result))

    def _read(self, path: str) -> tuple[Path, str] | ToolResult:
        resolved = self.context.resolve(path)
        if not resolved.is_file():
            return ToolResult(success=False, error=f"File not found: {path}")
        return resolved, resolved.read_text(encoding="utf-8")

    async def view(self, path: str, view_range: tuple[int, int] | list[int] | None = None) -> ToolResult:
        """Show a directory listing or numbered file lines.

        Without a range only the first lines are shown, followed by a
        ``... +N lines`` marker.
        """
        try:
            resolved = self.context.resolve(path)
            if not resolved.exists():
                return ToolResult(success=False, error=f"File or directory not found: {path}")

            if resolved.is_dir():
                entries = sorted(entry.name for entry in resolved.iterdir())
                return ToolResult(
                    success=True,
                    output=f"Directory contents of {path}:\n" + "\n".join(entries),
                )

            lines = resolved.read_text(encoding="utf-8").split("\n")

            if view_range:
                start, end = int(view_range[0]), int(view_range[1])
                selected = lines[max(start - 1, 0):end]
                numbered = "\n".join(f"{start + idx}: {line}" for idx, line in enumerate(selected))
                return ToolResult(
                    success=True,
                    output=f"Lines {start}-{end} of {path}:\n{numbered}",
                )

            total = len(lines)
            numbered = "\n".join(
                f"{idx + 1}: {line}" for idx, line in enumerate(lines[:_PREVIEW_LINES])
            )
            more = f"\n... +{total - _PREVIEW_LINES} lines" if total > _PREVIEW_LINES else ""
            return ToolResult(success=True, output=f"Contents of {path}:\n{numbered}{more}")
        except Exception as e:
            log.error("View failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error viewing {path}: {e}")

    async def create(self, path: str, content: str) -> ToolResult:
        """Create (or overwrite) a file, creating parent directories."""
        try:
            rejected = await self._confirm("Create file", path, content)
            if rejected:
                return rejected

            resolved = self.context.resolve(path)
            previous = resolved.read_text(encoding="utf-8") if resolved.is_file() else None
            resolved.parent.mkdir(parents=True, exist_ok=True)
            resolved.write_text(content, encoding="utf-8")
            self._history.append(EditRecord("create", resolved, previous))

            line_count = len(content.split("\n")) if content else 0
            log.info("File created", path=str(resolved), lines=line_count)
            return ToolResult(success=True, output=f"Created {path} ({line_count} lines)")
        except Exception as e:
            log.error("Create failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error creating {path}: {e}")

    async def str_replace(
        self,
        path: str,
        old_str: str,
        new_str: str,
        replace_all: bool = False,
    ) -> ToolResult:
        """Replace the first (or every) occurrence of ``old_str``."""
        try:
            loaded = self._read(path)
            if isinstance(loaded, ToolResult):
                return loaded
            resolved, before = loaded

            if not old_str or old_str not in before:
                return ToolResult(success=False, error=f"String not found in file: {old_str}")

            count = before.count(old_str) if replace_all else 1
            after = before.replace(old_str, new_str) if replace_all else before.replace(old_str, new_str, 1)
            diff = unified_diff(before, after, path)

            rejected = await self._confirm("Edit file", path, diff)
            if rejected:
                return rejected

            resolved.write_text(after, encoding="utf-8")
            self._history.append(EditRecord("str_replace", resolved, before))
            noun = "replacement" if count == 1 else "replacements"
            return ToolResult(success=True, output=f"Updated {path} with {count} {noun}\n{diff}")
        except Exception as e:
            log.error("String replace failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error replacing text in {path}: {e}")

    async def replace_lines(self, path: str, start_line: int, end_line: int, new_content: str) -> ToolResult:
        """Replace the inclusive 1-based line range with ``new_content``."""
        try:
            loaded = self._read(path)
            if isinstance(loaded, ToolResult):
                return loaded
            resolved, before = loaded

            lines = before.split("\n")
            if start_line < 1 or start_line > len(lines):
                return ToolResult(
                    success=False,
                    error=f"Invalid start line: {start_line}. File has {len(lines)} lines.",
                )
            if end_line < start_line or end_line > len(lines):
                return ToolResult(
                    success=False,
                    error=f"Invalid end line: {end_line}. File has {len(lines)} lines.",
                )

            lines[start_line - 1:end_line] = new_content.split("\n")
            after = "\n".join(lines)
            diff = unified_diff(before, after, path)

            rejected = await self._confirm("Replace lines", path, diff)
            if rejected:
                return rejected

            resolved.write_text(after, encoding="utf-8")
            self._history.append(EditRecord("replace_lines", resolved, before))
            return ToolResult(
                success=True,
                output=f"Replaced lines {start_line}-{end_line} in {path}\n{diff}",
            )
        except Exception as e:
            log.error("Line replace failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error replacing lines in {path}: {e}")

    async def insert(self, path: str, insert_line: int, content: str) -> ToolResult:
        """Insert ``content`` so that it starts at ``insert_line``."""
        try:
            loaded = self._read(path)
            if isinstance(loaded, ToolResult):
                return loaded
            resolved, before = loaded

            lines = before.split("\n")
            if insert_line < 1 or insert_line > len(lines) + 1:
                return ToolResult(
                    success=False,
                    error=f"Invalid insertion line: {insert_line}. File has {len(lines)} lines.",
                )

            lines[insert_line - 1:insert_line - 1] = content.split("\n")
            after = "\n".join(lines)
            diff = unified_diff(before, after, path)

            rejected = await self._confirm("Insert text", path, diff)
            if rejected:
                return rejected

            resolved.write_text(after, encoding="utf-8")
            self._history.append(EditRecord("insert", resolved, before))
            return ToolResult(success=True, output=f"Inserted content at line {insert_line} in {path}\n{diff}")
        except Exception as e:
            log.error("Insert failed", path=path, error=str(e))
            return ToolResult(success=False, error=f"Error inserting into {path}: {e}")

    async def undo_edit(self) -> ToolResult:
        """Revert the most recent edit made through this tool."""
        if not self._history:
            return ToolResult(success=False, error="No edits to undo")

        record = self._history.pop()
        try:
            if record.previous is None:
                record.path.unlink(missing_ok=True)
            else:
                record.path.write_text(record.previous, encoding="utf-8")
            return ToolResult(success=True, output=f"Successfully undid {record.operation} operation")
        except Exception as e:
            log.error("Undo failed", path=str(record.path), error=str(e))
            return ToolResult(success=False, error=f"Error undoing {record.operation}: {e}")

    def get_edit_history(self) -> list[EditRecord]:
        return list(self._history)
