"""Shared mutable runtime state for one agent session."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class RuntimeContext:
    """Working directory shared by the file, shell and search tools.

    Tools never call ``os.chdir``; a ``cd`` issued through the shell tool
    updates ``cwd`` here and every later tool call resolves against it.
    """

    cwd: Path = field(default_factory=lambda: Path(os.getcwd()))

    def __post_init__(self) -> None:
        self.cwd = Path(self.cwd).expanduser().resolve()

    def resolve(self, path: str | os.PathLike[str]) -> Path:
        """Resolve a user-supplied path against the working directory."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.cwd / candidate
        return candidate.resolve()

    def change_directory(self, target: str | os.PathLike[str]) -> Path:
        """Move the working directory; raises FileNotFoundError/NotADirectoryError."""
        resolved = self.resolve(target)
        if not resolved.exists():
            raise FileNotFoundError(f"No such file or directory: {target}")
        if not resolved.is_dir():
            raise NotADirectoryError(f"Not a directory: {target}")
        self.cwd = resolved
        return resolved
