"""Load custom instructions that are appended to the system prompt.

Resolution order:
  1. ``<cwd>/.grok/GROK.md``   (project instructions, highest priority)
  2. ``~/.grok/GROK.md``       (personal instructions)
"""

from __future__ import annotations

from pathlib import Path

from grok_cli.logging import get_logger

log = get_logger(__name__)

_INSTRUCTIONS_NAME = "GROK.md"
_PERSONAL_DIR = Path("~/.grok").expanduser()


class InstructionLoader:
    """Read custom instructions with project-over-personal precedence."""

    def __init__(
        self,
        cwd: Path | str | None = None,
        personal_dir: Path | str | None = None,
    ):
        self.cwd = Path(cwd).expanduser().resolve() if cwd is not None else Path.cwd().resolve()
        self.personal_dir: Path = (
            Path(personal_dir).expanduser().resolve()
            if personal_dir is not None
            else _PERSONAL_DIR.resolve()
        )

    def candidates(self) -> list[Path]:
        return [
            self.cwd / ".grok" / _INSTRUCTIONS_NAME,
            self.personal_dir / _INSTRUCTIONS_NAME,
        ]

    def load(self) -> str | None:
        """Return the first non-empty instructions file, or None."""
        for path in self.candidates():
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8").strip()
            except OSError as e:
                log.warning("Failed to load custom instructions", path=str(path), error=str(e))
                continue
            if content:
                return content
        return None
