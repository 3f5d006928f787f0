"""Slash command expansion for prompts.

Markdown files under ``<cwd>/.claude/commands`` are prompt templates. A file
at ``standard/plan.md`` is invoked as ``/standard:plan``. The text after the
command name replaces ``$ARGUMENTS`` (or ``$ARGUMENT``) in the template.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from grok_cli.logging import get_logger

log = get_logger(__name__)

COMMANDS_DIR = Path(".claude") / "commands"
ARGUMENT_PLACEHOLDERS = ("$ARGUMENTS", "$ARGUMENT")
_MAX_DESCRIPTION_CHARS = 120


@dataclass
class SlashCommand:
    name: str
    path: Path
    description: str

    @property
    def command(self) -> str:
        return f"/{self.name}"


@dataclass
class SlashCommandResult:
    success: bool
    processed_prompt: str | None = None
    error: str | None = None
    available_commands: list[str] = field(default_factory=list)


def _split_frontmatter(text: str) -> tuple[dict, str]:
    text = text.replace("\r\n", "\n")
    if not text.startswith("---"):
        return {}, text
    end = text.find("\n---", 3)
    if end < 0:
        return {}, text
    try:
        parsed = yaml.safe_load(text[4:end])
    except yaml.YAMLError:
        return {}, text
    body = text[end + 4:].lstrip("\n")
    return (parsed if isinstance(parsed, dict) else {}), body


def _describe(frontmatter: dict, body: str, fallback: str) -> str:
    description = str(frontmatter.get("description") or "").strip()
    if not description:
        heading = next((line for line in body.splitlines() if line.strip()), "")
        description = heading.lstrip("#").strip()
    description = re.sub(r"\s+", " ", description or fallback)
    return description[:_MAX_DESCRIPTION_CHARS]


def expand_template(template: str, arguments: str) -> str:
    """Substitute the argument placeholders; append the arguments when there are none."""
    if any(placeholder in template for placeholder in ARGUMENT_PLACEHOLDERS):
        for placeholder in ARGUMENT_PLACEHOLDERS:
            template = template.replace(placeholder, arguments)
        return template
    if arguments:
        return f"{template.rstrip()}\n\n{arguments}"
    return template


class SlashCommandProcessor:
    """Resolve ``/name args`` prompts against the project's command files."""

    def __init__(self, cwd: str | Path):
        self.commands_dir = Path(cwd).expanduser() / COMMANDS_DIR

    def is_slash_command(self, text: str) -> bool:
        return text.strip().startswith("/")

    def _load_commands(self) -> dict[str, SlashCommand]:
        if not self.commands_dir.is_dir():
            return {}
        commands: dict[str, SlashCommand] = {}
        for path in sorted(self.commands_dir.rglob("*.md")):
            if not path.is_file():
                continue
            name = ":".join(path.relative_to(self.commands_dir).with_suffix("").parts)
            try:
                frontmatter, body = _split_frontmatter(path.read_text(encoding="utf-8"))
            except OSError as e:
                log.debug("Skipping unreadable slash command", path=str(path), error=str(e))
                continue
            commands[name] = SlashCommand(name=name, path=path, description=_describe(frontmatter, body, name))
        return commands

    def get_available_commands(self) -> list[str]:
        return list(self._load_commands())

    def get_command_suggestions(self) -> list[SlashCommand]:
        return list(self._load_commands().values())

    def process_slash_command(self, text: str) -> SlashCommandResult:
        """Expand one slash command prompt.

        Returns:
            SlashCommandResult with the expanded prompt, or the error and the
            commands that do exist
        """
        parts = text.strip()[1:].split(maxsplit=1)
        if not parts:
            return SlashCommandResult(
                success=False,
                error="Invalid slash command format. Use /command [arguments]",
            )

        name = parts[0]
        arguments = parts[1].strip() if len(parts) > 1 else ""
        commands = self._load_commands()
        command = commands.get(name)
        if command is None:
            return SlashCommandResult(
                success=False,
                error=f"Slash command /{name} not found",
                available_commands=list(commands),
            )

        try:
            _, body = _split_frontmatter(command.path.read_text(encoding="utf-8"))
        except OSError as e:
            return SlashCommandResult(success=False, error=f"Cannot read slash command /{name}: {e}")
        return SlashCommandResult(success=True, processed_prompt=expand_template(body, arguments))


def preprocess_prompt(prompt: str, cwd: str | Path) -> str:
    """Expand ``prompt`` when it is a known slash command, else return it unchanged."""
    processor = SlashCommandProcessor(cwd)
    if not processor.is_slash_command(prompt):
        return prompt

    result = processor.process_slash_command(prompt)
    if not result.success:
        log.warning("Slash command not expanded", prompt=prompt[:80], error=result.error)
        return prompt
    log.info("Expanded slash command", command=prompt.split(maxsplit=1)[0])
    return result.processed_prompt or ""
