"""Terminal UI for interactive Grok CLI sessions."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from grok_cli.llm import ToolCall
from grok_cli.tools import ToolResult
from grok_cli.tools.confirmation import ConfirmationOptions, ConfirmationResult, OperationKind


class TerminalUI:
    """Rich-based console output and prompts."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console(highlight=False)
        self.token_count = 0
        self._streaming = False

    def print_welcome(self, model: str, cwd: str) -> None:
        self.console.print("[bold]Grok CLI[/bold]")
        self.console.print(f"[dim]model: {model}  cwd: {cwd}[/dim]")
        self.console.print("[dim]Type 'exit' to quit, '!cmd' to run a shell command, Ctrl+C to cancel a request.[/dim]")

    def prompt(self, prompt_text: str = "❯") -> str | None:
        try:
            return Prompt.ask(f"[bold cyan]{prompt_text}[/bold cyan]", console=self.console)
        except EOFError:
            return None

    def begin_assistant_stream(self) -> None:
        self._streaming = True

    def print_streaming(self, chunk: str) -> None:
        self.console.print(chunk, end="", markup=False, soft_wrap=True)

    def end_assistant_stream(self) -> None:
        if self._streaming:
            self.console.print()
        self._streaming = False

    def print_tool_call(self, tool_call: ToolCall) -> None:
        try:
            args: Any = json.loads(tool_call.function.arguments or "{}")
        except json.JSONDecodeError:
            args = tool_call.function.arguments
        self.console.print(f"[yellow]⏺ {tool_call.name}[/yellow] [dim]{escape(str(args))}[/dim]")

    def print_tool_result(self, result: ToolResult, max_lines: int = 20) -> None:
        text = result.display_text()
        lines = text.split("\n")
        if len(lines) > max_lines:
            text = "\n".join(lines[:max_lines]) + f"\n... +{len(lines) - max_lines} lines"
        style = "dim" if result.success else "red"
        self.console.print(text, style=style, markup=False)

    def set_token_count(self, count: int) -> None:
        self.token_count = count

    def print_token_count(self) -> None:
        self.console.print(f"[dim]~{self.token_count} tokens[/dim]")

    def confirm_operation(self, options: ConfirmationOptions, kind: OperationKind) -> ConfirmationResult:
        """Approval callback for the confirmation service."""
        self.end_assistant_stream()
        self.console.print(f"[bold]{options.operation}[/bold]: {options.filename}")
        if options.content and options.content != options.filename:
            self.console.print(options.content, markup=False, style="dim")
        choice = Prompt.ask(
            "Proceed?",
            choices=["y", "n", "a"],
            default="y",
            console=self.console,
        )
        if choice == "n":
            feedback = Prompt.ask("Feedback (optional)", default="", console=self.console)
            return ConfirmationResult(confirmed=False, feedback=feedback or None)
        return ConfirmationResult(confirmed=True, dont_ask_again=choice == "a")
