"""Command-line entry point for Grok CLI."""

import asyncio
import json
import shlex
import signal
import sys
from enum import Enum
from pathlib import Path

import typer

from grok_cli import __version__
from grok_cli.agent import GrokAgent
from grok_cli.cli import TerminalUI
from grok_cli.config import (
    DEFAULT_CONFIG_PATH,
    LOCAL_CONFIG_PATH,
    Config,
    get_config,
    set_config,
    update_settings_file,
)
from grok_cli.exceptions import ConfigurationError
from grok_cli.logging import configure_logging, get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.session import ChatEntry
from grok_cli.slash_commands import preprocess_prompt
from grok_cli.telemetry import TelemetryManager
from grok_cli.tools import get_confirmation_service

log = get_logger(__name__)

app = typer.Typer(
    help="A conversational AI CLI tool powered by Grok with text editor capabilities",
    add_completion=False,
)
git_app = typer.Typer(help="Git operations with AI assistance")
telemetry_app = typer.Typer(help="Manage telemetry settings")
app.add_typer(git_app, name="git")
app.add_typer(telemetry_app, name="telemetry")

ERROR_PREFIX = "Sorry, I encountered an error"
NO_RESPONSE_TEXT = "No response generated."


class OutputFormat(str, Enum):
    text = "text"
    json = "json"
    jsonl = "jsonl"


def load_config(directory: Path, api_key: str | None, base_url: str | None, model: str | None) -> Config:
    """Build the effective config: option > environment > settings file."""
    local_path = directory / LOCAL_CONFIG_PATH
    cfg = Config.from_yaml(local_path if local_path.exists() else DEFAULT_CONFIG_PATH)

    if api_key or base_url:
        persisted = {key: value for key, value in (("api_key", api_key), ("base_url", base_url)) if value}
        try:
            update_settings_file(DEFAULT_CONFIG_PATH, persisted)
        except OSError as e:
            log.warning("Could not save user settings", error=str(e))

    if api_key:
        cfg.api_key = api_key
    if base_url:
        cfg.base_url = base_url
    if model:
        cfg.model = cfg.validate_model(model)
    return cfg


def _read_piped_stdin() -> str:
    if sys.stdin is None or sys.stdin.isatty():
        return ""
    return sys.stdin.read().strip()


def render_entries(entries: list[ChatEntry], output_format: OutputFormat) -> str:
    """Render headless results as chat completions messages, or the final answer text."""
    messages = [message.to_dict() for message in (entry.to_message() for entry in entries) if message is not None]
    if output_format is OutputFormat.json:
        return json.dumps({"messages": messages}, indent=2)
    if output_format is OutputFormat.jsonl:
        return "\n".join(json.dumps(message) for message in messages)
    final = next((message for message in reversed(messages) if message["role"] == "assistant"), None)
    return (final["content"] if final is not None else "") or NO_RESPONSE_TEXT


async def run_headless(agent: GrokAgent, prompt: str, output_format: OutputFormat, output_file: str | None) -> int:
    try:
        entries = await agent.process_user_message(prompt)
    finally:
        await agent.close()

    rendered = render_entries(entries, output_format)
    if output_file:
        Path(output_file).expanduser().write_text(rendered + "\n", encoding="utf-8")
    else:
        typer.echo(rendered)

    last = entries[-1] if entries else None
    return 1 if last is not None and last.content.startswith(ERROR_PREFIX) else 0


async def stream_response(agent: GrokAgent, ui: TerminalUI, text: str) -> None:
    """Render one streamed request; SIGINT aborts it instead of the process."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, agent.abort_current_operation)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        log.debug("SIGINT handler unavailable; Ctrl+C will not cancel requests")

    ui.begin_assistant_stream()
    try:
        async for chunk in agent.process_user_message_stream(text):
            if chunk.type == "content" and chunk.content:
                ui.print_streaming(chunk.content)
            elif chunk.type == "tool_calls":
                ui.end_assistant_stream()
                for tool_call in chunk.tool_calls or []:
                    ui.print_tool_call(tool_call)
            elif chunk.type == "tool_result" and chunk.tool_result is not None:
                ui.print_tool_result(chunk.tool_result)
                ui.begin_assistant_stream()
            elif chunk.type == "token_count" and chunk.token_count is not None:
                ui.set_token_count(chunk.token_count)
            elif chunk.type == "done":
                ui.end_assistant_stream()
                ui.print_token_count()
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


async def run_interactive(agent: GrokAgent, ui: TerminalUI) -> None:
    ui.print_welcome(agent.get_current_model(), agent.get_current_directory())
    try:
        while True:
            text = await asyncio.to_thread(ui.prompt)
            if text is None or text.strip().lower() in ("exit", "quit"):
                break
            text = text.strip()
            if not text:
                continue
            if text.startswith("!"):
                result = await agent.execute_bash_command(text[1:].strip())
                ui.print_tool_result(result)
                continue
            await stream_response(agent, ui, text)
    finally:
        await agent.close()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    directory: Path | None = typer.Option(None, "-d", "--directory", help="Set working directory"),
    api_key: str | None = typer.Option(None, "-k", "--api-key", help="Grok API key (or set GROK_API_KEY env var)"),
    base_url: str | None = typer.Option(None, "-u", "--base-url", help="Grok API base URL (or set GROK_BASE_URL env var)"),
    model: str | None = typer.Option(None, "-m", "--model", help="AI model to use (or set GROK_MODEL env var)"),
    prompt: str | None = typer.Option(None, "-p", "--prompt", help="Process a single prompt and exit (headless mode)"),
    append_system_prompt: str | None = typer.Option(
        None, "-s", "--append-system-prompt", help="Additional text appended to the system prompt"
    ),
    max_tool_rounds: int | None = typer.Option(None, "--max-tool-rounds", help="Maximum number of tool execution rounds"),
    max_turns: int | None = typer.Option(None, "--max-turns", help="Maximum number of model turns"),
    output_format: OutputFormat = typer.Option(OutputFormat.text, "--output-format", help="Headless output format"),
    output_file: str | None = typer.Option(None, "--output-file", help="Write headless output to a file"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
    dangerously_skip_permissions: bool = typer.Option(
        False, "--dangerously-skip-permissions", help="Run file and shell operations without asking"
    ),
) -> None:
    """Start an interactive session or run a single prompt."""
    directory = (directory or Path.cwd()).expanduser().resolve()
    if not directory.is_dir():
        typer.echo(f"Error: Directory does not exist: {directory}", err=True)
        raise typer.Exit(1)

    try:
        cfg = load_config(directory, api_key, base_url, model)
    except (ConfigurationError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    set_config(cfg)
    configure_logging("DEBUG" if verbose else None)

    ctx.obj = {"directory": directory}
    if ctx.invoked_subcommand is not None:
        return

    if not cfg.api_key:
        typer.echo(
            "Error: API key required. Set GROK_API_KEY environment variable, use --api-key flag, "
            "or save it to ~/.grok/settings.yaml",
            err=True,
        )
        raise typer.Exit(1)

    confirmation = get_confirmation_service()
    if dangerously_skip_permissions:
        confirmation.set_session_flag("all_operations", True)

    if prompt:
        prompt = preprocess_prompt(prompt, directory)
    piped = _read_piped_stdin()
    if piped:
        prompt = f"{piped}\n\n{prompt}" if prompt else piped

    agent = GrokAgent(
        max_tool_rounds=max_tool_rounds,
        max_turns=max_turns,
        context=RuntimeContext(cwd=directory),
        confirmation=confirmation,
        append_system_prompt=append_system_prompt,
    )

    if prompt:
        raise typer.Exit(asyncio.run(run_headless(agent, prompt, output_format, output_file)))

    ui = TerminalUI()
    confirmation.set_callback(ui.confirm_operation)
    try:
        asyncio.run(run_interactive(agent, ui))
    except KeyboardInterrupt:
        log.info("Shutting down...")


async def commit_and_push(agent: GrokAgent) -> int:
    """Stage everything, let the model write the message, commit and push."""
    try:
        status = await agent.execute_bash_command("git status --porcelain")
        if not status.success:
            typer.echo(f"Error: {status.error}", err=True)
            return 1
        if not (status.output or "").strip() or status.output.startswith("Command executed successfully"):
            typer.echo("No changes to commit")
            return 0

        added = await agent.execute_bash_command("git add .")
        if not added.success:
            typer.echo(f"Error: git add failed: {added.error}", err=True)
            return 1

        diff = await agent.execute_bash_command("git diff --cached")
        request = (
            "Generate a concise, professional git commit message for these changes.\n\n"
            f"Git Status:\n{status.output}\n\nGit Diff (staged):\n{diff.output or ''}\n\n"
            "Follow conventional commit format (feat:, fix:, docs:, etc.) and keep the first "
            "line under 72 characters. Respond with ONLY the commit message, no additional text."
        )
        entries = await agent.process_user_message(request)
        reply = next((e for e in reversed(entries) if e.type == "assistant"), None)
        if reply is None or reply.content.startswith(ERROR_PREFIX):
            typer.echo(f"Error: failed to generate commit message: {reply.content if reply else ''}", err=True)
            return 1
        message = reply.content.strip().strip("\"'`")
        typer.echo(f"Generated commit message: \"{message}\"")

        committed = await agent.execute_bash_command(f"git commit -m {shlex.quote(message)}")
        if not committed.success:
            typer.echo(f"Error: git commit failed: {committed.error}", err=True)
            return 1
        typer.echo(committed.output or "")

        pushed = await agent.execute_bash_command("git push")
        if not pushed.success and "no upstream branch" in (pushed.error or ""):
            pushed = await agent.execute_bash_command("git push -u origin HEAD")
        if not pushed.success:
            typer.echo(f"Error: git push failed: {pushed.error}", err=True)
            return 1
        typer.echo(pushed.output or "Pushed")
        return 0
    finally:
        await agent.close()


@git_app.command("commit-and-push")
def git_commit_and_push(ctx: typer.Context) -> None:
    """Generate an AI commit message, commit all changes and push."""
    directory = (ctx.obj or {}).get("directory", Path.cwd())
    if not get_config().api_key:
        typer.echo("Error: API key required for commit message generation", err=True)
        raise typer.Exit(1)
    agent = GrokAgent(context=RuntimeContext(cwd=directory))
    raise typer.Exit(asyncio.run(commit_and_push(agent)))


def _set_telemetry(ctx: typer.Context, enabled: bool) -> None:
    directory = (ctx.obj or {}).get("directory", Path.cwd())
    manager = TelemetryManager(settings_path=directory / LOCAL_CONFIG_PATH)
    manager.update_settings(enabled=enabled)
    typer.echo(f"Telemetry {'enabled' if enabled else 'disabled'}")


@telemetry_app.command("enable")
def telemetry_enable(ctx: typer.Context) -> None:
    """Enable session telemetry for this project."""
    _set_telemetry(ctx, True)


@telemetry_app.command("disable")
def telemetry_disable(ctx: typer.Context) -> None:
    """Disable session telemetry for this project."""
    _set_telemetry(ctx, False)


@app.command()
def version() -> None:
    """Show version information."""
    typer.echo(f"Grok CLI v{__version__}")


if __name__ == "__main__":
    app()
