from io import StringIO

from rich.console import Console

from grok_cli.cli import TerminalUI
from grok_cli.llm import FunctionCall, ToolCall
from grok_cli.tools import ToolResult
from grok_cli.tools.confirmation import ConfirmationOptions


def _ui() -> tuple[TerminalUI, StringIO]:
    out = StringIO()
    console = Console(file=out, force_terminal=False, width=120)
    ui = TerminalUI(console=console)
    return ui, out


def test_long_tool_result_is_shortened():
    ui, out = _ui()

    ui.print_tool_result(ToolResult(success=True, output="\n".join(str(n) for n in range(30))), max_lines=5)

    text = out.getvalue()
    assert "0\n1\n2\n3\n4\n... +25 lines" in text
    assert "29" not in text


def test_tool_call_shows_parsed_arguments():
    ui, out = _ui()

    ui.print_tool_call(ToolCall(id="c1", function=FunctionCall(name="bash", arguments='{"command": "ls"}')))

    assert "bash" in out.getvalue()
    assert "{'command': 'ls'}" in out.getvalue()


def test_streamed_text_and_token_count():
    ui, out = _ui()

    ui.begin_assistant_stream()
    ui.print_streaming("Hel")
    ui.print_streaming("lo")
    ui.end_assistant_stream()
    ui.set_token_count(42)
    ui.print_token_count()

    assert out.getvalue() == "Hello\n~42 tokens\n"


def test_confirm_operation_choices(monkeypatch):
    ui, _ = _ui()
    answers = iter(["a"])
    monkeypatch.setattr("grok_cli.cli.Prompt.ask", lambda *args, **kwargs: next(answers))

    approved = ui.confirm_operation(ConfirmationOptions("Run bash command", "ls", "ls"), "bash")

    assert approved.confirmed is True
    assert approved.dont_ask_again is True


def test_confirm_operation_rejection_with_feedback(monkeypatch):
    ui, _ = _ui()
    answers = iter(["n", "use git ls-files instead"])
    monkeypatch.setattr("grok_cli.cli.Prompt.ask", lambda *args, **kwargs: next(answers))

    rejected = ui.confirm_operation(ConfirmationOptions("Edit file", "a.py", "diff"), "file")

    assert rejected.confirmed is False
    assert rejected.feedback == "use git ls-files instead"
