import json

import pytest
import yaml
from typer.testing import CliRunner

from grok_cli import __version__
from grok_cli.llm import ChatResponse, Choice, FunctionCall, LLMProvider, Message, ToolCall
from grok_cli.main import NO_RESPONSE_TEXT, OutputFormat, app, render_entries
from grok_cli.session import ChatEntry

runner = CliRunner()


class CannedProvider(LLMProvider):
    model = "grok-code-fast-1"

    def __init__(self, reply: str):
        self.reply = reply
        self.closed = False

    async def chat(self, messages, tools=None, model=None, search_options=None) -> ChatResponse:
        return ChatResponse(choices=[Choice(message=Message(role="assistant", content=self.reply))])

    async def chat_stream(self, messages, tools=None, model=None, search_options=None):
        yield {"choices": [{"delta": {"content": self.reply}}]}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    home_settings = tmp_path / "home" / "settings.yaml"
    monkeypatch.setattr("grok_cli.main.DEFAULT_CONFIG_PATH", home_settings)
    monkeypatch.setattr("grok_cli.main.configure_logging", lambda level=None: None)
    monkeypatch.delenv("GROK_API_KEY", raising=False)
    return home_settings


@pytest.fixture
def canned(monkeypatch):
    provider = CannedProvider("All done.")
    monkeypatch.setattr("grok_cli.agent.create_provider", lambda **kwargs: provider)
    return provider


def test_version(isolated_home):
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.output.strip() == f"Grok CLI v{__version__}"


def test_headless_text_output(isolated_home, canned, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path), "-p", "hello"], env={"GROK_API_KEY": "xai-key"})

    assert result.exit_code == 0
    assert result.output.strip() == "All done."
    assert canned.closed is True


def test_headless_json_output(isolated_home, canned, tmp_path):
    result = runner.invoke(
        app,
        ["-d", str(tmp_path), "-p", "hello", "--output-format", "json"],
        env={"GROK_API_KEY": "xai-key"},
    )

    payload = json.loads(result.output)
    assert result.exit_code == 0
    assert payload == {
        "messages": [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "All done."},
        ]
    }


def test_piped_stdin_is_prepended(isolated_home, canned, tmp_path, monkeypatch):
    seen = {}

    async def chat(messages, tools=None, model=None, search_options=None):
        seen["user"] = messages[-1].content
        return ChatResponse(choices=[Choice(message=Message(role="assistant", content="ok"))])

    monkeypatch.setattr(canned, "chat", chat)

    result = runner.invoke(
        app,
        ["-d", str(tmp_path), "-p", "summarize"],
        input="file contents\n",
        env={"GROK_API_KEY": "xai-key"},
    )

    assert result.exit_code == 0
    assert seen["user"] == "file contents\n\nsummarize"


def test_missing_api_key_exits(isolated_home, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path), "-p", "hello"])

    assert result.exit_code == 1
    assert "API key required" in result.output


def test_invalid_directory(isolated_home, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path / "missing"), "version"])

    assert result.exit_code == 1
    assert "Directory does not exist" in result.output


def test_invalid_model(isolated_home, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path), "-m", "gpt-4", "version"])

    assert result.exit_code == 1
    assert "Invalid model: gpt-4" in result.output


def test_api_key_flag_is_saved_to_user_settings(isolated_home, canned, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path), "-k", "saved-key", "-p", "hello"])

    assert result.exit_code == 0
    assert yaml.safe_load(isolated_home.read_text(encoding="utf-8")) == {"api_key": "saved-key"}


def test_telemetry_enable_writes_project_settings(isolated_home, tmp_path):
    result = runner.invoke(app, ["-d", str(tmp_path), "telemetry", "enable"])

    saved = yaml.safe_load((tmp_path / ".grok" / "settings.yaml").read_text(encoding="utf-8"))
    assert result.exit_code == 0
    assert result.output.strip() == "Telemetry enabled"
    assert saved["telemetry"]["enabled"] is True


def test_headless_jsonl_renders_tool_round_as_wire_messages(isolated_home, canned, tmp_path, monkeypatch):
    (tmp_path / "notes.txt").write_text("remember milk", encoding="utf-8")
    replies = [
        Message(
            role="assistant",
            content="",
            tool_calls=[ToolCall(id="call_a", function=FunctionCall(name="view_file", arguments='{"path": "notes.txt"}'))],
        ),
        Message(role="assistant", content="It says remember milk."),
    ]

    async def chat(messages, tools=None, model=None, search_options=None):
        return ChatResponse(choices=[Choice(message=replies.pop(0))])

    monkeypatch.setattr(canned, "chat", chat)

    result = runner.invoke(
        app,
        ["-d", str(tmp_path), "-p", "read notes", "--output-format", "jsonl"],
        env={"GROK_API_KEY": "xai-key"},
    )

    lines = [json.loads(line) for line in result.output.strip().splitlines()]
    assert result.exit_code == 0
    assert [line["role"] for line in lines] == ["user", "assistant", "tool", "assistant"]
    assert lines[1]["content"] == "Using tools to help you..."
    assert lines[1]["tool_calls"][0]["id"] == "call_a"
    assert lines[1]["tool_calls"][0]["function"]["name"] == "view_file"
    assert lines[2]["tool_call_id"] == "call_a"
    assert "remember milk" in lines[2]["content"]
    assert "timestamp" not in lines[2]
    assert lines[3] == {"role": "assistant", "content": "It says remember milk."}


def test_text_rendering_without_assistant_answer():
    entries = [ChatEntry(type="user", content="hello")]

    assert render_entries(entries, OutputFormat.text) == NO_RESPONSE_TEXT
    assert render_entries(entries, OutputFormat.jsonl) == '{"role": "user", "content": "hello"}'


def test_headless_prompt_expands_slash_command(isolated_home, canned, tmp_path, monkeypatch):
    commands = tmp_path / ".claude" / "commands"
    commands.mkdir(parents=True)
    (commands / "fix.md").write_text("# Fix\n\nFix this issue: $ARGUMENTS\n", encoding="utf-8")
    seen = {}

    async def chat(messages, tools=None, model=None, search_options=None):
        seen["user"] = messages[-1].content
        return ChatResponse(choices=[Choice(message=Message(role="assistant", content="ok"))])

    monkeypatch.setattr(canned, "chat", chat)

    result = runner.invoke(app, ["-d", str(tmp_path), "-p", "/fix flaky login test"], env={"GROK_API_KEY": "xai-key"})

    assert result.exit_code == 0
    assert seen["user"] == "# Fix\n\nFix this issue: flaky login test\n"
