import pytest

from grok_cli.agent import GrokAgent
from grok_cli.agent_tool_loop_mixin import MORPH_UNAVAILABLE, parse_tool_arguments
from grok_cli.config import Config, set_config
from grok_cli.exceptions import ToolArgumentError
from grok_cli.llm import ChatResponse, FunctionCall, LLMProvider, ToolCall
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.registry import Tool, ToolRegistry, ToolResult


class NullProvider(LLMProvider):
    model = "grok-code-fast-1"

    async def chat(self, messages, tools=None, model=None, search_options=None) -> ChatResponse:
        raise AssertionError("model should not be called")

    async def chat_stream(self, messages, tools=None, model=None, search_options=None):
        raise AssertionError("model should not be called")
        yield  # pragma: no cover


class EchoTool(Tool):
    name = "mcp__echo"
    description = "Echo text back"
    parameters = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }

    async def execute(self, text: str, **kwargs) -> ToolResult:
        return ToolResult(success=True, output=f"echo: {text}")


class ExplodingTool(Tool):
    name = "mcp__explode"
    description = "Always raises"

    async def execute(self, **kwargs) -> ToolResult:
        raise RuntimeError("kaboom")


def _call(name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(id="call_1", function=FunctionCall(name=name, arguments=arguments))


@pytest.fixture
def agent(tmp_path) -> GrokAgent:
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(ExplodingTool())
    return GrokAgent(
        provider=NullProvider(),
        context=RuntimeContext(cwd=tmp_path),
        plugin_registry=registry,
    )


def test_parse_empty_arguments_is_empty_mapping():
    assert parse_tool_arguments(_call("bash", "")) == {}
    assert parse_tool_arguments(_call("bash", "   ")) == {}


def test_parse_rejects_non_object_arguments():
    with pytest.raises(ToolArgumentError, match="Invalid arguments for bash"):
        parse_tool_arguments(_call("bash", "[1, 2]"))


@pytest.mark.asyncio
async def test_unknown_tool_is_reported(agent):
    result = await agent.execute_tool(_call("launch_rockets"))

    assert result.success is False
    assert result.error == "Unknown tool: launch_rockets"


@pytest.mark.asyncio
async def test_malformed_json_arguments_become_failure(agent):
    result = await agent.execute_tool(_call("view_file", '{"path": '))

    assert result.success is False
    assert result.error.startswith("Tool execution error:")


@pytest.mark.asyncio
async def test_missing_required_argument_becomes_failure(agent):
    result = await agent.execute_tool(_call("create_file", '{"path": "a.txt"}'))

    assert result.success is False
    assert result.error.startswith("Tool execution error:")


@pytest.mark.asyncio
async def test_edit_file_without_morph_key(agent):
    result = await agent.execute_tool(
        _call("edit_file", '{"target_file": "a.py", "instructions": "x", "code_edit": "y"}')
    )

    assert result.success is False
    assert result.error == MORPH_UNAVAILABLE


def test_morph_tool_offered_when_key_configured(tmp_path, monkeypatch):
    monkeypatch.setenv("MORPH_API_KEY", "morph-key")
    set_config(Config(api_key="test-key"))
    agent = GrokAgent(provider=NullProvider(), context=RuntimeContext(cwd=tmp_path))

    names = [tool["function"]["name"] for tool in agent._tool_definitions()]

    assert agent.morph_editor is not None
    assert "edit_file" in names
    assert "edit_file" in agent.get_messages()[0].content


@pytest.mark.asyncio
async def test_plugin_tool_is_dispatched_through_registry(agent):
    result = await agent.execute_tool(_call("mcp__echo", '{"text": "hi"}'))

    assert result.success is True
    assert result.output == "echo: hi"
    names = [tool["function"]["name"] for tool in agent._tool_definitions()]
    assert "mcp__echo" in names


@pytest.mark.asyncio
async def test_plugin_failure_never_escapes(agent):
    result = await agent.execute_tool(_call("mcp__explode"))

    assert result.success is False
    assert "kaboom" in result.error


@pytest.mark.asyncio
async def test_unregistered_plugin_name_becomes_failure(agent):
    result = await agent.execute_tool(_call("mcp__missing"))

    assert result.success is False
    assert "Tool not found: mcp__missing" in result.error


@pytest.mark.asyncio
async def test_builtin_dispatch_creates_and_edits_files(agent, tmp_path):
    created = await agent.execute_tool(_call("create_file", '{"path": "a.txt", "content": "one two"}'))
    edited = await agent.execute_tool(
        _call("str_replace_editor", '{"path": "a.txt", "old_str": "two", "new_str": "three"}')
    )

    assert created.success and edited.success
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "one three"


@pytest.mark.asyncio
async def test_view_file_passes_line_range(agent, tmp_path):
    (tmp_path / "lines.txt").write_text("a\nb\nc\nd", encoding="utf-8")

    result = await agent.execute_tool(_call("view_file", '{"path": "lines.txt", "start_line": 2, "end_line": 3}'))

    assert result.output == "Lines 2-3 of lines.txt:\n2: b\n3: c"


@pytest.mark.asyncio
async def test_todo_tools_are_dispatched(agent):
    created = await agent.execute_tool(
        _call(
            "create_todo_list",
            '{"todos": [{"id": "1", "content": "Write tests", "status": "pending", "priority": "high"}]}',
        )
    )
    updated = await agent.execute_tool(
        _call("update_todo_list", '{"updates": [{"id": "1", "status": "completed"}]}')
    )

    assert "○ Write tests" in created.output
    assert "● Write tests" in updated.output


@pytest.mark.asyncio
async def test_bash_cd_moves_shared_working_directory(agent, tmp_path):
    (tmp_path / "sub").mkdir()

    result = await agent.execute_tool(_call("bash", '{"command": "cd sub"}'))

    assert result.success is True
    assert agent.get_current_directory() == str((tmp_path / "sub").resolve())
    assert agent.text_editor.context.cwd == (tmp_path / "sub").resolve()
