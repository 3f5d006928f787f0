import pytest

from grok_cli.config import Config, ShellToolConfig, set_config
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.bash import BashTool
from grok_cli.tools.confirmation import ConfirmationResult, ConfirmationService


@pytest.fixture
def bash(tmp_path) -> BashTool:
    return BashTool(context=RuntimeContext(cwd=tmp_path), confirmation=ConfirmationService())


@pytest.mark.asyncio
async def test_runs_in_context_directory(bash, tmp_path):
    (tmp_path / "marker.txt").write_text("", encoding="utf-8")

    result = await bash.execute("ls")

    assert result.success is True
    assert "marker.txt" in result.output


@pytest.mark.asyncio
async def test_stderr_is_appended(bash):
    result = await bash.execute("echo out; echo err 1>&2")

    assert result.output == "out\nSTDERR: err"


@pytest.mark.asyncio
async def test_empty_output_placeholder(bash):
    result = await bash.execute("true")

    assert result.output == "Command executed successfully (no output)"


@pytest.mark.asyncio
async def test_non_zero_exit_is_failure(bash):
    result = await bash.execute("echo broken 1>&2; exit 3")

    assert result.success is False
    assert result.error == "Command failed with exit code 3: broken"


@pytest.mark.asyncio
async def test_blocked_command_never_runs(bash):
    result = await bash.execute("rm -rf /")

    assert result.success is False
    assert result.error == "Command blocked: Command matches blocked pattern: rm -rf /"


@pytest.mark.asyncio
async def test_cd_changes_shared_directory(bash, tmp_path):
    (tmp_path / "inner").mkdir()

    moved = await bash.execute("cd inner")
    missing = await bash.execute("cd nowhere")
    listing = await bash.execute("pwd")

    assert moved.output == f"Changed directory to: {(tmp_path / 'inner').resolve()}"
    assert missing.error.startswith("Cannot change directory:")
    assert listing.output == str((tmp_path / "inner").resolve())
    assert bash.get_current_directory() == str((tmp_path / "inner").resolve())


@pytest.mark.asyncio
async def test_timeout(bash):
    result = await bash.execute("sleep 5", timeout=1)

    assert result.success is False
    assert result.error == "Command timed out after 1s"


@pytest.mark.asyncio
async def test_output_truncated(tmp_path):
    set_config(Config(api_key="k", shell=ShellToolConfig(max_output_chars=10)))
    bash = BashTool(context=RuntimeContext(cwd=tmp_path), confirmation=ConfirmationService())

    result = await bash.execute("printf 'abcdefghijklmnopqrstuvwxyz'")

    assert result.output.startswith("abcdefghij\n... [truncated, 26 total chars]")


@pytest.mark.asyncio
async def test_rejected_command(tmp_path):
    confirmation = ConfirmationService(callback=lambda options, kind: ConfirmationResult(confirmed=False))
    bash = BashTool(context=RuntimeContext(cwd=tmp_path), confirmation=confirmation)

    result = await bash.execute("touch created.txt")

    assert result.error == "Command execution cancelled by user"
    assert not (tmp_path / "created.txt").exists()
