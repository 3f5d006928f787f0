import pytest

from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.search import SearchTool


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "agent.py").write_text("def run():\n    return 'agent ready'\n", encoding="utf-8")
    (tmp_path / "src" / "notes.md").write_text("Agent notes\nrunning agents\n", encoding="utf-8")
    (tmp_path / ".hidden").mkdir()
    (tmp_path / ".hidden" / "secret.py").write_text("agent = 1\n", encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("agent\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def search(tree) -> SearchTool:
    return SearchTool(context=RuntimeContext(cwd=tree))


@pytest.mark.asyncio
async def test_text_search_counts_every_occurrence(search):
    result = await search.search("agent", search_type="text")

    lines = result.output.split("\n")
    assert lines[0] == 'Found 3 matches for "agent":'
    assert "  src/agent.py:2: return 'agent ready'" in lines
    assert "  src/notes.md:1: Agent notes" in lines
    assert "  src/notes.md:2: running agents" in lines
    assert "node_modules" not in result.output
    assert ".hidden" not in result.output


@pytest.mark.asyncio
async def test_case_sensitive_whole_word(search):
    result = await search.search("agent", search_type="text", case_sensitive=True, whole_word=True)

    assert result.output.split("\n") == ['Found 1 match for "agent":', "  src/agent.py:2: return 'agent ready'"]


@pytest.mark.asyncio
async def test_result_limit_is_reported(search):
    result = await search.search("agent", search_type="text", max_results=2)

    assert result.output.startswith('Found 2 matches (limited) for "agent":')


@pytest.mark.asyncio
async def test_file_name_search_ranks_exact_prefix_first(search):
    result = await search.search("agent", search_type="files")

    assert result.output.split("\n") == ['Found 1 file matching "agent":', "  src/agent.py"]


@pytest.mark.asyncio
async def test_file_glob_and_filters(search):
    globbed = await search.search("*.md", search_type="files")
    typed = await search.search("agent", search_type="text", file_types=["md"])
    excluded = await search.search("agent", search_type="text", exclude_pattern="*.md")

    assert globbed.output == 'Found 1 file matching "*.md":\n  src/notes.md'
    assert "src/agent.py" not in typed.output
    assert "src/notes.md" not in excluded.output


@pytest.mark.asyncio
async def test_hidden_files_on_request(search):
    result = await search.search("agent =", search_type="text", include_hidden=True)

    assert "  .hidden/secret.py:1: agent = 1" in result.output


@pytest.mark.asyncio
async def test_both_sections_and_no_match(search):
    both = await search.search("notes")
    none = await search.search("zebra")

    assert 'Found 1 match for "notes":' in both.output
    assert 'Found 1 file matching "notes":' in both.output
    assert none.output == 'No matches found for "zebra"'


@pytest.mark.asyncio
async def test_invalid_regex(search):
    result = await search.search("(unclosed", regex=True)

    assert result.success is False
    assert result.error.startswith("Search error: invalid pattern")
