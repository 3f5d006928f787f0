from grok_cli.instructions import InstructionLoader


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_project_instructions_win(tmp_path):
    project = tmp_path / "project"
    personal = tmp_path / "home" / ".grok"
    _write(project / ".grok" / "GROK.md", "  Use tabs.\n")
    _write(personal / "GROK.md", "Use spaces.")

    loader = InstructionLoader(cwd=project, personal_dir=personal)

    assert loader.load() == "Use tabs."


def test_personal_instructions_fallback(tmp_path):
    personal = tmp_path / "home" / ".grok"
    _write(personal / "GROK.md", "Be brief.")
    _write(tmp_path / "project" / ".grok" / "GROK.md", "   \n")

    loader = InstructionLoader(cwd=tmp_path / "project", personal_dir=personal)

    assert loader.load() == "Be brief."


def test_no_instructions(tmp_path):
    loader = InstructionLoader(cwd=tmp_path, personal_dir=tmp_path / "nothing")

    assert loader.load() is None
    assert loader.candidates() == [
        tmp_path.resolve() / ".grok" / "GROK.md",
        (tmp_path / "nothing").resolve() / "GROK.md",
    ]
