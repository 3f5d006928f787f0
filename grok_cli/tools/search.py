"""Unified text and file-name search tool."""

import asyncio
import fnmatch
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from grok_cli.config import get_config
from grok_cli.logging import get_logger
from grok_cli.runtime_context import RuntimeContext
from grok_cli.tools.registry import ToolResult

log = get_logger(__name__)

SearchType = Literal["text", "files", "both"]

_SKIPPED_DIRS = {
    ".git",
    "node_modules",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    ".mypy_cache",
    ".pytest_cache",
}
_GLOB_CHARS = set("*?[")


@dataclass
class TextMatch:
    file: str
    line: int
    column: int
    text: str


@dataclass
class FileMatch:
    path: str
    score: int


def _fuzzy_score(name: str, query: str) -> int:
    """Score a file name against a query; 0 means no match."""
    name_l = name.lower()
    query_l = query.lower()
    if not query_l:
        return 0
    if name_l == query_l:
        return 100
    if name_l.startswith(query_l):
        return 80
    if query_l in name_l:
        return 60
    # subsequence match
    pos = 0
    for ch in query_l:
        pos = name_l.find(ch, pos)
        if pos < 0:
            return 0
        pos += 1
    return 20


class SearchTool:
    """Search file contents and file names below the working directory."""

    def __init__(self, context: RuntimeContext | None = None):
        self.config = get_config()
        self.context = context or RuntimeContext()

    def _candidate_files(
        self,
        include_pattern: str | None,
        exclude_pattern: str | None,
        file_types: list[str] | None,
        include_hidden: bool,
    ) -> list[Path]:
        root = self.context.cwd
        suffixes = {f".{t.lstrip('.').lower()}" for t in file_types or [] if t}
        files: list[Path] = []
        for path in sorted(root.rglob("*")):
            rel_parts = path.relative_to(root).parts
            if any(part in _SKIPPED_DIRS for part in rel_parts[:-1]):
                continue
            if not include_hidden and any(part.startswith(".") for part in rel_parts):
                continue
            if not path.is_file():
                continue
            rel = "/".join(rel_parts)
            if include_pattern and not (
                fnmatch.fnmatch(rel, include_pattern) or fnmatch.fnmatch(path.name, include_pattern)
            ):
                continue
            if exclude_pattern and (
                fnmatch.fnmatch(rel, exclude_pattern) or fnmatch.fnmatch(path.name, exclude_pattern)
            ):
                continue
            if suffixes and path.suffix.lower() not in suffixes:
                continue
            files.append(path)
        return files

    def _search_text(
        self,
        pattern: re.Pattern[str],
        files: list[Path],
        max_results: int,
    ) -> tuple[list[TextMatch], bool]:
        root = self.context.cwd
        matches: list[TextMatch] = []
        for path in files:
            try:
                if path.stat().st_size > self.config.search.max_file_size:
                    continue
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                log.debug("Skipping unreadable file", path=str(path), error=str(e))
                continue
            rel = path.relative_to(root).as_posix()
            for line_no, line in enumerate(content.split("\n"), start=1):
                for found in pattern.finditer(line):
                    matches.append(TextMatch(rel, line_no, found.start() + 1, line.strip()))
                    if len(matches) >= max_results:
                        return matches, True
        return matches, False

    def _search_files(self, query: str, files: list[Path], max_results: int) -> list[FileMatch]:
        root = self.context.cwd
        scored: list[FileMatch] = []
        is_glob = any(ch in _GLOB_CHARS for ch in query)
        for path in files:
            rel = path.relative_to(root).as_posix()
            if is_glob:
                score = 50 if fnmatch.fnmatch(path.name, query) or fnmatch.fnmatch(rel, query) else 0
            else:
                score = max(_fuzzy_score(path.name, query), _fuzzy_score(rel, query) // 2)
            if score > 0:
                scored.append(FileMatch(rel, score))
        scored.sort(key=lambda m: (-m.score, m.path))
        return scored[:max_results]

    def _compile(self, query: str, regex: bool, case_sensitive: bool, whole_word: bool) -> re.Pattern[str]:
        body = query if regex else re.escape(query)
        if whole_word:
            body = rf"\b(?:{body})\b"
        return re.compile(body, 0 if case_sensitive else re.IGNORECASE)

    async def search(
        self,
        query: str,
        search_type: SearchType = "both",
        include_pattern: str | None = None,
        exclude_pattern: str | None = None,
        case_sensitive: bool = False,
        whole_word: bool = False,
        regex: bool = False,
        max_results: int | None = None,
        file_types: list[str] | None = None,
        include_hidden: bool = False,
    ) -> ToolResult:
        """Search text content, file names, or both.

        Args:
            query: Text, regex or file name fragment to look for
            search_type: ``text``, ``files`` or ``both``
            include_pattern: Glob a file must match
            exclude_pattern: Glob a file must not match
            case_sensitive: Match case exactly
            whole_word: Only match at word boundaries
            regex: Treat query as a regular expression
            max_results: Result cap (defaults to ``search.max_results``)
            file_types: Extensions to keep, e.g. ``["py", "md"]``
            include_hidden: Also search dot-files and dot-directories
        """
        limit = max(1, int(max_results or self.config.search.max_results))
        try:
            pattern = self._compile(query, regex, case_sensitive, whole_word)
        except re.error as e:
            return ToolResult(success=False, error=f"Search error: invalid pattern: {e}")

        try:
            loop = asyncio.get_running_loop()
            files = await loop.run_in_executor(
                None,
                lambda: self._candidate_files(include_pattern, exclude_pattern, file_types, include_hidden),
            )

            sections: list[str] = []
            if search_type in ("text", "both"):
                text_matches, limited = await loop.run_in_executor(
                    None, lambda: self._search_text(pattern, files, limit)
                )
                if text_matches:
                    noun = "match" if len(text_matches) == 1 else "matches"
                    header = f"Found {len(text_matches)} {noun}{' (limited)' if limited else ''} for \"{query}\":"
                    lines = [f"  {m.file}:{m.line}: {m.text}" for m in text_matches]
                    sections.append("\n".join([header, *lines]))

            if search_type in ("files", "both"):
                file_matches = self._search_files(query, files, limit)
                if file_matches:
                    noun = "file" if len(file_matches) == 1 else "files"
                    header = f"Found {len(file_matches)} {noun} matching \"{query}\":"
                    sections.append("\n".join([header, *(f"  {m.path}" for m in file_matches)]))

            if not sections:
                return ToolResult(success=True, output=f"No matches found for \"{query}\"")
            return ToolResult(success=True, output="\n\n".join(sections))

        except Exception as e:
            log.error("Search failed", query=query, error=str(e))
            return ToolResult(success=False, error=f"Search error: {e}")
