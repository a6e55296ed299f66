"""Strip environment-dependent pseudo-statements from a coverage map.

Some runtimes count ESM ``import`` lines and ``'use client'`` /
``'use server'`` directives as executable statements while others do not.
Removing both from every source before merging makes statement shapes
comparable. Classification is single-line textual matching against the
original source; function and branch maps are left alone.

Normalization mutates the given map. Callers that need the original
intact must pass a copy.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Protocol, TypeAlias

from covmerge.coverage_types import CoverageMap, FileCoverage, NormalizeResult


log = logging.getLogger(__name__)

RemovalKind: TypeAlias = Literal["import", "directive"]

_IMPORT_PREFIXES: tuple[str, ...] = ("import ", "import{")

_DIRECTIVES = frozenset(
    f"{quote}use {kind}{quote}{terminator}"
    for kind in ("client", "server")
    for quote in ("'", '"')
    for terminator in ("", ";")
)


class SourceTextProvider(Protocol):
    """Supplies source lines for a covered file, or None if unavailable."""

    def read_lines(self, file_path: str) -> list[str] | None: ...


class FileSystemSourceProvider:
    """Reads source text from disk as UTF-8 (BOM dropped), split on newlines."""

    def __init__(self, *, encoding: str = "utf-8-sig") -> None:
        self._encoding = encoding

    def read_lines(self, file_path: str) -> list[str] | None:
        path = Path(file_path)
        try:
            if not path.is_file():
                return None
            return path.read_text(encoding=self._encoding).split("\n")
        except (OSError, UnicodeDecodeError) as exc:
            log.debug("Cannot read source %s: %s", file_path, exc)
            return None


def is_import_line(line: str) -> bool:
    return line.startswith(_IMPORT_PREFIXES)


def is_directive(line: str) -> bool:
    return line in _DIRECTIVES


def classify_line(line: str) -> RemovalKind | None:
    """Classify a trimmed source line, or None if it is ordinary code."""
    if is_import_line(line):
        return "import"
    if is_directive(line):
        return "directive"
    return None


def _source_line(lines: list[str], line_num: int) -> str:
    if 1 <= line_num <= len(lines):
        # JS-style trim: a stray BOM counts as whitespace
        return lines[line_num - 1].strip().strip("\ufeff").strip()
    return ""


def normalize_file_coverage(
    file_data: FileCoverage,
    lines: list[str],
) -> tuple[int, int]:
    """Delete import/directive statements from one record.

    Returns ``(imports_removed, directives_removed)``.
    """
    statement_map = file_data.get("statementMap") or {}
    s = file_data.get("s")

    to_remove: list[tuple[str, RemovalKind]] = []
    for key, loc in statement_map.items():
        start = loc.get("start") or {}
        kind = classify_line(_source_line(lines, int(start.get("line") or 0)))
        if kind is not None:
            to_remove.append((key, kind))

    imports_removed = 0
    directives_removed = 0
    for key, kind in to_remove:
        del statement_map[key]
        if s is not None:
            s.pop(key, None)
        if kind == "import":
            imports_removed += 1
        else:
            directives_removed += 1
    return imports_removed, directives_removed


def normalize_coverage(
    coverage_map: CoverageMap,
    *,
    source_provider: SourceTextProvider | None = None,
) -> NormalizeResult:
    """Normalize every record of ``coverage_map`` in place.

    Records whose source text cannot be read are skipped and count as zero
    removals.
    """
    provider = source_provider or FileSystemSourceProvider()
    imports_removed = 0
    directives_removed = 0

    for file_path, file_data in coverage_map.items():
        lines = provider.read_lines(file_path)
        if not lines:
            log.debug("Skipping normalization for %s (source unavailable)", file_path)
            continue
        imports, directives = normalize_file_coverage(file_data, lines)
        imports_removed += imports
        directives_removed += directives

    return NormalizeResult(
        coverage_map=coverage_map,
        imports_removed=imports_removed,
        directives_removed=directives_removed,
    )
