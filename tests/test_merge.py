"""Tests for covmerge.merge: entry point and directory-level merge."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from covmerge.coverage_types import CoverageFormatError
from covmerge.merge import (
    COVERAGE_FILENAME,
    SUMMARY_FILENAME,
    MergeOptions,
    merge_coverage_dirs,
    merge_coverage_maps,
)
from covmerge.run_manifest import MANIFEST_FILENAME, load_manifest


def _loc(line: int, column: int = 0) -> dict[str, Any]:
    return {"start": {"line": line, "column": column}, "end": {"line": line, "column": 30}}


def _record(path: str, lines: list[int], counts: list[int]) -> dict[str, Any]:
    return {
        "path": path,
        "statementMap": {str(i): _loc(ln) for i, ln in enumerate(lines)},
        "s": {str(i): c for i, c in enumerate(counts)},
        "fnMap": {},
        "f": {},
        "branchMap": {},
        "b": {},
    }


def _write_source(tmp_path: Path) -> str:
    src = tmp_path / "src" / "page.tsx"
    src.parent.mkdir(parents=True, exist_ok=True)
    src.write_text("'use client'\nimport x from 'x'\nx()\nexport default 1\n")
    return str(src)


def _write_coverage(directory: Path, cov: dict[str, Any]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / COVERAGE_FILENAME).write_text(json.dumps(cov))


class _NoSources:
    def read_lines(self, file_path: str) -> list[str] | None:
        return None


class TestMergeCoverageMaps:
    def test_without_normalization(self) -> None:
        a = {"/a.ts": _record("/a.ts", [2, 3], [1, 0])}
        b = {"/a.ts": _record("/a.ts", [2, 3], [0, 1])}
        result = merge_coverage_maps([a, b])
        assert result.coverage_map["/a.ts"]["s"] == {"0": 1, "1": 1}
        assert result.total_files == 1
        assert result.summary.statements.pct == 100.0
        assert (result.imports_removed, result.directives_removed) == (0, 0)

    def test_normalization_aligns_shapes(self, tmp_path: Path) -> None:
        path = _write_source(tmp_path)
        # jsdom counts the directive and import lines, the browser does not
        jsdom = {path: _record(path, [1, 2, 3, 4], [1, 1, 1, 0])}
        browser = {path: _record(path, [3, 4], [0, 1])}
        result = merge_coverage_maps([jsdom, browser], normalize=True)
        assert result.directives_removed == 1
        assert result.imports_removed == 1
        merged = result.coverage_map[path]
        assert len(merged["statementMap"]) == 2
        assert merged["s"] == {"0": 1, "1": 1}
        assert result.summary.statements.total == 2

    def test_normalization_with_unavailable_sources(self) -> None:
        a = {"/a.ts": _record("/a.ts", [1, 2], [1, 1])}
        result = merge_coverage_maps([a], normalize=True, source_provider=_NoSources())
        assert result.coverage_map == a
        assert (result.imports_removed, result.directives_removed) == (0, 0)

    def test_empty(self) -> None:
        result = merge_coverage_maps([])
        assert result.coverage_map == {}
        assert result.summary.lines.pct == 100.0


class TestMergeCoverageDirs:
    def test_writes_outputs_and_skips_missing(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        unit = tmp_path / "coverage" / "unit"
        browser = tmp_path / "coverage" / "browser"
        empty = tmp_path / "coverage" / "e2e"
        empty.mkdir(parents=True)
        _write_coverage(unit, {"/a.ts": _record("/a.ts", [1, 2], [1, 0])})
        _write_coverage(browser, {"/a.ts": _record("/a.ts", [2], [3])})
        out = tmp_path / "coverage" / "merged"

        options = MergeOptions(
            input_dirs=(unit, empty, browser),
            output_dir=out,
            normalize=False,
            reporters=("json", "json-summary", "json", "html"),
        )
        with caplog.at_level(logging.INFO):
            report = merge_coverage_dirs(options)

        assert report.loaded_dirs == (unit, browser)
        assert report.skipped_dirs == (empty,)
        assert set(report.written) == {"json", "json-summary", "manifest"}
        assert "Skipped (no coverage-final.json)" in caplog.text
        assert "Failed to generate html report" in caplog.text

        merged = json.loads((out / COVERAGE_FILENAME).read_text())
        assert list(merged["/a.ts"]["statementMap"]) == ["0"]
        assert merged["/a.ts"]["s"] == {"0": 3}

        summary = json.loads((out / SUMMARY_FILENAME).read_text())
        assert summary["total"]["statements"] == {
            "total": 1,
            "covered": 1,
            "skipped": 0,
            "pct": 100.0,
        }

        manifest = load_manifest(out / MANIFEST_FILENAME)
        assert manifest["run_id"] == report.run_id
        assert manifest["reporters"] == ["json", "json-summary", "html"]
        assert manifest["total_files"] == 1

    def test_malformed_artifact_writes_nothing(self, tmp_path: Path) -> None:
        good = tmp_path / "good"
        bad = tmp_path / "bad"
        _write_coverage(good, {"/a.ts": _record("/a.ts", [1], [1])})
        bad.mkdir()
        (bad / COVERAGE_FILENAME).write_text("{broken")
        out = tmp_path / "merged"
        options = MergeOptions(input_dirs=(good, bad), output_dir=out)
        with pytest.raises(CoverageFormatError):
            merge_coverage_dirs(options)
        assert not out.exists()

    def test_normalize_logs_removals(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = _write_source(tmp_path)
        unit = tmp_path / "unit"
        browser = tmp_path / "browser"
        _write_coverage(unit, {path: _record(path, [1, 2, 3], [1, 1, 1])})
        _write_coverage(browser, {path: _record(path, [3], [0])})
        options = MergeOptions(input_dirs=(unit, browser), output_dir=tmp_path / "out")
        with caplog.at_level(logging.INFO):
            report = merge_coverage_dirs(options)
        assert "Normalized: removed 1 import(s), 1 directive(s)" in caplog.text
        payload = report.to_dict()
        assert payload["status"] == "ok"
        assert payload["statements"]["covered"] == 1
