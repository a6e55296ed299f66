"""Merge entry points: in-memory maps and coverage output directories.

``merge_coverage_maps`` is the core boundary: ordered, already-parsed
coverage maps in, one merged map plus category summaries out.
``merge_coverage_dirs`` wraps it for directories holding
``coverage-final.json`` artifacts and writes the merged outputs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from covmerge.coverage_types import CoverageMap, CoverageSummary
from covmerge.io_utils import load_coverage_map, save_coverage_map, save_json
from covmerge.normalize import SourceTextProvider, normalize_coverage
from covmerge.run_manifest import build_manifest, generate_run_id, git_commit_hash, write_manifest
from covmerge.smart_merge import smart_merge_coverage
from covmerge.summary import build_summary_report, summarize_coverage


log = logging.getLogger(__name__)

COVERAGE_FILENAME = "coverage-final.json"
SUMMARY_FILENAME = "coverage-summary.json"
DEFAULT_REPORTERS: tuple[str, ...] = ("json", "json-summary")


@dataclass(frozen=True, slots=True)
class MergeOptions:
    """Inputs for a directory-level merge. ``input_dirs`` order is significant."""

    input_dirs: tuple[Path, ...]
    output_dir: Path
    normalize: bool = True
    reporters: tuple[str, ...] = DEFAULT_REPORTERS


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Merged map plus its summary and normalization totals."""

    coverage_map: CoverageMap
    summary: CoverageSummary
    imports_removed: int = 0
    directives_removed: int = 0

    @property
    def total_files(self) -> int:
        return len(self.coverage_map)


@dataclass(frozen=True, slots=True)
class MergeReport:
    """Outcome of ``merge_coverage_dirs``."""

    result: MergeResult
    run_id: str
    output_dir: Path
    loaded_dirs: tuple[Path, ...]
    skipped_dirs: tuple[Path, ...]
    written: dict[str, Path] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "status": "ok",
            "run_id": self.run_id,
            "output_dir": str(self.output_dir),
            "loaded_dirs": [str(p) for p in self.loaded_dirs],
            "skipped_dirs": [str(p) for p in self.skipped_dirs],
            "written": {name: str(p) for name, p in self.written.items()},
            "total_files": self.result.total_files,
            "imports_removed": self.result.imports_removed,
            "directives_removed": self.result.directives_removed,
            **self.result.summary.to_dict(),
        }


def merge_coverage_maps(
    coverage_maps: Sequence[CoverageMap],
    *,
    normalize: bool = False,
    source_provider: SourceTextProvider | None = None,
) -> MergeResult:
    """Merge ordered coverage maps, optionally normalizing each first.

    Normalization edits the given maps in place; pass copies to keep them.
    Later maps win shape tie-breaks, so put the most trusted source last.
    """
    imports_removed = 0
    directives_removed = 0
    if normalize:
        for cov_map in coverage_maps:
            norm = normalize_coverage(cov_map, source_provider=source_provider)
            imports_removed += norm.imports_removed
            directives_removed += norm.directives_removed

    merged = smart_merge_coverage(coverage_maps)
    return MergeResult(
        coverage_map=merged,
        summary=summarize_coverage(merged),
        imports_removed=imports_removed,
        directives_removed=directives_removed,
    )


def _unique(items: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _write_reports(
    result: MergeResult,
    output_dir: Path,
    reporters: Sequence[str],
) -> dict[str, Path]:
    written: dict[str, Path] = {}
    for reporter in _unique(reporters):
        if reporter == "json":
            path = output_dir / COVERAGE_FILENAME
            save_coverage_map(result.coverage_map, path)
        elif reporter == "json-summary":
            path = output_dir / SUMMARY_FILENAME
            save_json(build_summary_report(result.coverage_map), path, sort_keys=False)
        else:
            log.warning("Failed to generate %s report: unknown reporter", reporter)
            continue
        written[reporter] = path
    return written


def merge_coverage_dirs(
    options: MergeOptions,
    *,
    source_provider: SourceTextProvider | None = None,
) -> MergeReport:
    """Load, merge and write coverage from several output directories.

    Directories without ``coverage-final.json`` are skipped. Every artifact
    is parsed before anything is written, so a malformed one raises
    CoverageFormatError with no partial output.
    """
    t0 = time.perf_counter()
    loaded: list[Path] = []
    skipped: list[Path] = []
    coverage_maps: list[CoverageMap] = []

    for input_dir in options.input_dirs:
        coverage_file = input_dir / COVERAGE_FILENAME
        if not coverage_file.is_file():
            log.info("Skipped (no %s): %s", COVERAGE_FILENAME, input_dir)
            skipped.append(input_dir)
            continue
        log.info("Loading: %s", coverage_file)
        coverage_maps.append(load_coverage_map(coverage_file))
        loaded.append(input_dir)
    t_load = time.perf_counter()

    result = merge_coverage_maps(
        coverage_maps,
        normalize=options.normalize,
        source_provider=source_provider,
    )
    if options.normalize and (result.imports_removed or result.directives_removed):
        log.info(
            "Normalized: removed %d import(s), %d directive(s)",
            result.imports_removed,
            result.directives_removed,
        )
    t_merge = time.perf_counter()

    output_dir = options.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    written = _write_reports(result, output_dir, options.reporters)

    run_id = generate_run_id()
    manifest = build_manifest(
        run_id=run_id,
        loaded_dirs=[str(p) for p in loaded],
        skipped_dirs=[str(p) for p in skipped],
        normalize=options.normalize,
        reporters=_unique(options.reporters),
        imports_removed=result.imports_removed,
        directives_removed=result.directives_removed,
        summary=result.summary.to_dict(),
        total_files=result.total_files,
        timings_sec={
            "load": round(t_load - t0, 4),
            "merge": round(t_merge - t_load, 4),
            "total": round(time.perf_counter() - t0, 4),
        },
        git_commit=git_commit_hash(),
    )
    written["manifest"] = write_manifest(output_dir, manifest)

    return MergeReport(
        result=result,
        run_id=run_id,
        output_dir=output_dir,
        loaded_dirs=tuple(loaded),
        skipped_dirs=tuple(skipped),
        written=written,
    )
