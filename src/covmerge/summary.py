"""Category summaries (statements/branches/functions/lines) for coverage maps."""

from __future__ import annotations

import math

from covmerge.coverage_types import CategorySummary, CoverageMap, CoverageSummary, FileCoverage


_RULE_WIDTH = 80
_CATEGORY_LABELS: tuple[tuple[str, str], ...] = (
    ("statements", "Statements"),
    ("branches", "Branches"),
    ("functions", "Functions"),
    ("lines", "Lines"),
)


def percent(covered: int, total: int) -> float:
    """Percentage truncated to two decimals; 100 when there is nothing to cover."""
    if total <= 0:
        return 100.0
    return math.floor(covered * 10000 / total) / 100


def _category(covered: int, total: int) -> CategorySummary:
    return CategorySummary(covered=covered, total=total, pct=percent(covered, total))


def line_counts(data: FileCoverage) -> dict[int, int]:
    """Per-line hit counts derived from statements (max count per start line)."""
    statement_map = data.get("statementMap") or {}
    lines: dict[int, int] = {}
    for key, count in (data.get("s") or {}).items():
        loc = statement_map.get(key)
        if loc is None:
            continue
        line = int((loc.get("start") or {}).get("line") or 0)
        count = int(count or 0)
        prev = lines.get(line)
        if prev is None or prev < count:
            lines[line] = count
    return lines


def _raw_counts(data: FileCoverage) -> dict[str, tuple[int, int]]:
    s = [int(c or 0) for c in (data.get("s") or {}).values()]
    f = [int(c or 0) for c in (data.get("f") or {}).values()]
    b = [int(c or 0) for arr in (data.get("b") or {}).values() for c in (arr or [])]
    lines = list(line_counts(data).values())
    return {
        "statements": (sum(1 for c in s if c > 0), len(s)),
        "branches": (sum(1 for c in b if c > 0), len(b)),
        "functions": (sum(1 for c in f if c > 0), len(f)),
        "lines": (sum(1 for c in lines if c > 0), len(lines)),
    }


def summarize_file(data: FileCoverage) -> CoverageSummary:
    raw = _raw_counts(data)
    return CoverageSummary(
        statements=_category(*raw["statements"]),
        branches=_category(*raw["branches"]),
        functions=_category(*raw["functions"]),
        lines=_category(*raw["lines"]),
        file_count=1,
    )


def summarize_coverage(coverage_map: CoverageMap) -> CoverageSummary:
    """Sum covered/total across files, then compute percentages."""
    totals = {name: [0, 0] for name, _ in _CATEGORY_LABELS}
    for data in coverage_map.values():
        for name, (covered, total) in _raw_counts(data).items():
            totals[name][0] += covered
            totals[name][1] += total
    return CoverageSummary(
        statements=_category(*totals["statements"]),
        branches=_category(*totals["branches"]),
        functions=_category(*totals["functions"]),
        lines=_category(*totals["lines"]),
        file_count=len(coverage_map),
    )


def build_summary_report(coverage_map: CoverageMap) -> dict[str, object]:
    """Payload for ``coverage-summary.json``: overall total plus one entry per file."""
    report: dict[str, object] = {"total": summarize_coverage(coverage_map).to_dict()}
    for file_path, data in coverage_map.items():
        report[file_path] = summarize_file(data).to_dict()
    return report


def format_summary_table(summary: CoverageSummary) -> str:
    title = " Coverage summary "
    pad = _RULE_WIDTH - len(title)
    rows = ["=" * (pad // 2) + title + "=" * (pad - pad // 2)]
    for name, label in _CATEGORY_LABELS:
        cat: CategorySummary = getattr(summary, name)
        rows.append(f"{label:<13}: {cat.pct:.2f}% ( {cat.covered}/{cat.total} )")
    rows.append("=" * _RULE_WIDTH)
    return "\n".join(rows)
