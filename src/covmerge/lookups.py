"""Location keys and per-record lookup indexes for cross-source matching.

Ids are only meaningful inside one file record, so correspondence between
sources is re-derived from locations. Matching is two-tier: an exact
``line:column`` key, then a line-only fallback for entries whose column
drifted between instrumentation pipelines.
"""

from __future__ import annotations

from typing import Any

from covmerge.coverage_types import BranchCounts, FileCoverage, Location, LookupIndex


_NULL_COLUMN = "null"


def location_start(loc: Location) -> tuple[int, Any]:
    """Return ``(line, column)`` of a location's start; column may be None."""
    start = loc.get("start") or {}
    return int(start.get("line") or 0), start.get("column")


def location_key(loc: Location) -> str:
    """Exact match key. A null column renders distinctly from column 0."""
    line, column = location_start(loc)
    col = _NULL_COLUMN if column is None else str(column)
    return f"{line}:{col}"


def line_key(loc: Location) -> int:
    """Line-only fallback key."""
    return location_start(loc)[0]


def fn_location(fn: dict[str, Any]) -> Location:
    # fnMap entries carry both ``decl`` and ``loc``; matching uses ``loc``.
    return fn.get("loc") or {}


def branch_location(branch: dict[str, Any]) -> Location:
    return branch.get("loc") or {}


def _count(counts: dict[str, Any], key: str) -> int:
    return int(counts.get(key) or 0)


def _branch_counts(counts: dict[str, Any], key: str) -> BranchCounts:
    return [int(c or 0) for c in (counts.get(key) or [])]


def build_lookups(data: FileCoverage) -> LookupIndex:
    """Build exact/line lookups over statements, functions and branches.

    Entries whose counts are all zero are left out, so a source that never
    executed a location cannot mask another source's hits. Statement and
    function line lookups keep the max count seen on a line; the branch
    line lookup keeps the first entry seen on a line.
    """
    stmts: dict[str, int] = {}
    stmts_by_line: dict[int, int] = {}
    s = data.get("s") or {}
    for key, loc in (data.get("statementMap") or {}).items():
        count = _count(s, key)
        if count > 0:
            stmts[location_key(loc)] = count
            line = line_key(loc)
            stmts_by_line[line] = max(stmts_by_line.get(line, 0), count)

    fns: dict[str, int] = {}
    fns_by_line: dict[int, int] = {}
    f = data.get("f") or {}
    for key, fn in (data.get("fnMap") or {}).items():
        count = _count(f, key)
        if count > 0:
            loc = fn_location(fn)
            fns[location_key(loc)] = count
            line = line_key(loc)
            fns_by_line[line] = max(fns_by_line.get(line, 0), count)

    branches: dict[str, BranchCounts] = {}
    branches_by_line: dict[int, BranchCounts] = {}
    b = data.get("b") or {}
    for key, branch in (data.get("branchMap") or {}).items():
        counts = _branch_counts(b, key)
        if any(c > 0 for c in counts):
            loc = branch_location(branch)
            branches[location_key(loc)] = counts
            line = line_key(loc)
            if line not in branches_by_line:
                branches_by_line[line] = counts

    return LookupIndex(
        stmts=stmts,
        stmts_by_line=stmts_by_line,
        fns=fns,
        fns_by_line=fns_by_line,
        branches=branches,
        branches_by_line=branches_by_line,
    )


def lookup_count(
    exact: dict[str, int],
    by_line: dict[int, int],
    loc: Location,
) -> int | None:
    """Exact-key hit first, line fallback second, None when neither matches."""
    count = exact.get(location_key(loc))
    if count is None:
        count = by_line.get(line_key(loc))
    return count


def lookup_branch_counts(index: LookupIndex, loc: Location) -> BranchCounts | None:
    counts = index.branches.get(location_key(loc))
    if counts is None:
        counts = index.branches_by_line.get(line_key(loc))
    return counts
