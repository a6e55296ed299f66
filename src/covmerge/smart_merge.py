"""Structural merge of coverage maps from differently-instrumented runs.

Per file, one source record supplies the shape (ids, locations, branch
arity) and every source containing the file contributes counts: for each
baseline entry the max count over all sources that hit the same location,
matched by exact key first and by line second.

Source order matters. It is the tie-break for shape selection and the
first-writer order of the branch line fallback, so inputs are always
ordered sequences.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence

from covmerge.coverage_types import CoverageMap, FileCoverage, LookupIndex
from covmerge.lookups import (
    branch_location,
    build_lookups,
    fn_location,
    lookup_branch_counts,
    lookup_count,
)
from covmerge.source_selection import select_best_source


def _merge_statement_counts(merged: FileCoverage, lookups: list[LookupIndex]) -> None:
    s = merged["s"]
    for key, loc in merged["statementMap"].items():
        max_count = int(s.get(key) or 0)
        for lookup in lookups:
            count = lookup_count(lookup.stmts, lookup.stmts_by_line, loc)
            if count is not None and count > max_count:
                max_count = count
        s[key] = max_count


def _merge_function_counts(merged: FileCoverage, lookups: list[LookupIndex]) -> None:
    f = merged["f"]
    for key, fn in merged["fnMap"].items():
        loc = fn_location(fn)
        max_count = int(f.get(key) or 0)
        for lookup in lookups:
            count = lookup_count(lookup.fns, lookup.fns_by_line, loc)
            if count is not None and count > max_count:
                max_count = count
        f[key] = max_count


def _merge_branch_counts(merged: FileCoverage, lookups: list[LookupIndex]) -> None:
    b = merged["b"]
    for key, branch in merged["branchMap"].items():
        loc = branch_location(branch)
        running = [int(c or 0) for c in (b.get(key) or [])]
        for lookup in lookups:
            counts = lookup_branch_counts(lookup, loc)
            if counts is None:
                continue
            # Baseline arity wins; indices the source lacks read as 0.
            running = [
                max(c, counts[i] if i < len(counts) else 0)
                for i, c in enumerate(running)
            ]
        b[key] = running


def merge_file_coverages(coverages: Sequence[FileCoverage]) -> FileCoverage:
    """Merge every source record for one file into a fresh record.

    A single record is deep-copied as-is. The merged record takes ``path``
    from the first record and its maps from the selected baseline.
    """
    if not coverages:
        raise ValueError("No coverages to merge")
    if len(coverages) == 1:
        return copy.deepcopy(coverages[0])

    best = select_best_source(coverages)
    lookups = [build_lookups(cov) for cov in coverages]

    merged: FileCoverage = {
        "path": coverages[0].get("path"),
        "statementMap": copy.deepcopy(best.get("statementMap") or {}),
        "s": copy.deepcopy(best.get("s") or {}),
        "fnMap": copy.deepcopy(best.get("fnMap") or {}),
        "f": copy.deepcopy(best.get("f") or {}),
        "branchMap": copy.deepcopy(best.get("branchMap") or {}),
        "b": copy.deepcopy(best.get("b") or {}),
    }

    _merge_statement_counts(merged, lookups)
    _merge_function_counts(merged, lookups)
    _merge_branch_counts(merged, lookups)
    return merged


def smart_merge_coverage(coverage_maps: Sequence[CoverageMap]) -> CoverageMap:
    """Merge an ordered list of coverage maps into one.

    Files present in a single map are copied verbatim. Maps lacking a file
    take no part in that file's merge.
    """
    if not coverage_maps:
        return {}
    if len(coverage_maps) == 1:
        return copy.deepcopy(dict(coverage_maps[0]))

    # dict keeps first-seen order across maps
    all_files: dict[str, None] = {}
    for cov_map in coverage_maps:
        for file_path in cov_map:
            all_files.setdefault(file_path, None)

    merged: CoverageMap = {}
    for file_path in all_files:
        file_coverages = [m[file_path] for m in coverage_maps if file_path in m]
        if len(file_coverages) == 1:
            merged[file_path] = copy.deepcopy(file_coverages[0])
        else:
            merged[file_path] = merge_file_coverages(file_coverages)
    return merged
