"""Pick which source record supplies the merged record's structure."""

from __future__ import annotations

from collections.abc import Sequence

from covmerge.coverage_types import FileCoverage
from covmerge.lookups import location_start


def total_items(cov: FileCoverage) -> int:
    """Declared statements + branches + functions, executed or not."""
    return (
        len(cov.get("statementMap") or {})
        + len(cov.get("branchMap") or {})
        + len(cov.get("fnMap") or {})
    )


def has_leading_pseudo_statement(cov: FileCoverage) -> bool:
    """True when a statement starts at line 1, column 0 or null.

    Instrumenters that count module-load lines inject such an entry;
    pipelines that skip them do not.
    """
    for loc in (cov.get("statementMap") or {}).values():
        line, column = location_start(loc)
        if line == 1 and (column is None or column == 0):
            return True
    return False


def select_best_source(coverages: Sequence[FileCoverage]) -> FileCoverage:
    """Select the baseline shape among the records for one file.

    Rules, in order:
    1. Records declaring no items are ignored (if all are empty, the
       first record is returned).
    2. A single remaining record wins outright.
    3. Records without a leading pseudo-statement are preferred; among
       them the one supplied last wins.
    4. If every record has one, the record with the fewest items wins
       (earliest on ties).

    Only shape is decided here; counts from every record are merged later.
    """
    if not coverages:
        raise ValueError("No coverages to select from")

    non_empty = [
        (idx, cov) for idx, cov in enumerate(coverages) if total_items(cov) > 0
    ]
    if not non_empty:
        return coverages[0]
    if len(non_empty) == 1:
        return non_empty[0][1]

    without_pseudo = [
        (idx, cov) for idx, cov in non_empty if not has_leading_pseudo_statement(cov)
    ]
    if without_pseudo:
        return max(without_pseudo, key=lambda item: item[0])[1]

    best = non_empty[0][1]
    best_items = total_items(best)
    for _idx, cov in non_empty[1:]:
        items = total_items(cov)
        if items < best_items:
            best, best_items = cov, items
    return best
