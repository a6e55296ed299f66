"""Core types for coverage-map reconciliation.

Coverage artifacts stay plain JSON-shaped dicts end to end (they are read
from and written back to ``coverage-final.json`` verbatim); the aliases
below only name their shapes. Derived, transient structures are frozen
dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeAlias


Location: TypeAlias = dict[str, Any]
FileCoverage: TypeAlias = dict[str, Any]
CoverageMap: TypeAlias = dict[str, FileCoverage]
BranchCounts: TypeAlias = list[int]

RECORD_MAP_FIELDS: tuple[str, ...] = (
    "statementMap",
    "s",
    "fnMap",
    "f",
    "branchMap",
    "b",
)


class CoverageFormatError(ValueError):
    """Raised when a coverage artifact cannot be parsed as a coverage map."""


@dataclass(frozen=True, slots=True)
class LookupIndex:
    """Per-record count lookups keyed by exact location and by line.

    Only entries with at least one nonzero count are present.
    """

    stmts: dict[str, int]
    stmts_by_line: dict[int, int]
    fns: dict[str, int]
    fns_by_line: dict[int, int]
    branches: dict[str, BranchCounts]
    branches_by_line: dict[int, BranchCounts]


@dataclass(frozen=True, slots=True)
class NormalizeResult:
    """Outcome of normalizing one coverage map (mutated in place)."""

    coverage_map: CoverageMap
    imports_removed: int = 0
    directives_removed: int = 0


@dataclass(frozen=True, slots=True)
class CategorySummary:
    """Covered/total counts for one coverage category."""

    covered: int
    total: int
    pct: float

    @property
    def skipped(self) -> int:
        return 0

    def to_dict(self) -> dict[str, int | float]:
        return {
            "total": self.total,
            "covered": self.covered,
            "skipped": self.skipped,
            "pct": self.pct,
        }


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Statements/branches/functions/lines summary for a file or a map."""

    statements: CategorySummary
    branches: CategorySummary
    functions: CategorySummary
    lines: CategorySummary
    file_count: int = 0

    def to_dict(self) -> dict[str, dict[str, int | float]]:
        return {
            "statements": self.statements.to_dict(),
            "branches": self.branches.to_dict(),
            "functions": self.functions.to_dict(),
            "lines": self.lines.to_dict(),
        }
