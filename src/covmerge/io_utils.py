"""JSON I/O for coverage artifacts and sidecar files, backed by orjson."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson

from covmerge.coverage_types import RECORD_MAP_FIELDS, CoverageFormatError, CoverageMap


def load_json(path: Path) -> Any:
    """Load JSON from a file."""
    return orjson.loads(path.read_bytes())


def save_json(
    obj: Any,
    path: Path,
    *,
    pretty: bool = True,
    sort_keys: bool = True,
) -> None:
    """Save an object as JSON, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    opts = 0
    if pretty:
        opts |= orjson.OPT_INDENT_2
    if sort_keys:
        opts |= orjson.OPT_SORT_KEYS
    path.write_bytes(orjson.dumps(obj, option=opts))


def dumps_pretty(obj: Any) -> bytes:
    return orjson.dumps(obj, option=orjson.OPT_INDENT_2)


def _is_count(value: Any) -> bool:
    return value is None or (isinstance(value, (int, float)) and not isinstance(value, bool))


def _check_location(loc: Any, *, required: bool) -> str | None:
    """Return a problem description for a location object, or None."""
    if loc is None and not required:
        return None
    if not isinstance(loc, dict):
        return "location must be an object"
    start = loc.get("start")
    if not isinstance(start, dict):
        return "location start must be an object"
    if not _is_count(start.get("line")):
        return "location start line must be a number"
    return None


def _entry_problem(record: dict[str, Any]) -> tuple[str, str] | None:
    """First malformed ``(field[key], problem)`` in a file record, if any."""
    for key, loc in (record.get("statementMap") or {}).items():
        problem = _check_location(loc, required=True)
        if problem:
            return f"statementMap[{key!r}]", problem
    for map_field, loc_field in (("fnMap", "loc"), ("branchMap", "loc")):
        for key, entry in (record.get(map_field) or {}).items():
            if not isinstance(entry, dict):
                return f"{map_field}[{key!r}]", "entry must be an object"
            problem = _check_location(entry.get(loc_field), required=False)
            if problem:
                return f"{map_field}[{key!r}].{loc_field}", problem
    for count_field in ("s", "f"):
        for key, count in (record.get(count_field) or {}).items():
            if not _is_count(count):
                return f"{count_field}[{key!r}]", "count must be a number"
    for key, counts in (record.get("b") or {}).items():
        if counts is None:
            continue
        if not isinstance(counts, list) or not all(_is_count(c) for c in counts):
            return f"b[{key!r}]", "counts must be a list of numbers"
    return None


def validate_coverage_map(data: Any, *, source: str = "<memory>") -> CoverageMap:
    """Check that ``data`` has the shape of a coverage map and return it.

    Entries, locations and counts are checked deeply enough that the merge
    never meets a value it cannot read. Raises CoverageFormatError naming
    ``source``, the offending file key and the bad field.
    """
    if not isinstance(data, dict):
        raise CoverageFormatError(
            f"Invalid coverage map in {source}: expected an object, "
            f"got {type(data).__name__}"
        )
    for file_path, record in data.items():
        if not isinstance(record, dict):
            raise CoverageFormatError(
                f"Invalid coverage entry {file_path!r} in {source}: expected an object"
            )
        for field_name in RECORD_MAP_FIELDS:
            value = record.get(field_name)
            if value is not None and not isinstance(value, dict):
                raise CoverageFormatError(
                    f"Invalid coverage entry {file_path!r} in {source}: "
                    f"{field_name} must be an object"
                )
        problem = _entry_problem(record)
        if problem is not None:
            where, what = problem
            raise CoverageFormatError(
                f"Invalid coverage entry {file_path!r} in {source}: {where} {what}"
            )
    return data


def load_coverage_map(path: Path) -> CoverageMap:
    """Load and validate a ``coverage-final.json`` style artifact."""
    try:
        data = load_json(path)
    except orjson.JSONDecodeError as exc:
        raise CoverageFormatError(f"Malformed coverage JSON in {path}: {exc}") from exc
    return validate_coverage_map(data, source=str(path))


def save_coverage_map(coverage_map: CoverageMap, path: Path) -> None:
    # Key order is preserved; id iteration order feeds later merges.
    save_json(coverage_map, path, pretty=True, sort_keys=False)
