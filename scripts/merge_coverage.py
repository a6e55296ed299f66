#!/usr/bin/env python3
"""Merge coverage-final.json artifacts from several test runs into one.

Runs instrumented under different environments (e.g. jsdom unit tests and
real-browser component tests) count module-load lines differently, so a
plain merge double-counts or drops statements. This picks one structural
baseline per file and folds in the max execution count from every run.

Usage:
    python3 scripts/merge_coverage.py coverage/unit coverage/component \
      -o coverage/merged [--normalize]

``--normalize`` strips ESM import statements and 'use client' /
'use server' directives (read from the covered source files) before
merging. Pass the most trusted run last; it wins structural ties.

Structured JSON output goes to stdout; human messages go to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys
from importlib import metadata
from pathlib import Path

from covmerge.coverage_types import CoverageFormatError
from covmerge.io_utils import dumps_pretty
from covmerge.merge import COVERAGE_FILENAME, DEFAULT_REPORTERS, MergeOptions, merge_coverage_dirs
from covmerge.summary import format_summary_table

log = logging.getLogger("merge_coverage")


def _package_version() -> str:
    try:
        return metadata.version("covmerge")
    except metadata.PackageNotFoundError:
        # Running from a source checkout with PYTHONPATH=src
        return "unknown"


VERSION = _package_version()


def dump_json(obj: object) -> None:
    sys.stdout.buffer.write(dumps_pretty(obj))
    sys.stdout.buffer.write(b"\n")


def _validate_dirs(input_dirs: list[str]) -> tuple[list[Path], list[str]]:
    valid: list[Path] = []
    skipped: list[str] = []
    for raw in input_dirs:
        resolved = Path(raw).resolve()
        if not resolved.exists():
            log.info("Skipped (not found): %s", raw)
            skipped.append(raw)
        elif not (resolved / COVERAGE_FILENAME).is_file():
            log.info("Skipped (no %s): %s", COVERAGE_FILENAME, raw)
            skipped.append(raw)
        else:
            valid.append(resolved)
    return valid, skipped


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Merge coverage from unit, browser and e2e test runs.",
    )
    parser.add_argument(
        "input_dirs", nargs="*",
        help=f"Coverage directories to merge, each holding {COVERAGE_FILENAME}",
    )
    parser.add_argument(
        "-o", "--output", default=None,
        help="Output directory for merged coverage (required)",
    )
    parser.add_argument(
        "--normalize", action="store_true",
        help="Strip import statements and directives before merging",
    )
    parser.add_argument(
        "--reporter", action="append", default=None,
        help=f"Report to write; repeatable (default: {', '.join(DEFAULT_REPORTERS)})",
    )
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s v{VERSION}")
    if len(sys.argv) == 1:
        parser.print_help()
        sys.exit(0)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    if len(args.input_dirs) < 2:
        log.error("At least 2 coverage directories are required")
        sys.exit(1)
    if not args.output:
        log.error("Output directory is required (-o <dir>)")
        sys.exit(1)

    valid_dirs, skipped = _validate_dirs(args.input_dirs)
    if len(valid_dirs) < 2:
        log.error("Need at least 2 valid coverage directories to merge")
        sys.exit(1)

    options = MergeOptions(
        input_dirs=tuple(valid_dirs),
        output_dir=Path(args.output).resolve(),
        normalize=args.normalize,
        reporters=tuple(args.reporter or DEFAULT_REPORTERS),
    )
    try:
        report = merge_coverage_dirs(options)
    except (CoverageFormatError, OSError) as exc:
        log.error("Error merging coverage: %s", exc)
        sys.exit(1)

    print("\n" + format_summary_table(report.result.summary), file=sys.stderr)
    log.info("Merged coverage written to: %s", report.output_dir)

    payload = report.to_dict()
    payload["skipped_dirs"] = [*skipped, *payload["skipped_dirs"]]
    dump_json(payload)


if __name__ == "__main__":
    main()
