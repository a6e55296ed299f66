"""Run-manifest utilities for merge reproducibility."""
from __future__ import annotations

import subprocess
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from covmerge.io_utils import load_json, save_json

MANIFEST_VERSION = "1.0"
MANIFEST_FILENAME = "merge_manifest.json"


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format."""
    return datetime.now(UTC).isoformat()


def generate_run_id(prefix: str = "merge") -> str:
    """Generate a compact run id suitable for artifact naming."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}_{ts}_{uuid4().hex[:8]}"


def git_commit_hash(*, search_from: Path | None = None) -> str | None:
    """Best-effort current git commit hash for reproducibility metadata."""
    cwd = (search_from or Path.cwd())
    if cwd.is_file():
        cwd = cwd.parent
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    out = proc.stdout.strip()
    return out if out else None


def build_manifest(
    *,
    run_id: str,
    loaded_dirs: list[str],
    skipped_dirs: list[str],
    normalize: bool,
    reporters: list[str],
    imports_removed: int,
    directives_removed: int,
    summary: dict[str, Any],
    total_files: int,
    timings_sec: dict[str, float],
    git_commit: str | None = None,
) -> dict[str, Any]:
    """Build the manifest payload for one merge run."""
    return {
        "manifest_version": MANIFEST_VERSION,
        "created_at": utc_now_iso(),
        "run_id": run_id,
        "git_commit": git_commit,
        "inputs": {
            "loaded_dirs": list(loaded_dirs),
            "skipped_dirs": list(skipped_dirs),
        },
        "normalize": bool(normalize),
        "reporters": list(reporters),
        "normalization": {
            "imports_removed": int(imports_removed),
            "directives_removed": int(directives_removed),
        },
        "summary": summary,
        "total_files": int(total_files),
        "timings_sec": timings_sec,
    }


def write_manifest(output_dir: Path, manifest: dict[str, Any]) -> Path:
    """Write the manifest next to the merged artifacts."""
    path = output_dir / MANIFEST_FILENAME
    save_json(manifest, path, pretty=True)
    return path


def load_manifest(path: Path) -> dict[str, Any]:
    """Load a manifest from JSON."""
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid manifest payload in {path}")
    return data
