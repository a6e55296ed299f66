"""Tests for covmerge.run_manifest utilities."""
from __future__ import annotations

import re
from pathlib import Path

import pytest

from covmerge.io_utils import save_json
from covmerge.run_manifest import (
    MANIFEST_FILENAME,
    build_manifest,
    generate_run_id,
    git_commit_hash,
    load_manifest,
    write_manifest,
)


def _manifest(run_id: str) -> dict[str, object]:
    return build_manifest(
        run_id=run_id,
        loaded_dirs=["/cov/unit", "/cov/browser"],
        skipped_dirs=["/cov/e2e"],
        normalize=True,
        reporters=["json"],
        imports_removed=3,
        directives_removed=1,
        summary={"statements": {"total": 4, "covered": 2, "skipped": 0, "pct": 50.0}},
        total_files=2,
        timings_sec={"total": 0.5},
        git_commit="deadbeef",
    )


def test_generate_run_id_format() -> None:
    run_id = generate_run_id()
    assert re.fullmatch(r"merge_\d{8}T\d{6}Z_[0-9a-f]{8}", run_id)
    assert generate_run_id("nightly").startswith("nightly_")


def test_write_and_load_manifest(tmp_path: Path) -> None:
    run_id = generate_run_id("test_run")
    path = write_manifest(tmp_path, _manifest(run_id))
    assert path == tmp_path / MANIFEST_FILENAME

    loaded = load_manifest(path)
    assert loaded["run_id"] == run_id
    assert loaded["inputs"]["skipped_dirs"] == ["/cov/e2e"]
    assert loaded["normalization"] == {"imports_removed": 3, "directives_removed": 1}
    assert loaded["git_commit"] == "deadbeef"


def test_load_manifest_rejects_non_object(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    save_json([1, 2, 3], path)
    with pytest.raises(ValueError, match="Invalid manifest payload"):
        load_manifest(path)


def test_git_commit_hash_outside_repo(tmp_path: Path) -> None:
    assert git_commit_hash(search_from=tmp_path) is None
