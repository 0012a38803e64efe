"""
tests/test_exporters.py
Tests for ProjectExporter. Real file I/O inside pytest's tmp_path.
"""

from __future__ import annotations

import json
import pathlib
import threading
from typing import Dict

import pytest

from apiforge.exporters import MANIFEST_NAME, ProjectExporter
from apiforge.utils import sha256_hex


@pytest.fixture()
def files() -> Dict[str, str]:
    return {
        "app/__init__.py": '"""App."""\n',
        "app/main.py": "app = None\n",
        "README.md": "# demo\n",
    }


class TestExport:
    def test_writes_tree_and_manifest(self, tmp_path: pathlib.Path, files: Dict[str, str]) -> None:
        target = tmp_path / "out"
        result = ProjectExporter(target, project_name="demo").export(files)
        assert result.success, result.errors
        for rel_path, content in files.items():
            assert (target / rel_path).read_text(encoding="utf-8") == content

        manifest = json.loads((target / MANIFEST_NAME).read_text(encoding="utf-8"))
        assert manifest["project_name"] == "demo"
        assert manifest["total_files"] == 3
        records = {r["relative_path"]: r for r in manifest["files"]}
        assert records["app/main.py"]["sha256"] == sha256_hex("app = None\n")
        assert records["app/main.py"]["line_count"] == 1
        assert result.manifest.total_bytes == sum(len(c.encode("utf-8")) for c in files.values())

    def test_no_staging_left_behind(self, tmp_path: pathlib.Path, files: Dict[str, str]) -> None:
        ProjectExporter(tmp_path / "out").export(files)
        assert [p.name for p in tmp_path.iterdir()] == ["out"]

    def test_manifest_can_be_skipped(self, tmp_path: pathlib.Path, files: Dict[str, str]) -> None:
        target = tmp_path / "out"
        assert ProjectExporter(target, generate_manifest=False).export(files).success
        assert not (target / MANIFEST_NAME).exists()

    def test_empty_existing_directory_is_accepted(
        self, tmp_path: pathlib.Path, files: Dict[str, str]
    ) -> None:
        target = tmp_path / "out"
        target.mkdir()
        assert ProjectExporter(target).export(files).success
        assert (target / "app" / "main.py").is_file()


class TestOverwritePolicy:
    def test_fail_policy_refuses_non_empty(
        self, tmp_path: pathlib.Path, files: Dict[str, str]
    ) -> None:
        target = tmp_path / "out"
        target.mkdir()
        (target / "keep.txt").write_text("mine", encoding="utf-8")
        result = ProjectExporter(target).export(files)
        assert not result.success
        assert "not empty" in result.errors[0]
        assert sorted(p.name for p in target.iterdir()) == ["keep.txt"]

    def test_overwrite_replaces_tree(self, tmp_path: pathlib.Path, files: Dict[str, str]) -> None:
        target = tmp_path / "out"
        target.mkdir()
        (target / "stale.txt").write_text("old", encoding="utf-8")
        result = ProjectExporter(target, overwrite="overwrite").export(files)
        assert result.success, result.errors
        assert not (target / "stale.txt").exists()
        assert (target / "README.md").is_file()
        assert result.warnings
        assert [p.name for p in tmp_path.iterdir()] == ["out"]


class TestFailureLeavesDestinationUntouched:
    def test_cancelled_export(self, tmp_path: pathlib.Path, files: Dict[str, str]) -> None:
        target = tmp_path / "out"
        target.mkdir()
        (target / "keep.txt").write_text("mine", encoding="utf-8")
        cancel = threading.Event()
        cancel.set()
        result = ProjectExporter(target, overwrite="overwrite").export(files, cancel_event=cancel)
        assert not result.success
        assert "cancelled" in result.errors[0]
        assert sorted(p.name for p in target.iterdir()) == ["keep.txt"]
        assert [p.name for p in tmp_path.iterdir()] == ["out"]

    @pytest.mark.parametrize("bad_path", ["../escape.py", "/etc/passwd"])
    def test_unsafe_path_rejected(
        self, tmp_path: pathlib.Path, files: Dict[str, str], bad_path: str
    ) -> None:
        target = tmp_path / "out"
        result = ProjectExporter(target).export({**files, bad_path: "boom\n"})
        assert not result.success
        assert "outside the output directory" in result.errors[0]
        assert not target.exists()
        assert not (tmp_path / "escape.py").exists()
