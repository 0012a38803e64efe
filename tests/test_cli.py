"""
tests/test_cli.py
Tests for the APIGenerator orchestrator and the ``apiforge`` command line:
reports, dry runs, exports and the exit-code contract.
"""

from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, Dict, List

import pytest
import yaml

from apiforge.cli import (
    EXIT_EXPORT_ERROR,
    EXIT_GENERATION_ERROR,
    EXIT_INPUT_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    cli_main,
)
from apiforge.exporters import MANIFEST_NAME
from apiforge.generator import APIGenerator, load_schema_file, parse_raw_schema
from apiforge.models import GeneratorConfig, ProjectGraph


@pytest.fixture(autouse=True)
def _restore_logging() -> Any:
    """cli_main reconfigures the package logger; undo it after each test."""
    yield
    package_logger = logging.getLogger("apiforge")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.disabled = False
    package_logger.setLevel(logging.NOTSET)


def _run(argv: List[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        cli_main(argv)
    return exc_info.value.code


def _write_yaml(path: pathlib.Path, data: Dict[str, Any]) -> pathlib.Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoading:
    def test_yaml_and_json(self, tmp_path: pathlib.Path, minimal_schema_dict: Dict[str, Any]) -> None:
        as_json = tmp_path / "doc.json"
        as_json.write_text(json.dumps(minimal_schema_dict), encoding="utf-8")
        as_yaml = _write_yaml(tmp_path / "doc.yml", minimal_schema_dict)
        assert load_schema_file(as_json) == load_schema_file(as_yaml) == minimal_schema_dict

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_schema_file(tmp_path / "nope.yaml")

    def test_non_mapping_document(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_schema_file(path)

    def test_document_without_entities(self) -> None:
        with pytest.raises(ValueError, match="entities"):
            parse_raw_schema({"project": {"name": "x"}})

    def test_invalid_generator_section(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["generator"] = {"indent_size": 99}
        with pytest.raises(ValueError, match="Generator config"):
            parse_raw_schema(minimal_schema_dict)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class TestAPIGenerator:
    def test_full_pipeline(self, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "service"
        report = APIGenerator().generate_from_file(schema_yaml_path, target)
        assert report.success, report.summary()
        assert report.project_name == "blog_api"
        assert report.total_entities_processed == 3
        assert report.total_files == len(report.files)
        assert (target / "blog" / "main.py").is_file()
        assert (target / MANIFEST_NAME).is_file()
        steps = [m.step_name for m in report.step_metrics]
        assert steps == ["Load Schema File", "Validate Graph", "Code Generation", "Export to Filesystem"]
        assert "SUCCESS" in report.summary()

    def test_dry_run_writes_nothing(self, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "service"
        report = APIGenerator(dry_run=True).generate_from_file(schema_yaml_path, target)
        assert report.success
        assert "blog/main.py" in report.files
        assert report.export is None
        assert not target.exists()

    def test_validate_only(self, blog_graph: ProjectGraph, tmp_path: pathlib.Path) -> None:
        report = APIGenerator(validate_only=True).generate(blog_graph, GeneratorConfig(), tmp_path / "x")
        assert report.success
        assert report.output is None

    def test_config_overrides(self, schema_yaml_path: pathlib.Path) -> None:
        report = APIGenerator(dry_run=True).generate_from_file(
            schema_yaml_path,
            config_overrides={"backend": "sqlite"},
            package_name="press",
        )
        assert report.success, report.summary()
        assert "press/main.py" in report.files
        assert "aiosqlite" in report.files["requirements.txt"]

    def test_invalid_graph_is_reported(self, blog_graph: ProjectGraph, tmp_path: pathlib.Path) -> None:
        report = APIGenerator().generate(
            blog_graph, GeneratorConfig(auth_strategy="none"), tmp_path / "x"
        )
        assert not report.success
        assert report.validation_errors
        assert report.output is None
        assert not (tmp_path / "x").exists()

    def test_fail_on_warnings(self, minimal_schema_dict: Dict[str, Any], tmp_path: pathlib.Path) -> None:
        minimal_schema_dict["endpoints"] = []
        graph, config = parse_raw_schema(minimal_schema_dict)
        lenient = APIGenerator(dry_run=True).generate(graph, config, tmp_path / "x")
        strict = APIGenerator(fail_on_warnings=True, dry_run=True).generate(graph, config, tmp_path / "x")
        assert lenient.success
        assert lenient.validation_warnings
        assert not strict.success
        assert any("fail_on_warnings" in e for e in strict.validation_errors)

    def test_load_error_is_a_generation_error(self, tmp_path: pathlib.Path) -> None:
        report = APIGenerator().generate_from_file(tmp_path / "missing.yaml", tmp_path / "x")
        assert not report.success
        assert report.generation_errors
        assert report.step_metrics[0].success is False


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


class TestCommandLine:
    def test_generate(self, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        target = tmp_path / "service"
        assert _run(["-s", str(schema_yaml_path), "-o", str(target)]) == EXIT_SUCCESS
        assert (target / "blog" / "routes" / "post.py").is_file()

    def test_existing_output_needs_overwrite(
        self, schema_yaml_path: pathlib.Path, tmp_path: pathlib.Path
    ) -> None:
        target = tmp_path / "service"
        assert _run(["-s", str(schema_yaml_path), "-o", str(target)]) == EXIT_SUCCESS
        assert _run(["-s", str(schema_yaml_path), "-o", str(target)]) == EXIT_EXPORT_ERROR
        assert _run(["-s", str(schema_yaml_path), "-o", str(target), "--overwrite"]) == EXIT_SUCCESS

    def test_dry_run_lists_paths(
        self,
        schema_yaml_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        target = tmp_path / "service"
        assert _run(["-s", str(schema_yaml_path), "-o", str(target), "--dry-run"]) == EXIT_SUCCESS
        assert "blog/main.py" in capsys.readouterr().out
        assert not target.exists()

    def test_validate_only(
        self, schema_yaml_path: pathlib.Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert _run(["-s", str(schema_yaml_path), "--validate-only"]) == EXIT_SUCCESS
        assert "Graph Validation Report" in capsys.readouterr().out

    def test_validation_error(self, schema_yaml_path: pathlib.Path) -> None:
        assert _run(["-s", str(schema_yaml_path), "--validate-only", "--auth", "none"]) == (
            EXIT_VALIDATION_ERROR
        )
        assert _run(["-s", str(schema_yaml_path), "--dry-run", "--auth", "none"]) == (
            EXIT_VALIDATION_ERROR
        )

    def test_fail_on_warnings(self, tmp_path: pathlib.Path, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"] = []
        path = _write_yaml(tmp_path / "doc.yaml", minimal_schema_dict)
        assert _run(["-s", str(path), "--validate-only"]) == EXIT_SUCCESS
        assert _run(["-s", str(path), "--validate-only", "--fail-on-warnings"]) == EXIT_VALIDATION_ERROR

    def test_unloadable_document(self, tmp_path: pathlib.Path) -> None:
        path = _write_yaml(tmp_path / "doc.yaml", {"project": {"name": "empty"}})
        assert _run(["-s", str(path), "--dry-run"]) == EXIT_GENERATION_ERROR
        assert _run(["-s", str(path), "--validate-only"]) == EXIT_INPUT_ERROR

    def test_missing_schema(self, tmp_path: pathlib.Path) -> None:
        assert _run(["-s", str(tmp_path / "missing.yaml")]) == EXIT_INPUT_ERROR

    def test_bad_package_name(self, schema_yaml_path: pathlib.Path) -> None:
        assert _run(["-s", str(schema_yaml_path), "--package-name", "my-app"]) == EXIT_INPUT_ERROR

    def test_version_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert _run(["--version"]) == 0
        assert "APIForge" in capsys.readouterr().out
