# File: apiforge/generator.py
"""
NexaFlow APIForge - Generation Engine & Orchestrator
=====================================================

Two layers live here:

``generate_project(graph, config)``
    The engine. Pure and all-or-nothing::

        ProjectGraph → validate → analyze → generators → assemble

    No filesystem access, no clock, no randomness: identical input yields
    a byte-identical ``GenerationOutput``. Any fatal error propagates.

``APIGenerator``
    The orchestrator used by the CLI. Loads a JSON/YAML document, runs the
    engine, hands the file set to ``ProjectExporter`` and summarizes every
    step in a ``GenerationReport``. Errors are recorded, not raised.

Input document layout (JSON or YAML)::

    project:        {name, version, description, author}
    config:         ProjectConfig (database, auth, package_name, ...)
    entities:       [...]
    relationships:  [...]
    endpoints:      [...]
    generator:      GeneratorConfig (optional)
"""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from apiforge.analyzer import AnalysisResult, analyze
from apiforge.assembler import FileAssembler
from apiforge.errors import ForgeError, GraphValidationError
from apiforge.exporters import ExportResult, ProjectExporter
from apiforge.generators import GENERATORS, BaseGenerator, GenerationContext
from apiforge.models import (
    GeneratedFile,
    GenerationOutput,
    GeneratorConfig,
    ProjectConfig,
    ProjectGraph,
)
from apiforge.type_mapper import TypeMapper
from apiforge.utils import Timer
from apiforge.validators import (
    ValidationResult,
    validate_generator_config,
    validate_graph,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.generator")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def apply_overrides(
    graph: ProjectGraph,
    config: GeneratorConfig,
    package_name: Optional[str] = None,
) -> ProjectGraph:
    """
    Return *graph* with the per-invocation backend, auth strategy and
    package name folded into its ``ProjectConfig``. The input graph is
    returned as-is when nothing changes.

    Raises:
        pydantic.ValidationError: an override is not a valid value.
    """
    updates: Dict[str, Any] = {}
    if config.backend is not None and config.backend != graph.config.database:
        updates["database"] = config.backend
    if config.auth_strategy is not None and config.auth_strategy != graph.config.auth.strategy:
        updates["auth"] = {**graph.config.auth.model_dump(), "strategy": config.auth_strategy}
    if package_name and package_name != graph.config.package_name:
        updates["package_name"] = package_name
    if not updates:
        return graph
    logger.debug("Applying invocation overrides: %s", sorted(updates))
    project_config: ProjectConfig = ProjectConfig.model_validate({**graph.config.model_dump(), **updates})
    return graph.model_copy(update={"config": project_config})


def build_context(
    graph: ProjectGraph,
    config: GeneratorConfig,
    cancel_event: Optional[threading.Event] = None,
) -> GenerationContext:
    """Analyze a validated graph and bundle everything generators read."""
    analysis: AnalysisResult = analyze(graph)
    backend: str = config.resolved_backend(graph)
    return GenerationContext(
        graph=graph,
        analysis=analysis,
        types=TypeMapper(graph, backend),
        backend=backend,
        auth_strategy=config.resolved_auth(graph),
        config=config,
        cancel_event=cancel_event,
    )


def _run_generators(ctx: GenerationContext) -> List[Tuple[str, List[GeneratedFile]]]:
    generators: List[BaseGenerator] = [cls(ctx) for cls in GENERATORS]

    if not ctx.config.parallel:
        results: List[Tuple[str, List[GeneratedFile]]] = []
        for generator in generators:
            ctx.checkpoint(f"generator '{generator.name}'")
            results.append((generator.name, generator.generate()))
        return results

    workers: int = min(ctx.config.max_workers, len(generators))
    logger.debug("Running %d generators on %d worker(s).", len(generators), workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="apiforge") as pool:
        futures: List[Tuple[str, Future]] = [
            (generator.name, pool.submit(generator.generate)) for generator in generators
        ]
        try:
            return [(name, future.result()) for name, future in futures]
        except BaseException:
            for _, future in futures:
                future.cancel()
            raise


def generate_project(
    graph: ProjectGraph,
    config: Optional[GeneratorConfig] = None,
    cancel_event: Optional[threading.Event] = None,
) -> GenerationOutput:
    """
    Transform a graph into the complete generated file set.

    Raises:
        GraphValidationError: the graph (after overrides) is invalid.
        TypeMappingError: a field type has no mapping on the backend.
        GenerationError: path collision or unresolved symbol.
        GenerationCancelled: *cancel_event* was set mid-run.
    """
    config = config or GeneratorConfig()
    effective: ProjectGraph = apply_overrides(graph, config)
    validation: ValidationResult = validate_graph(effective)
    if not validation.is_valid:
        raise GraphValidationError(validation)

    ctx: GenerationContext = build_context(effective, config, cancel_event)
    ctx.checkpoint("generation")

    assembler: FileAssembler = FileAssembler()
    for name, files in _run_generators(ctx):
        assembler.add(name, files)
    ctx.checkpoint("assembly")
    files: Dict[str, str] = assembler.assemble()

    warnings: List[str] = [str(w) for w in validation.warnings]
    warnings.extend(ctx.analysis.warnings())
    for warning in warnings:
        logger.warning("%s", warning)

    order: Tuple[str, ...] = tuple(e.name for e in ctx.entities_in_order())
    logger.info(
        "Generated %d file(s) for %d entities (%s, auth=%s).",
        len(files),
        len(order),
        ctx.backend,
        ctx.auth_strategy,
    )
    return GenerationOutput(
        files=files,
        warnings=tuple(warnings),
        order=order,
        deferred=tuple(edge.describe() for edge in ctx.analysis.deferred),
    )


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """
    Report produced by ``APIGenerator``: per-step timings, file metrics,
    validation findings and any errors encountered.
    """

    success: bool = False
    project_name: str = ""
    output_directory: str = ""
    dry_run: bool = False

    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    total_entities_processed: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_errors: List[str] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)
    generation_errors: List[str] = field(default_factory=list)
    export_errors: List[str] = field(default_factory=list)

    output: Optional[GenerationOutput] = None
    export: Optional[ExportResult] = None

    @property
    def files(self) -> Dict[str, str]:
        return dict(self.output.files) if self.output is not None else {}

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'='*60}")
        lines.append("  NexaFlow APIForge: Generation Report")
        lines.append(f"{'='*60}")
        lines.append(f"  Status:             {status}")
        lines.append(f"  Project:            {self.project_name}")
        lines.append(f"  Output:             {'(dry run)' if self.dry_run else self.output_directory}")
        lines.append(f"  Entities processed: {self.total_entities_processed}")
        lines.append(f"  Files generated:    {self.total_files}")
        lines.append(f"  Total lines:        {self.total_lines:,}")
        lines.append(f"  Total bytes:        {self.total_bytes:,}")
        lines.append(f"  Total time:         {self.total_elapsed_seconds:.3f}s")
        lines.append(f"{'─'*60}")

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<28s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        for title, items, icon in (
            ("Validation Errors", self.validation_errors, "✗"),
            ("Validation Warnings", self.validation_warnings, "⚠"),
            ("Generation Errors", self.generation_errors, "✗"),
            ("Export Errors", self.export_errors, "✗"),
        ):
            if items:
                lines.append(f"{'─'*60}")
                lines.append(f"  {title} ({len(items)}):")
                for item in items:
                    lines.append(f"    {icon} {item}")

        lines.append(f"{'='*60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Schema loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_schema_file(path: Path) -> Dict[str, Any]:
    """
    Load a schema document (JSON or YAML), dispatching on the extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Schema path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)
    logger.info("Unknown extension '%s'; trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except ValueError:
        return _load_yaml_file(path)


def _format_pydantic_error(exc: PydanticValidationError) -> str:
    parts: List[str] = []
    for err in exc.errors():
        location: str = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_raw_schema(raw: Dict[str, Any]) -> Tuple[ProjectGraph, GeneratorConfig]:
    """
    Parse a raw document into ``(ProjectGraph, GeneratorConfig)``.

    ``project`` (or ``meta``) holds the project metadata; ``generator``
    is optional and defaults to ``GeneratorConfig()``.

    Raises:
        ValueError: If the document is structurally invalid.
    """
    if "entities" not in raw:
        raise ValueError("Cannot find 'entities' in input document.")

    graph_data: Dict[str, Any] = {
        "meta": raw.get("project", raw.get("meta")) or {},
        "config": raw.get("config") or {},
        "entities": raw.get("entities") or [],
        "relationships": raw.get("relationships") or [],
        "endpoints": raw.get("endpoints") or [],
    }
    generator_data: Dict[str, Any] = raw.get("generator") or {}

    try:
        graph: ProjectGraph = ProjectGraph.model_validate(graph_data)
    except PydanticValidationError as exc:
        raise ValueError(f"Schema validation failed: {_format_pydantic_error(exc)}") from exc

    try:
        config: GeneratorConfig = GeneratorConfig.model_validate(generator_data)
    except PydanticValidationError as exc:
        raise ValueError(f"Generator config validation failed: {_format_pydantic_error(exc)}") from exc

    logger.debug(
        "Parsed document: %d entities, %d relationships, %d endpoint groups.",
        len(graph.entities),
        len(graph.relationships),
        len(graph.endpoints),
    )
    return graph, config


# ---------------------------------------------------------------------------
# APIGenerator orchestrator
# ---------------------------------------------------------------------------


class APIGenerator:
    """
    Pipeline orchestrator used by the CLI.

    Usage::

        generator = APIGenerator()
        report = generator.generate_from_file(
            schema_path=Path("schema.yaml"),
            output_dir=Path("./generated"),
        )
        print(report.summary())

    The generator is reusable; create once, call ``generate`` many times.
    """

    def __init__(
        self,
        *,
        fail_on_warnings: bool = False,
        dry_run: bool = False,
        validate_only: bool = False,
    ) -> None:
        self._fail_on_warnings: bool = fail_on_warnings
        self._dry_run: bool = dry_run
        self._validate_only: bool = validate_only
        logger.debug(
            "APIGenerator initialised: fail_on_warnings=%s, dry_run=%s, validate_only=%s.",
            fail_on_warnings,
            dry_run,
            validate_only,
        )

    # -----------------------------------------------------------------
    # Public: generate from file
    # -----------------------------------------------------------------

    def generate_from_file(
        self,
        schema_path: Path,
        output_dir: Optional[Path] = None,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
        package_name: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationReport:
        """
        Full pipeline: load file → validate → generate → export.

        ``config_overrides`` update the document's ``generator`` section;
        ``output_dir`` defaults to the resulting ``output_root``.
        """
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)
        started: float = time.perf_counter()

        with Timer("load_schema") as t_load:
            try:
                raw: Dict[str, Any] = load_schema_file(schema_path)
                if config_overrides:
                    generator_section: Dict[str, Any] = dict(raw.get("generator") or {})
                    generator_section.update(config_overrides)
                    raw = {**raw, "generator": generator_section}
                graph, config = parse_raw_schema(raw)
                if package_name:
                    graph = apply_overrides(graph, GeneratorConfig(), package_name=package_name)
            except (FileNotFoundError, ValueError) as exc:
                report.generation_errors.append(str(exc))
                logger.error("Could not load %s: %s", schema_path, exc)

        if report.generation_errors:
            report.step_metrics.append(GenerationStepMetric(
                step_name="Load Schema File",
                success=False,
                elapsed_seconds=t_load.elapsed,
                detail=schema_path.name,
            ))
            return self._finalise_report(report, time.perf_counter() - started)

        report.step_metrics.append(GenerationStepMetric(
            step_name="Load Schema File",
            success=True,
            elapsed_seconds=t_load.elapsed,
            detail=f"{len(graph.entities)} entities from {schema_path.name}",
        ))

        target: Path = output_dir if output_dir is not None else Path(config.output_root)
        return self._run_pipeline(graph, config, target, report, started, cancel_event)

    # -----------------------------------------------------------------
    # Public: generate from in-memory objects
    # -----------------------------------------------------------------

    def generate(
        self,
        graph: ProjectGraph,
        config: GeneratorConfig,
        output_dir: Optional[Path] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationReport:
        """Full pipeline from a pre-built graph and configuration."""
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)
        target: Path = output_dir if output_dir is not None else Path(config.output_root)
        return self._run_pipeline(graph, config, target, report, time.perf_counter(), cancel_event)

    # -----------------------------------------------------------------
    # Internal: pipeline
    # -----------------------------------------------------------------

    def _run_pipeline(
        self,
        graph: ProjectGraph,
        config: GeneratorConfig,
        output_dir: Path,
        report: GenerationReport,
        started: float,
        cancel_event: Optional[threading.Event],
    ) -> GenerationReport:
        effective: ProjectGraph = apply_overrides(graph, config)
        report.project_name = effective.meta.name
        report.output_directory = str(output_dir.resolve())

        if not self._step_validate(effective, config, report):
            return self._finalise_report(report, time.perf_counter() - started)
        if self._validate_only:
            return self._finalise_report(report, time.perf_counter() - started)

        output: Optional[GenerationOutput] = self._step_generate(effective, config, report, cancel_event)
        if output is None:
            return self._finalise_report(report, time.perf_counter() - started)

        if not self._dry_run:
            self._step_export(output, config, output_dir, report, cancel_event)

        return self._finalise_report(report, time.perf_counter() - started)

    def _step_validate(
        self,
        graph: ProjectGraph,
        config: GeneratorConfig,
        report: GenerationReport,
    ) -> bool:
        with Timer("validation") as t:
            result: ValidationResult = validate_graph(graph)
            result.merge(validate_generator_config(config))

        report.validation_errors.extend(str(e) for e in result.errors)
        report.validation_warnings.extend(str(w) for w in result.warnings)

        if result.has_errors:
            detail: str = f"{result.error_count} error(s)"
        elif result.has_warnings:
            detail = f"{result.warning_count} warning(s)"
        else:
            detail = "all checks passed"
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Graph",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))

        if result.has_errors:
            for err in result.errors:
                logger.error("  ✗ %s", err)
            return False
        if result.has_warnings:
            for warn in result.warnings:
                logger.warning("  ⚠ %s", warn)
            if self._fail_on_warnings:
                report.validation_errors.append("Warnings treated as errors (fail_on_warnings).")
                return False
        return True

    def _step_generate(
        self,
        graph: ProjectGraph,
        config: GeneratorConfig,
        report: GenerationReport,
        cancel_event: Optional[threading.Event],
    ) -> Optional[GenerationOutput]:
        output: Optional[GenerationOutput] = None
        with Timer("code_generation") as t:
            try:
                output = generate_project(graph, config, cancel_event)
            except GraphValidationError as exc:
                report.validation_errors.extend(exc.violations)
                logger.error("%s", exc)
            except ForgeError as exc:
                report.generation_errors.append(str(exc))
                logger.error("Generation failed: %s", exc)

        if output is None:
            report.step_metrics.append(GenerationStepMetric(
                step_name="Code Generation",
                success=False,
                elapsed_seconds=t.elapsed,
                detail="aborted",
            ))
            return None

        report.output = output
        report.total_entities_processed = len(output.order)
        report.total_files = output.total_files
        report.total_lines = output.total_lines
        report.total_bytes = sum(len(c.encode("utf-8")) for c in output.files.values())
        for warning in output.warnings:
            if warning not in report.validation_warnings:
                report.validation_warnings.append(warning)

        detail: str = f"{output.total_files} files, ~{output.total_lines:,} lines"
        report.step_metrics.append(GenerationStepMetric(
            step_name="Code Generation",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        logger.info("Code generation complete: %s in %.3fs.", detail, t.elapsed)
        return output

    def _step_export(
        self,
        output: GenerationOutput,
        config: GeneratorConfig,
        output_dir: Path,
        report: GenerationReport,
        cancel_event: Optional[threading.Event],
    ) -> None:
        exporter: ProjectExporter = ProjectExporter(
            output_dir,
            overwrite=config.overwrite,
            project_name=report.project_name,
        )
        result: ExportResult = exporter.export(output.files, cancel_event=cancel_event)
        report.export = result
        report.export_errors.extend(result.errors)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Export to Filesystem",
            success=result.success,
            elapsed_seconds=result.elapsed_seconds,
            detail=f"{result.manifest.total_files} files, {result.manifest.total_bytes:,} bytes",
        ))

    @staticmethod
    def _finalise_report(report: GenerationReport, total_elapsed: float) -> GenerationReport:
        report.total_elapsed_seconds = total_elapsed
        report.success = not (
            report.validation_errors or report.generation_errors or report.export_errors
        )
        return report


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "apply_overrides",
    "build_context",
    "generate_project",
    "APIGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_schema_file",
    "parse_raw_schema",
]

logger.debug("apiforge.generator loaded.")
