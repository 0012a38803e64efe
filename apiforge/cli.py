# File: apiforge/cli.py
"""
NexaFlow APIForge - Command-Line Interface
===========================================

Thin ``argparse`` wrapper around ``APIGenerator``.

Usage examples::

    # Basic generation
    python -m apiforge --schema project.yaml --output ./service

    # Switch backend and auth strategy, replace an existing tree
    python -m apiforge -s project.yaml -o ./service \\
        --backend sqlite --auth token --overwrite

    # Also emit the TypeScript frontend
    python -m apiforge -s project.yaml -o ./service --frontend

    # Validate only (no file output)
    python -m apiforge -s project.yaml --validate-only

Exit codes:
    0  success
    1  validation error
    2  generation error
    3  export error
    4  input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from apiforge.models import AuthStrategy, DatabaseBackend, OverwritePolicy

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_EXPORT_ERROR: int = 3
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``apiforge`` logger.

    Args:
        verbosity: -1 = silent, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    fmt: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
    handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    root_logger: logging.Logger = logging.getLogger("apiforge")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False
    root_logger.disabled = verbosity < 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from apiforge import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="apiforge",
        description=(
            "NexaFlow APIForge: project graph to backend service generator.\n\n"
            "Turns an entity/relationship/endpoint description (JSON/YAML) into "
            "a FastAPI + SQLAlchemy 2.0 service with SQL migrations."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s project.yaml -o ./service\n"
            "  %(prog)s -s project.yaml -o ./service --backend sqlite --overwrite\n"
            "  %(prog)s -s project.yaml --validate-only\n"
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"NexaFlow APIForge v{__version__}",
    )
    parser.add_argument(
        "-s", "--schema",
        type=str,
        required=True,
        metavar="PATH",
        help="Path to the project document (JSON or YAML).",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Output directory (defaults to the document's generator.output_root).",
    )

    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate the graph without generating code.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline but don't write files to disk.",
    )

    config_group = parser.add_argument_group("configuration overrides")
    config_group.add_argument(
        "--backend",
        type=str,
        default=None,
        choices=[b.value for b in DatabaseBackend],
        help="Override the database backend.",
    )
    config_group.add_argument(
        "--auth",
        type=str,
        default=None,
        choices=[a.value for a in AuthStrategy],
        help="Override the authentication strategy.",
    )
    config_group.add_argument(
        "--package-name",
        type=str,
        default=None,
        metavar="NAME",
        help="Override the generated Python package name.",
    )
    config_group.add_argument(
        "--frontend",
        action="store_true",
        default=None,
        help="Also emit the TypeScript frontend.",
    )
    config_group.add_argument(
        "--no-migrations",
        action="store_true",
        default=False,
        help="Skip SQL migration files.",
    )

    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--overwrite",
        action="store_true",
        default=False,
        help="Replace a non-empty output directory.",
    )
    behaviour_group.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="Run generators in a thread pool.",
    )
    behaviour_group.add_argument(
        "--fail-on-warnings",
        action="store_true",
        default=False,
        help="Treat validation warnings as errors.",
    )

    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except the final report.",
    )
    return parser


# ---------------------------------------------------------------------------
# Config override builder
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI flags onto ``GeneratorConfig`` fields."""
    overrides: Dict[str, Any] = {}
    if args.backend is not None:
        overrides["backend"] = args.backend
    if args.auth is not None:
        overrides["auth_strategy"] = args.auth
    if args.frontend:
        overrides["frontend"] = True
    if args.no_migrations:
        overrides["generate_migrations"] = False
    if args.overwrite:
        overrides["overwrite"] = OverwritePolicy.OVERWRITE.value
    if args.parallel:
        overrides["parallel"] = True
    if args.output is not None:
        overrides["output_root"] = args.output
    return overrides


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(schema_path: Path, args: argparse.Namespace) -> int:
    """Load, apply overrides and validate; print a short report."""
    from apiforge.generator import apply_overrides, load_schema_file, parse_raw_schema
    from apiforge.models import GeneratorConfig
    from apiforge.utils import Timer
    from apiforge.validators import validate_graph

    logger.info("Running validation-only mode for: %s", schema_path)
    try:
        raw: Dict[str, Any] = load_schema_file(schema_path)
        graph, config = parse_raw_schema(raw)
        overrides: Dict[str, Any] = _build_config_overrides(args)
        if overrides:
            config = GeneratorConfig.model_validate({**config.model_dump(), **overrides})
        graph = apply_overrides(graph, config, package_name=args.package_name)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Failed to load document: %s", exc)
        print(f"✗ {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    with Timer("validation") as t:
        result = validate_graph(graph)

    print(f"\n{'='*50}")
    print("  Graph Validation Report")
    print(f"{'='*50}")
    print(f"  File:      {schema_path.name}")
    print(f"  Entities:  {len(graph.entities)}")
    print(f"  Time:      {t.elapsed:.3f}s")
    print(f"  Valid:     {'Yes' if result.is_valid else 'No'}")
    print(result.format_report())
    if result.is_valid and not result.has_warnings:
        print("\n  ✅ All validations passed!")
    print(f"{'='*50}\n")

    if not result.is_valid:
        return EXIT_VALIDATION_ERROR
    if args.fail_on_warnings and result.has_warnings:
        return EXIT_VALIDATION_ERROR
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Full generation mode
# ---------------------------------------------------------------------------


def _run_generation(schema_path: Path, args: argparse.Namespace) -> int:
    """Run the full pipeline and map the report onto an exit code."""
    from apiforge.generator import APIGenerator, GenerationReport

    generator: APIGenerator = APIGenerator(
        fail_on_warnings=args.fail_on_warnings,
        dry_run=args.dry_run,
    )
    if args.dry_run:
        logger.info("Dry-run mode: files will not be written to disk.")

    output_dir: Optional[Path] = Path(args.output).resolve() if args.output else None
    overrides: Dict[str, Any] = _build_config_overrides(args)
    report: GenerationReport = generator.generate_from_file(
        schema_path=schema_path,
        output_dir=output_dir,
        config_overrides=overrides or None,
        package_name=args.package_name,
    )
    print(report.summary())

    if args.dry_run and report.output is not None:
        for path in report.output.files:
            print(f"  {path}")

    if report.success:
        return EXIT_SUCCESS
    if report.validation_errors:
        return EXIT_VALIDATION_ERROR
    if report.export_errors:
        return EXIT_EXPORT_ERROR
    return EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or directly for testing; always
    exits through ``sys.exit``.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    schema_path: Path = Path(args.schema).resolve()
    if not schema_path.is_file():
        logger.error("Schema file not found: %s", schema_path)
        print(f"✗ Schema file not found: {schema_path}", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    if args.package_name is not None and not args.package_name.isidentifier():
        print(f"✗ --package-name must be a Python identifier, got {args.package_name!r}.", file=sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    if args.validate_only:
        sys.exit(_run_validate_only(schema_path, args))

    logger.info("Schema:  %s", schema_path)
    logger.info("Output:  %s", args.output or "(from document)")

    try:
        exit_code: int = _run_generation(schema_path, args)
    except PydanticValidationError as exc:
        logger.error("Invalid option: %s", exc)
        print(f"✗ {exc}", file=sys.stderr)
        exit_code = EXIT_INPUT_ERROR

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)
    sys.exit(exit_code)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_EXPORT_ERROR",
    "EXIT_INPUT_ERROR",
]

logger.debug("apiforge.cli loaded.")
