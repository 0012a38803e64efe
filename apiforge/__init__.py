# File: apiforge/__init__.py
"""
NexaFlow APIForge: Project Graph to Backend Service Generator
===============================================================

Turns a validated project graph (entities, fields, relationships, endpoint
groups, project configuration) into the complete source tree of a runnable
FastAPI + SQLAlchemy 2.0 service, with raw SQL migrations and an optional
TypeScript frontend.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│  APIGenerator  │────▶│ ProjectExporter  │
    │   (cli.py)   │     │ (generator.py) │     │  (exporters.py)  │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │ generate_project
            ┌─────────────┬──────┴──────┬──────────────┐
            ▼             ▼             ▼              ▼
      ┌──────────┐  ┌──────────┐  ┌────────────┐  ┌───────────┐
      │validators│─▶│ analyzer │─▶│ generators │─▶│ assembler │
      └──────────┘  └──────────┘  └────────────┘  └───────────┘

Usage::

    # As a library
    from apiforge import generate_project, parse_raw_schema
    graph, config = parse_raw_schema(document)
    output = generate_project(graph, config)

    # From the command line
    python -m apiforge --schema project.yaml --output ./service -v
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "NexaFlow Team"
__license__: str = "MIT"

from apiforge.analyzer import AnalysisResult, analyze
from apiforge.assembler import FileAssembler
from apiforge.errors import (
    DependencyCycleError,
    ExportError,
    ForgeError,
    GenerationCancelled,
    GenerationError,
    GraphValidationError,
    TypeMappingError,
)
from apiforge.exporters import ExportManifest, ExportResult, ProjectExporter
from apiforge.generator import (
    APIGenerator,
    GenerationReport,
    generate_project,
    load_schema_file,
    parse_raw_schema,
)
from apiforge.models import (
    AuthStrategy,
    DatabaseBackend,
    DataType,
    Entity,
    EntityField,
    EndpointGroup,
    GenerationOutput,
    GeneratorConfig,
    ProjectConfig,
    ProjectGraph,
    Relationship,
)
from apiforge.type_mapper import TypeMapper, map_type
from apiforge.validators import ValidationResult, validate, validate_graph

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Engine and orchestrator
    "generate_project",
    "APIGenerator",
    "GenerationReport",
    "load_schema_file",
    "parse_raw_schema",
    # Graph model
    "AuthStrategy",
    "DatabaseBackend",
    "DataType",
    "Entity",
    "EntityField",
    "EndpointGroup",
    "GenerationOutput",
    "GeneratorConfig",
    "ProjectConfig",
    "ProjectGraph",
    "Relationship",
    # Pipeline stages
    "validate",
    "validate_graph",
    "ValidationResult",
    "analyze",
    "AnalysisResult",
    "TypeMapper",
    "map_type",
    "FileAssembler",
    # Writer
    "ProjectExporter",
    "ExportManifest",
    "ExportResult",
    # Errors
    "ForgeError",
    "GraphValidationError",
    "DependencyCycleError",
    "TypeMappingError",
    "GenerationError",
    "GenerationCancelled",
    "ExportError",
]
