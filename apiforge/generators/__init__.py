# File: apiforge/generators/__init__.py
"""
NexaFlow APIForge - Generators
===============================
One generator per output concern. ``GENERATORS`` fixes the order in which
their files are assembled, so the output is identical whether they run
sequentially or in a thread pool.
"""

from __future__ import annotations

from typing import List, Tuple, Type

from apiforge.generators.auth import AuthGenerator
from apiforge.generators.base import BaseGenerator, GenerationContext
from apiforge.generators.frontend import FrontendGenerator
from apiforge.generators.handlers import HandlerGenerator
from apiforge.generators.migrations import MigrationGenerator
from apiforge.generators.models import ModelGenerator
from apiforge.generators.project import ProjectGenerator
from apiforge.generators.routes import RouteGenerator

GENERATORS: Tuple[Type[BaseGenerator], ...] = (
    ProjectGenerator,
    ModelGenerator,
    HandlerGenerator,
    RouteGenerator,
    AuthGenerator,
    MigrationGenerator,
    FrontendGenerator,
)

__all__: List[str] = [
    "GENERATORS",
    "BaseGenerator",
    "GenerationContext",
    "ProjectGenerator",
    "ModelGenerator",
    "HandlerGenerator",
    "RouteGenerator",
    "AuthGenerator",
    "MigrationGenerator",
    "FrontendGenerator",
]
