# File: apiforge/errors.py
"""
NexaFlow APIForge - Error Taxonomy
===================================
Every failure the engine can report derives from ``ForgeError``.

    ForgeError
    ├── GraphValidationError   graph invariant violations (collected, not fail-fast)
    ├── DependencyCycleError   FK cycle report (surfaced as a warning, never raised
    │                          by the engine)
    ├── TypeMappingError       DataType × backend combination without a mapping
    ├── GenerationError        generator-internal invariant broken
    │   └── GenerationCancelled
    └── ExportError            the writer could not place the file set

Generation is all-or-nothing: any fatal error aborts the whole run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Sequence

if TYPE_CHECKING:
    from apiforge.validators import ValidationResult

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.errors")


class ForgeError(Exception):
    """Base exception for all APIForge errors."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.message: str = message
        self.path: Optional[str] = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.path:
            return f"[{self.path}] {self.message}"
        return self.message


class GraphValidationError(ForgeError):
    """
    Raised when a ProjectGraph violates one or more structural invariants.

    Carries the complete ``ValidationResult`` so the caller can report
    every violation at once.
    """

    def __init__(self, result: "ValidationResult") -> None:
        self.result: "ValidationResult" = result
        errors = result.errors
        first: str = str(errors[0]) if errors else "unknown violation"
        super().__init__(
            f"Graph validation failed with {len(errors)} error(s); first: {first}"
        )

    @property
    def violations(self) -> List[str]:
        return [str(e) for e in self.result.errors]


class DependencyCycleError(ForgeError):
    """Foreign-key cycle between entities. Tolerated via deferred constraints."""

    def __init__(self, entities: Sequence[str]) -> None:
        self.entities: List[str] = list(entities)
        if len(self.entities) == 1:
            message = (
                f"Entity '{self.entities[0]}' references itself; "
                f"the constraint is added after table creation."
            )
        else:
            chain: str = " → ".join(self.entities + [self.entities[0]])
            message = (
                f"Foreign-key cycle between entities: {chain}; "
                f"cyclic constraints are added after table creation."
            )
        super().__init__(message, path="entities")


class TypeMappingError(ForgeError):
    """No mapping exists for a DataType on the selected backend."""


class GenerationError(ForgeError):
    """A generator produced inconsistent output (collision, dangling symbol, …)."""


class GenerationCancelled(GenerationError):
    """The caller cancelled generation between entity-level work units."""


class ExportError(ForgeError):
    """The file set could not be written to the destination."""


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ForgeError",
    "GraphValidationError",
    "DependencyCycleError",
    "TypeMappingError",
    "GenerationError",
    "GenerationCancelled",
    "ExportError",
]

logger.debug("apiforge.errors loaded.")
