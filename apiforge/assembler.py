# File: apiforge/assembler.py
"""
NexaFlow APIForge - File Assembler
===================================
Merges every generator's ``GeneratedFile`` list into one ordered
``path → content`` mapping.

Two invariants are enforced here, both fatal:

1. No two files share a path (the error names both generators).
2. Every symbol some file ``requires`` is ``provided`` by some file, so a
   route never imports a handler that was not emitted.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set

from apiforge.errors import GenerationError
from apiforge.models import GeneratedFile

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.assembler")


class FileAssembler:
    """
    Collects generator output in call order.

    Usage::

        assembler = FileAssembler()
        assembler.add("models", model_files)
        assembler.add("routes", route_files)
        files = assembler.assemble()
    """

    def __init__(self) -> None:
        self._files: Dict[str, GeneratedFile] = {}
        self._owners: Dict[str, str] = {}

    def add(self, generator_name: str, files: Sequence[GeneratedFile]) -> None:
        """Append *files*; raise ``GenerationError`` on a path collision."""
        for generated in files:
            owner = self._owners.get(generated.path)
            if owner is not None:
                raise GenerationError(
                    f"Generators '{owner}' and '{generator_name}' both emit this path.",
                    path=generated.path,
                )
            self._files[generated.path] = generated
            self._owners[generated.path] = generator_name
        logger.debug("Assembler: %d file(s) from %s.", len(files), generator_name)

    def owner_of(self, path: str) -> str:
        return self._owners[path]

    def missing_symbols(self) -> Dict[str, List[str]]:
        """``path → unresolved symbols`` for every file with dangling requirements."""
        provided: Set[str] = set()
        for generated in self._files.values():
            provided.update(generated.provides)
        missing: Dict[str, List[str]] = {}
        for path, generated in self._files.items():
            unresolved: List[str] = sorted(generated.requires - provided)
            if unresolved:
                missing[path] = unresolved
        return missing

    def assemble(self) -> Dict[str, str]:
        """Cross-check symbols and return the ordered file mapping."""
        missing: Dict[str, List[str]] = self.missing_symbols()
        if missing:
            path, unresolved = next(iter(missing.items()))
            logger.error("Unresolved symbols in %d file(s).", len(missing))
            raise GenerationError(
                f"Requires symbol(s) no generator provides: {', '.join(unresolved)} "
                f"(emitted by '{self._owners[path]}').",
                path=path,
            )
        logger.info("Assembled %d file(s).", len(self._files))
        return {path: generated.content for path, generated in self._files.items()}

    def __len__(self) -> int:
        return len(self._files)


__all__: List[str] = ["FileAssembler"]

logger.debug("apiforge.assembler loaded.")
