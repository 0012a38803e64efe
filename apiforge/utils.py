# File: apiforge/utils.py
"""
NexaFlow APIForge - Shared Helpers
===================================
Small, dependency-free helpers used across the pipeline: step timing,
checksums, line counting, import-block assembly and literal quoting for
emitted source text.

Naming conversions live in ``apiforge.naming``.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Dict, List, Optional, Set

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.utils")


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string. O(n)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string. O(n)."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("analyze") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Emitted-source helpers
# ---------------------------------------------------------------------------


def build_import_block(imports: Dict[str, Set[str]]) -> str:
    """
    Build a sorted, de-duplicated import block from module → names.

        >>> build_import_block({"typing": {"List", "Optional"}, "uuid": set()})
        'from typing import List, Optional\\nimport uuid'

    Modules are sorted so the block is identical across runs.
    """
    lines: List[str] = []
    for module in sorted(imports.keys()):
        names: List[str] = sorted(imports[module])
        if names:
            lines.append(f"from {module} import {', '.join(names)}")
        else:
            lines.append(f"import {module}")
    return "\n".join(lines)


def merge_import_dicts(*dicts: Dict[str, Set[str]]) -> Dict[str, Set[str]]:
    """Merge several import dictionaries into one, unifying name sets."""
    result: Dict[str, Set[str]] = {}
    for d in dicts:
        for module, names in d.items():
            result.setdefault(module, set()).update(names)
    return result


def py_string(value: str) -> str:
    """Python string literal in double quotes."""
    escaped: str = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def py_literal(value: Any) -> str:
    """Render a JSON-like value as Python source."""
    if isinstance(value, str):
        return py_string(value)
    if isinstance(value, bool) or value is None:
        return repr(value)
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(py_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{py_string(str(k))}: {py_literal(v)}" for k, v in value.items())
        return "{" + items + "}"
    return repr(value)


def ts_string(value: str) -> str:
    """TypeScript string literal in single quotes."""
    escaped: str = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "sha256_hex",
    "count_lines",
    "Timer",
    "build_import_block",
    "merge_import_dicts",
    "py_string",
    "py_literal",
    "ts_string",
]

logger.debug("apiforge.utils loaded: %d public symbols.", len(__all__))
