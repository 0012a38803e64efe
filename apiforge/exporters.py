# File: apiforge/exporters.py
"""
NexaFlow APIForge - Project Exporter (File-System Writer)
==========================================================

Writes an assembled file set to disk as one unit:

    1. Stage every file in a sibling temporary directory.
    2. Write ``manifest.json`` (size, line count and SHA-256 per file).
    3. Make the staged tree visible with ``os.replace``.

With ``OverwritePolicy.FAIL`` an existing non-empty destination is
refused. With ``OverwritePolicy.OVERWRITE`` the old tree is moved aside,
the staged tree swapped in, and the old tree removed only after the swap
succeeded. Any failure or cancellation removes the staging directory and
leaves the destination exactly as it was.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Tuple

from apiforge.errors import ExportError, ForgeError, GenerationCancelled
from apiforge.models import OverwritePolicy
from apiforge.utils import Timer, count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.exporters")

MANIFEST_NAME: str = "manifest.json"


# ---------------------------------------------------------------------------
# Data classes for export results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single exported file."""

    relative_path: str
    size_bytes: int
    line_count: int
    sha256: str


@dataclass(frozen=False, slots=True)
class ExportManifest:
    """
    Complete manifest of all exported files.

    Serialisable to JSON for build reproducibility verification.
    """

    project_name: str = ""
    generator_version: str = ""
    export_timestamp: str = ""
    total_files: int = 0
    total_bytes: int = 0
    total_lines: int = 0
    files: List[FileRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert manifest to a JSON-serialisable dictionary."""
        return {
            "project_name": self.project_name,
            "generator_version": self.generator_version,
            "export_timestamp": self.export_timestamp,
            "total_files": self.total_files,
            "total_bytes": self.total_bytes,
            "total_lines": self.total_lines,
            "files": [
                {
                    "relative_path": f.relative_path,
                    "size_bytes": f.size_bytes,
                    "line_count": f.line_count,
                    "sha256": f.sha256,
                }
                for f in self.files
            ],
        }

    def to_json(self, indent_size: int = 2) -> str:
        """Serialise manifest to pretty-printed JSON."""
        return json.dumps(self.to_dict(), indent=indent_size, ensure_ascii=False) + "\n"


@dataclass(frozen=True, slots=True)
class ExportResult:
    """
    Final result returned by ``ProjectExporter.export()``.

    Includes success flag, manifest, and any errors encountered.
    """

    success: bool
    output_directory: str
    manifest: ExportManifest
    errors: Tuple[str, ...]
    warnings: Tuple[str, ...]
    elapsed_seconds: float


def _safe_relative(rel_path: str) -> PurePosixPath:
    """Reject absolute paths and ``..`` segments."""
    pure: PurePosixPath = PurePosixPath(rel_path)
    if pure.is_absolute() or ".." in pure.parts or not pure.parts:
        raise ExportError("Refusing to write outside the output directory.", path=rel_path)
    return pure


# ---------------------------------------------------------------------------
# ProjectExporter class
# ---------------------------------------------------------------------------


class ProjectExporter:
    """
    Writes a ``path → content`` mapping under *output_dir*.

    Usage::

        exporter = ProjectExporter(Path("./generated"), overwrite="overwrite")
        result = exporter.export(output.files)
        print(result.manifest.to_json())

    Thread-safety: NOT thread-safe. Use one exporter per output directory.
    """

    def __init__(
        self,
        output_dir: Path,
        *,
        overwrite: str = OverwritePolicy.FAIL.value,
        project_name: str = "",
        generate_manifest: bool = True,
    ) -> None:
        self._output_dir: Path = Path(output_dir).resolve()
        self._overwrite: str = str(getattr(overwrite, "value", overwrite))
        self._project_name: str = project_name
        self._generate_manifest: bool = generate_manifest

        self._errors: List[str] = []
        self._warnings: List[str] = []
        self._file_records: List[FileRecord] = []

        logger.debug(
            "ProjectExporter initialised: output_dir=%s, overwrite=%s.",
            self._output_dir,
            self._overwrite,
        )

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def export(
        self,
        files: Mapping[str, str],
        cancel_event: Optional[threading.Event] = None,
    ) -> ExportResult:
        """
        Write *files* to the output directory, all or nothing.

        Returns:
            ExportResult with success flag, manifest, and error details.
        """
        self._errors = []
        self._warnings = []
        self._file_records = []
        staging: Optional[Path] = None

        with Timer("export") as timer:
            try:
                self._check_destination()
                staging = self._create_staging()
                self._write_files(staging, files, cancel_event)
                if self._generate_manifest:
                    self._write_manifest(staging)
                self._checkpoint(cancel_event)
                self._swap_in(staging)
                staging = None
            except (ForgeError, OSError) as exc:
                error_msg: str = f"Export failed: {exc}"
                self._errors.append(error_msg)
                logger.error(error_msg)
            finally:
                if staging is not None:
                    shutil.rmtree(staging, ignore_errors=True)
                    logger.debug("Removed staging directory %s.", staging)

        manifest: ExportManifest = self._build_manifest()
        success: bool = not self._errors
        if success:
            logger.info(
                "Export completed: %d files, %d bytes to %s in %.3fs.",
                manifest.total_files,
                manifest.total_bytes,
                self._output_dir,
                timer.elapsed,
            )
        return ExportResult(
            success=success,
            output_directory=str(self._output_dir),
            manifest=manifest,
            errors=tuple(self._errors),
            warnings=tuple(self._warnings),
            elapsed_seconds=timer.elapsed,
        )

    # -----------------------------------------------------------------
    # Internal: destination and staging
    # -----------------------------------------------------------------

    @staticmethod
    def _checkpoint(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled("Export cancelled; destination left untouched.")

    def _check_destination(self) -> None:
        target: Path = self._output_dir
        if target.exists() and not target.is_dir():
            raise ExportError("Output path exists and is not a directory.", path=str(target))
        if (
            self._overwrite == OverwritePolicy.FAIL.value
            and target.is_dir()
            and any(target.iterdir())
        ):
            raise ExportError(
                "Output directory is not empty; use the overwrite policy to replace it.",
                path=str(target),
            )

    def _create_staging(self) -> Path:
        parent: Path = self._output_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        staging: Path = Path(
            tempfile.mkdtemp(dir=str(parent), prefix=f".{self._output_dir.name}.staging-")
        )
        logger.debug("Staging export in %s.", staging)
        return staging

    def _swap_in(self, staging: Path) -> None:
        """Move the staged tree into place; the old tree goes only after success."""
        target: Path = self._output_dir
        backup: Optional[Path] = None

        if target.is_dir():
            if any(target.iterdir()):
                backup = Path(
                    tempfile.mkdtemp(dir=str(target.parent), prefix=f".{target.name}.old-")
                )
                os.rmdir(backup)
                os.replace(target, backup)
            else:
                os.rmdir(target)

        try:
            os.replace(staging, target)
        except OSError:
            if backup is not None:
                os.replace(backup, target)
            raise

        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)
            self._warnings.append(f"Replaced the previous contents of {target}.")
            logger.debug("Replaced previous tree at %s.", target)

    # -----------------------------------------------------------------
    # Internal: file writing
    # -----------------------------------------------------------------

    def _write_files(
        self,
        staging: Path,
        files: Mapping[str, str],
        cancel_event: Optional[threading.Event],
    ) -> None:
        for rel_path, content in files.items():
            self._checkpoint(cancel_event)
            self._file_records.append(self._write_single_file(staging, rel_path, content))
        logger.info("Staged %d generated files.", len(self._file_records))

    def _write_single_file(self, root: Path, rel_path: str, content: str) -> FileRecord:
        full_path: Path = root.joinpath(*_safe_relative(rel_path).parts)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        encoded: bytes = content.encode("utf-8")
        full_path.write_bytes(encoded)
        logger.debug("Wrote file: %s (%d bytes).", rel_path, len(encoded))
        return FileRecord(
            relative_path=rel_path,
            size_bytes=len(encoded),
            line_count=count_lines(content),
            sha256=sha256_hex(content),
        )

    # -----------------------------------------------------------------
    # Internal: manifest
    # -----------------------------------------------------------------

    def _build_manifest(self) -> ExportManifest:
        import apiforge

        return ExportManifest(
            project_name=self._project_name,
            generator_version=apiforge.__version__,
            export_timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            total_files=len(self._file_records),
            total_bytes=sum(r.size_bytes for r in self._file_records),
            total_lines=sum(r.line_count for r in self._file_records),
            files=list(self._file_records),
        )

    def _write_manifest(self, staging: Path) -> None:
        manifest_path: Path = staging / MANIFEST_NAME
        manifest_path.write_text(self._build_manifest().to_json(), encoding="utf-8")
        logger.debug("Wrote manifest to %s.", manifest_path)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "MANIFEST_NAME",
    "ProjectExporter",
    "ExportManifest",
    "ExportResult",
    "FileRecord",
]

logger.debug("apiforge.exporters loaded.")
