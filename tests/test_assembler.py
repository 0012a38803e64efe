"""
tests/test_assembler.py
Tests for FileAssembler: path collisions and symbol cross-checking.
"""

from __future__ import annotations

import pytest

from apiforge.assembler import FileAssembler
from apiforge.errors import GenerationError
from apiforge.models import GeneratedFile


def _file(path: str, provides: tuple = (), requires: tuple = ()) -> GeneratedFile:
    return GeneratedFile(
        path=path,
        content="x = 1\n",
        provides=frozenset(provides),
        requires=frozenset(requires),
    )


class TestFileAssembler:
    def test_preserves_insertion_order(self) -> None:
        assembler = FileAssembler()
        assembler.add("project", [_file("app/main.py"), _file("app/config.py")])
        assembler.add("models", [_file("app/models/user.py")])
        files = assembler.assemble()
        assert list(files) == ["app/main.py", "app/config.py", "app/models/user.py"]
        assert len(assembler) == 3
        assert assembler.owner_of("app/models/user.py") == "models"

    def test_duplicate_path_names_both_generators(self) -> None:
        assembler = FileAssembler()
        assembler.add("models", [_file("app/models/user.py")])
        with pytest.raises(GenerationError) as exc_info:
            assembler.add("routes", [_file("app/models/user.py")])
        message = str(exc_info.value)
        assert "'models'" in message and "'routes'" in message
        assert exc_info.value.path == "app/models/user.py"

    def test_resolved_symbols(self) -> None:
        assembler = FileAssembler()
        assembler.add("handlers", [_file("app/handlers/user.py", provides=("handler:get_user",))])
        assembler.add("routes", [_file("app/routes/user.py", requires=("handler:get_user",))])
        assert assembler.missing_symbols() == {}
        assert "app/routes/user.py" in assembler.assemble()

    def test_missing_symbol_is_fatal(self) -> None:
        assembler = FileAssembler()
        assembler.add(
            "routes",
            [_file("app/routes/user.py", requires=("handler:get_user", "schema:UserResponse"))],
        )
        assert assembler.missing_symbols() == {
            "app/routes/user.py": ["handler:get_user", "schema:UserResponse"]
        }
        with pytest.raises(GenerationError) as exc_info:
            assembler.assemble()
        assert "handler:get_user" in str(exc_info.value)
        assert "'routes'" in str(exc_info.value)
