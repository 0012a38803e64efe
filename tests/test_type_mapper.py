"""
tests/test_type_mapper.py
Tests for the DataType → physical type translation on every backend.
"""

from __future__ import annotations

import pytest

from apiforge.errors import TypeMappingError
from apiforge.models import DataType, ProjectGraph
from apiforge.type_mapper import TypeMapper, imports_of, map_type


class TestScalars:
    @pytest.mark.parametrize(
        "expr, backend, column_type",
        [
            ("string", "postgresql", "VARCHAR(255)"),
            ("text", "mysql", "LONGTEXT"),
            ("bool", "sqlite", "INTEGER"),
            ("uuid", "postgresql", "UUID"),
            ("uuid", "mysql", "CHAR(36)"),
            ("datetime", "postgresql", "TIMESTAMP WITH TIME ZONE"),
            ("json", "postgresql", "JSONB"),
            ("float64", "postgresql", "DOUBLE PRECISION"),
        ],
    )
    def test_column_types(self, expr: str, backend: str, column_type: str) -> None:
        assert map_type(DataType.parse(expr), backend).column_type == column_type

    def test_language_types(self) -> None:
        mapping = map_type(DataType.parse("uuid"), "postgresql")
        assert mapping.python_type == "UUID"
        assert mapping.typescript_type == "string"
        assert mapping.sqlalchemy_type == "Uuid"
        assert ("uuid", "UUID") in mapping.python_imports

    def test_jsonb_import_comes_from_dialect(self) -> None:
        mapping = map_type(DataType.parse("json"), "postgresql")
        assert mapping.sqlalchemy_imports == (("sqlalchemy.dialects.postgresql", "JSONB"),)

    def test_unknown_backend(self) -> None:
        with pytest.raises(TypeMappingError):
            map_type(DataType.parse("string"), "oracle")


class TestComposites:
    def test_optional(self) -> None:
        mapping = map_type(DataType.parse("optional<int32>"), "postgresql")
        assert mapping.nullable
        assert mapping.python_type == "Optional[int]"
        assert mapping.typescript_type == "number | null"
        assert mapping.column_type == "INTEGER"

    def test_nested_optional_collapses(self) -> None:
        once = map_type(DataType.parse("optional<string>"), "sqlite")
        twice = map_type(DataType.parse("optional<optional<string>>"), "sqlite")
        assert once.python_type == twice.python_type == "Optional[str]"

    def test_array_per_backend(self) -> None:
        pg = map_type(DataType.parse("array<int64>"), "postgresql")
        my = map_type(DataType.parse("array<int64>"), "mysql")
        lite = map_type(DataType.parse("array<int64>"), "sqlite")
        assert pg.column_type == "BIGINT[]"
        assert pg.sqlalchemy_type == "ARRAY(BigInteger)"
        assert my.column_type == "JSON"
        assert lite.column_type == "TEXT"
        assert pg.python_type == lite.python_type == "List[int]"

    def test_array_of_optional_parenthesizes_typescript(self) -> None:
        mapping = map_type(DataType.parse("array<optional<string>>"), "postgresql")
        assert mapping.typescript_type == "(string | null)[]"


class TestEnums:
    def test_postgres_named_type(self) -> None:
        mapping = map_type(DataType.parse("enum<PostStatus:draft,published>"), "postgresql")
        assert mapping.column_type == "post_status"
        assert mapping.enum is not None
        assert mapping.enum.variants == ("draft", "published")
        assert mapping.python_type == 'Literal["draft", "published"]'
        assert mapping.typescript_type == "'draft' | 'published'"

    def test_mysql_inline_enum(self) -> None:
        mapping = map_type(DataType.parse("enum<status:draft,published>"), "mysql")
        assert mapping.column_type == "ENUM('draft', 'published')"
        assert mapping.enum is None

    def test_sqlite_check_constraint(self) -> None:
        mapping = map_type(DataType.parse("enum<status:draft,published>"), "sqlite")
        assert mapping.column_type == "TEXT"
        assert mapping.check is not None
        assert mapping.check.format(column="status") == "status IN ('draft', 'published')"

    def test_enums_in_use(self, blog_graph: ProjectGraph) -> None:
        names = [spec.type_name for spec in TypeMapper(blog_graph, "postgresql").enums_in_use()]
        assert names == ["user_role", "post_status"]
        assert TypeMapper(blog_graph, "sqlite").enums_in_use() == []


class TestReferences:
    def test_reference_resolves_to_target_type(self, blog_graph: ProjectGraph) -> None:
        mapping = TypeMapper(blog_graph, "postgresql").map(DataType.parse("reference<User.id>"))
        assert mapping.column_type == "UUID"

    def test_reference_to_primary_key(self, blog_graph: ProjectGraph) -> None:
        mapping = TypeMapper(blog_graph, "mysql").map(DataType.parse("reference<Tag>"))
        assert mapping.column_type == "CHAR(36)"

    def test_unresolvable_reference(self) -> None:
        with pytest.raises(TypeMappingError):
            map_type(DataType.parse("reference<Ghost.id>"), "postgresql")

    def test_memoized(self, blog_graph: ProjectGraph) -> None:
        mapper = TypeMapper(blog_graph, "postgresql")
        first = mapper.map(DataType.parse("optional<uuid>"))
        assert mapper.map(DataType.parse("optional<uuid>")) is first


def test_imports_of_merges_modules() -> None:
    mappings = [
        map_type(DataType.parse("optional<datetime>"), "postgresql"),
        map_type(DataType.parse("date"), "postgresql"),
    ]
    python = imports_of(mappings)
    assert python["datetime"] == {"datetime", "date"}
    assert python["typing"] == {"Optional"}
    sa = imports_of(mappings, which="sqlalchemy")
    assert sa["sqlalchemy"] == {"DateTime", "Date"}
