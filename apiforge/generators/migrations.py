# File: apiforge/generators/migrations.py
"""
NexaFlow APIForge - Migration Generator
========================================
Raw SQL migrations, numbered by position (never by date):

1. ``NNNN_create_enum_types.sql``      PostgreSQL only, when enums exist
2. ``NNNN_create_<table>.sql``         one per entity, analyzer order
3. ``NNNN_create_<junction>.sql``      one per ManyToMany relationship
4. ``NNNN_add_deferred_constraints.sql`` when the analyzer deferred edges

SQLite cannot add a constraint to an existing table, so on SQLite deferred
edges are declared inline (references are resolved lazily) and the
deferred file only lists them as comments.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional

from apiforge import naming
from apiforge.analyzer import ForeignKeyEdge
from apiforge.generators.base import GENERATED_BANNER, BaseGenerator, Junction
from apiforge.models import (
    DatabaseBackend,
    DefaultKind,
    DefaultValue,
    Entity,
    EntityField,
    GeneratedFile,
    IdStrategy,
)
from apiforge.type_mapper import EnumSpec, TypeMapping

logger: logging.Logger = logging.getLogger("apiforge.generators.migrations")

_PG: str = DatabaseBackend.POSTGRESQL.value
_MY: str = DatabaseBackend.MYSQL.value
_LITE: str = DatabaseBackend.SQLITE.value

_GENERATED_ID_SQL = {
    _PG: "gen_random_uuid()",
    _MY: "(UUID())",
    _LITE: "(lower(hex(randomblob(16))))",
}
_NOW_SQL = {
    _PG: "NOW()",
    _MY: "CURRENT_TIMESTAMP",
    _LITE: "CURRENT_TIMESTAMP",
}


def sql_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def default_sql(default: DefaultValue, backend: str) -> Optional[str]:
    """
    Translate a field default to a SQL ``DEFAULT`` expression.

        >>> default_sql(DefaultValue(kind="now"), "sqlite")
        'CURRENT_TIMESTAMP'
    """
    kind: str = default.kind
    if kind == DefaultKind.NOW.value:
        return _NOW_SQL[backend]
    if kind == DefaultKind.GENERATED_ID.value:
        return _GENERATED_ID_SQL[backend]
    if kind == DefaultKind.EXPRESSION.value:
        return str(default.value)
    if kind == DefaultKind.NULL.value:
        return "NULL"
    return _literal_sql(default.value, backend)


def _literal_sql(value: Any, backend: str) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        if backend == _PG:
            return "TRUE" if value else "FALSE"
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (list, dict)):
        return sql_quote(json.dumps(value, sort_keys=True))
    return sql_quote(str(value))


class MigrationGenerator(BaseGenerator):
    """SQL DDL in dependency order."""

    name: str = "migrations"

    def generate(self) -> List[GeneratedFile]:
        ctx = self._ctx
        if not ctx.config.generate_migrations:
            return []

        files: List[GeneratedFile] = []
        enums: List[EnumSpec] = ctx.types.enums_in_use() if ctx.backend == _PG else []
        if enums:
            files.append(self._enum_types(len(files) + 1, enums))
        for entity in ctx.entities_in_order():
            ctx.checkpoint(f"migration for {entity.name}")
            files.append(self.generate_table(len(files) + 1, entity))
        for junction in ctx.junctions():
            files.append(self.generate_junction(len(files) + 1, junction))
        if ctx.analysis.deferred:
            files.append(self.generate_deferred(len(files) + 1))
        logger.debug("Migration generator produced %d file(s) for %s.", len(files), ctx.backend)
        return files

    # -- Helpers ------------------------------------------------------------

    def _path(self, number: int, slug: str) -> str:
        return f"migrations/{number:04d}_{slug}.sql"

    def _header(self, number: int, title: str) -> List[str]:
        return [
            f"-- Migration {number:04d}: {title}",
            f"-- Backend: {self._ctx.backend}",
            f"-- {GENERATED_BANNER}",
            "",
        ]

    def _if_not_exists_index(self) -> str:
        return "" if self._ctx.backend == _MY else "IF NOT EXISTS "

    @staticmethod
    def _constraint(edge: ForeignKeyEdge) -> str:
        return (
            f"CONSTRAINT {naming.foreign_key_name(edge.table, edge.column)} "
            f"FOREIGN KEY ({edge.column}) REFERENCES {edge.target_table} ({edge.target_column}) "
            f"ON DELETE {edge.on_delete} ON UPDATE {edge.on_update}"
        )

    # -- Enum types ---------------------------------------------------------

    def _guarded(self, statement: str) -> List[str]:
        """PostgreSQL has no IF NOT EXISTS for types and constraints."""
        return [
            "DO $$ BEGIN",
            f"{self._indent}{statement}",
            "EXCEPTION",
            f"{self._indent}WHEN duplicate_object THEN NULL;",
            "END $$;",
        ]

    def _enum_types(self, number: int, enums: List[EnumSpec]) -> GeneratedFile:
        lines: List[str] = self._header(number, "create enum types")
        for spec in enums:
            variants: str = ", ".join(sql_quote(v) for v in spec.variants)
            lines.extend(self._guarded(f"CREATE TYPE {spec.type_name} AS ENUM ({variants});"))
        return self._file(self._path(number, "create_enum_types"), lines)

    # -- Entity tables ------------------------------------------------------

    def generate_table(self, number: int, entity: Entity) -> GeneratedFile:
        ctx = self._ctx
        i: str = self._indent
        definitions: List[str] = [self._column_def(entity, f) for f in entity.effective_fields()]

        for edge in ctx.analysis.foreign_keys_of(entity.id):
            if ctx.analysis.is_deferred(edge) and ctx.backend != _LITE:
                continue
            definitions.append(self._constraint(edge))

        lines: List[str] = self._header(number, f"create table {entity.table_name}")
        lines.append(f"CREATE TABLE IF NOT EXISTS {entity.table_name} (")
        for index, definition in enumerate(definitions):
            suffix: str = "," if index < len(definitions) - 1 else ""
            lines.append(f"{i}{definition}{suffix}")
        lines.append(");")

        index_lines: List[str] = []
        for f in entity.effective_fields():
            if f.is_primary or f.unique:
                continue
            is_fk: bool = ctx.analysis.fk_for(entity.id, f.name) is not None
            is_soft_delete_column: bool = entity.config.soft_delete and f.name == "deleted_at"
            if f.indexed or is_fk or is_soft_delete_column:
                index_lines.append(
                    f"CREATE INDEX {self._if_not_exists_index()}"
                    f"{naming.index_name(entity.table_name, f.column_name)} "
                    f"ON {entity.table_name} ({f.column_name});"
                )
        if index_lines:
            lines.append("")
            lines.extend(index_lines)

        return self._file(
            self._path(number, f"create_{entity.table_name}"),
            lines,
            provides={f"migration:{entity.table_name}"},
        )

    def _column_def(self, entity: Entity, f: EntityField) -> str:
        backend: str = self._ctx.backend
        mapping: TypeMapping = self._ctx.mapping(f)
        column: str = f.column_name

        if f.is_primary:
            if entity.config.id_strategy == IdStrategy.SERIAL.value:
                if backend == _PG:
                    serial: str = "BIGSERIAL" if mapping.column_type == "BIGINT" else "SERIAL"
                    return f"{column} {serial} PRIMARY KEY"
                if backend == _MY:
                    return f"{column} {mapping.column_type} AUTO_INCREMENT PRIMARY KEY"
                return f"{column} INTEGER PRIMARY KEY AUTOINCREMENT"
            parts: List[str] = [column, mapping.column_type, "PRIMARY KEY"]
            if f.default is not None:
                parts.append(f"DEFAULT {default_sql(f.default, backend)}")
            elif mapping.python_type == "UUID":
                parts.append(f"DEFAULT {_GENERATED_ID_SQL[backend]}")
            return " ".join(parts)

        parts = [column, mapping.column_type]
        if not f.nullable:
            parts.append("NOT NULL")
        if f.unique:
            parts.append("UNIQUE")
        if f.default is not None:
            parts.append(f"DEFAULT {default_sql(f.default, backend)}")
        if mapping.check is not None:
            parts.append(f"CHECK ({mapping.check.format(column=column)})")
        return " ".join(parts)

    # -- Junction tables ----------------------------------------------------

    def generate_junction(self, number: int, junction: Junction) -> GeneratedFile:
        i: str = self._indent
        definitions: List[str] = []
        constraints: List[str] = []
        for entity, column in (
            (junction.source, junction.source_column),
            (junction.target, junction.target_column),
        ):
            pk: EntityField = entity.primary_key
            mapping: TypeMapping = self._ctx.mapping(pk)
            definitions.append(f"{column} {mapping.column_type} NOT NULL")
            constraints.append(
                f"CONSTRAINT {naming.foreign_key_name(junction.table, column)} "
                f"FOREIGN KEY ({column}) REFERENCES {entity.table_name} ({pk.column_name}) "
                f"ON DELETE CASCADE"
            )
        unique: str = naming.unique_constraint_name(
            junction.table, (junction.source_column, junction.target_column)
        )
        definitions.append(
            f"CONSTRAINT {unique} UNIQUE ({junction.source_column}, {junction.target_column})"
        )
        definitions.extend(constraints)

        lines: List[str] = self._header(number, f"create junction table {junction.table}")
        lines.append(f"CREATE TABLE IF NOT EXISTS {junction.table} (")
        for index, definition in enumerate(definitions):
            suffix: str = "," if index < len(definitions) - 1 else ""
            lines.append(f"{i}{definition}{suffix}")
        lines.append(");")
        lines.append("")
        lines.append(
            f"CREATE INDEX {self._if_not_exists_index()}"
            f"{naming.index_name(junction.table, junction.target_column)} "
            f"ON {junction.table} ({junction.target_column});"
        )
        return self._file(
            self._path(number, f"create_{junction.table}"),
            lines,
            provides={f"migration:{junction.table}"},
        )

    # -- Deferred constraints -----------------------------------------------

    def generate_deferred(self, number: int) -> GeneratedFile:
        ctx = self._ctx
        lines: List[str] = self._header(number, "add deferred foreign-key constraints")
        if ctx.backend == _LITE:
            lines.append("-- SQLite declares these constraints inline in CREATE TABLE:")
            for edge in ctx.analysis.deferred:
                lines.append(f"--   {edge.describe()}")
        else:
            for edge in ctx.analysis.deferred:
                statement: str = f"ALTER TABLE {edge.table} ADD {self._constraint(edge)};"
                if ctx.backend == _PG:
                    lines.extend(self._guarded(statement))
                else:
                    lines.append(statement)
        return self._file(self._path(number, "add_deferred_constraints"), lines)


__all__: List[str] = ["MigrationGenerator", "default_sql", "sql_quote"]

logger.debug("apiforge.generators.migrations loaded.")
