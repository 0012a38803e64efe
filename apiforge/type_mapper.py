# File: apiforge/type_mapper.py
"""
NexaFlow APIForge - Type Mapper
================================
Pure translation from abstract ``DataType``s to per-backend physical types:
SQL column type, SQLAlchemy column type, Python annotation and TypeScript
type.

Backends are columns of one lookup table, not classes: supporting another
backend means adding its entries to ``_SCALAR_TABLE``. Composite types are
resolved by structural recursion, memoized on ``(canonical, backend)``.

An unmapped combination raises ``TypeMappingError``; there is no silent
fallback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from apiforge import naming
from apiforge.errors import TypeMappingError
from apiforge.models import DataKind, DatabaseBackend, DataType, ProjectGraph
from apiforge.validators import resolve_target_field

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.type_mapper")

_PG: str = DatabaseBackend.POSTGRESQL.value
_MY: str = DatabaseBackend.MYSQL.value
_LITE: str = DatabaseBackend.SQLITE.value

# ---------------------------------------------------------------------------
# Lookup tables
# ---------------------------------------------------------------------------

# (kind, backend) → (SQL column type, SQLAlchemy type expression)
_SCALAR_TABLE: Dict[Tuple[str, str], Tuple[str, str]] = {
    ("string", _PG): ("VARCHAR(255)", "String(255)"),
    ("string", _MY): ("VARCHAR(255)", "String(255)"),
    ("string", _LITE): ("TEXT", "String(255)"),
    ("text", _PG): ("TEXT", "Text"),
    ("text", _MY): ("LONGTEXT", "Text"),
    ("text", _LITE): ("TEXT", "Text"),
    ("int32", _PG): ("INTEGER", "Integer"),
    ("int32", _MY): ("INT", "Integer"),
    ("int32", _LITE): ("INTEGER", "Integer"),
    ("int64", _PG): ("BIGINT", "BigInteger"),
    ("int64", _MY): ("BIGINT", "BigInteger"),
    ("int64", _LITE): ("INTEGER", "BigInteger"),
    ("float32", _PG): ("REAL", "Float"),
    ("float32", _MY): ("FLOAT", "Float"),
    ("float32", _LITE): ("REAL", "Float"),
    ("float64", _PG): ("DOUBLE PRECISION", "Double"),
    ("float64", _MY): ("DOUBLE", "Double"),
    ("float64", _LITE): ("REAL", "Double"),
    ("bool", _PG): ("BOOLEAN", "Boolean"),
    ("bool", _MY): ("TINYINT(1)", "Boolean"),
    ("bool", _LITE): ("INTEGER", "Boolean"),
    ("uuid", _PG): ("UUID", "Uuid"),
    ("uuid", _MY): ("CHAR(36)", "Uuid"),
    ("uuid", _LITE): ("TEXT", "Uuid"),
    ("datetime", _PG): ("TIMESTAMP WITH TIME ZONE", "DateTime(timezone=True)"),
    ("datetime", _MY): ("DATETIME", "DateTime(timezone=True)"),
    ("datetime", _LITE): ("TEXT", "DateTime(timezone=True)"),
    ("date", _PG): ("DATE", "Date"),
    ("date", _MY): ("DATE", "Date"),
    ("date", _LITE): ("TEXT", "Date"),
    ("time", _PG): ("TIME", "Time"),
    ("time", _MY): ("TIME", "Time"),
    ("time", _LITE): ("TEXT", "Time"),
    ("bytes", _PG): ("BYTEA", "LargeBinary"),
    ("bytes", _MY): ("BLOB", "LargeBinary"),
    ("bytes", _LITE): ("BLOB", "LargeBinary"),
    ("json", _PG): ("JSONB", "JSONB"),
    ("json", _MY): ("JSON", "JSON"),
    ("json", _LITE): ("TEXT", "JSON"),
}

# kind → (Python annotation, TypeScript type)
_LANGUAGE_TABLE: Dict[str, Tuple[str, str]] = {
    "string": ("str", "string"),
    "text": ("str", "string"),
    "int32": ("int", "number"),
    "int64": ("int", "number"),
    "float32": ("float", "number"),
    "float64": ("float", "number"),
    "bool": ("bool", "boolean"),
    "uuid": ("UUID", "string"),
    "datetime": ("datetime", "string"),
    "date": ("date", "string"),
    "time": ("time", "string"),
    "bytes": ("bytes", "string"),
    "json": ("Any", "unknown"),
}

# Python annotation → import it needs
_PYTHON_IMPORTS: Dict[str, Tuple[str, str]] = {
    "UUID": ("uuid", "UUID"),
    "datetime": ("datetime", "datetime"),
    "date": ("datetime", "date"),
    "time": ("datetime", "time"),
    "Any": ("typing", "Any"),
}

# SQLAlchemy names that do not come from the top-level ``sqlalchemy`` package
_SQLALCHEMY_MODULES: Dict[str, str] = {
    "JSONB": "sqlalchemy.dialects.postgresql",
}


def _sa_import(expr: str) -> Tuple[str, str]:
    name: str = expr.split("(", 1)[0]
    return (_SQLALCHEMY_MODULES.get(name, "sqlalchemy"), name)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EnumSpec:
    """A named enum the migration may have to create."""

    name: str
    type_name: str
    variants: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class TypeMapping:
    """Physical types of one DataType on one backend."""

    column_type: str
    python_type: str
    sqlalchemy_type: str
    typescript_type: str
    orm_type: str
    nullable: bool = False
    enum: Optional[EnumSpec] = None
    check: Optional[str] = None  # CHECK expression template with "{column}"
    python_imports: Tuple[Tuple[str, str], ...] = field(default=())
    sqlalchemy_imports: Tuple[Tuple[str, str], ...] = field(default=())

    @property
    def generated_type(self) -> str:
        return self.python_type


# ---------------------------------------------------------------------------
# Mapper
# ---------------------------------------------------------------------------


class TypeMapper:
    """
    Maps DataTypes for one backend, resolving references against *graph*.

    Instances are cheap and hold only their memo table; create one per
    generation run.
    """

    __slots__ = ("_graph", "_backend", "_memo")

    def __init__(self, graph: ProjectGraph, backend: str) -> None:
        backend = str(getattr(backend, "value", backend))
        if backend not in {b.value for b in DatabaseBackend}:
            raise TypeMappingError(f"Unsupported database backend '{backend}'.")
        self._graph: ProjectGraph = graph
        self._backend: str = backend
        self._memo: Dict[Tuple[str, str], TypeMapping] = {}

    @property
    def backend(self) -> str:
        return self._backend

    def map(self, data_type: DataType) -> TypeMapping:
        return self._map(data_type, frozenset())

    def _map(self, data_type: DataType, resolving: frozenset) -> TypeMapping:
        key: Tuple[str, str] = (data_type.canonical, self._backend)
        cached: Optional[TypeMapping] = self._memo.get(key)
        if cached is not None:
            return cached

        kind: str = data_type.kind
        if kind in _LANGUAGE_TABLE:
            mapping = self._scalar(kind)
        elif kind == DataKind.OPTIONAL.value:
            mapping = self._optional(data_type, resolving)
        elif kind == DataKind.ARRAY.value:
            mapping = self._array(data_type, resolving)
        elif kind == DataKind.REFERENCE.value:
            mapping = self._reference(data_type, resolving)
        elif kind == DataKind.ENUM.value:
            mapping = self._enum(data_type)
        else:
            raise TypeMappingError(f"No mapping for type {data_type.canonical}.")

        self._memo[key] = mapping
        return mapping

    # -- Variants -----------------------------------------------------------

    def _scalar(self, kind: str) -> TypeMapping:
        entry: Optional[Tuple[str, str]] = _SCALAR_TABLE.get((kind, self._backend))
        if entry is None:
            raise TypeMappingError(
                f"No mapping for {kind} on backend '{self._backend}'."
            )
        column_type, sa_type = entry
        python_type, ts_type = _LANGUAGE_TABLE[kind]
        py_imports: Tuple[Tuple[str, str], ...] = (
            (_PYTHON_IMPORTS[python_type],) if python_type in _PYTHON_IMPORTS else ()
        )
        return TypeMapping(
            column_type=column_type,
            python_type=python_type,
            sqlalchemy_type=sa_type,
            typescript_type=ts_type,
            orm_type=python_type,
            python_imports=py_imports,
            sqlalchemy_imports=(_sa_import(sa_type),),
        )

    def _optional(self, data_type: DataType, resolving: frozenset) -> TypeMapping:
        inner: TypeMapping = self._map(data_type.inner, resolving)
        if inner.nullable:
            return inner
        return TypeMapping(
            column_type=inner.column_type,
            python_type=f"Optional[{inner.python_type}]",
            sqlalchemy_type=inner.sqlalchemy_type,
            typescript_type=f"{inner.typescript_type} | null",
            orm_type=f"Optional[{inner.orm_type}]",
            nullable=True,
            enum=inner.enum,
            check=inner.check,
            python_imports=inner.python_imports + (("typing", "Optional"),),
            sqlalchemy_imports=inner.sqlalchemy_imports,
        )

    def _array(self, data_type: DataType, resolving: frozenset) -> TypeMapping:
        inner: TypeMapping = self._map(data_type.inner, resolving)
        element_ts: str = inner.typescript_type
        if "|" in element_ts:
            element_ts = f"({element_ts})"

        if self._backend == _PG:
            column_type = f"{inner.column_type}[]"
            sa_type = f"ARRAY({inner.sqlalchemy_type})"
            sa_imports = inner.sqlalchemy_imports + (("sqlalchemy", "ARRAY"),)
        else:
            column_type = "JSON" if self._backend == _MY else "TEXT"
            sa_type = "JSON"
            sa_imports = (("sqlalchemy", "JSON"),)

        return TypeMapping(
            column_type=column_type,
            python_type=f"List[{inner.python_type}]",
            sqlalchemy_type=sa_type,
            typescript_type=f"{element_ts}[]",
            orm_type=f"List[{inner.orm_type}]",
            enum=inner.enum if self._backend == _PG else None,
            python_imports=inner.python_imports + (("typing", "List"),),
            sqlalchemy_imports=sa_imports,
        )

    def _reference(self, data_type: DataType, resolving: frozenset) -> TypeMapping:
        key: str = data_type.canonical
        if key in resolving:
            raise TypeMappingError(f"Reference cycle while resolving {key}.")
        target = resolve_target_field(self._graph, data_type.entity, data_type.field)
        if target is None:
            raise TypeMappingError(f"Unresolvable reference {key}.")
        return self._map(target.data_type.unwrapped(), resolving | {key})

    def _enum(self, data_type: DataType) -> TypeMapping:
        variants: Tuple[str, ...] = data_type.variants
        if not variants:
            raise TypeMappingError(f"Enum '{data_type.enum_name}' has no variants.")
        type_name: str = naming.to_snake_case(data_type.enum_name)
        quoted_sql: str = ", ".join("'" + v.replace("'", "''") + "'" for v in variants)
        quoted_py: str = ", ".join(f'"{v}"' for v in variants)
        spec: EnumSpec = EnumSpec(name=data_type.enum_name, type_name=type_name, variants=variants)

        check: Optional[str] = None
        if self._backend == _PG:
            column_type = type_name
        elif self._backend == _MY:
            column_type = f"ENUM({quoted_sql})"
        else:
            column_type = "TEXT"
            check = "{column} IN (" + quoted_sql + ")"

        return TypeMapping(
            column_type=column_type,
            python_type=f"Literal[{quoted_py}]",
            sqlalchemy_type=f'Enum({quoted_py}, name="{type_name}")',
            typescript_type=" | ".join(f"'{v}'" for v in variants),
            orm_type="str",
            enum=spec if self._backend == _PG else None,
            check=check,
            python_imports=(("typing", "Literal"),),
            sqlalchemy_imports=(("sqlalchemy", "Enum"),),
        )

    # -- Bulk helpers -------------------------------------------------------

    def enums_in_use(self) -> List[EnumSpec]:
        """Named enums that need a ``CREATE TYPE``, in first-use order."""
        found: Dict[str, EnumSpec] = {}
        for entity in self._graph.entities:
            for f in entity.effective_fields():
                spec = self.map(f.data_type).enum
                if spec is not None:
                    found.setdefault(spec.type_name, spec)
        return list(found.values())

    def __repr__(self) -> str:
        return f"<TypeMapper {self._backend}: {len(self._memo)} cached>"


def map_type(
    data_type: DataType, backend: str, graph: Optional[ProjectGraph] = None
) -> TypeMapping:
    """One-shot mapping. References need *graph*."""
    return TypeMapper(graph or ProjectGraph(), backend).map(data_type)


def imports_of(mappings: List[TypeMapping], which: str = "python") -> Dict[str, Set[str]]:
    """Collect ``module → names`` from a list of mappings."""
    result: Dict[str, Set[str]] = {}
    for mapping in mappings:
        pairs = mapping.python_imports if which == "python" else mapping.sqlalchemy_imports
        for module, name in pairs:
            result.setdefault(module, set()).add(name)
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EnumSpec",
    "TypeMapping",
    "TypeMapper",
    "map_type",
    "imports_of",
]

logger.debug("apiforge.type_mapper loaded.")
