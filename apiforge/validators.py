# File: apiforge/validators.py
"""
NexaFlow APIForge - Graph Validators
=====================================
Pure-function validation pipeline over the ``ProjectGraph`` defined in
``apiforge.models``.

Pydantic handles per-field structural correctness when the graph is built.
This module adds the **cross-entity semantic checks**: primary keys,
foreign-key resolution and type compatibility, relationship endpoints,
junction uniqueness, endpoint paths and security consistency.

Every rule runs and every violation is collected; nothing is fail-fast.
Validation is a gate, not a transform: ``validate`` returns the very same
graph object it was given.

Usage by downstream modules:
    from apiforge.validators import validate
    graph = validate(graph)        # raises GraphValidationError
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from apiforge.errors import GraphValidationError
from apiforge.models import (
    INTEGER_KINDS,
    NUMERIC_KINDS,
    STRING_KINDS,
    AuthStrategy,
    DataKind,
    DataType,
    Entity,
    EntityField,
    GeneratorConfig,
    IdStrategy,
    ProjectGraph,
    ReferentialAction,
    RuleKind,
    resolve_security,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight violation descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "path", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.path: str = path
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        where: str = f" at {self.path}" if self.path else ""
        return f"[{self.level.upper()}] {self.code}{where}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "context": self.context,
        }


class ValidationResult:
    """
    Accumulates ``ValidationError`` instances produced by the pipeline.

    Provides O(1) access to counts and O(n) filtering.
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, path, context))

    def add_warning(
        self,
        code: str,
        message: str,
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, path, context))

    def add_info(
        self,
        code: str,
        message: str,
        path: str = "",
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, path, context))

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one. O(k) where k = len(other)."""
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(e.is_warning for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> Set[str]:
        return {e.code for e in self._items}

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {
                "error": "❌",
                "warning": "⚠️",
                "info": "ℹ️",
            }.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
            if item.path:
                lines.append(f"       at: {item.path}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Regex patterns and word lists (compiled once at module load)
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_PATH_SEGMENT_RE: re.Pattern[str] = re.compile(r"^[a-zA-Z0-9_\-{}]+$")

_PYTHON_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "False", "None", "True", "and", "as", "assert", "async", "await",
        "break", "class", "continue", "def", "del", "elif", "else",
        "except", "finally", "for", "from", "global", "if", "import",
        "in", "is", "lambda", "nonlocal", "not", "or", "pass", "raise",
        "return", "try", "while", "with", "yield",
    }
)

# SQL reserved words that make poor table identifiers (subset of most common)
_SQL_RESERVED_WORDS: FrozenSet[str] = frozenset(
    {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "column", "index", "from", "where", "join", "order",
        "group", "limit", "offset", "union", "primary", "foreign", "key",
        "references", "constraint", "check", "default", "unique", "user",
        "role", "schema", "database", "trigger", "view", "sequence",
    }
)

_LENGTH_RULES: FrozenSet[str] = frozenset({RuleKind.MIN_LENGTH.value, RuleKind.MAX_LENGTH.value})
_BOUND_RULES: FrozenSet[str] = frozenset({RuleKind.MIN.value, RuleKind.MAX.value})


# ---------------------------------------------------------------------------
# Type resolution helpers
# ---------------------------------------------------------------------------


def _entity_path(entity: Entity) -> str:
    return f"entities.{entity.name}"


def _field_path(entity: Entity, field: EntityField) -> str:
    return f"entities.{entity.name}.fields.{field.name}"


def resolve_target_field(
    graph: ProjectGraph, entity_ref: str, field_name: Optional[str]
) -> Optional[EntityField]:
    """Field addressed by ``entity.field``; ``None`` field means the primary key."""
    entity: Optional[Entity] = graph.entity(entity_ref)
    if entity is None:
        return None
    if field_name:
        return entity.field_by_name(field_name)
    return entity.primary_key


def resolve_base_type(graph: ProjectGraph, data_type: DataType) -> Optional[DataType]:
    """
    Unwrap ``Optional`` and follow ``Reference`` chains to a concrete type.

    Returns ``None`` when a reference cannot be resolved or loops.
    """
    current: DataType = data_type.unwrapped()
    seen: Set[str] = set()
    while current.kind == DataKind.REFERENCE.value:
        if current.canonical in seen:
            return None
        seen.add(current.canonical)
        target: Optional[EntityField] = resolve_target_field(graph, current.entity, current.field)
        if target is None:
            return None
        current = target.data_type.unwrapped()
    return current


def types_compatible(graph: ProjectGraph, left: DataType, right: DataType) -> bool:
    """
    FK type compatibility after unwrapping Optional and resolving Reference:
    integer kinds are interchangeable, string/text are interchangeable,
    everything else must match structurally.
    """
    a: Optional[DataType] = resolve_base_type(graph, left)
    b: Optional[DataType] = resolve_base_type(graph, right)
    if a is None or b is None:
        return False
    if a.kind in INTEGER_KINDS and b.kind in INTEGER_KINDS:
        return True
    if a.kind in STRING_KINDS and b.kind in STRING_KINDS:
        return True
    return a.canonical == b.canonical


def _walk_types(data_type: DataType) -> List[DataType]:
    """Every node of a (possibly nested) DataType, outermost first."""
    nodes: List[DataType] = [data_type]
    while data_type.inner is not None:
        data_type = data_type.inner
        nodes.append(data_type)
    return nodes


# ---------------------------------------------------------------------------
# Individual validation functions (each is O(n) or better)
# ---------------------------------------------------------------------------


def validate_entity_names(graph: ProjectGraph) -> ValidationResult:
    """
    Entity names are identifiers and unique; ids and table identifiers are
    unique too.

    Complexity: O(E).
    """
    result: ValidationResult = ValidationResult()
    names: Set[str] = set()
    ids: Set[str] = set()
    tables: Dict[str, str] = {}

    for entity in graph.entities:
        path: str = _entity_path(entity)

        if entity.name in names:
            result.add_error(
                "DUPLICATE_ENTITY_NAME",
                f"Entity name '{entity.name}' is defined more than once.",
                path,
            )
        names.add(entity.name)

        if entity.id in ids:
            result.add_error(
                "DUPLICATE_ENTITY_ID",
                f"Entity id '{entity.id}' is used more than once.",
                path,
            )
        ids.add(entity.id)

        if not _IDENTIFIER_RE.match(entity.name):
            result.add_error(
                "INVALID_ENTITY_NAME",
                f"Entity name '{entity.name}' is not a valid identifier.",
                path,
            )
            continue

        if entity.name in _PYTHON_KEYWORDS:
            result.add_error(
                "ENTITY_NAME_PYTHON_KEYWORD",
                f"Entity name '{entity.name}' is a Python keyword.",
                path,
            )

        if entity.table_name in tables and tables[entity.table_name] != entity.name:
            result.add_error(
                "DUPLICATE_TABLE_NAME",
                f"Entities '{tables[entity.table_name]}' and '{entity.name}' both "
                f"map to table '{entity.table_name}'.",
                path,
            )
        tables.setdefault(entity.table_name, entity.name)

        if not _IDENTIFIER_RE.match(entity.table_name):
            result.add_error(
                "INVALID_TABLE_NAME",
                f"Table identifier '{entity.table_name}' is not a valid identifier.",
                path,
            )
        elif entity.table_name.lower() in _SQL_RESERVED_WORDS:
            result.add_warning(
                "TABLE_NAME_SQL_RESERVED",
                f"Table identifier '{entity.table_name}' is a SQL reserved word.",
                path,
            )

    logger.debug(
        "validate_entity_names: checked %d entities, %d issue(s).",
        len(graph.entities),
        len(result),
    )
    return result


def validate_fields(graph: ProjectGraph) -> ValidationResult:
    """
    Field names are identifiers, unique per entity, and map to unique
    column identifiers.

    Complexity: O(F).
    """
    result: ValidationResult = ValidationResult()

    for entity in graph.entities:
        if not entity.fields:
            result.add_error(
                "NO_FIELDS",
                f"Entity '{entity.name}' declares no fields.",
                _entity_path(entity),
            )
            continue

        names: Set[str] = set()
        columns: Set[str] = set()
        for field in entity.fields:
            path: str = _field_path(entity, field)

            if field.name in names:
                result.add_error(
                    "DUPLICATE_FIELD_NAME",
                    f"Field '{field.name}' is duplicated in entity '{entity.name}'.",
                    path,
                )
            names.add(field.name)

            if not _IDENTIFIER_RE.match(field.name):
                result.add_error(
                    "INVALID_FIELD_NAME",
                    f"Field '{field.name}' in entity '{entity.name}' is not a valid identifier.",
                    path,
                )
                continue

            if field.name in _PYTHON_KEYWORDS:
                result.add_error(
                    "FIELD_NAME_PYTHON_KEYWORD",
                    f"Field '{field.name}' in entity '{entity.name}' is a Python keyword.",
                    path,
                )

            if field.column_name in columns:
                result.add_error(
                    "DUPLICATE_COLUMN_NAME",
                    f"Column '{field.column_name}' is produced by more than one field "
                    f"of entity '{entity.name}'.",
                    path,
                )
            columns.add(field.column_name)

    logger.debug("validate_fields: completed for %d entities.", len(graph.entities))
    return result


def validate_primary_keys(graph: ProjectGraph) -> ValidationResult:
    """
    Exactly one primary key per entity, matching the entity's id strategy.

    Complexity: O(F).
    """
    result: ValidationResult = ValidationResult()

    for entity in graph.entities:
        path: str = _entity_path(entity)
        pks: List[EntityField] = [f for f in entity.fields if f.is_primary]

        if not pks:
            result.add_error(
                "MISSING_PRIMARY_KEY",
                f"Entity '{entity.name}' has no primary key field.",
                path,
            )
            continue
        if len(pks) > 1:
            result.add_error(
                "MULTIPLE_PRIMARY_KEYS",
                f"Entity '{entity.name}' has {len(pks)} primary key fields "
                f"({', '.join(f.name for f in pks)}); exactly one is required.",
                path,
            )
            continue

        pk: EntityField = pks[0]
        pk_path: str = _field_path(entity, pk)
        if pk.data_type.is_optional:
            result.add_error(
                "PRIMARY_KEY_OPTIONAL",
                f"Primary key '{entity.name}.{pk.name}' cannot be optional.",
                pk_path,
            )

        kind: str = pk.data_type.unwrapped().kind
        if entity.config.id_strategy == IdStrategy.UUID.value and kind != DataKind.UUID.value:
            result.add_error(
                "PRIMARY_KEY_STRATEGY_MISMATCH",
                f"Primary key '{entity.name}.{pk.name}' is {pk.data_type.canonical} "
                f"but the entity uses the 'uuid' id strategy.",
                pk_path,
            )
        elif entity.config.id_strategy == IdStrategy.SERIAL.value and kind not in INTEGER_KINDS:
            result.add_error(
                "PRIMARY_KEY_STRATEGY_MISMATCH",
                f"Primary key '{entity.name}.{pk.name}' is {pk.data_type.canonical} "
                f"but the entity uses the 'serial' id strategy.",
                pk_path,
            )

        if len(entity.fields) == 1:
            result.add_warning(
                "NO_NON_KEY_FIELDS",
                f"Entity '{entity.name}' has no fields beyond its primary key.",
                path,
            )

    return result


def validate_foreign_keys(graph: ProjectGraph) -> ValidationResult:
    """
    Every explicit ``ForeignKeyRef`` resolves to an existing, unique target
    field of a compatible type.

    Complexity: O(F).
    """
    result: ValidationResult = ValidationResult()

    for entity in graph.entities:
        for field in entity.fields:
            path: str = _field_path(entity, field)
            ref = field.foreign_key

            if field.is_foreign_key and ref is None:
                result.add_error(
                    "FOREIGN_KEY_WITHOUT_REFERENCE",
                    f"Field '{entity.name}.{field.name}' is a foreign key but "
                    f"declares no reference.",
                    path,
                )
                continue
            if ref is None:
                continue

            target: Optional[Entity] = graph.entity(ref.target_entity)
            if target is None:
                result.add_error(
                    "FK_TARGET_ENTITY_NOT_FOUND",
                    f"Field '{entity.name}.{field.name}' references unknown entity "
                    f"'{ref.target_entity}'.",
                    path,
                )
                continue

            target_field: Optional[EntityField] = resolve_target_field(
                graph, ref.target_entity, ref.target_field
            )
            if target_field is None:
                result.add_error(
                    "FK_TARGET_FIELD_NOT_FOUND",
                    f"Field '{entity.name}.{field.name}' references "
                    f"'{target.name}.{ref.target_field or '<primary key>'}', which does not exist.",
                    path,
                )
                continue

            if not target_field.is_primary and not target_field.unique:
                result.add_error(
                    "FK_TARGET_NOT_UNIQUE",
                    f"Field '{entity.name}.{field.name}' references "
                    f"'{target.name}.{target_field.name}', which is neither the primary "
                    f"key nor unique.",
                    path,
                )

            if not types_compatible(graph, field.data_type, target_field.data_type):
                result.add_error(
                    "FK_TYPE_MISMATCH",
                    f"Field '{entity.name}.{field.name}' ({field.data_type.canonical}) is "
                    f"not compatible with '{target.name}.{target_field.name}' "
                    f"({target_field.data_type.canonical}).",
                    path,
                )

            if ref.on_delete == ReferentialAction.SET_NULL.value and not field.nullable:
                result.add_error(
                    "FK_SET_NULL_ON_REQUIRED",
                    f"Field '{entity.name}.{field.name}' uses ON DELETE SET NULL but "
                    f"is not nullable.",
                    path,
                )

    return result


def validate_type_references(graph: ProjectGraph) -> ValidationResult:
    """Every ``Reference`` DataType, at any nesting depth, resolves."""
    result: ValidationResult = ValidationResult()

    for entity in graph.entities:
        for field in entity.fields:
            for node in _walk_types(field.data_type):
                if node.kind != DataKind.REFERENCE.value:
                    continue
                if resolve_base_type(graph, node) is None:
                    result.add_error(
                        "UNRESOLVED_REFERENCE",
                        f"Type {node.canonical} of '{entity.name}.{field.name}' does not "
                        f"resolve to an existing field.",
                        _field_path(entity, field),
                    )
    return result


def validate_enums(graph: ProjectGraph) -> ValidationResult:
    """
    Enum types need an identifier-safe name and unique variants; one enum
    name may not carry two different variant lists.
    """
    result: ValidationResult = ValidationResult()
    seen: Dict[str, Tuple[str, ...]] = {}

    for entity in graph.entities:
        for field in entity.fields:
            path: str = _field_path(entity, field)
            for node in _walk_types(field.data_type):
                if node.kind != DataKind.ENUM.value:
                    continue
                if not _IDENTIFIER_RE.match(node.enum_name or ""):
                    result.add_error(
                        "INVALID_ENUM_NAME",
                        f"Enum name '{node.enum_name}' is not a valid identifier.",
                        path,
                    )
                if not node.variants:
                    result.add_error(
                        "ENUM_NO_VARIANTS",
                        f"Enum '{node.enum_name}' declares no variants.",
                        path,
                    )
                if len(set(node.variants)) != len(node.variants):
                    dupes: List[str] = sorted({v for v in node.variants if node.variants.count(v) > 1})
                    result.add_error(
                        "ENUM_DUPLICATE_VARIANTS",
                        f"Enum '{node.enum_name}' repeats variants: {dupes}",
                        path,
                    )
                previous: Optional[Tuple[str, ...]] = seen.get(node.enum_name)
                if previous is not None and previous != node.variants:
                    result.add_error(
                        "ENUM_CONFLICT",
                        f"Enum '{node.enum_name}' is declared with different variants "
                        f"in different fields.",
                        path,
                    )
                seen.setdefault(node.enum_name, node.variants)

    return result


def validate_relationships(graph: ProjectGraph) -> ValidationResult:
    """
    Relationship endpoints exist; FK-carrying kinds have a type-compatible
    owning field; ManyToMany junctions are present and unique and never
    collide with an entity table. Relationship attributes must not shadow
    fields or each other.

    Complexity: O(R + F).
    """
    result: ValidationResult = ValidationResult()
    junctions: Dict[str, str] = {}
    ids: Set[str] = set()
    tables: Set[str] = {e.table_name for e in graph.entities}
    attributes: Dict[str, Set[str]] = {
        e.name: {f.name for f in e.effective_fields()} for e in graph.entities
    }

    for rel in graph.relationships:
        path: str = f"relationships.{rel.id}"

        if rel.id in ids:
            result.add_error(
                "DUPLICATE_RELATIONSHIP_ID",
                f"Relationship id '{rel.id}' is used more than once.",
                path,
            )
        ids.add(rel.id)

        source: Optional[Entity] = graph.entity(rel.source)
        target: Optional[Entity] = graph.entity(rel.target)
        missing: List[str] = [
            ref for ref, ent in ((rel.source, source), (rel.target, target)) if ent is None
        ]
        if missing:
            result.add_error(
                "REL_ENTITY_NOT_FOUND",
                f"Relationship '{rel.id}' references unknown entit"
                f"{'y' if len(missing) == 1 else 'ies'}: {', '.join(missing)}.",
                path,
            )
            continue

        if rel.is_many_to_many:
            if not rel.junction:
                result.add_error(
                    "M2M_MISSING_JUNCTION",
                    f"ManyToMany relationship '{rel.id}' declares no junction identifier.",
                    path,
                )
            elif rel.junction in junctions:
                result.add_error(
                    "DUPLICATE_JUNCTION",
                    f"Junction '{rel.junction}' is used by relationships "
                    f"'{junctions[rel.junction]}' and '{rel.id}'.",
                    path,
                )
            elif rel.junction in tables:
                result.add_error(
                    "JUNCTION_COLLIDES_WITH_TABLE",
                    f"Junction '{rel.junction}' has the same identifier as an entity table.",
                    path,
                )
            elif not _IDENTIFIER_RE.match(rel.junction):
                result.add_error(
                    "INVALID_JUNCTION_NAME",
                    f"Junction '{rel.junction}' is not a valid identifier.",
                    path,
                )
            if rel.junction:
                junctions.setdefault(rel.junction, rel.id)
            if rel.nested:
                result.add_warning(
                    "NESTED_MANY_TO_MANY",
                    f"Nested routes are not generated for ManyToMany relationship '{rel.id}'.",
                    path,
                )
        else:
            owner: Entity = graph.owning_entity(rel)
            referenced: Entity = graph.referenced_entity(rel)
            fk_name: str = graph.relationship_fk_field(rel)
            fk_field: Optional[EntityField] = owner.field_by_name(fk_name)
            ref_field: Optional[EntityField] = graph.relationship_references_field(rel)

            if fk_field is None:
                result.add_error(
                    "REL_FK_FIELD_NOT_FOUND",
                    f"Relationship '{rel.id}' needs field '{owner.name}.{fk_name}', "
                    f"which does not exist.",
                    path,
                )
            if ref_field is None:
                result.add_error(
                    "REL_REFERENCED_FIELD_NOT_FOUND",
                    f"Relationship '{rel.id}' references "
                    f"'{referenced.name}.{rel.references_field or '<primary key>'}', "
                    f"which does not exist.",
                    path,
                )
            if fk_field is not None and ref_field is not None:
                if not types_compatible(graph, fk_field.data_type, ref_field.data_type):
                    result.add_error(
                        "REL_TYPE_MISMATCH",
                        f"Relationship '{rel.id}': '{owner.name}.{fk_field.name}' "
                        f"({fk_field.data_type.canonical}) is not compatible with "
                        f"'{referenced.name}.{ref_field.name}' "
                        f"({ref_field.data_type.canonical}).",
                        path,
                    )
                if rel.on_delete == ReferentialAction.SET_NULL.value and not fk_field.nullable:
                    result.add_error(
                        "FK_SET_NULL_ON_REQUIRED",
                        f"Relationship '{rel.id}' uses ON DELETE SET NULL but "
                        f"'{owner.name}.{fk_field.name}' is not nullable.",
                        path,
                    )

        forward, inverse = graph.relationship_attr_names(rel)
        for ent, attr in ((source, forward), (target, inverse)):
            if attr in attributes[ent.name]:
                result.add_error(
                    "REL_ATTRIBUTE_COLLISION",
                    f"Relationship '{rel.id}' adds attribute '{attr}' to '{ent.name}', "
                    f"which already has a field or relationship of that name.",
                    path,
                )
            attributes[ent.name].add(attr)

    return result


def validate_endpoints(graph: ProjectGraph) -> ValidationResult:
    """
    Endpoint groups bind to existing entities, one group per entity, with
    well-formed unique base paths, unique operation kinds and positive rate
    limits.
    """
    result: ValidationResult = ValidationResult()
    paths: Dict[str, str] = {}
    bound: Dict[str, str] = {}

    for group in graph.endpoints:
        path: str = f"endpoints.{group.id}"
        entity: Optional[Entity] = graph.entity(group.entity)
        if entity is None:
            result.add_error(
                "ENDPOINT_ENTITY_NOT_FOUND",
                f"Endpoint group '{group.id}' is bound to unknown entity '{group.entity}'.",
                path,
            )
            continue

        if entity.id in bound:
            result.add_error(
                "DUPLICATE_ENDPOINT_GROUP",
                f"Entity '{entity.name}' has more than one endpoint group "
                f"('{bound[entity.id]}', '{group.id}').",
                path,
            )
        bound.setdefault(entity.id, group.id)

        base: str = graph.base_path_for(group)
        segments: List[str] = [s for s in base.split("/") if s]
        if not base.startswith("/") or not all(_PATH_SEGMENT_RE.match(s) for s in segments):
            result.add_error(
                "INVALID_BASE_PATH",
                f"Base path '{base}' of endpoint group '{group.id}' must start with '/' "
                f"and contain only URL-safe segments.",
                path,
            )
        if base in paths:
            result.add_error(
                "DUPLICATE_BASE_PATH",
                f"Base path '{base}' is used by endpoint groups '{paths[base]}' and '{group.id}'.",
                path,
            )
        paths.setdefault(base, group.id)

        kinds: Set[str] = set()
        for op in group.operations:
            op_path: str = f"{path}.operations.{op.kind}"
            if op.kind in kinds:
                result.add_error(
                    "DUPLICATE_OPERATION",
                    f"Operation '{op.kind}' appears twice in endpoint group '{group.id}'.",
                    op_path,
                )
            kinds.add(op.kind)
            if op.rate_limit is not None and (
                op.rate_limit.requests < 1 or op.rate_limit.window_seconds < 1
            ):
                result.add_error(
                    "INVALID_RATE_LIMIT",
                    f"Rate limit of '{group.id}.{op.kind}' must use positive values.",
                    op_path,
                )
            if op.success_status is not None and not 200 <= op.success_status < 300:
                result.add_error(
                    "INVALID_SUCCESS_STATUS",
                    f"Success status {op.success_status} of '{group.id}.{op.kind}' "
                    f"is not a 2xx code.",
                    op_path,
                )

    return result


def validate_field_rules(graph: ProjectGraph) -> ValidationResult:
    """
    Field-level validation rules apply to the field's kind, carry a value
    when they need one, compile (patterns) and are not inverted.
    """
    result: ValidationResult = ValidationResult()

    for entity in graph.entities:
        for field in entity.fields:
            path: str = _field_path(entity, field)
            base: Optional[DataType] = resolve_base_type(graph, field.data_type)
            kind: str = base.kind if base is not None else ""
            bounds: Dict[str, Any] = {}

            for rule in field.validations:
                if rule.kind in _LENGTH_RULES and kind not in STRING_KINDS:
                    result.add_error(
                        "RULE_NOT_APPLICABLE",
                        f"Rule '{rule.kind}' on '{entity.name}.{field.name}' needs a "
                        f"string field, got {field.data_type.canonical}.",
                        path,
                    )
                    continue
                if rule.kind in _BOUND_RULES and kind not in NUMERIC_KINDS:
                    result.add_error(
                        "RULE_NOT_APPLICABLE",
                        f"Rule '{rule.kind}' on '{entity.name}.{field.name}' needs a "
                        f"numeric field, got {field.data_type.canonical}.",
                        path,
                    )
                    continue
                if rule.kind in _LENGTH_RULES | _BOUND_RULES:
                    if not isinstance(rule.value, (int, float)) or isinstance(rule.value, bool):
                        result.add_error(
                            "RULE_MISSING_VALUE",
                            f"Rule '{rule.kind}' on '{entity.name}.{field.name}' needs a "
                            f"numeric value.",
                            path,
                        )
                        continue
                    bounds[rule.kind] = rule.value
                if rule.kind == RuleKind.PATTERN.value:
                    try:
                        re.compile(str(rule.value))
                    except re.error as exc:
                        result.add_error(
                            "INVALID_PATTERN",
                            f"Pattern on '{entity.name}.{field.name}' does not compile: {exc}",
                            path,
                        )
                if rule.kind == RuleKind.ONE_OF.value and not isinstance(rule.value, (list, tuple)):
                    result.add_error(
                        "RULE_MISSING_VALUE",
                        f"Rule 'one_of' on '{entity.name}.{field.name}' needs a list of values.",
                        path,
                    )

            for low, high in (("min_length", "max_length"), ("min", "max")):
                if low in bounds and high in bounds and bounds[low] > bounds[high]:
                    result.add_error(
                        "RULE_BOUNDS_INVERTED",
                        f"'{entity.name}.{field.name}': {low} ({bounds[low]}) exceeds "
                        f"{high} ({bounds[high]}).",
                        path,
                    )

    return result


def validate_security(graph: ProjectGraph) -> ValidationResult:
    """
    Effective security agrees with the auth strategy; roles are declared
    when the project lists its available roles.
    """
    result: ValidationResult = ValidationResult()
    auth = graph.config.auth
    available: Set[str] = set(auth.available_roles)
    secured: int = 0

    for group in graph.endpoints:
        for op in group.enabled_operations():
            policy = resolve_security(op.security, group.security, graph.config.default_security)
            op_path: str = f"endpoints.{group.id}.operations.{op.kind}"
            if not policy.auth_required:
                continue
            secured += 1
            if auth.strategy == AuthStrategy.NONE.value:
                result.add_error(
                    "AUTH_REQUIRED_WITHOUT_STRATEGY",
                    f"Operation '{group.id}.{op.kind}' requires authentication but the "
                    f"project auth strategy is 'none'.",
                    op_path,
                )
            if available:
                unknown: List[str] = [r for r in policy.roles if r not in available]
                if unknown:
                    result.add_warning(
                        "UNKNOWN_ROLE",
                        f"Operation '{group.id}.{op.kind}' requires undeclared roles: "
                        f"{', '.join(unknown)}.",
                        op_path,
                    )

    if auth.strategy != AuthStrategy.NONE.value and graph.endpoints and secured == 0:
        result.add_warning(
            "AUTH_UNUSED",
            f"Auth strategy '{auth.strategy}' is enabled but no operation requires authentication.",
            "config.auth",
        )
    return result


def validate_coverage(graph: ProjectGraph) -> ValidationResult:
    """Non-fatal findings about what will (not) be generated."""
    result: ValidationResult = ValidationResult()

    if not graph.entities:
        result.add_warning("NO_ENTITIES", "The project defines no entities.", "entities")

    for entity in graph.entities:
        if entity.config.generate_api and graph.endpoint_for(entity.id) is None:
            result.add_warning(
                "ENTITY_WITHOUT_ENDPOINTS",
                f"Entity '{entity.name}' has no endpoint group; no API is generated for it.",
                _entity_path(entity),
            )
    return result


def validate_generator_config(config: GeneratorConfig) -> ValidationResult:
    """Per-invocation configuration sanity checks."""
    result: ValidationResult = ValidationResult()

    if not config.output_root.strip():
        result.add_error("EMPTY_OUTPUT_ROOT", "output_root must not be empty.", "generator.output_root")
    if config.parallel and config.max_workers == 1:
        result.add_info(
            "PARALLEL_SINGLE_WORKER",
            "parallel is enabled with max_workers=1; generators run one at a time.",
            "generator.max_workers",
        )
    return result


# ---------------------------------------------------------------------------
# Composite validation orchestrators
# ---------------------------------------------------------------------------

_GRAPH_VALIDATORS: List[Callable[[ProjectGraph], ValidationResult]] = [
    validate_entity_names,
    validate_fields,
    validate_primary_keys,
    validate_foreign_keys,
    validate_type_references,
    validate_enums,
    validate_relationships,
    validate_endpoints,
    validate_field_rules,
    validate_security,
    validate_coverage,
]


def validate_graph(graph: ProjectGraph) -> ValidationResult:
    """
    **Master validation entry point.** Runs every rule and merges the
    results.

    Complexity: O(E + F + R + G), linear in total graph elements.
    """
    logger.info(
        "Starting graph validation: %d entities, %d relationships, %d endpoint groups",
        len(graph.entities),
        len(graph.relationships),
        len(graph.endpoints),
    )
    result: ValidationResult = ValidationResult()

    for validator_fn in _GRAPH_VALIDATORS:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(graph))

    if result.has_errors:
        logger.error(
            "Validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


def validate(graph: ProjectGraph) -> ProjectGraph:
    """
    Gate: return *graph* unchanged when valid, otherwise raise
    ``GraphValidationError`` carrying every violation.
    """
    result: ValidationResult = validate_graph(graph)
    if not result.is_valid:
        raise GraphValidationError(result)
    return graph


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "resolve_target_field",
    "resolve_base_type",
    "types_compatible",
    "validate_entity_names",
    "validate_fields",
    "validate_primary_keys",
    "validate_foreign_keys",
    "validate_type_references",
    "validate_enums",
    "validate_relationships",
    "validate_endpoints",
    "validate_field_rules",
    "validate_security",
    "validate_coverage",
    "validate_generator_config",
    "validate_graph",
    "validate",
]

logger.debug("apiforge.validators loaded: %d public symbols.", len(__all__))
