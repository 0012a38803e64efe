# File: apiforge/generators/models.py
"""
NexaFlow APIForge - Model Generator
====================================
Emits, per entity:

- ``<pkg>/models/<module>.py``: SQLAlchemy 2.0 declarative class with one
  ``mapped_column`` per effective field and a ``relationship()`` for every
  Relationship touching the entity.
- ``<pkg>/schemas/<module>.py``: Pydantic V2 Create / Update / Response /
  ListResponse shapes, plus one ``<Child>CreateFor<Parent>`` body per nested
  create route (the parent key comes from the URL).

Plus ``<pkg>/models/associations.py`` (junction ``Table`` objects) when any
ManyToMany relationship exists, and the ``models`` / ``schemas`` package
``__init__`` files.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from apiforge import naming
from apiforge.analyzer import ForeignKeyEdge
from apiforge.generators.base import BaseGenerator, Junction, symbols
from apiforge.generators.shapes import EntityShapes, Shape, build_shapes, nested_create_shape
from apiforge.models import (
    DefaultKind,
    Entity,
    EntityField,
    GeneratedFile,
    IdStrategy,
    Relationship,
)
from apiforge.type_mapper import TypeMapping
from apiforge.utils import build_import_block, merge_import_dicts, py_literal, py_string

logger: logging.Logger = logging.getLogger("apiforge.generators.models")


class ModelGenerator(BaseGenerator):
    """ORM classes, junction tables and request/response schemas."""

    name: str = "models"

    def generate(self) -> List[GeneratedFile]:
        files: List[GeneratedFile] = []
        for entity in self._ctx.graph.entities:
            self._ctx.checkpoint(f"models for {entity.name}")
            files.append(self.generate_orm_model(entity))
            files.append(self.generate_schemas(entity))
        junctions: List[Junction] = self._ctx.junctions()
        if junctions:
            files.append(self.generate_associations(junctions))
        files.append(self._models_init(bool(junctions)))
        files.append(self._schemas_init())
        logger.debug("Model generator produced %d file(s).", len(files))
        return files

    # ===================================================================
    # 1. ORM models
    # ===================================================================

    def generate_orm_model(self, entity: Entity) -> GeneratedFile:
        ctx = self._ctx
        class_name: str = naming.model_class_name(entity.name)
        fields: List[EntityField] = entity.effective_fields()

        orm_imports: Dict[str, Set[str]] = {
            "sqlalchemy.orm": {"Mapped", "mapped_column"},
            "typing": {"Optional"},
            ctx.pkg_module("database"): {"Base"},
        }
        column_lines: List[str] = []
        for f in fields:
            column_lines.append(self._column_line(entity, f, orm_imports))

        relationship_lines: List[str] = []
        requires: Set[str] = {"db:Base"}
        for rel in ctx.graph.relationships_for(entity.id):
            for line in self._relationship_lines(entity, rel):
                relationship_lines.append(line)
            other_refs = {rel.source, rel.target}
            for ref in other_refs:
                other: Optional[Entity] = ctx.graph.entity(ref)
                if other is not None and other is not entity:
                    requires.add(f"model:{naming.model_class_name(other.name)}")
            if rel.is_many_to_many:
                requires.add(f"association:{rel.junction}")
        if relationship_lines:
            orm_imports["sqlalchemy.orm"].add("relationship")
            orm_imports["typing"].add("List")

        lines: List[str] = self._module_header(
            f"SQLAlchemy ORM model for table: {entity.table_name}"
        )
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append(build_import_block(orm_imports))
        lines.append("")
        lines.append("")
        lines.append(f"class {class_name}(Base):")
        if self._docstrings:
            lines.append(f'{self._indent}"""')
            lines.append(f"{self._indent}ORM model for the '{entity.table_name}' table.")
            if entity.description:
                lines.append(f"{self._indent}")
                lines.append(f"{self._indent}{entity.description}")
            lines.append(f'{self._indent}"""')
            lines.append("")
        lines.append(f'{self._indent}__tablename__ = "{entity.table_name}"')
        lines.append("")
        lines.append(f"{self._indent}# --- Columns ---")
        for line in column_lines:
            lines.append(f"{self._indent}{line}")

        if relationship_lines:
            lines.append("")
            lines.append(f"{self._indent}# --- Relationships ---")
            for line in relationship_lines:
                lines.append(f"{self._indent}{line}")

        pk: Optional[EntityField] = entity.primary_key
        repr_attr: str = pk.name if pk is not None else fields[0].name
        lines.append("")
        lines.append(f"{self._indent}def __repr__(self) -> str:")
        lines.append(
            f'{self._double_indent}return f"<{class_name} {repr_attr}={{self.{repr_attr}!r}}>"'
        )

        return self._file(
            ctx.pkg_path("models", f"{naming.module_name(entity.name)}.py"),
            lines,
            provides={f"model:{class_name}"},
            requires=requires,
        )

    def _column_line(
        self, entity: Entity, f: EntityField, imports: Dict[str, Set[str]]
    ) -> str:
        ctx = self._ctx
        mapping: TypeMapping = ctx.mapping(f)
        for module, name in mapping.python_imports:
            if name != "Literal":
                imports.setdefault(module, set()).add(name)
        for module, name in mapping.sqlalchemy_imports:
            imports.setdefault(module, set()).add(name)

        annotation: str = mapping.orm_type
        if f.nullable and not annotation.startswith("Optional["):
            annotation = f"Optional[{annotation}]"

        parts: List[str] = []
        if f.column_name != f.name:
            parts.append(py_string(f.column_name))
        parts.append(mapping.sqlalchemy_type)

        edge: Optional[ForeignKeyEdge] = ctx.analysis.fk_for(entity.id, f.name)
        if edge is not None:
            imports.setdefault("sqlalchemy", set()).add("ForeignKey")
            fk_args: str = (
                f'"{edge.target_table}.{edge.target_column}", '
                f'ondelete="{edge.on_delete}", onupdate="{edge.on_update}"'
            )
            if ctx.analysis.is_deferred(edge):
                fk_args += (
                    f', use_alter=True, name="{naming.foreign_key_name(edge.table, edge.column)}"'
                )
            parts.append(f"ForeignKey({fk_args})")

        if f.is_primary:
            parts.append("primary_key=True")
            if entity.config.id_strategy == IdStrategy.SERIAL.value:
                parts.append("autoincrement=True")
            elif mapping.python_type == "UUID" and f.default is None:
                imports.setdefault("uuid", set()).add("uuid4")
                parts.append("default=uuid4")
        else:
            parts.append(f"nullable={f.nullable}")
            if f.unique:
                parts.append("unique=True")
            is_soft_delete_column: bool = entity.config.soft_delete and f.name == "deleted_at"
            if (f.indexed or edge is not None or is_soft_delete_column) and not f.unique:
                parts.append("index=True")

        parts.extend(self._default_args(f, mapping, imports))
        return f"{f.name}: Mapped[{annotation}] = mapped_column({', '.join(parts)})"

    @staticmethod
    def _default_args(
        f: EntityField, mapping: TypeMapping, imports: Dict[str, Set[str]]
    ) -> List[str]:
        if f.default is None:
            return []
        kind: str = f.default.kind
        if kind == DefaultKind.NOW.value:
            imports.setdefault("sqlalchemy", set()).add("func")
            args: List[str] = ["server_default=func.now()"]
            if f.name == "updated_at":
                args.append("onupdate=func.now()")
            return args
        if kind == DefaultKind.GENERATED_ID.value:
            imports.setdefault("uuid", set()).add("uuid4")
            return ["default=uuid4"]
        if kind == DefaultKind.EXPRESSION.value:
            imports.setdefault("sqlalchemy", set()).add("text")
            return [f"server_default=text({py_string(str(f.default.value))})"]
        if kind == DefaultKind.NULL.value:
            return ["default=None"]
        return [f"default={py_literal(f.default.value)}"]

    def _relationship_lines(self, entity: Entity, rel: Relationship) -> List[str]:
        """One line per side of *rel* that lives on *entity* (two for self-references)."""
        ctx = self._ctx
        graph = ctx.graph
        source: Entity = graph.entity(rel.source)
        target: Entity = graph.entity(rel.target)
        forward, inverse = graph.relationship_attr_names(rel)
        self_referential: bool = source is target

        sides: List[tuple] = []
        if source is entity:
            sides.append((forward, inverse, target, rel.source_is_many, "forward"))
        if target is entity:
            sides.append((inverse, forward, source, rel.target_is_many, "inverse"))

        lines: List[str] = []
        for attr, back, other, many, side in sides:
            other_class: str = naming.model_class_name(other.name)
            parts: List[str] = [f'"{other_class}"', f'back_populates="{back}"']

            if rel.is_many_to_many:
                junction: Junction = next(j for j in ctx.junctions() if j.relationship is rel)
                parts.append(f'secondary="{junction.table}"')
                if self_referential:
                    pk: EntityField = entity.primary_key
                    near, far = (
                        (junction.source_column, junction.target_column)
                        if side == "forward"
                        else (junction.target_column, junction.source_column)
                    )
                    owner_class: str = naming.model_class_name(entity.name)
                    parts.append(
                        f'primaryjoin="{owner_class}.{pk.name} == {junction.table}.c.{near}"'
                    )
                    parts.append(
                        f'secondaryjoin="{owner_class}.{pk.name} == {junction.table}.c.{far}"'
                    )
            else:
                owner: Entity = graph.owning_entity(rel)
                fk_field: str = graph.relationship_fk_field(rel)
                parts.append(f'foreign_keys="{naming.model_class_name(owner.name)}.{fk_field}"')
                if self_referential:
                    scalar_side: str = "inverse" if rel.kind == "one_to_many" else "forward"
                    if side == scalar_side:
                        referenced = graph.relationship_references_field(rel)
                        parts.append(
                            f'remote_side="{other_class}.{referenced.name}"'
                        )

            if many:
                type_hint: str = f'Mapped[List["{other_class}"]]'
            else:
                parts.append("uselist=False")
                type_hint = f'Mapped[Optional["{other_class}"]]'
            lines.append(f"{attr}: {type_hint} = relationship({', '.join(parts)})")
        return lines

    # ===================================================================
    # 2. Junction tables
    # ===================================================================

    def generate_associations(self, junctions: List[Junction]) -> GeneratedFile:
        ctx = self._ctx
        imports: Dict[str, Set[str]] = {
            "sqlalchemy": {"Column", "ForeignKey", "Table", "UniqueConstraint"},
            ctx.pkg_module("database"): {"Base"},
        }
        body: List[str] = []
        for junction in junctions:
            rel: Relationship = junction.relationship
            body.append(f"{naming.safe_identifier(junction.table)} = Table(")
            body.append(f'{self._indent}"{junction.table}",')
            body.append(f"{self._indent}Base.metadata,")
            for entity, column in (
                (junction.source, junction.source_column),
                (junction.target, junction.target_column),
            ):
                pk: EntityField = entity.primary_key
                mapping: TypeMapping = ctx.mapping(pk)
                for module, name in mapping.sqlalchemy_imports:
                    imports.setdefault(module, set()).add(name)
                body.append(
                    f'{self._indent}Column("{column}", {mapping.sqlalchemy_type}, '
                    f'ForeignKey("{entity.table_name}.{pk.column_name}", ondelete="CASCADE"), '
                    f"nullable=False),"
                )
            constraint: str = naming.unique_constraint_name(
                junction.table, (junction.source_column, junction.target_column)
            )
            body.append(
                f'{self._indent}UniqueConstraint("{junction.source_column}", '
                f'"{junction.target_column}", name="{constraint}"),'
            )
            body.append(")")
            body.append("")
            logger.debug("Junction table %s for relationship %s", junction.table, rel.id)

        lines: List[str] = self._module_header("Association tables for many-to-many relationships.")
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append(build_import_block(imports))
        lines.append("")
        lines.append("")
        lines.extend(body)
        return self._file(
            ctx.pkg_path("models", "associations.py"),
            lines,
            provides=symbols("association", [j.table for j in junctions]),
            requires={"db:Base"},
        )

    def _models_init(self, with_associations: bool) -> GeneratedFile:
        ctx = self._ctx
        lines: List[str] = self._module_header("ORM models. Importing this package registers every table.")
        names: List[str] = []
        if with_associations:
            lines.append(f"from {ctx.pkg_module('models')} import associations  # noqa: F401")
        for entity in ctx.graph.entities:
            class_name: str = naming.model_class_name(entity.name)
            names.append(class_name)
            lines.append(
                f"from {ctx.pkg_module('models', naming.module_name(entity.name))} import {class_name}"
            )
        lines.append("")
        lines.append("__all__ = [")
        for class_name in names:
            lines.append(f'{self._indent}"{class_name}",')
        lines.append("]")
        return self._file(
            ctx.pkg_path("models", "__init__.py"),
            lines,
            requires=symbols("model", names),
        )

    # ===================================================================
    # 3. Pydantic schemas
    # ===================================================================

    def generate_schemas(self, entity: Entity) -> GeneratedFile:
        ctx = self._ctx
        shapes: EntityShapes = build_shapes(ctx, entity)
        imports: Dict[str, Set[str]] = merge_import_dicts(
            shapes.import_dict(),
            {"pydantic": {"BaseModel", "ConfigDict", "Field"}},
        )

        lines: List[str] = self._module_header(f"Pydantic V2 schemas for table: {entity.table_name}")
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append(build_import_block(imports))
        lines.append("")
        lines.append("")
        lines.extend(self._request_schema(shapes.create, f"Request body for creating a {entity.name}."))
        nested_shapes: List[Shape] = []
        for route in ctx.nested_routes_for_child(entity):
            if "create" not in route.operations:
                continue
            nested_shape: Shape = nested_create_shape(shapes, route)
            nested_shapes.append(nested_shape)
            lines.append("")
            lines.append("")
            lines.extend(
                self._request_schema(
                    nested_shape,
                    f"Request body for creating a {entity.name} under a {route.parent.name}; "
                    f"``{route.fk_field}`` comes from the path.",
                )
            )
        lines.append("")
        lines.append("")
        lines.extend(
            self._request_schema(
                shapes.update, f"Partial update for {entity.name}; omitted fields are left unchanged."
            )
        )
        lines.append("")
        lines.append("")
        lines.extend(self._response_schema(shapes.response, entity))
        lines.append("")
        lines.append("")
        lines.extend(self._list_schema(shapes))

        provides: Set[str] = {
            f"schema:{shapes.create.name}",
            f"schema:{shapes.update.name}",
            f"schema:{shapes.response.name}",
            f"schema:{shapes.list_name}",
        }
        provides.update(f"schema:{s.name}" for s in nested_shapes)
        return self._file(
            ctx.pkg_path("schemas", f"{naming.module_name(entity.name)}.py"),
            lines,
            provides=provides,
        )

    def _request_schema(self, shape: Shape, doc: str) -> List[str]:
        lines: List[str] = [f"class {shape.name}(BaseModel):"]
        if self._docstrings:
            lines.append(f'{self._indent}"""{doc}"""')
            lines.append("")
        if not shape.fields:
            lines.append(f"{self._indent}pass")
            return lines
        for member in shape.fields:
            if member.required:
                lines.append(f"{self._indent}{member.name}: {member.python_type}")
            else:
                lines.append(
                    f"{self._indent}{member.name}: {member.optional_python_type} = Field(default=None)"
                )
        return lines

    def _response_schema(self, shape: Shape, entity: Entity) -> List[str]:
        lines: List[str] = [f"class {shape.name}(BaseModel):"]
        if self._docstrings:
            lines.append(f'{self._indent}"""{entity.name} as returned by the API."""')
            lines.append("")
        lines.append(f"{self._indent}model_config = ConfigDict(from_attributes=True)")
        lines.append("")
        for member in shape.fields:
            if member.python_type.startswith("Optional["):
                lines.append(f"{self._indent}{member.name}: {member.python_type} = None")
            else:
                lines.append(f"{self._indent}{member.name}: {member.python_type}")
        return lines

    def _list_schema(self, shapes: EntityShapes) -> List[str]:
        lines: List[str] = [f"class {shapes.list_name}(BaseModel):"]
        if self._docstrings:
            lines.append(f'{self._indent}"""Paginated list response for {shapes.entity.name}."""')
            lines.append("")
        lines.append(
            f"{self._indent}items: List[{shapes.response.name}] = Field(default_factory=list)"
        )
        lines.append(
            f'{self._indent}total: int = Field(default=0, description="Total number of records.")'
        )
        lines.append(f'{self._indent}offset: int = Field(default=0, description="Current offset.")')
        lines.append(f'{self._indent}limit: int = Field(default=50, description="Page size.")')
        lines.append(
            f'{self._indent}has_more: bool = Field(default=False, description="More records available.")'
        )
        return lines

    def _schemas_init(self) -> GeneratedFile:
        lines: List[str] = self._module_header("Request and response schemas.")
        return self._file(self._ctx.pkg_path("schemas", "__init__.py"), lines)


__all__: List[str] = ["ModelGenerator"]

logger.debug("apiforge.generators.models loaded.")
