# File: apiforge/generators/shapes.py
"""
NexaFlow APIForge - Shape Descriptors
======================================
Create / Update / Response descriptors for one entity. Built once from the
graph and consumed by both the schema emitter (Pydantic classes) and the
frontend emitter (TypeScript interfaces), so the two never disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from apiforge import naming
from apiforge.generators.base import GenerationContext, NestedRoute
from apiforge.models import Entity, EntityField
from apiforge.type_mapper import TypeMapping, imports_of

logger: logging.Logger = logging.getLogger("apiforge.generators.shapes")


@dataclass(frozen=True, slots=True)
class ShapeField:
    """One member of a request or response shape."""

    name: str
    source: EntityField
    python_type: str
    typescript_type: str
    required: bool
    secret_input: bool = False

    @property
    def optional_python_type(self) -> str:
        if self.python_type.startswith("Optional["):
            return self.python_type
        return f"Optional[{self.python_type}]"

    @property
    def optional_typescript_type(self) -> str:
        if self.typescript_type.endswith("| null"):
            return self.typescript_type
        return f"{self.typescript_type} | null"


@dataclass(frozen=True, slots=True)
class Shape:
    name: str
    kind: str
    fields: Tuple[ShapeField, ...]

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True, slots=True)
class EntityShapes:
    """Every shape of one entity plus the imports its annotations need."""

    entity: Entity
    create: Shape
    update: Shape
    response: Shape
    list_name: str
    python_imports: Tuple[Tuple[str, str], ...]

    @property
    def secret_inputs(self) -> List[Tuple[str, str]]:
        """``(input name, stored field name)`` for every renamed secret."""
        return [(f.name, f.source.name) for f in self.create.fields if f.secret_input]

    def import_dict(self) -> Dict[str, Set[str]]:
        result: Dict[str, Set[str]] = {}
        for module, name in self.python_imports:
            result.setdefault(module, set()).add(name)
        return result


def _member(ctx: GenerationContext, f: EntityField, required: bool) -> ShapeField:
    if f.is_secret:
        return ShapeField(
            name=naming.plaintext_input_name(f.name),
            source=f,
            python_type="str",
            typescript_type="string",
            required=required,
            secret_input=True,
        )
    mapping: TypeMapping = ctx.mapping(f)
    return ShapeField(
        name=f.name,
        source=f,
        python_type=mapping.python_type,
        typescript_type=mapping.typescript_type,
        required=required,
    )


def build_shapes(ctx: GenerationContext, entity: Entity) -> EntityShapes:
    """
    Create excludes the primary key, readonly and defaulted fields; secrets
    are accepted under their plaintext name. Update makes every mutable
    field optional. Response drops secret and hidden fields.
    """
    fields: List[EntityField] = entity.effective_fields()

    create_fields: List[ShapeField] = [
        _member(ctx, f, required=not f.nullable) for f in fields if f.in_create
    ]
    update_fields: List[ShapeField] = [
        _member(ctx, f, required=False) for f in fields if f.in_update
    ]
    response_fields: List[ShapeField] = []
    for f in fields:
        if not f.in_response:
            continue
        mapping: TypeMapping = ctx.mapping(f)
        python_type: str = mapping.python_type
        ts_type: str = mapping.typescript_type
        if f.nullable and not mapping.nullable:
            python_type = f"Optional[{python_type}]"
            ts_type = f"{ts_type} | null"
        response_fields.append(
            ShapeField(
                name=f.name,
                source=f,
                python_type=python_type,
                typescript_type=ts_type,
                required=True,
            )
        )

    mappings: List[TypeMapping] = [ctx.mapping(f) for f in fields if not f.is_secret]
    py_imports: Set[Tuple[str, str]] = set()
    for module, names in imports_of(mappings, "python").items():
        py_imports.update((module, n) for n in names)
    py_imports.add(("typing", "Optional"))
    py_imports.add(("typing", "List"))

    logger.debug(
        "Shapes for %s: create=%d update=%d response=%d",
        entity.name, len(create_fields), len(update_fields), len(response_fields),
    )
    return EntityShapes(
        entity=entity,
        create=Shape(naming.create_shape_name(entity.name), "create", tuple(create_fields)),
        update=Shape(naming.update_shape_name(entity.name), "update", tuple(update_fields)),
        response=Shape(naming.response_shape_name(entity.name), "response", tuple(response_fields)),
        list_name=naming.list_shape_name(entity.name),
        python_imports=tuple(sorted(py_imports)),
    )


def nested_create_shape(shapes: EntityShapes, route: NestedRoute) -> Shape:
    """The Create shape minus the foreign key that the parent path supplies."""
    return Shape(
        naming.nested_create_shape_name(route.child.name, route.parent.name),
        "create",
        tuple(f for f in shapes.create.fields if f.source.name != route.fk_field),
    )


__all__: List[str] = ["ShapeField", "Shape", "EntityShapes", "build_shapes", "nested_create_shape"]

logger.debug("apiforge.generators.shapes loaded.")
