# File: apiforge/generators/base.py
"""
NexaFlow APIForge - Generator Base
===================================
Shared, read-only state for every generator (``GenerationContext``) and the
``BaseGenerator`` all concrete generators derive from.

Generators are stateless apart from their indentation strings: they read
the analyzed graph through the context and return ``GeneratedFile`` lists.
No generator ever reads another generator's output.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from apiforge import naming
from apiforge.analyzer import AnalysisResult
from apiforge.errors import GenerationCancelled
from apiforge.models import (
    AuthStrategy,
    CrudOperation,
    DataKind,
    EndpointGroup,
    Entity,
    EntityField,
    GeneratedFile,
    GeneratorConfig,
    ProjectGraph,
    Relationship,
    ResolvedSecurity,
    resolve_security,
)
from apiforge.type_mapper import TypeMapper, TypeMapping

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.generators.base")

GENERATED_BANNER: str = "Generated by NexaFlow APIForge."

_RESERVED_PARAMS: FrozenSet[str] = frozenset({"db", "offset", "limit", "claims", "filters"})
_UNFILTERABLE_KINDS: FrozenSet[str] = frozenset(
    {DataKind.ARRAY.value, DataKind.JSON.value, DataKind.BYTES.value}
)
_FILTER_BY_DEFAULT_KINDS: FrozenSet[str] = frozenset({DataKind.BOOL.value, DataKind.ENUM.value})


# ---------------------------------------------------------------------------
# Derived route descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NestedRoute:
    """
    Parent-scoped routes derived from a nested relationship: the *child*
    is the owning entity (it carries the FK), the *parent* the referenced
    one.
    """

    relationship: Relationship
    parent: Entity
    child: Entity
    fk_field: str
    parent_attr: str
    router_name: str
    prefix: str
    parent_param: str
    child_param: str
    operations: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class Junction:
    """Columns of a synthetic ManyToMany junction table."""

    relationship: Relationship
    table: str
    source: Entity
    target: Entity
    source_column: str
    target_column: str


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GenerationContext:
    """Everything a generator may read. Immutable for the whole run."""

    graph: ProjectGraph
    analysis: AnalysisResult
    types: TypeMapper
    backend: str
    auth_strategy: str
    config: GeneratorConfig
    cancel_event: Optional[threading.Event] = field(default=None, compare=False)

    # -- Cancellation -------------------------------------------------------

    def checkpoint(self, unit: str) -> None:
        """Raise ``GenerationCancelled`` if the caller asked to stop."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise GenerationCancelled(f"Generation cancelled before {unit}.")

    # -- Project-level facts ------------------------------------------------

    @property
    def package(self) -> str:
        return self.graph.config.package_name

    @property
    def auth_enabled(self) -> bool:
        return self.auth_strategy != AuthStrategy.NONE.value

    def pkg_path(self, *parts: str) -> str:
        return "/".join((self.package,) + parts)

    def pkg_module(self, *parts: str) -> str:
        return ".".join((self.package,) + parts)

    # -- Entities -----------------------------------------------------------

    def entities_in_order(self) -> List[Entity]:
        """Entities in dependency order."""
        return [self.graph.entity(ref) for ref in self.analysis.order]

    def api_entities(self) -> List[Tuple[Entity, EndpointGroup]]:
        """Entities with an enabled endpoint group, in declaration order."""
        result: List[Tuple[Entity, EndpointGroup]] = []
        for entity in self.graph.entities:
            group: Optional[EndpointGroup] = self.graph.endpoint_for(entity.id)
            if group is not None and group.enabled and entity.config.generate_api:
                result.append((entity, group))
        return result

    def group_for(self, entity: Entity) -> Optional[EndpointGroup]:
        for ent, group in self.api_entities():
            if ent is entity:
                return group
        return None

    def mapping(self, f: EntityField) -> TypeMapping:
        return self.types.map(f.data_type)

    def security_for(self, group: EndpointGroup, op: CrudOperation) -> ResolvedSecurity:
        """operation override > group default > project default, field by field."""
        return resolve_security(op.security, group.security, self.graph.config.default_security)

    def filterable_fields(self, entity: Entity) -> List[EntityField]:
        """Fields a listing may filter on: unique, indexed, FK, bool or enum columns."""
        result: List[EntityField] = []
        for f in entity.effective_fields():
            if f.is_primary or not f.in_response or f.name in _RESERVED_PARAMS:
                continue
            base_kind: str = f.data_type.unwrapped().kind
            if base_kind in _UNFILTERABLE_KINDS:
                continue
            is_fk: bool = self.analysis.fk_for(entity.id, f.name) is not None
            if f.unique or f.indexed or is_fk or base_kind in _FILTER_BY_DEFAULT_KINDS:
                result.append(f)
        return result

    def has_rate_limits(self) -> bool:
        return any(
            op.rate_limit is not None
            for _, group in self.api_entities()
            for op in group.enabled_operations()
        )

    def has_secret_fields(self) -> bool:
        return any(f.is_secret for e in self.graph.entities for f in e.effective_fields())

    def needs_hashing(self) -> bool:
        return self.auth_enabled or self.has_secret_fields()

    # -- Relationships ------------------------------------------------------

    def junctions(self) -> List[Junction]:
        result: List[Junction] = []
        for rel in self.graph.relationships:
            if not rel.is_many_to_many:
                continue
            source: Entity = self.graph.entity(rel.source)
            target: Entity = self.graph.entity(rel.target)
            source_column: str = f"{naming.to_snake_case(source.name)}_id"
            target_column: str = f"{naming.to_snake_case(target.name)}_id"
            if source_column == target_column:
                target_column = f"related_{target_column}"
            result.append(
                Junction(
                    relationship=rel,
                    table=rel.junction,
                    source=source,
                    target=target,
                    source_column=source_column,
                    target_column=target_column,
                )
            )
        return result

    def nested_routes(self) -> List[NestedRoute]:
        """Parent-scoped route sets, one per nested FK-carrying relationship."""
        result: List[NestedRoute] = []
        for rel in self.graph.relationships:
            if not rel.nested or rel.is_many_to_many:
                continue
            child: Entity = self.graph.owning_entity(rel)
            parent: Entity = self.graph.referenced_entity(rel)
            child_group: Optional[EndpointGroup] = self.group_for(child)
            parent_group: Optional[EndpointGroup] = self.group_for(parent)
            if child_group is None or parent_group is None:
                continue
            fk_field: str = self.graph.relationship_fk_field(rel)
            fk: Optional[EntityField] = child.field_by_name(fk_field)
            settable: bool = fk is not None and fk.in_create
            operations: Tuple[str, ...] = tuple(
                kind for kind in ("create", "read", "read_all", "delete")
                if child_group.is_enabled(kind) and (kind != "create" or settable)
            )
            if not operations:
                continue

            forward, inverse = self.graph.relationship_attr_names(rel)
            parent_attr: str = forward if rel.referenced_ref == rel.source else inverse
            if self.graph.entity(rel.source) is self.graph.entity(rel.target):
                parent_attr = inverse if rel.kind != "one_to_many" else forward

            parent_param: str = f"{naming.to_snake_case(parent.name)}_id"
            child_param: str = f"{naming.to_snake_case(child.name)}_id"
            if parent_param == child_param:
                parent_param = "parent_id"

            parent_base: str = self.graph.base_path_for(parent_group)
            result.append(
                NestedRoute(
                    relationship=rel,
                    parent=parent,
                    child=child,
                    fk_field=fk_field,
                    parent_attr=parent_attr,
                    router_name=f"{naming.to_snake_case(parent.name)}_{parent_attr}_router",
                    prefix=f"{parent_base}/{{{parent_param}}}/{naming.to_kebab_case(parent_attr)}",
                    parent_param=parent_param,
                    child_param=child_param,
                    operations=operations,
                )
            )
        return result

    def nested_routes_for_child(self, child: Entity) -> List[NestedRoute]:
        return [n for n in self.nested_routes() if n.child is child]


# ---------------------------------------------------------------------------
# Base generator
# ---------------------------------------------------------------------------


class BaseGenerator:
    """
    Common plumbing: indentation strings, file headers and ``GeneratedFile``
    construction. Subclasses implement :meth:`generate`.
    """

    name: str = "base"

    def __init__(self, ctx: GenerationContext) -> None:
        self._ctx: GenerationContext = ctx
        self._indent: str = " " * ctx.config.indent_size
        self._double_indent: str = self._indent * 2
        self._triple_indent: str = self._indent * 3
        self._quad_indent: str = self._indent * 4

    def generate(self) -> List[GeneratedFile]:
        raise NotImplementedError

    # -- Helpers ------------------------------------------------------------

    @property
    def _docstrings(self) -> bool:
        return self._ctx.config.generate_docstrings

    def _module_header(self, title: str, extra: Sequence[str] = ()) -> List[str]:
        lines: List[str] = ['"""', title]
        lines.extend(extra)
        lines.append(GENERATED_BANNER)
        lines.append('"""')
        lines.append("")
        return lines

    @staticmethod
    def _file(
        path: str,
        lines: Iterable[str],
        provides: Iterable[str] = (),
        requires: Iterable[str] = (),
    ) -> GeneratedFile:
        content: str = "\n".join(lines).rstrip("\n") + "\n"
        return GeneratedFile(
            path=path,
            content=content,
            provides=frozenset(provides),
            requires=frozenset(requires),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def symbols(prefix: str, names: Iterable[str]) -> FrozenSet[str]:
    """``symbols("handler", ["a", "b"])`` → ``{"handler:a", "handler:b"}``."""
    return frozenset(f"{prefix}:{n}" for n in names)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GENERATED_BANNER",
    "NestedRoute",
    "Junction",
    "GenerationContext",
    "BaseGenerator",
    "symbols",
]

logger.debug("apiforge.generators.base loaded.")
