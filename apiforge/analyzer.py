# File: apiforge/analyzer.py
"""
NexaFlow APIForge - Dependency Analyzer
========================================
Computes the order in which entity tables are created.

Entities are nodes of a ``networkx.DiGraph``; every foreign key from entity
A to entity B is an edge ``B → A`` (B must be created before A). The order
is a lexicographical topological sort keyed on declaration position, so the
earliest-declared ready entity always goes next and the result is stable
across runs.

Cycles are not errors. Inside every cyclic strongly connected component the
earliest-declared member gives up its dependencies on the rest of the
component; this repeats until the graph is acyclic. Foreign keys that end up
pointing at a later table are *deferred*: emitted as separate "add
constraint" statements after every table exists. Self-references are always
deferred.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

import networkx as nx

from apiforge.errors import DependencyCycleError
from apiforge.models import Entity, EntityField, ProjectGraph, Relationship
from apiforge.validators import resolve_target_field

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.analyzer")


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ForeignKeyEdge:
    """One foreign key, resolved to tables and columns."""

    entity: str
    field: str
    target: str
    target_field: str
    table: str
    column: str
    target_table: str
    target_column: str
    on_delete: str
    on_update: str
    origin: str = "field"  # "field" or the id of the implying relationship

    @property
    def is_self_reference(self) -> bool:
        return self.entity == self.target

    def describe(self) -> str:
        return f"{self.table}.{self.column} → {self.target_table}.{self.target_column}"


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    """Output of :func:`analyze`. Owned by a single generation run."""

    order: Tuple[str, ...]
    deferred: Tuple[ForeignKeyEdge, ...]
    foreign_keys: Tuple[ForeignKeyEdge, ...]
    cycles: Tuple[DependencyCycleError, ...]

    def fk_for(self, entity: str, field: str) -> Optional[ForeignKeyEdge]:
        for edge in self.foreign_keys:
            if edge.entity == entity and edge.field == field:
                return edge
        return None

    def is_deferred(self, edge: ForeignKeyEdge) -> bool:
        return edge in self.deferred

    def foreign_keys_of(self, entity: str) -> List[ForeignKeyEdge]:
        return [e for e in self.foreign_keys if e.entity == entity]

    def warnings(self) -> List[str]:
        return [str(c) for c in self.cycles]


# ---------------------------------------------------------------------------
# Foreign-key collection
# ---------------------------------------------------------------------------


def _edge(
    graph: ProjectGraph,
    entity: Entity,
    field: EntityField,
    target_ref: str,
    target_field_name: Optional[str],
    on_delete: str,
    on_update: str,
    origin: str,
) -> Optional[ForeignKeyEdge]:
    target: Optional[Entity] = graph.entity(target_ref)
    target_field: Optional[EntityField] = resolve_target_field(graph, target_ref, target_field_name)
    if target is None or target_field is None:
        logger.warning(
            "Skipping unresolved foreign key %s.%s → %s", entity.name, field.name, target_ref
        )
        return None
    return ForeignKeyEdge(
        entity=entity.id,
        field=field.name,
        target=target.id,
        target_field=target_field.name,
        table=entity.table_name,
        column=field.column_name,
        target_table=target.table_name,
        target_column=target_field.column_name,
        on_delete=on_delete,
        on_update=on_update,
        origin=origin,
    )


def collect_foreign_keys(graph: ProjectGraph) -> List[ForeignKeyEdge]:
    """
    Every FK edge in entity, then field, declaration order.

    Explicit ``ForeignKeyRef``s win; a relationship only contributes an edge
    for an owning field that carries no explicit reference. ManyToMany
    relationships contribute nothing here (their junction table is created
    after every entity table).
    """
    implied: Dict[Tuple[str, str], Relationship] = {}
    for rel in graph.relationships:
        if rel.is_many_to_many:
            continue
        owner: Optional[Entity] = graph.owning_entity(rel)
        if owner is None:
            continue
        implied.setdefault((owner.id, graph.relationship_fk_field(rel)), rel)

    edges: List[ForeignKeyEdge] = []
    for entity in graph.entities:
        for field in entity.fields:
            edge: Optional[ForeignKeyEdge] = None
            if field.foreign_key is not None:
                ref = field.foreign_key
                edge = _edge(
                    graph, entity, field, ref.target_entity, ref.target_field,
                    ref.on_delete, ref.on_update, "field",
                )
            elif (entity.id, field.name) in implied:
                rel = implied[(entity.id, field.name)]
                edge = _edge(
                    graph, entity, field, rel.referenced_ref, rel.references_field,
                    rel.on_delete, rel.on_update, rel.id,
                )
            if edge is not None:
                edges.append(edge)
    return edges


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _dependency_graph(nodes: List[str], foreign_keys: List[ForeignKeyEdge]) -> nx.DiGraph:
    """Edges point from the referenced entity to the referencing one."""
    graph: nx.DiGraph = nx.DiGraph()
    graph.add_nodes_from(nodes)
    for edge in foreign_keys:
        if not edge.is_self_reference:
            graph.add_edge(edge.target, edge.entity)
    return graph


def _cyclic_components(graph: nx.DiGraph, position: Dict[str, int]) -> List[List[str]]:
    """Components with more than one member, all in declaration order."""
    components: List[List[str]] = [
        sorted(component, key=position.__getitem__)
        for component in nx.strongly_connected_components(graph)
        if len(component) > 1
    ]
    return sorted(components, key=lambda c: position[c[0]])


def _break_cycles(graph: nx.DiGraph, position: Dict[str, int]) -> Tuple[nx.DiGraph, List[str]]:
    """
    Return an acyclic copy of *graph* and the entities that were released.

    Each round releases the earliest-declared member of every remaining
    cyclic component by dropping its dependencies inside that component.
    """
    acyclic: nx.DiGraph = graph.copy()
    released: List[str] = []
    components: List[List[str]] = _cyclic_components(acyclic, position)
    while components:
        for component in components:
            head: str = component[0]
            members: Set[str] = set(component)
            dropped: List[str] = [d for d in acyclic.predecessors(head) if d in members]
            acyclic.remove_edges_from((d, head) for d in dropped)
            released.append(head)
            logger.debug("Releasing '%s' from %s to break a dependency cycle.", head, dropped)
        components = _cyclic_components(acyclic, position)
    return acyclic, released


def analyze(graph: ProjectGraph) -> AnalysisResult:
    """
    Order entities for table creation and split off deferred constraints.

    Expects a validated graph; unresolved references are skipped.
    """
    nodes: List[str] = [e.id for e in graph.entities]
    position: Dict[str, int] = {n: i for i, n in enumerate(nodes)}
    foreign_keys: List[ForeignKeyEdge] = collect_foreign_keys(graph)

    dependencies: nx.DiGraph = _dependency_graph(nodes, foreign_keys)
    acyclic, released = _break_cycles(dependencies, position)
    order: List[str] = list(
        nx.lexicographical_topological_sort(acyclic, key=position.__getitem__)
    )
    rank: Dict[str, int] = {n: i for i, n in enumerate(order)}
    deferred: List[ForeignKeyEdge] = [
        e for e in foreign_keys if e.is_self_reference or rank[e.target] > rank[e.entity]
    ]

    names: Dict[str, str] = {e.id: e.name for e in graph.entities}
    self_referencing: Set[str] = {e.entity for e in foreign_keys if e.is_self_reference}
    reported: List[List[str]] = _cyclic_components(dependencies, position)
    in_cycle: Set[str] = {n for component in reported for n in component}
    reported.extend([n] for n in nodes if n in self_referencing and n not in in_cycle)
    reported.sort(key=lambda c: position[c[0]])
    cycles: List[DependencyCycleError] = [
        DependencyCycleError([names[n] for n in component]) for component in reported
    ]

    for cycle in cycles:
        logger.warning("%s", cycle)

    logger.info(
        "Dependency analysis: %d entities ordered, %d FK(s), %d deferred, %d released.",
        len(order),
        len(foreign_keys),
        len(deferred),
        len(released),
    )
    return AnalysisResult(
        order=tuple(order),
        deferred=tuple(deferred),
        foreign_keys=tuple(foreign_keys),
        cycles=tuple(cycles),
    )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ForeignKeyEdge",
    "AnalysisResult",
    "collect_foreign_keys",
    "analyze",
]

logger.debug("apiforge.analyzer loaded.")
