"""
tests/test_analyzer.py
Tests for table ordering, deferred constraints and cycle reporting.
"""

from __future__ import annotations

from typing import Any, Dict, List

from apiforge.analyzer import analyze, collect_foreign_keys
from apiforge.generator import parse_raw_schema
from apiforge.models import ProjectGraph


def _graph(raw: Dict[str, Any]) -> ProjectGraph:
    graph, _config = parse_raw_schema(raw)
    return graph


class TestOrdering:
    def test_referenced_entity_comes_first(self, user_post_dict: Dict[str, Any]) -> None:
        result = analyze(_graph(user_post_dict))
        assert result.order == ("User", "Post")
        assert result.deferred == ()
        assert result.cycles == ()

    def test_independent_entities_keep_declaration_order(
        self, post_tag_dict: Dict[str, Any]
    ) -> None:
        result = analyze(_graph(post_tag_dict))
        assert result.order == ("Post", "Tag")
        assert result.foreign_keys == ()

    def test_reference_document(self, blog_graph: ProjectGraph) -> None:
        result = analyze(blog_graph)
        assert result.order == ("User", "Post", "Tag")
        edge = result.fk_for("Post", "author_id")
        assert edge is not None
        assert edge.target == "User"
        assert edge.on_delete == "CASCADE"
        assert edge.origin == "User.posts"

    def test_order_is_stable(self, cyclic_dict: Dict[str, Any]) -> None:
        first = analyze(_graph(cyclic_dict))
        second = analyze(_graph(cyclic_dict))
        assert first.order == second.order
        assert first.deferred == second.deferred
        assert first.foreign_keys == second.foreign_keys


class TestForeignKeyCollection:
    def test_relationship_implies_edge(self, user_post_dict: Dict[str, Any]) -> None:
        edges = collect_foreign_keys(_graph(user_post_dict))
        assert len(edges) == 1
        edge = edges[0]
        assert (edge.table, edge.column) == ("posts", "user_id")
        assert (edge.target_table, edge.target_column) == ("users", "id")
        assert edge.on_delete == "RESTRICT"

    def test_explicit_reference_wins(self, user_post_dict: Dict[str, Any]) -> None:
        post_fields = user_post_dict["entities"][0]["fields"]
        post_fields[2]["foreign_key"] = {"target_entity": "User", "on_delete": "cascade"}
        edges = collect_foreign_keys(_graph(user_post_dict))
        assert len(edges) == 1
        assert edges[0].origin == "field"
        assert edges[0].on_delete == "CASCADE"

    def test_many_to_many_contributes_no_edge(self, post_tag_dict: Dict[str, Any]) -> None:
        assert collect_foreign_keys(_graph(post_tag_dict)) == []


class TestCycles:
    def test_cycle_is_broken_and_deferred(self, cyclic_dict: Dict[str, Any]) -> None:
        result = analyze(_graph(cyclic_dict))
        assert result.order == ("Department", "Employee")
        assert [e.describe() for e in result.deferred] == ["departments.manager_id → employees.id"]
        assert len(result.foreign_keys) == 2

    def test_cycle_reported_as_warning(self, cyclic_dict: Dict[str, Any]) -> None:
        result = analyze(_graph(cyclic_dict))
        assert len(result.cycles) == 1
        assert result.cycles[0].entities == ["Department", "Employee"]
        warnings = result.warnings()
        assert "Department → Employee → Department" in warnings[0]

    def test_self_reference_is_deferred(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["entities"][0]["fields"].append(
            {
                "name": "parent_id",
                "type": "optional<uuid>",
                "required": False,
                "foreign_key": {"target_entity": "Note", "on_delete": "set_null"},
            }
        )
        result = analyze(_graph(minimal_schema_dict))
        assert result.order == ("Note",)
        assert len(result.deferred) == 1
        assert result.deferred[0].is_self_reference
        assert result.is_deferred(result.deferred[0])
        assert "references itself" in result.warnings()[0]

    def test_three_entity_cycle(self) -> None:
        def entity(name: str, target: str) -> Dict[str, Any]:
            return {
                "name": name,
                "fields": [
                    {"name": "id", "type": "uuid", "primary_key": True},
                    {
                        "name": f"{target.lower()}_id",
                        "type": "optional<uuid>",
                        "required": False,
                        "foreign_key": target,
                    },
                ],
            }

        graph = _graph({"entities": [entity("A", "B"), entity("B", "C"), entity("C", "A")]})
        result = analyze(graph)
        assert result.order == ("A", "C", "B")
        assert len(result.cycles) == 1
        assert result.cycles[0].entities == ["A", "B", "C"]
        assert [e.entity for e in result.deferred] == ["A"]


class TestLargeGraphs:
    def test_long_foreign_key_chain(self) -> None:
        size = 1200
        entities = []
        for i in range(size):
            fields: List[Dict[str, Any]] = [{"name": "id", "type": "uuid", "primary_key": True}]
            if i + 1 < size:
                fields.append({"name": "next_id", "type": "uuid", "foreign_key": f"E{i + 1}"})
            entities.append({"name": f"E{i}", "fields": fields})

        result = analyze(_graph({"entities": entities}))
        assert result.order == tuple(f"E{i}" for i in reversed(range(size)))
        assert result.deferred == ()
        assert result.cycles == ()

    def test_long_cycle_is_broken_once(self) -> None:
        size = 1200
        entities = [
            {
                "name": f"E{i}",
                "fields": [
                    {"name": "id", "type": "uuid", "primary_key": True},
                    {
                        "name": "next_id",
                        "type": "optional<uuid>",
                        "required": False,
                        "foreign_key": f"E{(i + 1) % size}",
                    },
                ],
            }
            for i in range(size)
        ]

        result = analyze(_graph({"entities": entities}))
        assert len(result.order) == size
        assert [e.entity for e in result.deferred] == ["E0"]
        assert len(result.cycles) == 1
