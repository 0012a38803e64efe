"""
tests/test_validators.py
Tests for the semantic graph validators: every rule collects its findings
(nothing is fail-fast) and reports them under a stable code.
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from apiforge.errors import GraphValidationError
from apiforge.generator import parse_raw_schema
from apiforge.models import DataType, GeneratorConfig, ProjectGraph
from apiforge.validators import (
    ValidationResult,
    types_compatible,
    validate,
    validate_generator_config,
    validate_graph,
)


def _result(raw: Dict[str, Any]) -> ValidationResult:
    graph, _config = parse_raw_schema(raw)
    return validate_graph(graph)


def _fields(raw: Dict[str, Any], entity_index: int = 0) -> List[Dict[str, Any]]:
    return raw["entities"][entity_index]["fields"]


# ---------------------------------------------------------------------------
# Valid documents
# ---------------------------------------------------------------------------


class TestValidDocuments:
    def test_reference_document_is_valid(self, blog_graph: ProjectGraph) -> None:
        result = validate_graph(blog_graph)
        assert result.is_valid, f"Unexpected errors:\n{result.format_report()}"

    @pytest.mark.parametrize(
        "fixture_name",
        ["minimal_schema_dict", "user_post_dict", "post_tag_dict", "cyclic_dict", "soft_delete_dict"],
    )
    def test_fixture_documents_are_valid(
        self, fixture_name: str, request: pytest.FixtureRequest
    ) -> None:
        result = _result(request.getfixturevalue(fixture_name))
        assert result.is_valid, f"{fixture_name}:\n{result.format_report()}"

    def test_validate_returns_same_graph(self, blog_graph: ProjectGraph) -> None:
        assert validate(blog_graph) is blog_graph

    def test_validate_raises_with_every_violation(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict)[0]["primary_key"] = False
        _fields(minimal_schema_dict).append({"name": "title", "type": "string"})
        graph, _ = parse_raw_schema(minimal_schema_dict)
        with pytest.raises(GraphValidationError) as exc_info:
            validate(graph)
        codes = exc_info.value.result.codes()
        assert {"MISSING_PRIMARY_KEY", "DUPLICATE_FIELD_NAME"} <= codes
        assert len(exc_info.value.violations) >= 2


# ---------------------------------------------------------------------------
# Entities, fields and keys
# ---------------------------------------------------------------------------


class TestEntitiesAndFields:
    def test_duplicate_entity_name(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["entities"].append(dict(minimal_schema_dict["entities"][0]))
        assert "DUPLICATE_ENTITY_NAME" in _result(minimal_schema_dict).codes()

    def test_invalid_entity_name(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["entities"][0]["name"] = "Sticky Note"
        minimal_schema_dict["endpoints"] = []
        assert "INVALID_ENTITY_NAME" in _result(minimal_schema_dict).codes()

    def test_reserved_table_name_is_a_warning(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["entities"][0]["table_name"] = "user"
        result = _result(minimal_schema_dict)
        assert result.is_valid
        assert "TABLE_NAME_SQL_RESERVED" in {w.code for w in result.warnings}

    def test_no_fields(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["entities"][0]["fields"] = []
        assert "NO_FIELDS" in _result(minimal_schema_dict).codes()

    def test_duplicate_field(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append({"name": "title", "type": "text"})
        assert "DUPLICATE_FIELD_NAME" in _result(minimal_schema_dict).codes()

    def test_keyword_field_name(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append({"name": "class", "type": "string"})
        assert "FIELD_NAME_PYTHON_KEYWORD" in _result(minimal_schema_dict).codes()

    def test_missing_primary_key(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict)[0]["primary_key"] = False
        assert "MISSING_PRIMARY_KEY" in _result(minimal_schema_dict).codes()

    def test_multiple_primary_keys(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append({"name": "code", "type": "uuid", "primary_key": True})
        assert "MULTIPLE_PRIMARY_KEYS" in _result(minimal_schema_dict).codes()

    def test_id_strategy_mismatch(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict)[0]["type"] = "int64"
        assert "PRIMARY_KEY_STRATEGY_MISMATCH" in _result(minimal_schema_dict).codes()

    def test_serial_strategy_accepts_integer_key(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict)[0]["type"] = "int64"
        minimal_schema_dict["entities"][0]["config"] = {"id_strategy": "serial"}
        result = _result(minimal_schema_dict)
        assert result.is_valid, result.format_report()

    def test_optional_primary_key(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict)[0]["type"] = "optional<uuid>"
        assert "PRIMARY_KEY_OPTIONAL" in _result(minimal_schema_dict).codes()


# ---------------------------------------------------------------------------
# Foreign keys and type references
# ---------------------------------------------------------------------------


class TestForeignKeys:
    def test_unknown_target_entity(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append(
            {"name": "folder_id", "type": "uuid", "foreign_key": "Folder"}
        )
        assert "FK_TARGET_ENTITY_NOT_FOUND" in _result(minimal_schema_dict).codes()

    def test_unknown_target_field(self, cyclic_dict: Dict[str, Any]) -> None:
        _fields(cyclic_dict, 1)[2]["foreign_key"] = "Department.code"
        assert "FK_TARGET_FIELD_NOT_FOUND" in _result(cyclic_dict).codes()

    def test_target_not_unique(self, cyclic_dict: Dict[str, Any]) -> None:
        _fields(cyclic_dict, 1).append(
            {"name": "department_name", "type": "string", "foreign_key": "Department.name"}
        )
        assert "FK_TARGET_NOT_UNIQUE" in _result(cyclic_dict).codes()

    def test_type_mismatch(self, cyclic_dict: Dict[str, Any]) -> None:
        _fields(cyclic_dict, 1)[2]["type"] = "int32"
        assert "FK_TYPE_MISMATCH" in _result(cyclic_dict).codes()

    def test_set_null_requires_nullable(self, cyclic_dict: Dict[str, Any]) -> None:
        manager = _fields(cyclic_dict, 0)[2]
        manager["type"] = "uuid"
        manager["required"] = True
        assert "FK_SET_NULL_ON_REQUIRED" in _result(cyclic_dict).codes()

    def test_unresolved_type_reference(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append({"name": "owner", "type": "reference<Ghost.id>"})
        assert "UNRESOLVED_REFERENCE" in _result(minimal_schema_dict).codes()

    def test_types_compatible(self, blog_graph: ProjectGraph) -> None:
        assert types_compatible(blog_graph, DataType.parse("int32"), DataType.parse("int64"))
        assert types_compatible(blog_graph, DataType.parse("string"), DataType.parse("optional<text>"))
        assert types_compatible(blog_graph, DataType.parse("reference<User.id>"), DataType.parse("uuid"))
        assert not types_compatible(blog_graph, DataType.parse("uuid"), DataType.parse("string"))


class TestEnums:
    def test_conflicting_variants(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).extend([
            {"name": "colour", "type": "enum<shade:red,blue>"},
            {"name": "border", "type": "enum<shade:red,green>"},
        ])
        assert "ENUM_CONFLICT" in _result(minimal_schema_dict).codes()

    def test_duplicate_variants(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append({"name": "colour", "type": "enum<shade:red,red>"})
        assert "ENUM_DUPLICATE_VARIANTS" in _result(minimal_schema_dict).codes()

    def test_shared_enum_is_fine(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).extend([
            {"name": "colour", "type": "enum<shade:red,blue>"},
            {"name": "border", "type": "optional<enum<shade:red,blue>>", "required": False},
        ])
        assert _result(minimal_schema_dict).is_valid


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


class TestRelationships:
    def test_unknown_endpoint(self, user_post_dict: Dict[str, Any]) -> None:
        user_post_dict["relationships"][0]["target"] = "Article"
        assert "REL_ENTITY_NOT_FOUND" in _result(user_post_dict).codes()

    def test_missing_fk_field(self, user_post_dict: Dict[str, Any]) -> None:
        del _fields(user_post_dict, 0)[2]
        assert "REL_FK_FIELD_NOT_FOUND" in _result(user_post_dict).codes()

    def test_fk_field_type_mismatch(self, user_post_dict: Dict[str, Any]) -> None:
        _fields(user_post_dict, 0)[2]["type"] = "int32"
        assert "REL_TYPE_MISMATCH" in _result(user_post_dict).codes()

    def test_set_null_on_required_fk_field(self, user_post_dict: Dict[str, Any]) -> None:
        user_post_dict["relationships"][0]["on_delete"] = "set_null"
        assert "FK_SET_NULL_ON_REQUIRED" in _result(user_post_dict).codes()

    def test_many_to_many_needs_junction(self, post_tag_dict: Dict[str, Any]) -> None:
        del post_tag_dict["relationships"][0]["junction"]
        assert "M2M_MISSING_JUNCTION" in _result(post_tag_dict).codes()

    def test_junction_collides_with_table(self, post_tag_dict: Dict[str, Any]) -> None:
        post_tag_dict["relationships"][0]["junction"] = "tags"
        assert "JUNCTION_COLLIDES_WITH_TABLE" in _result(post_tag_dict).codes()

    def test_duplicate_junction(self, post_tag_dict: Dict[str, Any]) -> None:
        post_tag_dict["relationships"].append(
            {
                "source": "Tag",
                "target": "Post",
                "kind": "many_to_many",
                "junction": "post_tags",
                "name": "featured_posts",
                "inverse_name": "featured_tags",
            }
        )
        assert "DUPLICATE_JUNCTION" in _result(post_tag_dict).codes()

    def test_attribute_collision(self, post_tag_dict: Dict[str, Any]) -> None:
        _fields(post_tag_dict, 0).append({"name": "tags", "type": "string"})
        assert "REL_ATTRIBUTE_COLLISION" in _result(post_tag_dict).codes()

    def test_nested_many_to_many_warns(self, post_tag_dict: Dict[str, Any]) -> None:
        post_tag_dict["relationships"][0]["nested"] = True
        result = _result(post_tag_dict)
        assert result.is_valid
        assert "NESTED_MANY_TO_MANY" in {w.code for w in result.warnings}


# ---------------------------------------------------------------------------
# Endpoints, rules and security
# ---------------------------------------------------------------------------


class TestEndpoints:
    def test_unknown_entity(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"].append({"entity": "Folder"})
        assert "ENDPOINT_ENTITY_NOT_FOUND" in _result(minimal_schema_dict).codes()

    def test_duplicate_group(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"].append({"entity": "Note", "id": "notes-again"})
        codes = _result(minimal_schema_dict).codes()
        assert "DUPLICATE_ENDPOINT_GROUP" in codes
        assert "DUPLICATE_BASE_PATH" in codes

    def test_invalid_base_path(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["base_path"] = "/api/my notes"
        assert "INVALID_BASE_PATH" in _result(minimal_schema_dict).codes()

    def test_duplicate_operation(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["operations"] = ["read", "read"]
        assert "DUPLICATE_OPERATION" in _result(minimal_schema_dict).codes()

    def test_invalid_rate_limit(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["operations"] = [
            {"kind": "create", "rate_limit": {"requests": 0, "window_seconds": 60}}
        ]
        assert "INVALID_RATE_LIMIT" in _result(minimal_schema_dict).codes()

    def test_invalid_success_status(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["operations"] = [
            {"kind": "create", "success_status": 404}
        ]
        assert "INVALID_SUCCESS_STATUS" in _result(minimal_schema_dict).codes()

    def test_entity_without_endpoints_warns(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"] = []
        result = _result(minimal_schema_dict)
        assert result.is_valid
        assert "ENTITY_WITHOUT_ENDPOINTS" in {w.code for w in result.warnings}


class TestFieldRules:
    @pytest.mark.parametrize(
        "field, code",
        [
            ({"name": "flag", "type": "bool", "validations": [{"max_length": 3}]}, "RULE_NOT_APPLICABLE"),
            ({"name": "label", "type": "string", "validations": [{"min": 1}]}, "RULE_NOT_APPLICABLE"),
            (
                {"name": "label", "type": "string", "validations": [{"min_length": 10}, {"max_length": 2}]},
                "RULE_BOUNDS_INVERTED",
            ),
            ({"name": "label", "type": "string", "validations": [{"pattern": "([a-z"}]}, "INVALID_PATTERN"),
            ({"name": "label", "type": "string", "validations": [{"max_length": "long"}]}, "RULE_MISSING_VALUE"),
            ({"name": "label", "type": "string", "validations": [{"one_of": "a"}]}, "RULE_MISSING_VALUE"),
        ],
    )
    def test_rule_errors(
        self, minimal_schema_dict: Dict[str, Any], field: Dict[str, Any], code: str
    ) -> None:
        _fields(minimal_schema_dict).append(field)
        result = _result(minimal_schema_dict)
        assert code in result.codes(), f"Expected {code}, got {sorted(result.codes())}"

    def test_numeric_bounds_on_integer(self, minimal_schema_dict: Dict[str, Any]) -> None:
        _fields(minimal_schema_dict).append(
            {"name": "priority", "type": "int32", "validations": [{"min": 1}, {"max": 5}]}
        )
        assert _result(minimal_schema_dict).is_valid


class TestSecurity:
    def test_auth_required_without_strategy(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["security"] = {"auth_required": True}
        assert "AUTH_REQUIRED_WITHOUT_STRATEGY" in _result(minimal_schema_dict).codes()

    def test_roles_imply_authentication(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["endpoints"][0]["operations"] = [
            {"kind": "delete", "security": {"roles": ["admin"]}}
        ]
        assert "AUTH_REQUIRED_WITHOUT_STRATEGY" in _result(minimal_schema_dict).codes()

    def test_unknown_role_warns(self, schema_dict: Dict[str, Any]) -> None:
        schema_dict["endpoints"][2]["operations"][0]["security"]["roles"] = ["editor"]
        result = _result(schema_dict)
        assert result.is_valid
        assert "UNKNOWN_ROLE" in {w.code for w in result.warnings}

    def test_unused_auth_warns(self, minimal_schema_dict: Dict[str, Any]) -> None:
        minimal_schema_dict["config"]["auth"] = {"strategy": "token"}
        result = _result(minimal_schema_dict)
        assert result.is_valid
        assert "AUTH_UNUSED" in {w.code for w in result.warnings}


class TestResultContainer:
    def test_truthiness_and_counts(self) -> None:
        result = ValidationResult()
        assert result
        result.add_warning("W", "careful")
        assert result and result.has_warnings
        result.add_error("E", "broken", "entities.Note")
        assert not result
        assert result.error_count == 1
        assert result.warning_count == 1
        assert len(result) == 2
        assert "[E] broken" in result.format_report()
        assert "at: entities.Note" in result.format_report()

    def test_info_hidden_by_default(self) -> None:
        result = ValidationResult()
        result.add_info("I", "note")
        assert "[I]" not in result.format_report()
        assert "[I]" in result.format_report(include_info=True)

    def test_generator_config_checks(self) -> None:
        assert "EMPTY_OUTPUT_ROOT" in validate_generator_config(GeneratorConfig(output_root=" ")).codes()
        info = validate_generator_config(GeneratorConfig(parallel=True, max_workers=1))
        assert info.is_valid
        assert "PARALLEL_SINGLE_WORKER" in info.codes()
