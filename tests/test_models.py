"""
tests/test_models.py
Unit tests for the pydantic graph model: type shorthands, field defaults,
synthesized columns, security layering and graph lookups.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest
from pydantic import ValidationError

from apiforge.generator import parse_raw_schema
from apiforge.models import (
    CrudOperation,
    DataType,
    DefaultValue,
    EndpointGroup,
    EndpointSecurity,
    Entity,
    EntityField,
    ForeignKeyRef,
    GeneratorConfig,
    ProjectConfig,
    ProjectGraph,
    Relationship,
    ValidationRule,
    resolve_security,
)


class TestDataType:
    @pytest.mark.parametrize(
        "expr, canonical",
        [
            ("uuid", "Uuid"),
            ("integer", "Int32"),
            ("boolean", "Bool"),
            ("optional<datetime>", "Optional<DateTime>"),
            ("array<int64>", "Array<Int64>"),
            ("optional<array<string>>", "Optional<Array<String>>"),
            ("reference<User.id>", "Reference<User.id>"),
            ("reference<User>", "Reference<User.*>"),
            ("enum<status:draft,published>", "Enum<status:draft,published>"),
        ],
    )
    def test_shorthand_canonical(self, expr: str, canonical: str) -> None:
        assert DataType.parse(expr).canonical == canonical, f"canonical of {expr!r}"

    def test_unwrapped_strips_optional(self) -> None:
        dt = DataType.parse("optional<optional<uuid>>")
        assert dt.is_optional
        assert dt.unwrapped().kind == "uuid"
        assert dt.unwrapped().is_scalar

    def test_enum_variants(self) -> None:
        dt = DataType.parse("enum<role: user , admin>")
        assert dt.enum_name == "role"
        assert dt.variants == ("user", "admin")

    @pytest.mark.parametrize("expr", ["optional<uuid", "uuid<int32>", "quaternion"])
    def test_malformed_rejected(self, expr: str) -> None:
        with pytest.raises(ValidationError):
            DataType.parse(expr)

    def test_composite_requires_inner(self) -> None:
        with pytest.raises(ValidationError):
            DataType(kind="array")


class TestFieldPrimitives:
    def test_default_shorthands(self) -> None:
        assert DefaultValue.model_validate("draft").kind == "literal"
        assert DefaultValue.model_validate(False).value is False
        assert DefaultValue.model_validate({"now": True}).is_server_generated
        assert DefaultValue.model_validate({"generated_id": True}).kind == "generated_id"
        expr = DefaultValue.model_validate({"expression": "gen_random_uuid()"})
        assert expr.kind == "expression"
        assert expr.value == "gen_random_uuid()"

    def test_validation_rule_shorthands(self) -> None:
        assert ValidationRule.model_validate("email").kind == "email"
        rule = ValidationRule.model_validate({"max_length": 80})
        assert rule.kind == "max_length"
        assert rule.value == 80
        assert rule.effective_message == "Maximum length is 80 characters"

    def test_validation_rule_custom_message(self) -> None:
        rule = ValidationRule.model_validate({"min": 1, "message": "Too small"})
        assert rule.effective_message == "Too small"

    def test_foreign_key_shorthand_and_action(self) -> None:
        fk = ForeignKeyRef.model_validate("User.email")
        assert fk.target_entity == "User"
        assert fk.target_field == "email"
        fk = ForeignKeyRef.model_validate({"target_entity": "User", "on_delete": "set_null"})
        assert fk.on_delete == "SET NULL"
        assert fk.on_update == "CASCADE"


class TestEntityField:
    def test_identity_defaults(self) -> None:
        f = EntityField.model_validate({"name": "createdBy", "type": "string"})
        assert f.id == "createdBy"
        assert f.column_name == "created_by"

    def test_foreign_key_marks_field(self) -> None:
        f = EntityField.model_validate({"name": "user_id", "type": "uuid", "foreign_key": "User"})
        assert f.is_foreign_key

    def test_in_create_excludes_pk_readonly_and_defaulted(self) -> None:
        pk = EntityField.model_validate({"name": "id", "type": "uuid", "primary_key": True})
        ro = EntityField.model_validate({"name": "slug", "type": "string", "readonly": True})
        defaulted = EntityField.model_validate({"name": "pinned", "type": "bool", "default": False})
        plain = EntityField.model_validate({"name": "title", "type": "string"})
        assert not pk.in_create
        assert not ro.in_create
        assert not defaulted.in_create
        assert plain.in_create
        assert defaulted.in_update
        assert not pk.in_update

    def test_nullable(self) -> None:
        opt = EntityField.model_validate({"name": "bio", "type": "optional<text>"})
        not_required = EntityField.model_validate({"name": "bio", "type": "text", "required": False})
        pk = EntityField.model_validate(
            {"name": "id", "type": "uuid", "primary_key": True, "required": False}
        )
        assert opt.nullable
        assert not_required.nullable
        assert not pk.nullable

    def test_secret_heuristic_and_override(self) -> None:
        by_name = EntityField.model_validate({"name": "password_hash", "type": "string"})
        overridden = EntityField.model_validate(
            {"name": "password_hash", "type": "string", "secret": False}
        )
        assert by_name.is_secret
        assert not by_name.in_response
        assert not overridden.is_secret


class TestEntity:
    def _entity(self, **config: Any) -> Entity:
        return Entity.model_validate(
            {
                "name": "BlogPost",
                "config": config,
                "fields": [
                    {"name": "id", "type": "uuid", "primary_key": True},
                    {"name": "title", "type": "string"},
                ],
            }
        )

    def test_table_name_default(self) -> None:
        assert self._entity().table_name == "blog_posts"

    def test_timestamps_synthesized(self) -> None:
        names = [f.name for f in self._entity().effective_fields()]
        assert names == ["id", "title", "created_at", "updated_at"]

    def test_timestamps_off(self) -> None:
        names = [f.name for f in self._entity(timestamps=False).effective_fields()]
        assert names == ["id", "title"]

    def test_soft_delete_adds_hidden_column(self) -> None:
        entity = self._entity(timestamps=False, soft_delete=True)
        deleted_at = entity.field_by_name("deleted_at")
        assert deleted_at is not None
        assert deleted_at.hidden
        assert deleted_at.nullable
        assert not deleted_at.in_create

    def test_declared_column_wins(self) -> None:
        entity = Entity.model_validate(
            {
                "name": "Event",
                "fields": [
                    {"name": "id", "type": "uuid", "primary_key": True},
                    {"name": "created_at", "type": "date"},
                ],
            }
        )
        created = [f for f in entity.effective_fields() if f.name == "created_at"]
        assert len(created) == 1
        assert created[0].data_type.kind == "date"

    def test_primary_key(self) -> None:
        assert self._entity().primary_key.name == "id"


class TestSecurity:
    def test_operation_overrides_group(self) -> None:
        resolved = resolve_security(
            EndpointSecurity(auth_required=False),
            EndpointSecurity(auth_required=True),
        )
        assert resolved.is_public

    def test_roles_imply_auth(self) -> None:
        resolved = resolve_security(
            EndpointSecurity(roles=["admin"]),
            EndpointSecurity(auth_required=False),
        )
        assert resolved.auth_required
        assert resolved.roles == ("admin",)

    def test_falls_through_to_project(self) -> None:
        resolved = resolve_security(None, EndpointSecurity(), EndpointSecurity(scopes=["read"]))
        assert resolved.auth_required
        assert resolved.scopes == ("read",)

    def test_no_layers_is_public(self) -> None:
        assert resolve_security().is_public


class TestEndpointGroup:
    def test_defaults_to_all_operations(self) -> None:
        group = EndpointGroup(entity="Post")
        kinds = [op.kind for op in group.enabled_operations()]
        assert kinds == ["create", "read", "read_all", "update", "delete"]
        assert group.id == "Post-endpoints"

    def test_enabled_operations_follow_fixed_order(self) -> None:
        group = EndpointGroup.model_validate(
            {"entity": "Post", "operations": ["delete", "read", {"kind": "create", "enabled": False}]}
        )
        assert [op.kind for op in group.enabled_operations()] == ["read", "delete"]
        assert not group.is_enabled("create")
        assert not group.is_enabled("update")

    def test_disabled_group_has_no_operations(self) -> None:
        group = EndpointGroup(entity="Post", enabled=False)
        assert group.enabled_operations() == []

    def test_base_paths(self) -> None:
        group = EndpointGroup(entity="BlogPost")
        assert group.resolved_base_path("BlogPost") == "/api/blog_posts"
        versioned = EndpointGroup(entity="BlogPost", api_version="v2")
        assert versioned.full_base_path("BlogPost") == "/api/v2/blog_posts"
        custom = EndpointGroup(entity="BlogPost", base_path="/articles/")
        assert custom.resolved_base_path("BlogPost") == "/articles"

    def test_operation_http_details(self) -> None:
        create = CrudOperation.model_validate("create")
        delete = CrudOperation.model_validate("delete")
        assert create.http_method == "post"
        assert create.status_code == 201
        assert not create.is_item
        assert delete.status_code == 204
        assert delete.is_item


class TestProjectConfig:
    def test_invalid_package_name(self) -> None:
        with pytest.raises(ValidationError):
            ProjectConfig(package_name="my-app")

    def test_generator_config_forbids_unknown_keys(self) -> None:
        with pytest.raises(ValidationError):
            GeneratorConfig.model_validate({"bogus": True})

    def test_generator_config_resolves_overrides(self, blog_graph: ProjectGraph) -> None:
        assert GeneratorConfig().resolved_backend(blog_graph) == "postgresql"
        config = GeneratorConfig(backend="sqlite", auth_strategy="session")
        assert config.resolved_backend(blog_graph) == "sqlite"
        assert config.resolved_auth(blog_graph) == "session"


class TestRelationship:
    def test_owner_for_one_to_many_is_target(self) -> None:
        rel = Relationship(source="User", target="Post", kind="one_to_many")
        assert rel.owner_ref == "Post"
        assert rel.referenced_ref == "User"
        assert rel.source_is_many
        assert not rel.target_is_many

    def test_owner_for_many_to_one_is_source(self) -> None:
        rel = Relationship(source="Post", target="User", kind="many_to_one", on_delete="cascade")
        assert rel.owner_ref == "Post"
        assert rel.on_delete == "CASCADE"
        assert rel.id == "Post.User"


class TestProjectGraph:
    def test_lookup_by_name_and_id(self, blog_graph: ProjectGraph) -> None:
        user = blog_graph.entity("User")
        assert user is not None
        assert blog_graph.entity(user.id) is user
        assert blog_graph.entity("Nope") is None
        assert blog_graph.entity_count == 3

    def test_endpoint_for(self, blog_graph: ProjectGraph) -> None:
        group = blog_graph.endpoint_for("Tag")
        assert group is not None
        assert [op.kind for op in group.enabled_operations()] == ["create", "read_all"]

    def test_relationships_for(self, blog_graph: ProjectGraph) -> None:
        assert len(blog_graph.relationships_for("Post")) == 2
        assert len(blog_graph.relationships_for("Tag")) == 1

    def test_relationship_defaults(self, user_post_dict: Dict[str, Any]) -> None:
        graph, _ = parse_raw_schema(user_post_dict)
        rel = graph.relationships[0]
        assert graph.owning_entity(rel).name == "Post"
        assert graph.relationship_fk_field(rel) == "user_id"
        assert graph.relationship_references_field(rel).name == "id"
        assert graph.relationship_attr_names(rel) == ("posts", "user")

    def test_explicit_attr_names(self, blog_graph: ProjectGraph) -> None:
        one_to_many, many_to_many = blog_graph.relationships
        assert blog_graph.relationship_attr_names(one_to_many) == ("posts", "author")
        assert blog_graph.relationship_fk_field(one_to_many) == "author_id"
        assert blog_graph.relationship_attr_names(many_to_many) == ("tags", "posts")

    def test_base_path_for(self, blog_graph: ProjectGraph) -> None:
        group = blog_graph.endpoint_for("Post")
        assert blog_graph.base_path_for(group) == "/api/posts"

    def test_graph_is_frozen(self, blog_graph: ProjectGraph) -> None:
        with pytest.raises(ValidationError):
            blog_graph.entities = []
