"""
tests/test_naming.py
Unit tests for apiforge.naming: case conversion, pluralisation and the
identifiers derived from entity, field and operation names.
"""

from __future__ import annotations

import pytest

from apiforge import naming


class TestCaseConversion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("UserProfile", "user_profile"),
            ("getHTTPResponse", "get_http_response"),
            ("already_snake", "already_snake"),
            ("Blog-Post", "blog_post"),
            ("", ""),
        ],
    )
    def test_snake_case(self, raw: str, expected: str) -> None:
        assert naming.to_snake_case(raw) == expected, f"to_snake_case({raw!r})"

    def test_pascal_and_camel(self) -> None:
        assert naming.to_pascal_case("user_profile") == "UserProfile"
        assert naming.to_pascal_case("BlogPost") == "BlogPost"
        assert naming.to_camel_case("created_at") == "createdAt"

    def test_kebab_case(self) -> None:
        assert naming.to_kebab_case("BlogPost") == "blog-post"
        assert naming.to_kebab_case("blog_posts") == "blog-posts"


class TestPluralisation:
    @pytest.mark.parametrize(
        "singular, plural",
        [
            ("user", "users"),
            ("category", "categories"),
            ("box", "boxes"),
            ("person", "people"),
            ("blog_post", "blog_posts"),
            ("status", "statuses"),
        ],
    )
    def test_plural(self, singular: str, plural: str) -> None:
        assert naming.to_plural(singular) == plural, f"to_plural({singular!r})"

    def test_plural_is_idempotent_for_plurals(self) -> None:
        assert naming.to_plural("users") == "users"
        assert naming.to_plural("people") == "people"

    def test_singular(self) -> None:
        assert naming.to_singular("categories") == "category"
        assert naming.to_singular("people") == "person"


class TestResolvers:
    def test_table_and_module(self) -> None:
        assert naming.table_name("BlogPost") == "blog_posts"
        assert naming.module_name("BlogPost") == "blog_post"
        assert naming.column_name("createdAt") == "created_at"

    def test_shape_names(self) -> None:
        assert naming.create_shape_name("Post") == "PostCreate"
        assert naming.update_shape_name("Post") == "PostUpdate"
        assert naming.response_shape_name("Post") == "PostResponse"
        assert naming.list_shape_name("Post") == "PostListResponse"

    @pytest.mark.parametrize(
        "kind, expected",
        [
            ("create", "create_blog_post"),
            ("read", "get_blog_post"),
            ("read_all", "list_blog_posts"),
            ("update", "update_blog_post"),
            ("delete", "delete_blog_post"),
        ],
    )
    def test_handler_name(self, kind: str, expected: str) -> None:
        assert naming.handler_name(kind, "BlogPost") == expected

    def test_handler_name_rejects_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            naming.handler_name("archive", "Post")

    def test_nested_handler_name(self) -> None:
        assert naming.nested_handler_name("read_all", "Post", "User") == "list_posts_for_user"
        assert naming.nested_handler_name("create", "Comment", "BlogPost") == (
            "create_comment_for_blog_post"
        )

    def test_constraint_names(self) -> None:
        assert naming.index_name("posts", "user_id") == "idx_posts_user_id"
        assert naming.foreign_key_name("posts", "user_id") == "fk_posts_user_id"
        assert naming.unique_constraint_name("post_tags", ("post_id", "tag_id")) == (
            "uq_post_tags_post_id_tag_id"
        )


class TestIdentifiers:
    def test_safe_identifier_keyword(self) -> None:
        assert naming.safe_identifier("class") == "class_"

    def test_safe_identifier_leading_digit(self) -> None:
        assert naming.safe_identifier("2fa") == "_2fa"

    def test_builtins_are_left_alone(self) -> None:
        assert naming.safe_identifier("id") == "id"
        assert naming.safe_identifier("type") == "type"


class TestSecrets:
    @pytest.mark.parametrize(
        "name", ["password", "password_hash", "hashed_password", "api_secret", "token_digest"]
    )
    def test_looks_secret(self, name: str) -> None:
        assert naming.looks_secret(name), f"{name} should be treated as secret"

    @pytest.mark.parametrize("name", ["email", "title", "secretary"])
    def test_not_secret(self, name: str) -> None:
        assert not naming.looks_secret(name), f"{name} should not be treated as secret"

    def test_plaintext_input_name(self) -> None:
        assert naming.plaintext_input_name("password_hash") == "password"
        assert naming.plaintext_input_name("hashed_password") == "password"
        assert naming.plaintext_input_name("password") == "password"
