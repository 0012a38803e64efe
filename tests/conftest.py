"""
tests/conftest.py
Shared fixtures for the apiforge test suite.

Documents are plain dicts (the same shape as the JSON/YAML input) so each
test can mutate its own copy before parsing. No external mocking libraries
are used; real file I/O happens inside pytest's tmp_path directories.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, Dict

import pytest
import yaml

from apiforge.generator import parse_raw_schema
from apiforge.models import GeneratorConfig, ProjectGraph


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"


def _uuid_pk() -> Dict[str, Any]:
    return {"name": "id", "type": "uuid", "primary_key": True}


def build_graph(raw: Dict[str, Any]) -> ProjectGraph:
    """Parse a raw document and return only the graph."""
    graph, _config = parse_raw_schema(raw)
    return graph


# ---------------------------------------------------------------------------
# Reference document
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def schema_yaml_path(schema_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the schema dict to a temporary YAML file and return its path."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(schema_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


@pytest.fixture()
def blog_graph(schema_dict: Dict[str, Any]) -> ProjectGraph:
    return build_graph(schema_dict)


# ---------------------------------------------------------------------------
# Small documents
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_schema_dict() -> Dict[str, Any]:
    """Smallest valid document: one entity, SQLite, no auth."""
    return {
        "project": {"name": "notes", "version": "0.1.0"},
        "config": {"database": "sqlite", "package_name": "notes_app"},
        "entities": [
            {
                "name": "Note",
                "fields": [
                    _uuid_pk(),
                    {"name": "title", "type": "string"},
                    {"name": "pinned", "type": "bool", "default": False},
                ],
            }
        ],
        "endpoints": [{"entity": "Note"}],
    }


@pytest.fixture()
def user_post_dict() -> Dict[str, Any]:
    """User one-to-many Post with parent-scoped routes; Post declared first."""
    return {
        "project": {"name": "blog", "version": "1.0.0"},
        "config": {"package_name": "app"},
        "entities": [
            {
                "name": "Post",
                "fields": [
                    _uuid_pk(),
                    {"name": "title", "type": "string", "validations": [{"max_length": 200}]},
                    {"name": "user_id", "type": "uuid"},
                ],
            },
            {
                "name": "User",
                "fields": [
                    _uuid_pk(),
                    {"name": "email", "type": "string", "unique": True, "validations": ["email"]},
                ],
            },
        ],
        "relationships": [
            {"source": "User", "target": "Post", "kind": "one_to_many", "nested": True},
        ],
        "endpoints": [{"entity": "User"}, {"entity": "Post"}],
    }


@pytest.fixture()
def post_tag_dict() -> Dict[str, Any]:
    """Post many-to-many Tag through the ``post_tags`` junction."""
    return {
        "project": {"name": "tagging"},
        "entities": [
            {"name": "Post", "fields": [_uuid_pk(), {"name": "title", "type": "string"}]},
            {"name": "Tag", "fields": [_uuid_pk(), {"name": "label", "type": "string", "unique": True}]},
        ],
        "relationships": [
            {"source": "Post", "target": "Tag", "kind": "many_to_many", "junction": "post_tags"},
        ],
        "endpoints": [{"entity": "Post"}, {"entity": "Tag"}],
    }


@pytest.fixture()
def cyclic_dict() -> Dict[str, Any]:
    """Department ↔ Employee foreign keys forming a cycle."""
    return {
        "project": {"name": "org"},
        "entities": [
            {
                "name": "Department",
                "fields": [
                    _uuid_pk(),
                    {"name": "name", "type": "string"},
                    {
                        "name": "manager_id",
                        "type": "optional<uuid>",
                        "required": False,
                        "foreign_key": {"target_entity": "Employee", "on_delete": "set_null"},
                    },
                ],
            },
            {
                "name": "Employee",
                "fields": [
                    _uuid_pk(),
                    {"name": "name", "type": "string"},
                    {"name": "department_id", "type": "uuid", "foreign_key": "Department"},
                ],
            },
        ],
        "endpoints": [{"entity": "Department"}, {"entity": "Employee"}],
    }


@pytest.fixture()
def soft_delete_dict() -> Dict[str, Any]:
    """One soft-deleted entity whose ``read_all`` and ``update`` are disabled."""
    return {
        "project": {"name": "archive"},
        "entities": [
            {
                "name": "Document",
                "config": {"soft_delete": True},
                "fields": [_uuid_pk(), {"name": "title", "type": "string"}],
            }
        ],
        "endpoints": [
            {
                "entity": "Document",
                "operations": [
                    "create",
                    "read",
                    {"kind": "read_all", "enabled": False},
                    "delete",
                ],
            }
        ],
    }


@pytest.fixture()
def default_config() -> GeneratorConfig:
    return GeneratorConfig()
