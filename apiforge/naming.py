# File: apiforge/naming.py
"""
NexaFlow APIForge - Naming Resolver
====================================
Deterministic, pure, idempotent name transformations shared by every
generator:

    entity name  →  table identifier      (snake_case, English plural)
    field name   →  column identifier     (snake_case)
    entity name  →  storage type name     (PascalCase)
                 →  request/response names (PascalCase + Create/Update/Response)
                 →  client-side type name  (PascalCase, TypeScript)

Pluralisation policy: the **last** snake_case segment is pluralised with a
small irregular table and suffix rules; a segment that already looks plural
is left unchanged, so ``table_name(table_name(x)) == table_name(x)``.

Every function is wrapped in ``functools.lru_cache``; generators call
them thousands of times with a handful of distinct inputs.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Dict, FrozenSet, List, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.naming")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)

_PYTHON_KEYWORDS: FrozenSet[str] = frozenset({
    "False", "None", "True", "and", "as", "assert", "async", "await",
    "break", "class", "continue", "def", "del", "elif", "else",
    "except", "finally", "for", "from", "global", "if", "import",
    "in", "is", "lambda", "nonlocal", "not", "or", "pass", "raise",
    "return", "try", "while", "with", "yield",
})

_IRREGULAR_PLURALS: Dict[str, str] = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "tooth": "teeth",
    "foot": "feet",
    "datum": "data",
    "index": "indices",
    "matrix": "matrices",
    "vertex": "vertices",
    "axis": "axes",
    "crisis": "crises",
    "analysis": "analyses",
    "status": "statuses",
    "address": "addresses",
    "bus": "buses",
}

_IRREGULAR_SINGULARS: Dict[str, str] = {v: k for k, v in _IRREGULAR_PLURALS.items()}

# Field names treated as secret when the field does not say otherwise
_SECRET_NAMES: FrozenSet[str] = frozenset({
    "password", "password_hash", "hashed_password", "passwd",
    "secret", "api_secret", "client_secret",
})

_SECRET_SUFFIXES: Tuple[str, ...] = ("_hash", "_digest", "_secret")


# ---------------------------------------------------------------------------
# Case conversions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Split any casing style into lowercase words (tuple, so it can be cached)."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase.

        >>> to_pascal_case("user_profile")
        'UserProfile'
        >>> to_pascal_case("BlogPost")
        'BlogPost'
    """
    if not name:
        return ""
    return "".join(word.capitalize() for word in _extract_words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """Convert any string to camelCase (``user_profile`` → ``userProfile``)."""
    words: Tuple[str, ...] = _extract_words(name) if name else ()
    if not words:
        return ""
    return words[0] + "".join(w.capitalize() for w in words[1:])


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert any string to kebab-case (used in URL paths)."""
    if not name:
        return ""
    return "-".join(_extract_words(name))


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """``user_profile`` → ``User Profile``."""
    if not name:
        return ""
    return " ".join(w.capitalize() for w in _extract_words(name))


# ---------------------------------------------------------------------------
# Pluralisation
# ---------------------------------------------------------------------------


def _plural_word(word: str) -> str:
    lower: str = word.lower()

    if lower in _IRREGULAR_PLURALS:
        plural: str = _IRREGULAR_PLURALS[lower]
        if word[0].isupper():
            return plural[0].upper() + plural[1:]
        return plural

    # Already plural
    if lower in _IRREGULAR_SINGULARS:
        return word
    if lower.endswith("s") and not lower.endswith("ss"):
        return word

    if lower.endswith(("sh", "ch", "x", "z", "ss")):
        return word + "es"
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lower.endswith("fe"):
        return word[:-2] + "ves"
    if lower.endswith("f") and not lower.endswith("ff"):
        return word[:-1] + "ves"
    if lower.endswith("o") and len(word) > 1 and lower[-2] not in "aeiou":
        return word + "es"
    return word + "s"


def _singular_word(word: str) -> str:
    lower: str = word.lower()

    if lower in _IRREGULAR_SINGULARS:
        singular: str = _IRREGULAR_SINGULARS[lower]
        if word[0].isupper():
            return singular[0].upper() + singular[1:]
        return singular
    if lower in _IRREGULAR_PLURALS:
        return word

    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lower.endswith("ves") and len(word) > 3:
        return word[:-3] + "f"
    if lower.endswith(("ses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if lower.endswith("oes") and len(word) > 3:
        return word[:-2]
    if lower.endswith("s") and not lower.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Pluralise the last ``_``-separated segment of *name*.

        >>> to_plural("category")
        'categories'
        >>> to_plural("blog_post")
        'blog_posts'
        >>> to_plural("people")
        'people'
    """
    if not name:
        return ""
    head, sep, last = name.rpartition("_")
    if not last:
        return name
    return f"{head}{sep}{_plural_word(last)}"


@functools.lru_cache(maxsize=None)
def to_singular(name: str) -> str:
    """Reverse of :func:`to_plural` for the last segment."""
    if not name:
        return ""
    head, sep, last = name.rpartition("_")
    if not last:
        return name
    return f"{head}{sep}{_singular_word(last)}"


@functools.lru_cache(maxsize=None)
def safe_identifier(name: str) -> str:
    """
    Turn *name* into a Python identifier usable as an attribute or parameter.

    Prefixes a leading digit with ``_`` and suffixes keywords with ``_``.
    Builtins such as ``id`` and ``type`` are left alone: they are legal
    attribute names and match the column they map.
    """
    result: str = to_snake_case(name)
    if not result:
        return "_unnamed"
    if result[0].isdigit():
        result = f"_{result}"
    if result in _PYTHON_KEYWORDS:
        result = f"{result}_"
    return result


# ---------------------------------------------------------------------------
# Resolver: storage layer
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def table_name(entity_name: str) -> str:
    """Entity name → table identifier: ``BlogPost`` → ``blog_posts``."""
    return to_plural(to_snake_case(entity_name))


@functools.lru_cache(maxsize=None)
def column_name(field_name: str) -> str:
    """Field name → column identifier: ``createdAt`` → ``created_at``."""
    return to_snake_case(field_name)


@functools.lru_cache(maxsize=None)
def module_name(entity_name: str) -> str:
    """Entity name → generated module name (``BlogPost`` → ``blog_post``)."""
    return safe_identifier(entity_name)


@functools.lru_cache(maxsize=None)
def model_class_name(entity_name: str) -> str:
    """Entity name → ORM class name."""
    return to_pascal_case(entity_name)


@functools.lru_cache(maxsize=None)
def index_name(table: str, column: str) -> str:
    return f"idx_{table}_{column}"


@functools.lru_cache(maxsize=None)
def foreign_key_name(table: str, column: str) -> str:
    return f"fk_{table}_{column}"


def unique_constraint_name(table: str, columns: Tuple[str, ...]) -> str:
    return f"uq_{table}_{'_'.join(columns)}"


# ---------------------------------------------------------------------------
# Resolver: request/response and client types
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def create_shape_name(entity_name: str) -> str:
    return f"{model_class_name(entity_name)}Create"


@functools.lru_cache(maxsize=None)
def nested_create_shape_name(child_name: str, parent_name: str) -> str:
    """Create body for a child posted under its parent; the parent key comes from the path."""
    return f"{create_shape_name(child_name)}For{model_class_name(parent_name)}"


@functools.lru_cache(maxsize=None)
def update_shape_name(entity_name: str) -> str:
    return f"{model_class_name(entity_name)}Update"


@functools.lru_cache(maxsize=None)
def response_shape_name(entity_name: str) -> str:
    return f"{model_class_name(entity_name)}Response"


@functools.lru_cache(maxsize=None)
def list_shape_name(entity_name: str) -> str:
    return f"{model_class_name(entity_name)}ListResponse"


@functools.lru_cache(maxsize=None)
def client_type_name(entity_name: str) -> str:
    """Client-side (TypeScript) interface name."""
    return to_pascal_case(entity_name)


@functools.lru_cache(maxsize=None)
def client_member_name(field_name: str) -> str:
    """Field name as a TypeScript property (camelCase)."""
    return to_camel_case(field_name)


# ---------------------------------------------------------------------------
# Resolver: operations
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def handler_name(operation_kind: str, entity_name: str) -> str:
    """
    Handler function name for an operation kind.

        >>> handler_name("create", "BlogPost")
        'create_blog_post'
        >>> handler_name("read_all", "BlogPost")
        'list_blog_posts'
    """
    snake: str = to_snake_case(entity_name)
    kind: str = str(getattr(operation_kind, "value", operation_kind))
    if kind == "create":
        return f"create_{snake}"
    if kind == "read":
        return f"get_{snake}"
    if kind == "read_all":
        return f"list_{to_plural(snake)}"
    if kind == "update":
        return f"update_{snake}"
    if kind == "delete":
        return f"delete_{snake}"
    raise ValueError(f"Unknown operation kind: {operation_kind!r}")


@functools.lru_cache(maxsize=None)
def route_function_name(operation_kind: str, entity_name: str) -> str:
    return f"{handler_name(operation_kind, entity_name)}_endpoint"


@functools.lru_cache(maxsize=None)
def nested_handler_name(operation_kind: str, child_name: str, parent_name: str) -> str:
    """Parent-scoped handler, e.g. ``list_posts_for_user``."""
    return f"{handler_name(operation_kind, child_name)}_for_{to_snake_case(parent_name)}"


# ---------------------------------------------------------------------------
# Resolver: secret fields
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def looks_secret(field_name: str) -> bool:
    """Naming heuristic used when a field does not declare ``secret``."""
    snake: str = to_snake_case(field_name)
    return (
        snake in _SECRET_NAMES
        or snake.startswith("hashed_")
        or snake.endswith(_SECRET_SUFFIXES)
    )


@functools.lru_cache(maxsize=None)
def plaintext_input_name(field_name: str) -> str:
    """
    Name of the raw input accepted in place of a stored secret.

        >>> plaintext_input_name("password_hash")
        'password'
        >>> plaintext_input_name("hashed_password")
        'password'
    """
    snake: str = to_snake_case(field_name)
    if snake.startswith("hashed_"):
        return snake[len("hashed_"):]
    for suffix in ("_hash", "_digest"):
        if snake.endswith(suffix) and len(snake) > len(suffix):
            return snake[: -len(suffix)]
    return snake


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_title_human",
    "to_plural",
    "to_singular",
    "safe_identifier",
    "table_name",
    "column_name",
    "module_name",
    "model_class_name",
    "index_name",
    "foreign_key_name",
    "unique_constraint_name",
    "create_shape_name",
    "nested_create_shape_name",
    "update_shape_name",
    "response_shape_name",
    "list_shape_name",
    "client_type_name",
    "client_member_name",
    "handler_name",
    "route_function_name",
    "nested_handler_name",
    "looks_secret",
    "plaintext_input_name",
]

logger.debug("apiforge.naming loaded: %d public symbols.", len(__all__))
