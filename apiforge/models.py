# File: apiforge/models.py
"""
NexaFlow APIForge - Graph Model
================================
Pydantic V2 models for the project graph handed to the engine and for the
per-invocation generator configuration. The graph is the single source of
truth for the whole pipeline:

    ProjectGraph → Validation → Dependency Analysis → Generators → Assembler

Every graph type is frozen: the engine receives an immutable snapshot and
never mutates it. Derived structures (analysis results, generated files)
live in their own modules.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    computed_field,
    field_validator,
    model_validator,
)

from apiforge import naming
from apiforge.utils import count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiforge.models")

# ---------------------------------------------------------------------------
# Enums: fixed vocabularies used across the entire project
# ---------------------------------------------------------------------------


class DataKind(str, Enum):
    """Abstract field data types (scalar, composite, reference, enum)."""

    # Scalar
    STRING = "string"
    TEXT = "text"
    INT32 = "int32"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    BOOL = "bool"
    UUID = "uuid"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"
    BYTES = "bytes"
    JSON = "json"

    # Composite
    OPTIONAL = "optional"
    ARRAY = "array"

    # Named
    REFERENCE = "reference"
    ENUM = "enum"


class DatabaseBackend(str, Enum):
    """Target database backends."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"


class AuthStrategy(str, Enum):
    """Authentication strategies for the generated service."""

    NONE = "none"
    TOKEN = "token"
    SESSION = "session"


class RelationKind(str, Enum):
    """Relationship cardinality, read from the source side."""

    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    MANY_TO_MANY = "many_to_many"


class OperationKind(str, Enum):
    """CRUD operation kinds."""

    CREATE = "create"
    READ = "read"
    READ_ALL = "read_all"
    UPDATE = "update"
    DELETE = "delete"


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE / ON UPDATE behaviour (values are SQL keywords)."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"
    SET_DEFAULT = "SET DEFAULT"


class IdStrategy(str, Enum):
    """Primary-key generation strategy."""

    UUID = "uuid"
    SERIAL = "serial"


class RuleKind(str, Enum):
    """Field-level validation rules enforced by generated handlers."""

    REQUIRED = "required"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    MIN = "min"
    MAX = "max"
    PATTERN = "pattern"
    EMAIL = "email"
    URL = "url"
    UUID = "uuid"
    ONE_OF = "one_of"


class DefaultKind(str, Enum):
    """How a column default is produced."""

    LITERAL = "literal"
    GENERATED_ID = "generated_id"
    NOW = "now"
    EXPRESSION = "expression"
    NULL = "null"


class OverwritePolicy(str, Enum):
    """What the writer does when the output directory already has content."""

    FAIL = "fail"
    OVERWRITE = "overwrite"


# Order in which operations are emitted, everywhere.
OPERATION_ORDER: Tuple[str, ...] = (
    OperationKind.CREATE.value,
    OperationKind.READ.value,
    OperationKind.READ_ALL.value,
    OperationKind.UPDATE.value,
    OperationKind.DELETE.value,
)

# Enum members hash by name, so membership tests use plain values.
SCALAR_KINDS: FrozenSet[str] = frozenset({
    DataKind.STRING.value, DataKind.TEXT.value, DataKind.INT32.value,
    DataKind.INT64.value, DataKind.FLOAT32.value, DataKind.FLOAT64.value,
    DataKind.BOOL.value, DataKind.UUID.value, DataKind.DATETIME.value,
    DataKind.DATE.value, DataKind.TIME.value, DataKind.BYTES.value,
    DataKind.JSON.value,
})
INTEGER_KINDS: FrozenSet[str] = frozenset({DataKind.INT32.value, DataKind.INT64.value})
NUMERIC_KINDS: FrozenSet[str] = INTEGER_KINDS | frozenset(
    {DataKind.FLOAT32.value, DataKind.FLOAT64.value}
)
STRING_KINDS: FrozenSet[str] = frozenset({DataKind.STRING.value, DataKind.TEXT.value})


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    validate_default=True,
    frozen=False,
    extra="forbid",
)

_FROZEN_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    validate_default=True,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# DataType: recursive tagged union
# ---------------------------------------------------------------------------

_KIND_ALIASES: Dict[str, str] = {
    "str": "string",
    "varchar": "string",
    "int": "int32",
    "integer": "int32",
    "bigint": "int64",
    "long": "int64",
    "float": "float64",
    "double": "float64",
    "real": "float32",
    "boolean": "bool",
    "timestamp": "datetime",
    "binary": "bytes",
    "blob": "bytes",
    "jsonb": "json",
    "ref": "reference",
    "list": "array",
}

_CANONICAL_NAMES: Dict[str, str] = {
    "string": "String",
    "text": "Text",
    "int32": "Int32",
    "int64": "Int64",
    "float32": "Float32",
    "float64": "Float64",
    "bool": "Bool",
    "uuid": "Uuid",
    "datetime": "DateTime",
    "date": "Date",
    "time": "Time",
    "bytes": "Bytes",
    "json": "Json",
    "optional": "Optional",
    "array": "Array",
    "reference": "Reference",
    "enum": "Enum",
}


def _resolve_kind(name: Any) -> Any:
    if not isinstance(name, str):
        return name
    key: str = name.strip().lower()
    return _KIND_ALIASES.get(key, key)


def _parse_type_expr(text: str) -> Dict[str, Any]:
    """
    Parse the string shorthand of a DataType.

        "uuid"                         → {"kind": "uuid"}
        "optional<array<int32>>"       → {"kind": "optional", "inner": {...}}
        "reference<User.id>"           → {"kind": "reference", "entity": "User", "field": "id"}
        "enum<status:draft,published>" → {"kind": "enum", "enum_name": "status", ...}
    """
    expr: str = text.strip()
    if "<" not in expr:
        return {"kind": _resolve_kind(expr)}
    if not expr.endswith(">"):
        raise ValueError(f"Malformed type expression: '{text}'")

    head, _, rest = expr.partition("<")
    body: str = rest[:-1].strip()
    kind: str = _resolve_kind(head)

    if kind in (DataKind.OPTIONAL.value, DataKind.ARRAY.value):
        return {"kind": kind, "inner": _parse_type_expr(body)}
    if kind == DataKind.REFERENCE.value:
        entity, _, target = body.partition(".")
        return {"kind": kind, "entity": entity.strip(), "field": target.strip() or None}
    if kind == DataKind.ENUM.value:
        enum_name, _, variants = body.partition(":")
        return {
            "kind": kind,
            "enum_name": enum_name.strip(),
            "variants": [v.strip() for v in variants.split(",") if v.strip()],
        }
    raise ValueError(f"Type '{head}' does not take parameters: '{text}'")


class DataType(BaseModel):
    """
    Abstract field type.

    Scalars carry only ``kind``; ``optional``/``array`` wrap an ``inner``
    type; ``reference`` points at ``entity.field`` (field ``None`` means the
    entity's primary key); ``enum`` carries a name and its variants.
    """

    model_config = _FROZEN_CONFIG

    kind: DataKind = Field(..., description="Type tag.")
    inner: Optional[DataType] = Field(default=None, description="Wrapped type.")
    entity: Optional[str] = Field(default=None, description="Referenced entity.")
    field: Optional[str] = Field(default=None, description="Referenced field.")
    enum_name: Optional[str] = Field(default=None, description="Enum type name.")
    variants: Tuple[str, ...] = Field(default=(), description="Enum variants.")

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return _parse_type_expr(data)
        if isinstance(data, dict) and "kind" in data:
            data = dict(data)
            data["kind"] = _resolve_kind(data["kind"])
        return data

    @model_validator(mode="after")
    def _check_shape(self) -> "DataType":
        if self.kind in (DataKind.OPTIONAL.value, DataKind.ARRAY.value) and self.inner is None:
            raise ValueError(f"Type '{self.kind}' requires an inner type.")
        if self.kind == DataKind.REFERENCE.value and not self.entity:
            raise ValueError("Reference type requires a target entity.")
        if self.kind == DataKind.ENUM.value and not self.enum_name:
            raise ValueError("Enum type requires a name.")
        return self

    # -- Constructors -------------------------------------------------------

    @classmethod
    def parse(cls, expr: str) -> "DataType":
        return cls.model_validate(expr)

    @classmethod
    def optional(cls, inner: "DataType") -> "DataType":
        return cls(kind=DataKind.OPTIONAL, inner=inner)

    # -- Derived helpers ----------------------------------------------------

    @property
    def canonical(self) -> str:
        """Structural key, e.g. ``Optional<Array<Int32>>``."""
        name: str = _CANONICAL_NAMES[self.kind]
        if self.kind in (DataKind.OPTIONAL.value, DataKind.ARRAY.value):
            return f"{name}<{self.inner.canonical}>"
        if self.kind == DataKind.REFERENCE.value:
            return f"{name}<{self.entity}.{self.field or '*'}>"
        if self.kind == DataKind.ENUM.value:
            return f"{name}<{self.enum_name}:{','.join(self.variants)}>"
        return name

    @property
    def is_optional(self) -> bool:
        return self.kind == DataKind.OPTIONAL.value

    @property
    def is_scalar(self) -> bool:
        return self.kind in SCALAR_KINDS

    def unwrapped(self) -> "DataType":
        """Strip every ``Optional`` layer."""
        current: DataType = self
        while current.kind == DataKind.OPTIONAL.value:
            current = current.inner
        return current

    def __str__(self) -> str:
        return self.canonical


DataType.model_rebuild()


# ---------------------------------------------------------------------------
# Field-level primitives
# ---------------------------------------------------------------------------

_DEFAULT_SHORTHANDS: Tuple[str, ...] = ("now", "generated_id", "expression", "null", "literal")


class DefaultValue(BaseModel):
    """Column default descriptor."""

    model_config = _FROZEN_CONFIG

    kind: DefaultKind = Field(default=DefaultKind.LITERAL, description="Default source.")
    value: Any = Field(default=None, description="Literal value or SQL expression.")

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return {"kind": DefaultKind.LITERAL.value, "value": data}
        if "kind" not in data and len(data) == 1:
            key, value = next(iter(data.items()))
            if key in _DEFAULT_SHORTHANDS:
                if key in ("expression", "literal"):
                    return {"kind": key, "value": value}
                return {"kind": key}
        return data

    @property
    def is_server_generated(self) -> bool:
        return self.kind in (
            DefaultKind.GENERATED_ID.value,
            DefaultKind.NOW.value,
            DefaultKind.EXPRESSION.value,
        )


_RULE_MESSAGES: Dict[str, str] = {
    "required": "This field is required",
    "min_length": "Minimum length is {value} characters",
    "max_length": "Maximum length is {value} characters",
    "min": "Minimum value is {value}",
    "max": "Maximum value is {value}",
    "pattern": "Invalid format",
    "email": "Invalid email address",
    "url": "Invalid URL",
    "uuid": "Invalid UUID",
    "one_of": "Must be one of: {value}",
}


class ValidationRule(BaseModel):
    """A field-level rule, e.g. ``{min_length: 3}`` or ``email``."""

    model_config = _FROZEN_CONFIG

    kind: RuleKind
    value: Any = None
    message: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"kind": data}
        if isinstance(data, dict) and "kind" not in data:
            keys: List[str] = [k for k in data if k != "message"]
            if len(keys) == 1:
                return {"kind": keys[0], "value": data[keys[0]], "message": data.get("message")}
        return data

    @property
    def effective_message(self) -> str:
        if self.message:
            return self.message
        value: Any = self.value
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        return _RULE_MESSAGES[self.kind].format(value=value)


def _normalise_action(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper().replace("_", " ")
    return value


class ForeignKeyRef(BaseModel):
    """Explicit foreign-key reference carried by a field."""

    model_config = _FROZEN_CONFIG

    target_entity: str = Field(..., min_length=1)
    target_field: Optional[str] = Field(
        default=None, description="Referenced field; None means the target's primary key."
    )
    on_delete: ReferentialAction = ReferentialAction.RESTRICT
    on_update: ReferentialAction = ReferentialAction.CASCADE

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            entity, _, target = data.partition(".")
            return {"target_entity": entity.strip(), "target_field": target.strip() or None}
        return data

    @field_validator("on_delete", "on_update", mode="before")
    @classmethod
    def _normalise(cls, v: Any) -> Any:
        return _normalise_action(v)


class EntityField(BaseModel):
    """
    A typed attribute of an entity (one column).

    ``id`` defaults to ``name``; ``column_name`` defaults to the naming
    resolver's column identifier. Supplying ``foreign_key`` marks the field
    as a foreign key.
    """

    model_config = _FROZEN_CONFIG

    id: str = Field(default="", description="Stable identity.")
    name: str = Field(..., min_length=1, description="Field name, unique per entity.")
    column_name: str = Field(default="", description="Column identifier.")
    data_type: DataType = Field(..., alias="type", description="Abstract data type.")
    required: bool = True
    unique: bool = False
    indexed: bool = False
    is_primary: bool = Field(default=False, alias="primary_key")
    is_foreign_key: bool = False
    default: Optional[DefaultValue] = None
    validations: List[ValidationRule] = Field(default_factory=list)
    foreign_key: Optional[ForeignKeyRef] = None
    description: Optional[str] = None
    readonly: bool = False
    secret: Optional[bool] = Field(
        default=None, description="None → decided by the naming heuristic."
    )
    hidden: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name"):
            data = dict(data)
            if not data.get("id"):
                data["id"] = data["name"]
            if not data.get("column_name"):
                data["column_name"] = naming.column_name(data["name"])
            if data.get("foreign_key") is not None:
                data["is_foreign_key"] = True
        return data

    # -- Derived helpers ----------------------------------------------------

    @property
    def is_secret(self) -> bool:
        if self.secret is not None:
            return self.secret
        return naming.looks_secret(self.name)

    @property
    def nullable(self) -> bool:
        if self.is_primary:
            return False
        return not self.required or self.data_type.is_optional

    @property
    def in_create(self) -> bool:
        return not self.is_primary and not self.readonly and self.default is None

    @property
    def in_update(self) -> bool:
        return not self.is_primary and not self.readonly

    @property
    def in_response(self) -> bool:
        return not self.is_secret and not self.hidden

    def __repr__(self) -> str:
        pk_flag: str = " PK" if self.is_primary else ""
        return f"<EntityField {self.name} {self.data_type.canonical}{pk_flag}>"


# ---------------------------------------------------------------------------
# Entity
# ---------------------------------------------------------------------------


class EntityConfig(BaseModel):
    """Per-entity generation flags."""

    model_config = _FROZEN_CONFIG

    timestamps: bool = Field(default=True, description="Add created_at / updated_at.")
    soft_delete: bool = Field(default=False, description="Delete sets deleted_at.")
    id_strategy: IdStrategy = Field(default=IdStrategy.UUID)
    auditable: bool = Field(default=False, description="Add created_by / updated_by.")
    generate_api: bool = Field(default=True, description="Expect an endpoint group.")


def _managed_field(name: str, type_expr: str, **flags: Any) -> EntityField:
    return EntityField(name=name, data_type=DataType.parse(type_expr), readonly=True, **flags)


class Entity(BaseModel):
    """A schema-level record type (one table)."""

    model_config = _FROZEN_CONFIG

    id: str = Field(default="", description="Stable identity.")
    name: str = Field(..., min_length=1, description="Entity name, unique per graph.")
    table_name: str = Field(default="", description="Table identifier.")
    description: Optional[str] = None
    fields: List[EntityField] = Field(default_factory=list)
    config: EntityConfig = Field(default_factory=EntityConfig)

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name"):
            data = dict(data)
            if not data.get("id"):
                data["id"] = data["name"]
            if not data.get("table_name"):
                data["table_name"] = naming.table_name(data["name"])
        return data

    def effective_fields(self) -> List[EntityField]:
        """
        Declared fields plus the server-managed columns implied by the
        entity configuration. A synthesized column is only added when no
        declared field already carries its name.
        """
        result: List[EntityField] = list(self.fields)
        declared = {f.name for f in self.fields}

        def _add(candidate: EntityField) -> None:
            if candidate.name not in declared:
                result.append(candidate)

        if self.config.timestamps:
            _add(_managed_field("created_at", "datetime", default={"now": True}))
            _add(_managed_field("updated_at", "datetime", default={"now": True}))
        if self.config.auditable:
            _add(_managed_field("created_by", "optional<string>", required=False))
            _add(_managed_field("updated_by", "optional<string>", required=False))
        if self.config.soft_delete:
            _add(_managed_field("deleted_at", "optional<datetime>", required=False, hidden=True))
        return result

    @property
    def primary_key(self) -> Optional[EntityField]:
        for f in self.fields:
            if f.is_primary:
                return f
        return None

    def field_by_name(self, name: str) -> Optional[EntityField]:
        for f in self.effective_fields():
            if f.name == name or f.id == name:
                return f
        return None

    def __repr__(self) -> str:
        return f"<Entity {self.name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------

_TO_MANY_FROM_SOURCE: FrozenSet[str] = frozenset(
    {RelationKind.ONE_TO_MANY.value, RelationKind.MANY_TO_MANY.value}
)
_TO_MANY_FROM_TARGET: FrozenSet[str] = frozenset(
    {RelationKind.MANY_TO_ONE.value, RelationKind.MANY_TO_MANY.value}
)


class Relationship(BaseModel):
    """
    Association between two entities.

    The owning entity (carrier of the FK field) is the source for
    ``many_to_one`` / ``one_to_one`` and the target for ``one_to_many``.
    ``many_to_many`` owns nothing: it is realised as a junction table.
    """

    model_config = _FROZEN_CONFIG

    id: str = Field(default="")
    name: Optional[str] = Field(default=None, description="Attribute on the source model.")
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    kind: RelationKind
    junction: Optional[str] = Field(default=None, description="Junction table (M2M only).")
    fk_field: Optional[str] = Field(default=None, description="FK field on the owning side.")
    references_field: Optional[str] = Field(
        default=None, description="Referenced field; None means primary key."
    )
    inverse_name: Optional[str] = Field(default=None, description="Attribute on the target model.")
    on_delete: ReferentialAction = ReferentialAction.RESTRICT
    on_update: ReferentialAction = ReferentialAction.CASCADE
    nested: bool = Field(default=False, description="Emit parent-scoped routes.")
    required: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            data = dict(data)
            data["id"] = f"{data.get('source')}.{data.get('name') or data.get('target')}"
        return data

    @field_validator("on_delete", "on_update", mode="before")
    @classmethod
    def _normalise(cls, v: Any) -> Any:
        return _normalise_action(v)

    @property
    def is_many_to_many(self) -> bool:
        return self.kind == RelationKind.MANY_TO_MANY.value

    @property
    def owner_ref(self) -> str:
        return self.target if self.kind == RelationKind.ONE_TO_MANY.value else self.source

    @property
    def referenced_ref(self) -> str:
        return self.source if self.kind == RelationKind.ONE_TO_MANY.value else self.target

    @property
    def source_is_many(self) -> bool:
        """The source sees many targets."""
        return self.kind in _TO_MANY_FROM_SOURCE

    @property
    def target_is_many(self) -> bool:
        """The target sees many sources."""
        return self.kind in _TO_MANY_FROM_TARGET


# ---------------------------------------------------------------------------
# Endpoints & security
# ---------------------------------------------------------------------------


class EndpointSecurity(BaseModel):
    """
    A security layer. Every field is optional so that an operation can
    override only part of its group's (or the project's) policy.
    """

    model_config = _FROZEN_CONFIG

    auth_required: Optional[bool] = None
    roles: Optional[List[str]] = None
    scopes: Optional[List[str]] = None


class ResolvedSecurity(BaseModel):
    """Effective policy after layering operation > group > project."""

    model_config = _FROZEN_CONFIG

    auth_required: bool = False
    roles: Tuple[str, ...] = ()
    scopes: Tuple[str, ...] = ()

    @property
    def is_public(self) -> bool:
        return not self.auth_required and not self.roles and not self.scopes


def resolve_security(*layers: Optional[EndpointSecurity]) -> ResolvedSecurity:
    """
    Merge security layers field by field, most specific first.

    Each field takes the first non-``None`` value; roles or scopes imply
    authentication.

        >>> resolve_security(EndpointSecurity(roles=["admin"]), EndpointSecurity(auth_required=False))
        ResolvedSecurity(auth_required=True, roles=('admin',), scopes=())
    """
    auth_required: Optional[bool] = None
    roles: Optional[List[str]] = None
    scopes: Optional[List[str]] = None
    for layer in layers:
        if layer is None:
            continue
        if auth_required is None and layer.auth_required is not None:
            auth_required = layer.auth_required
        if roles is None and layer.roles is not None:
            roles = layer.roles
        if scopes is None and layer.scopes is not None:
            scopes = layer.scopes

    resolved_roles: Tuple[str, ...] = tuple(roles or ())
    resolved_scopes: Tuple[str, ...] = tuple(scopes or ())
    return ResolvedSecurity(
        auth_required=bool(auth_required) or bool(resolved_roles) or bool(resolved_scopes),
        roles=resolved_roles,
        scopes=resolved_scopes,
    )


class RateLimit(BaseModel):
    """Requests per sliding window."""

    model_config = _FROZEN_CONFIG

    requests: int = Field(default=100)
    window_seconds: int = Field(default=60)
    per_user: bool = False


_HTTP_METHODS: Dict[str, str] = {
    "create": "post",
    "read": "get",
    "read_all": "get",
    "update": "patch",
    "delete": "delete",
}

_DEFAULT_STATUS: Dict[str, int] = {
    "create": 201,
    "read": 200,
    "read_all": 200,
    "update": 200,
    "delete": 204,
}


class CrudOperation(BaseModel):
    """One API operation of an endpoint group."""

    model_config = _FROZEN_CONFIG

    kind: OperationKind
    enabled: bool = True
    security: Optional[EndpointSecurity] = None
    rate_limit: Optional[RateLimit] = None
    description: Optional[str] = None
    success_status: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"kind": data}
        return data

    @property
    def http_method(self) -> str:
        return _HTTP_METHODS[self.kind]

    @property
    def is_item(self) -> bool:
        """Operates on a single record addressed by id."""
        return self.kind in ("read", "update", "delete")

    @property
    def status_code(self) -> int:
        return self.success_status or _DEFAULT_STATUS[self.kind]


def _all_operations() -> List[CrudOperation]:
    return [CrudOperation(kind=k) for k in OPERATION_ORDER]


class EndpointGroup(BaseModel):
    """The API surface exposed for one entity."""

    model_config = _FROZEN_CONFIG

    id: str = Field(default="")
    entity: str = Field(..., min_length=1, description="Entity id or name.")
    base_path: Optional[str] = Field(
        default=None, description="Defaults to /api/<snake plural>."
    )
    operations: List[CrudOperation] = Field(default_factory=_all_operations)
    security: EndpointSecurity = Field(default_factory=EndpointSecurity)
    enabled: bool = True
    api_version: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            data = dict(data)
            data["id"] = f"{data.get('entity')}-endpoints"
        return data

    def operation(self, kind: str) -> Optional[CrudOperation]:
        kind = str(getattr(kind, "value", kind))
        for op in self.operations:
            if op.kind == kind:
                return op
        return None

    def is_enabled(self, kind: str) -> bool:
        op: Optional[CrudOperation] = self.operation(kind)
        return self.enabled and op is not None and op.enabled

    def enabled_operations(self) -> List[CrudOperation]:
        """Enabled operations in the fixed emission order."""
        if not self.enabled:
            return []
        ops: List[CrudOperation] = []
        for kind in OPERATION_ORDER:
            op = self.operation(kind)
            if op is not None and op.enabled:
                ops.append(op)
        return ops

    def resolved_base_path(self, entity_name: str) -> str:
        path: str = self.base_path or f"/api/{naming.table_name(entity_name)}"
        return path.rstrip("/") or "/"

    def full_base_path(self, entity_name: str) -> str:
        """Base path including the API version segment, if any."""
        path: str = self.resolved_base_path(entity_name)
        if not self.api_version:
            return path
        rest: str = path[len("/api"):] if path.startswith("/api") else path
        return f"/api/{self.api_version}{rest}"


# ---------------------------------------------------------------------------
# Project configuration
# ---------------------------------------------------------------------------

_IDENTIFIER_RE: re.Pattern[str] = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class AuthConfig(BaseModel):
    """Authentication settings for the generated service."""

    model_config = _FROZEN_CONFIG

    strategy: AuthStrategy = AuthStrategy.NONE
    secret_env: str = Field(default="APP_SECRET_KEY", description="Env var holding the signing key.")
    token_expiry_minutes: int = Field(default=60, ge=1)
    default_roles: List[str] = Field(default_factory=lambda: ["user"])
    available_roles: List[str] = Field(default_factory=list)

    @property
    def enabled(self) -> bool:
        return self.strategy != AuthStrategy.NONE.value


class ProjectConfig(BaseModel):
    """Project-wide settings carried by the graph."""

    model_config = _FROZEN_CONFIG

    database: DatabaseBackend = DatabaseBackend.POSTGRESQL
    auth: AuthConfig = Field(default_factory=AuthConfig)
    package_name: str = Field(default="app", description="Generated Python package.")
    default_security: EndpointSecurity = Field(default_factory=EndpointSecurity)
    cors_enabled: bool = True
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    server_host: str = "0.0.0.0"
    server_port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("package_name")
    @classmethod
    def _valid_package(cls, v: str) -> str:
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"package_name '{v}' is not a valid Python identifier.")
        return v


class ProjectMeta(BaseModel):
    """Descriptive project metadata."""

    model_config = _FROZEN_CONFIG

    name: str = Field(default="project", min_length=1)
    version: str = "0.1.0"
    description: str = ""
    author: Optional[str] = None


class ProjectGraph(BaseModel):
    """
    The complete in-memory schema handed to the engine.

    Invariant: ``_entity_index`` resolves both entity ids and names; it is
    built once, right after construction.
    """

    model_config = _FROZEN_CONFIG

    meta: ProjectMeta = Field(default_factory=ProjectMeta)
    config: ProjectConfig = Field(default_factory=ProjectConfig)
    entities: List[Entity] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    endpoints: List[EndpointGroup] = Field(default_factory=list)

    # -- Internal cache (not part of the serialised model) ------------------
    _entity_index: Dict[str, Entity] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        index: Dict[str, Entity] = {}
        for e in self.entities:
            index.setdefault(e.name, e)
        for e in self.entities:
            index[e.id] = e
        self._entity_index = index

    # -- Accessors ----------------------------------------------------------

    def entity(self, ref: str) -> Optional[Entity]:
        """Lookup by id, falling back to name."""
        return self._entity_index.get(ref)

    def endpoint_for(self, entity_ref: str) -> Optional[EndpointGroup]:
        entity: Optional[Entity] = self.entity(entity_ref)
        if entity is None:
            return None
        for group in self.endpoints:
            if self.entity(group.entity) is entity:
                return group
        return None

    def relationships_for(self, entity_ref: str) -> List[Relationship]:
        """Every relationship touching the entity, in declaration order."""
        entity: Optional[Entity] = self.entity(entity_ref)
        if entity is None:
            return []
        return [
            r for r in self.relationships
            if self.entity(r.source) is entity or self.entity(r.target) is entity
        ]

    def owning_entity(self, rel: Relationship) -> Optional[Entity]:
        return self.entity(rel.owner_ref)

    def referenced_entity(self, rel: Relationship) -> Optional[Entity]:
        return self.entity(rel.referenced_ref)

    def relationship_fk_field(self, rel: Relationship) -> str:
        """FK field name on the owning side (``<referenced>_id`` by default)."""
        if rel.fk_field:
            return rel.fk_field
        referenced: Optional[Entity] = self.referenced_entity(rel)
        ref_name: str = referenced.name if referenced else rel.referenced_ref
        return f"{naming.to_snake_case(ref_name)}_id"

    def relationship_references_field(self, rel: Relationship) -> Optional[EntityField]:
        referenced: Optional[Entity] = self.referenced_entity(rel)
        if referenced is None:
            return None
        if rel.references_field:
            return referenced.field_by_name(rel.references_field)
        return referenced.primary_key

    def relationship_attr_names(self, rel: Relationship) -> Tuple[str, str]:
        """(attribute on the source model, attribute on the target model)."""
        source: Optional[Entity] = self.entity(rel.source)
        target: Optional[Entity] = self.entity(rel.target)
        source_snake: str = naming.to_snake_case(source.name if source else rel.source)
        target_snake: str = naming.to_snake_case(target.name if target else rel.target)

        forward: str = rel.name or (
            naming.to_plural(target_snake) if rel.source_is_many else target_snake
        )
        inverse: str = rel.inverse_name or (
            naming.to_plural(source_snake) if rel.target_is_many else source_snake
        )
        if forward == inverse:
            inverse = f"{inverse}_inverse"
        return naming.safe_identifier(forward), naming.safe_identifier(inverse)

    def base_path_for(self, group: EndpointGroup) -> str:
        entity: Optional[Entity] = self.entity(group.entity)
        return group.full_base_path(entity.name if entity else group.entity)

    @computed_field  # type: ignore[misc]
    @property
    def entity_count(self) -> int:
        return len(self.entities)

    def __repr__(self) -> str:
        return (
            f"<ProjectGraph {self.meta.name}: {len(self.entities)} entities, "
            f"{len(self.relationships)} relationships, {len(self.endpoints)} endpoint groups>"
        )


# ---------------------------------------------------------------------------
# Generator configuration (per invocation)
# ---------------------------------------------------------------------------


class GeneratorConfig(BaseModel):
    """
    Per-invocation settings. ``backend`` and ``auth_strategy`` override the
    graph's ``ProjectConfig`` when set.
    """

    model_config = _SHARED_CONFIG

    backend: Optional[DatabaseBackend] = Field(default=None, description="Backend override.")
    auth_strategy: Optional[AuthStrategy] = Field(default=None, description="Auth override.")
    frontend: bool = Field(default=False, description="Emit the TypeScript frontend.")
    output_root: str = Field(default="./generated", description="Root for the written tree.")
    overwrite: OverwritePolicy = Field(default=OverwritePolicy.FAIL)
    generate_migrations: bool = True
    generate_docstrings: bool = True
    indent_size: int = Field(default=4, ge=2, le=8)
    parallel: bool = Field(default=False, description="Run generators in a thread pool.")
    max_workers: int = Field(default=4, ge=1, le=32)

    def resolved_backend(self, graph: ProjectGraph) -> str:
        return self.backend or graph.config.database

    def resolved_auth(self, graph: ProjectGraph) -> str:
        return self.auth_strategy or graph.config.auth.strategy


# ---------------------------------------------------------------------------
# Generation output
# ---------------------------------------------------------------------------


class GeneratedFile(BaseModel):
    """
    A single file produced by a generator.

    ``provides`` / ``requires`` are symbol sets such as
    ``handler:create_user`` that the assembler cross-checks.
    """

    model_config = _FROZEN_CONFIG

    path: str = Field(..., min_length=1, description="Relative file path.")
    content: str = Field(..., description="Full file content.")
    provides: FrozenSet[str] = Field(default_factory=frozenset)
    requires: FrozenSet[str] = Field(default_factory=frozenset)

    @property
    def line_count(self) -> int:
        return count_lines(self.content)

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))

    @property
    def checksum(self) -> str:
        return sha256_hex(self.content)


class GenerationOutput(BaseModel):
    """Engine output: ordered path → content plus non-fatal warnings."""

    model_config = _FROZEN_CONFIG

    files: Dict[str, str] = Field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    order: Tuple[str, ...] = Field(default=(), description="Entity emission order.")
    deferred: Tuple[str, ...] = Field(default=(), description="Deferred constraints.")

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def total_lines(self) -> int:
        return sum(count_lines(c) for c in self.files.values())

    def __repr__(self) -> str:
        return f"<GenerationOutput {self.total_files} files, {len(self.warnings)} warnings>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DataKind",
    "DatabaseBackend",
    "AuthStrategy",
    "RelationKind",
    "OperationKind",
    "ReferentialAction",
    "IdStrategy",
    "RuleKind",
    "DefaultKind",
    "OverwritePolicy",
    "OPERATION_ORDER",
    "SCALAR_KINDS",
    "INTEGER_KINDS",
    "NUMERIC_KINDS",
    "STRING_KINDS",
    "DataType",
    "DefaultValue",
    "ValidationRule",
    "ForeignKeyRef",
    "EntityField",
    "EntityConfig",
    "Entity",
    "Relationship",
    "EndpointSecurity",
    "ResolvedSecurity",
    "resolve_security",
    "RateLimit",
    "CrudOperation",
    "EndpointGroup",
    "AuthConfig",
    "ProjectConfig",
    "ProjectMeta",
    "ProjectGraph",
    "GeneratorConfig",
    "GeneratedFile",
    "GenerationOutput",
]

logger.debug("apiforge.models loaded: %d public symbols.", len(__all__))
