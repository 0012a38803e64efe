# File: apiforge/generators/handlers.py
"""
NexaFlow APIForge - Handler Generator
======================================
Emits ``<pkg>/handlers/<module>.py`` per API entity: a field-rule validator
and one async function per *enabled* operation. A disabled operation emits
nothing at all.

Error contract of the emitted code: not found → 404, uniqueness conflict →
409, rule violations → 422 (every violation listed in ``detail``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from apiforge import naming
from apiforge.generators.base import BaseGenerator, NestedRoute, symbols
from apiforge.generators.shapes import EntityShapes, build_shapes
from apiforge.models import (
    EndpointGroup,
    Entity,
    EntityField,
    GeneratedFile,
    IdStrategy,
    RuleKind,
    ValidationRule,
)
from apiforge.utils import build_import_block, py_literal, py_string

logger: logging.Logger = logging.getLogger("apiforge.generators.handlers")

_EMAIL_PATTERN: str = r"[^@\s]+@[^@\s]+\.[^@\s]+"
_URL_PATTERN: str = r"https?://[^\s/$.?#].[^\s]*"
_UUID_PATTERN: str = r"[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}"

_FORMAT_CONSTANTS: Dict[str, Tuple[str, str]] = {
    RuleKind.EMAIL.value: ("_EMAIL_RE", _EMAIL_PATTERN),
    RuleKind.URL.value: ("_URL_RE", _URL_PATTERN),
    RuleKind.UUID.value: ("_UUID_RE", _UUID_PATTERN),
}


@dataclass(frozen=True, slots=True)
class _Names:
    """Identifiers used throughout one entity's handler module."""

    entity: Entity
    model: str
    snake: str
    pk: EntityField
    pk_param: str
    pk_type: str
    shapes: EntityShapes

    @property
    def loader(self) -> str:
        return f"_load_{self.snake}"

    @property
    def validator(self) -> str:
        return f"validate_{self.snake}_fields"

    @property
    def unique_checker(self) -> str:
        return f"_ensure_unique_{self.snake}"


class HandlerGenerator(BaseGenerator):
    """Operation implementations over an ``AsyncSession``."""

    name: str = "handlers"

    def generate(self) -> List[GeneratedFile]:
        files: List[GeneratedFile] = []
        for entity, group in self._ctx.api_entities():
            self._ctx.checkpoint(f"handlers for {entity.name}")
            files.append(self.generate_handlers(entity, group))
        lines: List[str] = self._module_header("Operation handlers, one module per entity.")
        files.append(self._file(self._ctx.pkg_path("handlers", "__init__.py"), lines))
        return files

    def _names(self, entity: Entity) -> _Names:
        snake: str = naming.to_snake_case(entity.name)
        pk: EntityField = entity.primary_key
        return _Names(
            entity=entity,
            model=naming.model_class_name(entity.name),
            snake=snake,
            pk=pk,
            pk_param=f"{snake}_id",
            pk_type=self._ctx.mapping(pk).python_type,
            shapes=build_shapes(self._ctx, entity),
        )

    # ===================================================================
    # Module assembly
    # ===================================================================

    def generate_handlers(self, entity: Entity, group: EndpointGroup) -> GeneratedFile:
        ctx = self._ctx
        n: _Names = self._names(entity)
        kinds: List[str] = [op.kind for op in group.enabled_operations()]
        nested: List[NestedRoute] = ctx.nested_routes_for_child(entity)
        shapes: EntityShapes = n.shapes

        imports: Dict[str, Set[str]] = {
            "typing": {"Any", "Dict", "List", "Optional"},
            "fastapi": {"HTTPException"},
            "sqlalchemy": {"select"},
            "sqlalchemy.ext.asyncio": {"AsyncSession"},
            ctx.pkg_module("models", naming.module_name(entity.name)): {n.model},
            ctx.pkg_module("schemas", naming.module_name(entity.name)): {shapes.response.name},
        }
        for module, name in ctx.mapping(n.pk).python_imports:
            imports.setdefault(module, set()).add(name)
        requires: Set[str] = {f"model:{n.model}", f"schema:{shapes.response.name}"}
        provides: List[str] = []

        writes: bool = "create" in kinds or "update" in kinds
        unique_fields: List[str] = [
            f.name for f in entity.effective_fields()
            if f.unique and not f.is_primary and not f.is_secret
        ]
        if writes:
            provides.append(n.validator)

        body: List[List[str]] = []
        format_constants: Set[str] = set()
        if writes:
            body.append(self._validator(n, format_constants))
            if unique_fields:
                body.append(self._unique_checker(n, unique_fields))
        if {"read", "update", "delete"} & set(kinds) or nested:
            body.append(self._loader(n))

        for kind in kinds:
            name: str = naming.handler_name(kind, entity.name)
            provides.append(name)
            if kind == "create":
                body.append(self._create(n, name, bool(unique_fields), imports, requires))
            elif kind == "read":
                body.append(self._read(n, name))
            elif kind == "read_all":
                imports["sqlalchemy"].add("func")
                body.append(self._list(n, name))
            elif kind == "update":
                body.append(self._update(n, name, bool(unique_fields), imports, requires))
            elif kind == "delete":
                body.append(self._delete(n, name, imports))

        guards: Dict[str, NestedRoute] = {}
        for route in nested:
            parent_model: str = naming.model_class_name(route.parent.name)
            if route.parent is not entity:
                imports[ctx.pkg_module("models", naming.module_name(route.parent.name))] = {
                    parent_model
                }
                requires.add(f"model:{parent_model}")
            parent_pk: EntityField = route.parent.primary_key
            for module, pname in ctx.mapping(parent_pk).python_imports:
                imports.setdefault(module, set()).add(pname)
            guard_name: str = self._parent_guard_name(route)
            if guard_name not in guards:
                guards[guard_name] = route
                body.append(self._parent_guard(route))
            for kind in route.operations:
                name = naming.nested_handler_name(kind, entity.name, route.parent.name)
                provides.append(name)
                body.append(self._nested(n, route, kind, name, imports, requires))

        if format_constants:
            imports.setdefault("re", set())

        lines: List[str] = self._module_header(f"Operation handlers for {entity.name}.")
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append(build_import_block(imports))
        lines.append("")
        for const_name, pattern in _FORMAT_CONSTANTS.values():
            if const_name in format_constants:
                lines.append(f'{const_name} = re.compile(r"{pattern}")')
        if unique_fields and writes:
            lines.append(
                "_UNIQUE_FIELDS = (" + "".join(f'"{u}", ' for u in unique_fields).rstrip() + ")"
            )
        if "read_all" in kinds or any("read_all" in r.operations for r in nested):
            filterable: List[str] = [f.name for f in ctx.filterable_fields(entity)]
            lines.append(
                "_FILTERABLE_FIELDS = (" + "".join(f'"{u}", ' for u in filterable).rstrip() + ")"
            )
        for block in body:
            lines.append("")
            lines.append("")
            lines.extend(block)

        logger.debug("Handlers for %s: %s", entity.name, ", ".join(provides))
        return self._file(
            ctx.pkg_path("handlers", f"{naming.module_name(entity.name)}.py"),
            lines,
            provides=symbols("handler", provides),
            requires=requires,
        )

    # ===================================================================
    # Validation and lookups
    # ===================================================================

    def _validator(self, n: _Names, format_constants: Set[str]) -> List[str]:
        i, ii, iii = self._indent, self._double_indent, self._triple_indent
        lines: List[str] = [
            f"def {n.validator}(data: Dict[str, Any], partial: bool = False) -> None:",
        ]
        if self._docstrings:
            lines.append(f'{i}"""')
            lines.append(f"{i}Apply the field rules of {n.entity.name} to *data*.")
            lines.append("")
            lines.append(f"{i}With ``partial=True`` only supplied keys are checked.")
            lines.append(f"{i}Raises 422 listing every violation.")
            lines.append(f'{i}"""')
        lines.append(f"{i}errors: List[Dict[str, str]] = []")

        members = {m.source.name: m.name for m in n.shapes.create.fields}
        members.update({m.source.name: m.name for m in n.shapes.update.fields})
        for f in n.entity.effective_fields():
            if f.name not in members or not (f.validations or not f.nullable):
                continue
            key: str = members[f.name]
            required: Optional[ValidationRule] = next(
                (r for r in f.validations if r.kind == RuleKind.REQUIRED.value), None
            )
            checks: List[Tuple[str, str]] = [
                (self._rule_condition(r, format_constants), r.effective_message)
                for r in f.validations
                if r.kind != RuleKind.REQUIRED.value
            ]
            lines.append("")
            lines.append(f'{i}value = data.get("{key}")')
            if required is not None or not f.nullable:
                # an explicit null is rejected even on partial updates
                message: str = (
                    required.effective_message if required is not None
                    else f"{key} may not be null."
                )
                presence: str = (
                    f'not partial or "{key}" in data' if required is not None
                    else f'"{key}" in data'
                )
                lines.append(f"{i}if value is None:")
                lines.append(f"{ii}if {presence}:")
                lines.append(
                    f'{iii}errors.append({{"field": "{key}", "message": {py_string(message)}}})'
                )
                if checks:
                    lines.append(f"{i}else:")
            elif checks:
                lines.append(f"{i}if value is not None:")
            for condition, message in checks:
                lines.append(f"{ii}if {condition}:")
                lines.append(
                    f'{iii}errors.append({{"field": "{key}", "message": {py_string(message)}}})'
                )

        lines.append("")
        lines.append(f"{i}if errors:")
        lines.append(f"{ii}raise HTTPException(status_code=422, detail=errors)")
        return lines

    @staticmethod
    def _rule_condition(rule: ValidationRule, format_constants: Set[str]) -> str:
        kind: str = rule.kind
        if kind == RuleKind.MIN_LENGTH.value:
            return f"len(value) < {int(rule.value)}"
        if kind == RuleKind.MAX_LENGTH.value:
            return f"len(value) > {int(rule.value)}"
        if kind == RuleKind.MIN.value:
            return f"value < {py_literal(rule.value)}"
        if kind == RuleKind.MAX.value:
            return f"value > {py_literal(rule.value)}"
        if kind == RuleKind.PATTERN.value:
            format_constants.add("re")
            return f"re.fullmatch({py_string(str(rule.value))}, str(value)) is None"
        if kind == RuleKind.ONE_OF.value:
            return f"value not in ({', '.join(py_literal(v) for v in rule.value)},)"
        constant, _ = _FORMAT_CONSTANTS[kind]
        format_constants.add(constant)
        return f"{constant}.fullmatch(str(value)) is None"

    def _unique_checker(self, n: _Names, unique_fields: List[str]) -> List[str]:
        i, ii, iii = self._indent, self._double_indent, self._triple_indent
        pk: str = n.pk.name
        return [
            f"async def {n.unique_checker}(",
            f"{i}db: AsyncSession,",
            f"{i}data: Dict[str, Any],",
            f"{i}exclude_id: Optional[{n.pk_type}] = None,",
            ") -> None:",
            f'{i}"""Raise 409 if a unique field of *data* is already taken."""',
            f"{i}for column in _UNIQUE_FIELDS:",
            f"{ii}value = data.get(column)",
            f"{ii}if value is None:",
            f"{iii}continue",
            f"{ii}stmt = select({n.model}).where(getattr({n.model}, column) == value)",
            f"{ii}if exclude_id is not None:",
            f"{iii}stmt = stmt.where({n.model}.{pk} != exclude_id)",
            f"{ii}result = await db.execute(stmt.limit(1))",
            f"{ii}if result.scalar_one_or_none() is not None:",
            f"{iii}raise HTTPException(",
            f"{iii}{i}status_code=409,",
            f'{iii}{i}detail=f"{n.entity.name} with {{column}}={{value!r}} already exists.",',
            f"{iii})",
        ]

    def _live_condition(self, n: _Names) -> List[str]:
        if n.entity.config.soft_delete:
            return [f"{n.model}.deleted_at.is_(None)"]
        return []

    def _loader(self, n: _Names) -> List[str]:
        i, ii = self._indent, self._double_indent
        lines: List[str] = [
            f"async def {n.loader}(db: AsyncSession, {n.pk_param}: {n.pk_type}) -> {n.model}:",
            f"{i}stmt = select({n.model}).where({n.model}.{n.pk.name} == {n.pk_param})",
        ]
        for condition in self._live_condition(n):
            lines.append(f"{i}stmt = stmt.where({condition})")
        lines.extend(
            [
                f"{i}result = await db.execute(stmt)",
                f"{i}record = result.scalar_one_or_none()",
                f"{i}if record is None:",
                f'{ii}raise HTTPException(status_code=404, detail="{n.entity.name} not found.")',
                f"{i}return record",
            ]
        )
        return lines

    # ===================================================================
    # Operations
    # ===================================================================

    def _apply_secrets(self, n: _Names, imports: Dict[str, Set[str]], requires: Set[str]) -> List[str]:
        i, ii = self._indent, self._double_indent
        lines: List[str] = []
        for input_name, stored in n.shapes.secret_inputs:
            imports.setdefault(self._ctx.pkg_module("hashing"), set()).add("hash_secret")
            requires.add("hashing:hash_secret")
            lines.append(f'{i}secret = data.pop("{input_name}", None)')
            lines.append(f"{i}if secret is not None:")
            lines.append(f'{ii}data["{stored}"] = hash_secret(secret)')
        return lines

    def _actor_param(self, n: _Names) -> List[str]:
        if n.entity.config.auditable:
            return [f"{self._indent}actor: Optional[str] = None,"]
        return []

    def _create(
        self,
        n: _Names,
        name: str,
        has_unique: bool,
        imports: Dict[str, Set[str]],
        requires: Set[str],
    ) -> List[str]:
        i = self._indent
        create: str = n.shapes.create.name
        imports[self._ctx.pkg_module("schemas", naming.module_name(n.entity.name))].add(create)
        requires.add(f"schema:{create}")
        names = {f.name for f in n.entity.effective_fields()}

        lines: List[str] = [
            f"async def {name}(",
            f"{i}db: AsyncSession,",
            f"{i}payload: {create},",
        ]
        lines.extend(self._actor_param(n))
        lines.append(f") -> {n.shapes.response.name}:")
        if self._docstrings:
            lines.append(f'{i}"""Insert a new {n.entity.name} after rule and uniqueness checks."""')
        lines.append(f"{i}data: Dict[str, Any] = payload.model_dump()")
        lines.append(f"{i}{n.validator}(data)")
        if has_unique:
            lines.append(f"{i}await {n.unique_checker}(db, data)")
        lines.extend(self._apply_secrets(n, imports, requires))
        lines.append(f"{i}record = {n.model}(**data)")
        if n.entity.config.id_strategy == IdStrategy.UUID.value and n.pk_type == "UUID":
            imports.setdefault("uuid", set()).add("uuid4")
            lines.append(f"{i}record.{n.pk.name} = uuid4()")
        if n.entity.config.timestamps:
            imports.setdefault("datetime", set()).update({"datetime", "timezone"})
            lines.append(f"{i}now = datetime.now(timezone.utc)")
            for stamp in ("created_at", "updated_at"):
                if stamp in names:
                    lines.append(f"{i}record.{stamp} = now")
        if n.entity.config.auditable:
            lines.append(f"{i}record.created_by = actor")
            lines.append(f"{i}record.updated_by = actor")
        lines.extend(
            [
                f"{i}db.add(record)",
                f"{i}await db.commit()",
                f"{i}await db.refresh(record)",
                f"{i}return {n.shapes.response.name}.model_validate(record)",
            ]
        )
        return lines

    def _read(self, n: _Names, name: str) -> List[str]:
        i = self._indent
        lines: List[str] = [
            f"async def {name}(db: AsyncSession, {n.pk_param}: {n.pk_type}) -> {n.shapes.response.name}:",
        ]
        if self._docstrings:
            lines.append(f'{i}"""Fetch a single {n.entity.name} by primary key."""')
        lines.append(f"{i}record = await {n.loader}(db, {n.pk_param})")
        lines.append(f"{i}return {n.shapes.response.name}.model_validate(record)")
        return lines

    def _list(self, n: _Names, name: str) -> List[str]:
        i, ii, iii = self._indent, self._double_indent, self._triple_indent
        list_name: str = n.shapes.list_name
        lines: List[str] = [
            f"async def {name}(",
            f"{i}db: AsyncSession,",
            f"{i}offset: int = 0,",
            f"{i}limit: int = 50,",
            f"{i}filters: Optional[Dict[str, Any]] = None,",
            f"{i}conditions: Optional[List[Any]] = None,",
            f") -> {list_name}:",
        ]
        if self._docstrings:
            lines.append(f'{i}"""')
            lines.append(f"{i}Paginated listing of {n.entity.name} records.")
            lines.append("")
            lines.append(f"{i}*filters* maps field names to required values; ``None`` values")
            lines.append(f"{i}and fields outside ``_FILTERABLE_FIELDS`` are ignored.")
            lines.append(f'{i}"""')
        lines.append(f"{i}where: List[Any] = list(conditions or [])")
        for condition in self._live_condition(n):
            lines.append(f"{i}where.append({condition})")
        lines.extend(
            [
                f"{i}for field_name, value in (filters or {{}}).items():",
                f"{ii}if value is not None and field_name in _FILTERABLE_FIELDS:",
                f"{iii}where.append(getattr({n.model}, field_name) == value)",
                "",
                f"{i}count_stmt = select(func.count()).select_from({n.model}).where(*where)",
                f"{i}total: int = (await db.execute(count_stmt)).scalar_one()",
                "",
                f"{i}stmt = (",
                f"{ii}select({n.model})",
                f"{ii}.where(*where)",
                f"{ii}.order_by({n.model}.{n.pk.name})",
                f"{ii}.offset(offset)",
                f"{ii}.limit(limit)",
                f"{i})",
                f"{i}rows = (await db.execute(stmt)).scalars().all()",
                f"{i}return {list_name}(",
                f"{ii}items=[{n.shapes.response.name}.model_validate(row) for row in rows],",
                f"{ii}total=total,",
                f"{ii}offset=offset,",
                f"{ii}limit=limit,",
                f"{ii}has_more=offset + len(rows) < total,",
                f"{i})",
            ]
        )
        return lines

    def _update(
        self,
        n: _Names,
        name: str,
        has_unique: bool,
        imports: Dict[str, Set[str]],
        requires: Set[str],
    ) -> List[str]:
        i, ii = self._indent, self._double_indent
        update_name: str = n.shapes.update.name
        imports[self._ctx.pkg_module("schemas", naming.module_name(n.entity.name))].add(update_name)
        requires.add(f"schema:{update_name}")
        names = {f.name for f in n.entity.effective_fields()}

        lines: List[str] = [
            f"async def {name}(",
            f"{i}db: AsyncSession,",
            f"{i}{n.pk_param}: {n.pk_type},",
            f"{i}payload: {update_name},",
        ]
        lines.extend(self._actor_param(n))
        lines.append(f") -> {n.shapes.response.name}:")
        if self._docstrings:
            lines.append(f'{i}"""Merge the supplied fields onto an existing {n.entity.name}."""')
        lines.append(f"{i}record = await {n.loader}(db, {n.pk_param})")
        lines.append(f"{i}data: Dict[str, Any] = payload.model_dump(exclude_unset=True)")
        lines.append(f"{i}{n.validator}(data, partial=True)")
        if has_unique:
            lines.append(f"{i}await {n.unique_checker}(db, data, exclude_id={n.pk_param})")
        lines.extend(self._apply_secrets(n, imports, requires))
        lines.append(f"{i}for field_name, value in data.items():")
        lines.append(f"{ii}setattr(record, field_name, value)")
        if n.entity.config.timestamps and "updated_at" in names:
            imports.setdefault("datetime", set()).update({"datetime", "timezone"})
            lines.append(f"{i}record.updated_at = datetime.now(timezone.utc)")
        if n.entity.config.auditable:
            lines.append(f"{i}record.updated_by = actor")
        lines.extend(
            [
                f"{i}await db.commit()",
                f"{i}await db.refresh(record)",
                f"{i}return {n.shapes.response.name}.model_validate(record)",
            ]
        )
        return lines

    def _delete(self, n: _Names, name: str, imports: Dict[str, Set[str]]) -> List[str]:
        i, ii = self._indent, self._double_indent
        lines: List[str] = [f"async def {name}(db: AsyncSession, {n.pk_param}: {n.pk_type}) -> None:"]
        if n.entity.config.soft_delete:
            imports["sqlalchemy"].update({"func", "update"})
            if self._docstrings:
                lines.append(f'{i}"""Mark a {n.entity.name} deleted by setting ``deleted_at``."""')
            lines.extend(
                [
                    f"{i}await {n.loader}(db, {n.pk_param})",
                    f"{i}stmt = (",
                    f"{ii}update({n.model})",
                    f"{ii}.where({n.model}.{n.pk.name} == {n.pk_param})",
                    f"{ii}.values(deleted_at=func.now())",
                    f"{i})",
                    f"{i}await db.execute(stmt)",
                    f"{i}await db.commit()",
                ]
            )
        else:
            if self._docstrings:
                lines.append(f'{i}"""Permanently remove a {n.entity.name}."""')
            lines.extend(
                [
                    f"{i}record = await {n.loader}(db, {n.pk_param})",
                    f"{i}await db.delete(record)",
                    f"{i}await db.commit()",
                ]
            )
        return lines

    # ===================================================================
    # Parent-scoped helpers
    # ===================================================================

    def _parent_guard_name(self, route: NestedRoute) -> str:
        return f"_ensure_{naming.to_snake_case(route.parent.name)}_exists"

    def _parent_guard(self, route: NestedRoute) -> List[str]:
        i, ii = self._indent, self._double_indent
        parent_model: str = naming.model_class_name(route.parent.name)
        parent_pk: EntityField = route.parent.primary_key
        pk_type: str = self._ctx.mapping(parent_pk).python_type
        lines: List[str] = [
            f"async def {self._parent_guard_name(route)}(db: AsyncSession, {route.parent_param}: {pk_type}) -> None:",
            f"{i}stmt = select({parent_model}.{parent_pk.name}).where({parent_model}.{parent_pk.name} == {route.parent_param})",
        ]
        if route.parent.config.soft_delete:
            lines.append(f"{i}stmt = stmt.where({parent_model}.deleted_at.is_(None))")
        lines.extend(
            [
                f"{i}if (await db.execute(stmt)).scalar_one_or_none() is None:",
                f'{ii}raise HTTPException(status_code=404, detail="{route.parent.name} not found.")',
            ]
        )
        return lines

    def _nested(
        self,
        n: _Names,
        route: NestedRoute,
        kind: str,
        name: str,
        imports: Dict[str, Set[str]],
        requires: Set[str],
    ) -> List[str]:
        i, ii = self._indent, self._double_indent
        parent_pk: EntityField = route.parent.primary_key
        parent_type: str = self._ctx.mapping(parent_pk).python_type
        guard: str = self._parent_guard_name(route)
        scope: str = f"{n.model}.{route.fk_field} == {route.parent_param}"
        child_param: str = route.child_param if route.child_param != route.parent_param else n.pk_param
        response: str = n.shapes.response.name
        lines: List[str]

        if kind == "read_all":
            lines = [
                f"async def {name}(",
                f"{i}db: AsyncSession,",
                f"{i}{route.parent_param}: {parent_type},",
                f"{i}offset: int = 0,",
                f"{i}limit: int = 50,",
                f"{i}filters: Optional[Dict[str, Any]] = None,",
                f") -> {n.shapes.list_name}:",
            ]
            if self._docstrings:
                lines.append(f'{i}"""{n.entity.name} records belonging to one {route.parent.name}."""')
            lines.extend(
                [
                    f"{i}await {guard}(db, {route.parent_param})",
                    f"{i}return await {naming.handler_name('read_all', n.entity.name)}(",
                    f"{ii}db,",
                    f"{ii}offset=offset,",
                    f"{ii}limit=limit,",
                    f"{ii}filters=filters,",
                    f"{ii}conditions=[{scope}],",
                    f"{i})",
                ]
            )
            return lines

        if kind == "create":
            create: str = n.shapes.create.name
            body: str = naming.nested_create_shape_name(n.entity.name, route.parent.name)
            imports[self._ctx.pkg_module("schemas", naming.module_name(n.entity.name))].update(
                {create, body}
            )
            requires.update({f"schema:{create}", f"schema:{body}"})
            lines = [
                f"async def {name}(",
                f"{i}db: AsyncSession,",
                f"{i}{route.parent_param}: {parent_type},",
                f"{i}payload: {body},",
            ]
            lines.extend(self._actor_param(n))
            lines.append(f") -> {response}:")
            if self._docstrings:
                lines.append(f'{i}"""Create a {n.entity.name} under the given {route.parent.name}."""')
            lines.append(f"{i}await {guard}(db, {route.parent_param})")
            lines.append(f"{i}data: Dict[str, Any] = payload.model_dump()")
            lines.append(f'{i}data["{route.fk_field}"] = {route.parent_param}')
            actor: str = ", actor=actor" if n.entity.config.auditable else ""
            lines.append(
                f"{i}return await {naming.handler_name('create', n.entity.name)}"
                f"(db, {create}.model_validate(data){actor})"
            )
            return lines

        # read / delete: load the child scoped to its parent first
        returns: str = response if kind == "read" else "None"
        lines = [
            f"async def {name}(",
            f"{i}db: AsyncSession,",
            f"{i}{route.parent_param}: {parent_type},",
            f"{i}{child_param}: {n.pk_type},",
            f") -> {returns}:",
            f"{i}stmt = select({n.model}).where(",
            f"{ii}{n.model}.{n.pk.name} == {child_param},",
            f"{ii}{scope},",
            f"{i})",
        ]
        for condition in self._live_condition(n):
            lines.append(f"{i}stmt = stmt.where({condition})")
        lines.extend(
            [
                f"{i}record = (await db.execute(stmt)).scalar_one_or_none()",
                f"{i}if record is None:",
                f'{ii}raise HTTPException(status_code=404, detail="{n.entity.name} not found.")',
            ]
        )
        if kind == "read":
            lines.append(f"{i}return {response}.model_validate(record)")
        else:
            lines.append(
                f"{i}await {naming.handler_name('delete', n.entity.name)}(db, {child_param})"
            )
        return lines


__all__: List[str] = ["HandlerGenerator"]

logger.debug("apiforge.generators.handlers loaded.")
