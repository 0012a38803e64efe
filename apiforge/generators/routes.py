# File: apiforge/generators/routes.py
"""
NexaFlow APIForge - Route Generator
====================================
Emits ``<pkg>/routes/<module>.py`` per API entity: an ``APIRouter`` rooted
at the group's base path with one endpoint per enabled operation, plus one
parent-scoped router per nested relationship in which the entity is the
child. Each endpoint carries the security policy resolved for it and, when
configured, a rate-limit dependency.

``<pkg>/ratelimit.py`` (a sliding-window limiter) is emitted here when any
enabled operation declares a rate limit.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from apiforge import naming
from apiforge.generators.base import BaseGenerator, NestedRoute
from apiforge.generators.shapes import EntityShapes, build_shapes
from apiforge.models import (
    CrudOperation,
    EndpointGroup,
    Entity,
    EntityField,
    GeneratedFile,
    ResolvedSecurity,
)
from apiforge.utils import build_import_block, py_string

logger: logging.Logger = logging.getLogger("apiforge.generators.routes")

_VERBS: Dict[str, str] = {
    "create": "Create a {name}",
    "read": "Get a {name} by id",
    "read_all": "List {plural}",
    "update": "Update a {name}",
    "delete": "Delete a {name}",
}


class RouteGenerator(BaseGenerator):
    """FastAPI routers wired to the generated handlers."""

    name: str = "routes"

    def generate(self) -> List[GeneratedFile]:
        ctx = self._ctx
        files: List[GeneratedFile] = []
        for entity, group in ctx.api_entities():
            ctx.checkpoint(f"routes for {entity.name}")
            files.append(self.generate_router(entity, group))
        lines: List[str] = self._module_header("API routers, one module per entity.")
        files.append(self._file(ctx.pkg_path("routes", "__init__.py"), lines))
        if ctx.has_rate_limits():
            files.append(self.generate_rate_limiter())
        return files

    # ===================================================================
    # Entity routers
    # ===================================================================

    def generate_router(self, entity: Entity, group: EndpointGroup) -> GeneratedFile:
        ctx = self._ctx
        module: str = naming.module_name(entity.name)
        shapes: EntityShapes = build_shapes(ctx, entity)
        pk: EntityField = entity.primary_key
        pk_param: str = f"{naming.to_snake_case(entity.name)}_id"
        pk_type: str = ctx.mapping(pk).python_type

        imports: Dict[str, Set[str]] = {
            "typing": {"Optional"},
            "fastapi": {"APIRouter", "Depends"},
            "sqlalchemy.ext.asyncio": {"AsyncSession"},
            ctx.pkg_module("database"): {"get_db"},
            ctx.pkg_module("schemas", module): set(),
            ctx.pkg_module("handlers", module): set(),
        }
        for mod, name in ctx.mapping(pk).python_imports:
            imports.setdefault(mod, set()).add(name)
        requires: Set[str] = {"db:get_db"}
        provides: Set[str] = {f"router:{module}"}

        tags: List[str] = group.tags or [entity.name]
        base_path: str = ctx.graph.base_path_for(group)
        blocks: List[List[str]] = []

        for op in group.enabled_operations():
            handler: str = naming.handler_name(op.kind, entity.name)
            imports[ctx.pkg_module("handlers", module)].add(handler)
            requires.add(f"handler:{handler}")
            security: ResolvedSecurity = ctx.security_for(group, op)
            blocks.append(
                self._endpoint(
                    router="router",
                    entity=entity,
                    op=op,
                    handler=handler,
                    function=naming.route_function_name(op.kind, entity.name),
                    path=f"/{{{pk_param}}}" if op.is_item else "",
                    shapes=shapes,
                    params=[(pk_param, pk_type)] if op.is_item else [],
                    call_args=[pk_param] if op.is_item else [],
                    security=security,
                    rate_key=f"{module}:{op.kind}",
                    imports=imports,
                    requires=requires,
                )
            )

        nested_blocks: List[List[str]] = []
        for route in ctx.nested_routes_for_child(entity):
            nested_blocks.append(
                self._nested_router(route, group, shapes, imports, requires)
            )
            provides.add(f"router:{module}.{route.router_name}")

        parents: List[str] = [r.parent.name for r in ctx.nested_routes_for_child(entity)]
        for name in self._schema_names(blocks + nested_blocks, shapes, parents):
            imports[ctx.pkg_module("schemas", module)].add(name)
            requires.add(f"schema:{name}")

        lines: List[str] = self._module_header(f"FastAPI router for {entity.name} operations.")
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append(build_import_block({k: v for k, v in imports.items() if v}))
        lines.append("")
        lines.append("")
        lines.append(
            f"router = APIRouter(prefix={py_string(base_path)}, tags=[{', '.join(py_string(t) for t in tags)}])"
        )
        for block in blocks:
            lines.append("")
            lines.append("")
            lines.extend(block)
        for block in nested_blocks:
            lines.append("")
            lines.append("")
            lines.extend(block)

        logger.debug("Router for %s: %d endpoint block(s).", entity.name, len(blocks))
        return self._file(
            ctx.pkg_path("routes", f"{module}.py"),
            lines,
            provides=provides,
            requires=requires,
        )

    @staticmethod
    def _schema_names(
        blocks: List[List[str]], shapes: EntityShapes, parent_names: List[str]
    ) -> List[str]:
        tokens: Set[str] = {
            token
            for block in blocks
            for line in block
            for token in re.findall(r"\w+", line)
        }
        candidates: List[str] = [
            shapes.create.name, shapes.update.name, shapes.response.name, shapes.list_name,
        ]
        candidates.extend(
            naming.nested_create_shape_name(shapes.entity.name, parent)
            for parent in sorted(set(parent_names))
        )
        return [name for name in candidates if name in tokens]

    def _nested_router(
        self,
        route: NestedRoute,
        group: EndpointGroup,
        shapes: EntityShapes,
        imports: Dict[str, Set[str]],
        requires: Set[str],
    ) -> List[str]:
        ctx = self._ctx
        child: Entity = route.child
        module: str = naming.module_name(child.name)
        parent_type: str = ctx.mapping(route.parent.primary_key).python_type
        for mod, name in ctx.mapping(route.parent.primary_key).python_imports:
            imports.setdefault(mod, set()).add(name)
        child_type: str = ctx.mapping(child.primary_key).python_type
        child_param: str = route.child_param

        tags: List[str] = group.tags or [child.name]
        lines: List[str] = [
            f"{route.router_name} = APIRouter(prefix={py_string(route.prefix)}, "
            f"tags=[{', '.join(py_string(t) for t in tags)}])",
        ]
        for kind in route.operations:
            op: Optional[CrudOperation] = group.operation(kind)
            handler: str = naming.nested_handler_name(kind, child.name, route.parent.name)
            imports[ctx.pkg_module("handlers", module)].add(handler)
            requires.add(f"handler:{handler}")
            item: bool = kind in ("read", "delete")
            params: List[Tuple[str, str]] = [(route.parent_param, parent_type)]
            call_args: List[str] = [route.parent_param]
            path: str = ""
            if item:
                params.append((child_param, child_type))
                call_args.append(child_param)
                path = f"/{{{child_param}}}"
            body: Optional[str] = None
            if kind == "create":
                body = naming.nested_create_shape_name(child.name, route.parent.name)
            lines.append("")
            lines.append("")
            lines.extend(
                self._endpoint(
                    router=route.router_name,
                    entity=child,
                    op=op,
                    handler=handler,
                    function=f"{handler}_endpoint",
                    path=path,
                    shapes=shapes,
                    params=params,
                    call_args=call_args,
                    security=ctx.security_for(group, op),
                    rate_key=f"{module}:{kind}:{route.parent_attr}",
                    imports=imports,
                    requires=requires,
                    summary_suffix=f" of a {route.parent.name}",
                    create_shape=body,
                )
            )
        return lines

    # ===================================================================
    # Single endpoint
    # ===================================================================

    def _endpoint(
        self,
        router: str,
        entity: Entity,
        op: CrudOperation,
        handler: str,
        function: str,
        path: str,
        shapes: EntityShapes,
        params: List[Tuple[str, str]],
        call_args: List[str],
        security: ResolvedSecurity,
        rate_key: str,
        imports: Dict[str, Set[str]],
        requires: Set[str],
        summary_suffix: str = "",
        create_shape: Optional[str] = None,
    ) -> List[str]:
        ctx = self._ctx
        i: str = self._indent
        kind: str = op.kind
        summary: str = op.description or _VERBS[kind].format(
            name=entity.name, plural=naming.to_plural(entity.name)
        ) + summary_suffix

        if kind == "read_all":
            response_model: str = shapes.list_name
        elif kind == "delete":
            response_model = "None"
        else:
            response_model = shapes.response.name

        lines: List[str] = [f"@{router}.{op.http_method}("]
        lines.append(f"{i}{py_string(path)},")
        lines.append(f"{i}response_model={response_model},")
        lines.append(f"{i}status_code={op.status_code},")
        lines.append(f"{i}summary={py_string(summary)},")
        if op.rate_limit is not None:
            imports.setdefault(ctx.pkg_module("ratelimit"), set()).add("rate_limit")
            requires.add("ratelimit:rate_limit")
            limit = op.rate_limit
            lines.append(
                f"{i}dependencies=[Depends(rate_limit({py_string(rate_key)}, "
                f"requests={limit.requests}, window_seconds={limit.window_seconds}, "
                f"per_user={limit.per_user}))],"
            )
        lines.append(")")

        returns: str = "None" if kind == "delete" else response_model
        lines.append(f"async def {function}(")
        for name, annotation in params:
            lines.append(f"{i}{name}: {annotation},")
        if kind == "create":
            lines.append(f"{i}payload: {create_shape or shapes.create.name},")
        elif kind == "update":
            lines.append(f"{i}payload: {shapes.update.name},")
        filter_names: List[str] = []
        if kind == "read_all":
            imports["fastapi"].add("Query")
            lines.append(f"{i}offset: int = Query(default=0, ge=0),")
            lines.append(f"{i}limit: int = Query(default=50, ge=1, le=500),")
            for f in ctx.filterable_fields(entity):
                mapping = ctx.mapping(f)
                for mod, name in mapping.python_imports:
                    imports.setdefault(mod, set()).add(name)
                annotation = mapping.python_type
                if not annotation.startswith("Optional["):
                    annotation = f"Optional[{annotation}]"
                lines.append(f"{i}{f.name}: {annotation} = Query(default=None),")
                filter_names.append(f.name)
        lines.append(f"{i}db: AsyncSession = Depends(get_db),")
        if not security.is_public:
            imports.setdefault(ctx.pkg_module("auth"), set()).update({"Claims", "require_access"})
            requires.add("auth:require_access")
            roles: str = ", ".join(py_string(r) for r in security.roles)
            scopes: str = ", ".join(py_string(s) for s in security.scopes)
            lines.append(
                f"{i}claims: Claims = Depends(require_access(roles=[{roles}], scopes=[{scopes}])),"
            )
        lines.append(f") -> {returns}:")
        if self._docstrings:
            lines.append(f'{i}"""{summary}."""')

        args: List[str] = ["db"] + call_args
        if kind in ("create", "update"):
            args.append("payload")
            if entity.config.auditable:
                args.append("actor=claims.sub" if not security.is_public else "actor=None")
        if kind == "read_all":
            args.append("offset=offset")
            args.append("limit=limit")
            if filter_names:
                args.append(
                    "filters={" + ", ".join(f'"{n}": {n}' for n in filter_names) + "}"
                )
        call: str = f"{handler}({', '.join(args)})"
        if kind == "delete":
            lines.append(f"{i}await {call}")
        else:
            lines.append(f"{i}return await {call}")
        return lines

    # ===================================================================
    # Rate limiter module
    # ===================================================================

    def generate_rate_limiter(self) -> GeneratedFile:
        i, ii, iii = self._indent, self._double_indent, self._triple_indent
        lines: List[str] = self._module_header(
            "In-process sliding-window rate limiting.",
            extra=["", "Windows are kept per key and per client; suitable for a single worker.", ""],
        )
        lines.extend(
            [
                "from __future__ import annotations",
                "",
                "import threading",
                "import time",
                "from collections import deque",
                "from typing import Awaitable, Callable, Deque, Dict",
                "",
                "from fastapi import HTTPException, Request",
                "",
                "",
                "SWEEP_INTERVAL_SECONDS = 60.0",
                "",
                "",
                "class SlidingWindowLimiter:",
                f'{i}"""Counts hits per key within a rolling time window."""',
                "",
                f"{i}def __init__(self) -> None:",
                f"{ii}self._hits: Dict[str, Deque[float]] = {{}}",
                f"{ii}self._spans: Dict[str, int] = {{}}",
                f"{ii}self._lock = threading.Lock()",
                f"{ii}self._last_sweep = time.monotonic()",
                "",
                f"{i}def _sweep(self, now: float) -> None:",
                f'{ii}"""Forget keys whose newest hit has left its window."""',
                f"{ii}for key, window in list(self._hits.items()):",
                f"{iii}if not window or now - window[-1] >= self._spans[key]:",
                f"{iii}{i}del self._hits[key]",
                f"{iii}{i}del self._spans[key]",
                f"{ii}self._last_sweep = now",
                "",
                f"{i}def __len__(self) -> int:",
                f"{ii}return len(self._hits)",
                "",
                f"{i}def hit(self, key: str, requests: int, window_seconds: int) -> bool:",
                f'{ii}"""Record a hit; return ``False`` when the limit is exceeded."""',
                f"{ii}now = time.monotonic()",
                f"{ii}with self._lock:",
                f"{iii}if now - self._last_sweep >= SWEEP_INTERVAL_SECONDS:",
                f"{iii}{i}self._sweep(now)",
                f"{iii}window = self._hits.setdefault(key, deque())",
                f"{iii}self._spans[key] = window_seconds",
                f"{iii}while window and now - window[0] >= window_seconds:",
                f"{iii}{i}window.popleft()",
                f"{iii}if len(window) >= requests:",
                f"{iii}{i}return False",
                f"{iii}window.append(now)",
                f"{iii}return True",
                "",
                "",
                "limiter = SlidingWindowLimiter()",
                "",
                "",
                "def rate_limit(",
                f"{i}key: str,",
                f"{i}requests: int,",
                f"{i}window_seconds: int,",
                f"{i}per_user: bool = False,",
                ") -> Callable[[Request], Awaitable[None]]:",
                f'{i}"""Dependency factory enforcing *requests* per *window_seconds*."""',
                "",
                f"{i}async def dependency(request: Request) -> None:",
                f'{ii}identity = request.client.host if request.client else "anonymous"',
                f"{ii}if per_user:",
                f'{iii}identity = request.headers.get("authorization") or request.cookies.get("session") or identity',
                f'{ii}if not limiter.hit(f"{{key}}:{{identity}}", requests, window_seconds):',
                f'{iii}raise HTTPException(status_code=429, detail="Rate limit exceeded.")',
                "",
                f"{i}return dependency",
            ]
        )
        return self._file(
            self._ctx.pkg_path("ratelimit.py"),
            lines,
            provides={"ratelimit:rate_limit"},
        )


__all__: List[str] = ["RouteGenerator"]

logger.debug("apiforge.generators.routes loaded.")
