# File: apiforge/generators/frontend.py
"""
NexaFlow APIForge - Frontend Generator
=======================================
Optional TypeScript scaffolding under ``frontend/``: interfaces built from
the same shape descriptors as the Pydantic schemas, a fetch-based client
with one function per enabled operation, and a minimal React page per
entity.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Tuple

from apiforge import naming
from apiforge.generators.base import GENERATED_BANNER, BaseGenerator, NestedRoute
from apiforge.generators.shapes import EntityShapes, Shape, build_shapes
from apiforge.models import EndpointGroup, Entity, GeneratedFile
from apiforge.utils import ts_string

logger: logging.Logger = logging.getLogger("apiforge.generators.frontend")

_HTTP_VERBS: Dict[str, str] = {
    "create": "POST",
    "read": "GET",
    "read_all": "GET",
    "update": "PATCH",
    "delete": "DELETE",
}


class FrontendGenerator(BaseGenerator):
    """Typed client and CRUD pages."""

    name: str = "frontend"

    def generate(self) -> List[GeneratedFile]:
        ctx = self._ctx
        if not ctx.config.frontend:
            return []
        entities: List[Tuple[Entity, EndpointGroup]] = ctx.api_entities()
        shapes: Dict[str, EntityShapes] = {
            entity.id: build_shapes(ctx, entity) for entity, _ in entities
        }
        files: List[GeneratedFile] = [
            self._package_json(),
            self.generate_types(entities, shapes),
            self._client(),
        ]
        for entity, group in entities:
            ctx.checkpoint(f"frontend for {entity.name}")
            files.append(self.generate_api_module(entity, group, shapes[entity.id]))
            files.append(self.generate_page(entity, group, shapes[entity.id]))
        logger.debug("Frontend generator produced %d file(s).", len(files))
        return files

    # -- Project files ------------------------------------------------------

    def _package_json(self) -> GeneratedFile:
        meta = self._ctx.graph.meta
        document: Dict[str, object] = {
            "name": f"{naming.to_kebab_case(meta.name)}-frontend",
            "version": meta.version,
            "private": True,
            "type": "module",
            "scripts": {"dev": "vite", "build": "tsc && vite build"},
            "dependencies": {"react": "^18.3.0", "react-dom": "^18.3.0"},
            "devDependencies": {
                "@types/react": "^18.3.0",
                "@types/react-dom": "^18.3.0",
                "typescript": "^5.4.0",
                "vite": "^5.2.0",
            },
        }
        content: str = json.dumps(document, indent=2)
        return self._file("frontend/package.json", content.splitlines())

    def generate_types(
        self, entities: List[Tuple[Entity, EndpointGroup]], shapes: Dict[str, EntityShapes]
    ) -> GeneratedFile:
        i: str = "  "
        lines: List[str] = [f"// {GENERATED_BANNER}", ""]
        lines.extend(
            [
                "export interface ListResponse<T> {",
                f"{i}items: T[];",
                f"{i}total: number;",
                f"{i}offset: number;",
                f"{i}limit: number;",
                f"{i}has_more: boolean;",
                "}",
            ]
        )
        for entity, _ in entities:
            entity_shapes: EntityShapes = shapes[entity.id]
            client_name: str = naming.client_type_name(entity.name)
            lines.append("")
            lines.extend(self._interface(client_name, entity_shapes.response, partial=False))
            lines.append("")
            lines.extend(self._interface(f"{client_name}Create", entity_shapes.create, partial=False))
            lines.append("")
            lines.extend(self._interface(f"{client_name}Update", entity_shapes.update, partial=True))
        return self._file("frontend/src/types.ts", lines)

    @staticmethod
    def _interface(name: str, shape: Shape, partial: bool) -> List[str]:
        lines: List[str] = [f"export interface {name} {{"]
        for member in shape.fields:
            if partial or not member.required:
                lines.append(f"  {member.name}?: {member.optional_typescript_type};")
            else:
                lines.append(f"  {member.name}: {member.typescript_type};")
        lines.append("}")
        return lines

    def _client(self) -> GeneratedFile:
        lines: List[str] = [
            f"// {GENERATED_BANNER}",
            "",
            "const BASE_URL: string =",
            "  (import.meta as { env?: Record<string, string> }).env?.VITE_API_URL ?? 'http://localhost:8000';",
            "",
            "let authToken: string | null = null;",
            "",
            "export function setAuthToken(token: string | null): void {",
            "  authToken = token;",
            "}",
            "",
            "export class ApiError extends Error {",
            "  constructor(public status: number, public detail: unknown) {",
            "    super(`Request failed with status ${status}`);",
            "  }",
            "}",
            "",
            "export async function request<T>(",
            "  method: string,",
            "  path: string,",
            "  body?: unknown,",
            "  query?: Record<string, unknown>,",
            "): Promise<T> {",
            "  const url = new URL(path, BASE_URL);",
            "  for (const [key, value] of Object.entries(query ?? {})) {",
            "    if (value !== undefined && value !== null) {",
            "      url.searchParams.set(key, String(value));",
            "    }",
            "  }",
            "  const headers: Record<string, string> = { 'Content-Type': 'application/json' };",
            "  if (authToken) {",
            "    headers['Authorization'] = `Bearer ${authToken}`;",
            "  }",
            "  const response = await fetch(url.toString(), {",
            "    method,",
            "    headers,",
            "    credentials: 'include',",
            "    body: body === undefined ? undefined : JSON.stringify(body),",
            "  });",
            "  if (!response.ok) {",
            "    const detail: unknown = await response.json().catch(() => null);",
            "    throw new ApiError(response.status, detail);",
            "  }",
            "  if (response.status === 204) {",
            "    return undefined as T;",
            "  }",
            "  return (await response.json()) as T;",
            "}",
        ]
        return self._file("frontend/src/api/client.ts", lines)

    # -- Per-entity client --------------------------------------------------

    def generate_api_module(
        self, entity: Entity, group: EndpointGroup, shapes: EntityShapes
    ) -> GeneratedFile:
        ctx = self._ctx
        client_name: str = naming.client_type_name(entity.name)
        id_type: str = ctx.mapping(entity.primary_key).typescript_type
        base: str = ctx.graph.base_path_for(group)
        kinds: List[str] = [op.kind for op in group.enabled_operations()]
        nested: List[NestedRoute] = ctx.nested_routes_for_child(entity)

        used_types: List[str] = [client_name]
        if "create" in kinds or any("create" in r.operations for r in nested):
            used_types.append(f"{client_name}Create")
        if "update" in kinds:
            used_types.append(f"{client_name}Update")
        if "read_all" in kinds or any("read_all" in r.operations for r in nested):
            used_types.append("ListResponse")

        lines: List[str] = [
            f"// {GENERATED_BANNER}",
            "",
            "import { request } from './client';",
            f"import type {{ {', '.join(sorted(used_types))} }} from '../types';",
            "",
            f"const BASE = {ts_string(base)};",
        ]
        for kind in kinds:
            fn: str = naming.client_member_name(naming.handler_name(kind, entity.name))
            verb: str = _HTTP_VERBS[kind]
            lines.append("")
            if kind == "create":
                lines.append(f"export function {fn}(payload: {client_name}Create): Promise<{client_name}> {{")
                lines.append(f"  return request<{client_name}>('{verb}', BASE, payload);")
            elif kind == "read":
                lines.append(f"export function {fn}(id: {id_type}): Promise<{client_name}> {{")
                lines.append(f"  return request<{client_name}>('{verb}', `${{BASE}}/${{id}}`);")
            elif kind == "read_all":
                lines.append(
                    f"export function {fn}(params: Record<string, unknown> = {{}}): "
                    f"Promise<ListResponse<{client_name}>> {{"
                )
                lines.append(
                    f"  return request<ListResponse<{client_name}>>('{verb}', BASE, undefined, params);"
                )
            elif kind == "update":
                lines.append(
                    f"export function {fn}(id: {id_type}, payload: {client_name}Update): Promise<{client_name}> {{"
                )
                lines.append(f"  return request<{client_name}>('{verb}', `${{BASE}}/${{id}}`, payload);")
            elif kind == "delete":
                lines.append(f"export function {fn}(id: {id_type}): Promise<void> {{")
                lines.append(f"  return request<void>('{verb}', `${{BASE}}/${{id}}`);")
            lines.append("}")

        for route in nested:
            lines.extend(self._nested_functions(route, client_name, id_type))

        return self._file(
            f"frontend/src/api/{naming.module_name(entity.name)}.ts",
            lines,
            provides={f"client:{naming.module_name(entity.name)}"},
        )

    def _nested_functions(self, route: NestedRoute, client_name: str, id_type: str) -> List[str]:
        parent_id_type: str = self._ctx.mapping(route.parent.primary_key).typescript_type
        parent_arg: str = naming.to_camel_case(route.parent_param)
        prefix_template: str = route.prefix.replace(
            f"{{{route.parent_param}}}", f"${{{parent_arg}}}"
        )
        lines: List[str] = []
        for kind in route.operations:
            fn: str = naming.client_member_name(
                naming.nested_handler_name(kind, route.child.name, route.parent.name)
            )
            verb: str = _HTTP_VERBS[kind]
            lines.append("")
            if kind == "read_all":
                lines.append(
                    f"export function {fn}({parent_arg}: {parent_id_type}, "
                    f"params: Record<string, unknown> = {{}}): Promise<ListResponse<{client_name}>> {{"
                )
                lines.append(
                    f"  return request<ListResponse<{client_name}>>('{verb}', `{prefix_template}`, undefined, params);"
                )
            elif kind == "create":
                lines.append(
                    f"export function {fn}({parent_arg}: {parent_id_type}, "
                    f"payload: Omit<{client_name}Create, '{route.fk_field}'>): Promise<{client_name}> {{"
                )
                lines.append(f"  return request<{client_name}>('{verb}', `{prefix_template}`, payload);")
            elif kind == "read":
                lines.append(
                    f"export function {fn}({parent_arg}: {parent_id_type}, id: {id_type}): Promise<{client_name}> {{"
                )
                lines.append(f"  return request<{client_name}>('{verb}', `{prefix_template}/${{id}}`);")
            else:
                lines.append(
                    f"export function {fn}({parent_arg}: {parent_id_type}, id: {id_type}): Promise<void> {{"
                )
                lines.append(f"  return request<void>('{verb}', `{prefix_template}/${{id}}`);")
            lines.append("}")
        return lines

    # -- Pages --------------------------------------------------------------

    def generate_page(
        self, entity: Entity, group: EndpointGroup, shapes: EntityShapes
    ) -> GeneratedFile:
        client_name: str = naming.client_type_name(entity.name)
        module: str = naming.module_name(entity.name)
        pk: str = entity.primary_key.name
        can_list: bool = group.is_enabled("read_all")
        can_create: bool = group.is_enabled("create")
        can_delete: bool = group.is_enabled("delete")
        id_type: str = self._ctx.mapping(entity.primary_key).typescript_type

        list_fn: str = naming.client_member_name(naming.handler_name("read_all", entity.name))
        create_fn: str = naming.client_member_name(naming.handler_name("create", entity.name))
        delete_fn: str = naming.client_member_name(naming.handler_name("delete", entity.name))
        api_names: List[str] = [
            name for name, enabled in (
                (create_fn, can_create), (delete_fn, can_delete), (list_fn, can_list),
            ) if enabled
        ]
        type_names: List[str] = [client_name] + ([f"{client_name}Create"] if can_create else [])
        title: str = naming.to_title_human(naming.to_plural(entity.name))

        lines: List[str] = [f"// {GENERATED_BANNER}", ""]
        react_names: List[str] = ["useState"] + (["useEffect"] if can_list else [])
        lines.append(f"import {{ {', '.join(sorted(react_names))} }} from 'react';")
        if can_create:
            lines.append("import type { FormEvent } from 'react';")
        lines.append(f"import type {{ {', '.join(type_names)} }} from '../types';")
        if api_names:
            lines.append(f"import {{ {', '.join(sorted(api_names))} }} from '../api/{module}';")
        lines.append("")
        lines.append(f"export default function {client_name}Page() {{")
        lines.append(f"  const [items, setItems] = useState<{client_name}[]>([]);")
        lines.append("  const [error, setError] = useState<string | null>(null);")
        if can_create:
            lines.append("  const [form, setForm] = useState<Record<string, string>>({});")
        if can_list:
            lines.append("")
            lines.append("  async function refresh(): Promise<void> {")
            lines.append("    try {")
            lines.append(f"      const page = await {list_fn}();")
            lines.append("      setItems(page.items);")
            lines.append("    } catch (err) {")
            lines.append("      setError(String(err));")
            lines.append("    }")
            lines.append("  }")
            lines.append("")
            lines.append("  useEffect(() => {")
            lines.append("    void refresh();")
            lines.append("  }, []);")
        if can_create:
            lines.extend(
                [
                    "",
                    "  async function handleSubmit(event: FormEvent): Promise<void> {",
                    "    event.preventDefault();",
                    "    try {",
                    f"      const created = await {create_fn}(form as unknown as {client_name}Create);",
                    "      setItems((current) => [...current, created]);",
                    "      setForm({});",
                    "    } catch (err) {",
                    "      setError(String(err));",
                    "    }",
                    "  }",
                ]
            )
        if can_delete:
            lines.extend(
                [
                    "",
                    f"  async function handleDelete(id: {id_type}): Promise<void> {{",
                    "    try {",
                    f"      await {delete_fn}(id);",
                    f"      setItems((current) => current.filter((item) => item.{pk} !== id));",
                    "    } catch (err) {",
                    "      setError(String(err));",
                    "    }",
                    "  }",
                ]
            )
        lines.extend(
            [
                "",
                "  return (",
                "    <section>",
                f"      <h1>{title}</h1>",
                '      {error && <p role="alert">{error}</p>}',
            ]
        )
        if can_create:
            lines.append("      <form onSubmit={handleSubmit}>")
            for member in shapes.create.fields:
                input_type: str = "password" if member.secret_input else "text"
                lines.append("        <label>")
                lines.append(f"          {naming.to_title_human(member.name)}")
                lines.append("          <input")
                lines.append(f'            type="{input_type}"')
                lines.append(f"            value={{form[{ts_string(member.name)}] ?? ''}}")
                lines.append(
                    f"            onChange={{(e) => setForm({{ ...form, {ts_string(member.name)}: e.target.value }})}}"
                )
                lines.append("          />")
                lines.append("        </label>")
            lines.append('        <button type="submit">Create</button>')
            lines.append("      </form>")
        lines.append("      <table>")
        lines.append("        <thead>")
        lines.append("          <tr>")
        for member in shapes.response.fields:
            lines.append(f"            <th>{naming.to_title_human(member.name)}</th>")
        if can_delete:
            lines.append("            <th />")
        lines.append("          </tr>")
        lines.append("        </thead>")
        lines.append("        <tbody>")
        lines.append("          {items.map((item) => (")
        lines.append(f"            <tr key={{String(item.{pk})}}>")
        for member in shapes.response.fields:
            lines.append(f"              <td>{{String(item.{member.name} ?? '')}}</td>")
        if can_delete:
            lines.append("              <td>")
            lines.append(
                f'                <button type="button" onClick={{() => void handleDelete(item.{pk})}}>Delete</button>'
            )
            lines.append("              </td>")
        lines.append("            </tr>")
        lines.append("          ))}")
        lines.append("        </tbody>")
        lines.append("      </table>")
        lines.append("    </section>")
        lines.append("  );")
        lines.append("}")
        return self._file(f"frontend/src/pages/{client_name}Page.tsx", lines)


__all__: List[str] = ["FrontendGenerator"]

logger.debug("apiforge.generators.frontend loaded.")
