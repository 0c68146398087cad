"""React bindings: request hooks, async hooks, download hooks and data types."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import PurePosixPath
from typing import Any, Dict, List, Sequence, Tuple

from .. import __version__
from ..logging import get_logger
from ..models import ResourceDescriptor, RestData, Schema, Tab
from ..naming import camel_case
from .base import GeneratorContext, InitContext, InitResult, PluginMeta
from .rendering import TemplateRenderer
from .typescript import (
    hook_name,
    json_schema_text,
    params_declaration,
    params_type_name,
    request_url_template,
    response_type,
    schema_declaration,
    type_identifier,
)

TEMPLATES = {
    "package.json": """{{ package | tojson_sorted }}
""",
    "index.ts": """// Generated by specbind. Do not edit.
{% for source in sources %}
export * as {{ source.id | camel }} from './{{ source.id }}';
{% endfor %}
export * from './network-state';
export * from './transport';
""",
    "network-state.ts": """// Generated by specbind. Do not edit.
export type NetworkState<T, E = unknown> =
  | { state: 'init' }
  | { state: 'pending' }
  | { state: 'success'; data: T }
  | { state: 'error'; error: E };

export const init = <T, E = unknown>(): NetworkState<T, E> => ({ state: 'init' });
export const pending = <T, E = unknown>(): NetworkState<T, E> => ({ state: 'pending' });
export const success = <T, E = unknown>(data: T): NetworkState<T, E> => ({ state: 'success', data });
export const error = <T, E = unknown>(error: E): NetworkState<T, E> => ({ state: 'error', error });
""",
    "transport.ts": """// Generated by specbind. Do not edit.
import { createContext, useContext } from 'react';

export interface RequestOptions {
  source: string;
  method: string;
  url: string;
  params?: Record<string, unknown>;
  body?: unknown;
  contentType?: string | null;
  responseType?: string | null;
  download?: boolean;
}

export interface Transport {
  request<T>(options: RequestOptions): Promise<T>;
}

export const TransportContext = createContext<Transport | null>(null);

export function useTransport(): Transport {
  const transport = useContext(TransportContext);
  if (!transport) {
    throw new Error('Wrap the application in TransportContext.Provider');
  }
  return transport;
}
""",
    "source-index.ts": """// Generated by specbind. Do not edit.
{% for module in modules %}
export * from './{{ module }}';
{% endfor %}
""",
    "request-hook.ts": """// Generated by specbind. Do not edit.
import { useCallback, useState } from 'react';
import { NetworkState, init, pending, success, error } from '{{ root }}/network-state';
import { useTransport } from '{{ root }}/transport';
{% for name in imports %}
import type { {{ name }} } from '{{ root }}/{{ source }}/components/schemas/{{ name }}';
{% endfor %}

{{ params_declaration }}

const operation = {
  source: '{{ source }}',
  method: '{{ data.method | upper }}',
  contentType: {{ data.content_type | tojson }},
  responseType: {{ data.response_type | tojson }},
} as const;

export function {{ hook }}() {
  const transport = useTransport();
  const [state, setState] = useState<NetworkState<{{ response }}>>(init());
  const execute = useCallback(
    async (params: {{ params_type }}{% if data.request_body %}, body: {{ request_body }}{% endif %}) => {
      setState(pending());
      try {
        const data = await transport.request<{{ response }}>({
          ...operation,
          url: `{{ url }}`,
          params,
{% if data.request_body %}
          body,
{% endif %}
        });
        setState(success(data));
      } catch (e) {
        setState(error(e));
      }
    },
    [transport],
  );
  const clear = useCallback(() => setState(init()), []);
  return [state, execute, clear] as const;
}
""",
    "async-hook.ts": """// Generated by specbind. Do not edit.
import { useCallback } from 'react';
import { useTransport } from '{{ root }}/transport';
import type { {{ params_type }} } from './{{ request_hook }}';
{% for name in imports %}
import type { {{ name }} } from '{{ root }}/{{ source }}/components/schemas/{{ name }}';
{% endfor %}

export function {{ hook }}() {
  const transport = useTransport();
  return useCallback(
    (params: {{ params_type }}{% if data.request_body %}, body: {{ request_body }}{% endif %}) =>
      transport.request<{{ response }}>({
        source: '{{ source }}',
        method: '{{ data.method | upper }}',
        url: `{{ url }}`,
        params,
{% if data.request_body %}
        body,
{% endif %}
        contentType: {{ data.content_type | tojson }},
        responseType: {{ data.response_type | tojson }},
      }),
    [transport],
  );
}
""",
    "download-hook.ts": """// Generated by specbind. Do not edit.
import { useCallback } from 'react';
import { useTransport } from '{{ root }}/transport';
import type { {{ params_type }} } from './{{ request_hook }}';

export function {{ hook }}() {
  const transport = useTransport();
  return useCallback(
    async (params: {{ params_type }}, filename = '{{ data.operation_id }}') => {
      const blob = await transport.request<Blob>({
        source: '{{ source }}',
        method: '{{ data.method | upper }}',
        url: `{{ url }}`,
        params,
        responseType: {{ data.response_type | tojson }},
        download: true,
      });
      const link = document.createElement('a');
      link.href = URL.createObjectURL(blob);
      link.download = filename;
      link.click();
      URL.revokeObjectURL(link.href);
    },
    [transport],
  );
}
""",
    "operation-index.ts": """// Generated by specbind. Do not edit.
{% for variant in variants %}
{% if variant.postfix %}
export { {{ variant.hook }} as {{ variant.hook }}{{ variant.postfix }} } from './{{ variant.hook }}{{ variant.postfix }}';
export { {{ variant.async_hook }} as {{ variant.async_hook }}{{ variant.postfix }} } from './{{ variant.async_hook }}{{ variant.postfix }}';
{% if variant.download_hook %}
export { {{ variant.download_hook }} as {{ variant.download_hook }}{{ variant.postfix }} } from './{{ variant.download_file }}';
{% endif %}
{% else %}
export { {{ variant.hook }} } from './{{ variant.hook }}';
export { {{ variant.async_hook }} } from './{{ variant.async_hook }}';
{% if variant.download_hook %}
export { {{ variant.download_hook }} } from './{{ variant.download_file }}';
{% endif %}
{% endif %}
{% endfor %}
""",
    "type.ts": """// Generated by specbind. Do not edit.
{% for name in imports %}
import type { {{ name }} } from './{{ name }}';
{% endfor %}
{% if imports %}

{% endif %}
{{ declaration }}

export const {{ name }}JsonSchema = {{ json_schema }} as const;
""",
    "docs/stateful-hook.md": """## {{ hook }}

Stateful hook for `{{ data.method | upper }} {{ data.request_url }}`.
{% if data.summary %}

{{ data.summary }}
{% endif %}

```tsx
import { {{ hook }} } from '@specbind/react/{{ import_path }}';

function Example() {
  const [state, execute, clear] = {{ hook }}();
  useEffect(() => {
    execute({{ call_args }});
    return clear;
  }, []);
  if (state.state === 'success') {
    return <pre>{JSON.stringify(state.data)}</pre>;
  }
  return null;
}
```
""",
    "docs/sse-hook.md": """## {{ hook }}

Server-sent events hook for `{{ data.method | upper }} {{ data.request_url }}`.
Each message arrives as a `success` state while the stream stays open.

```tsx
import { {{ hook }} } from '@specbind/react/{{ import_path }}';

function Example() {
  const [state, execute, clear] = {{ hook }}();
  useEffect(() => {
    execute({{ call_args }});
    return clear;
  }, []);
  return state.state === 'success' ? <span>{String(state.data)}</span> : null;
}
```
""",
    "docs/stateless-hook.md": """## {{ hook }}

Returns a plain async function for `{{ data.method | upper }} {{ data.request_url }}`.

```tsx
import { {{ hook }} } from '@specbind/react/{{ import_path }}';

const call = {{ hook }}();
const result = await call({{ call_args }});
```
""",
    "docs/download-hook.md": """## {{ hook }}

Downloads the `{{ data.response_type }}` payload of `{{ data.method | upper }} {{ data.request_url }}` as a file.

```tsx
import { {{ hook }} } from '@specbind/react/{{ import_path }}';

const download = {{ hook }}();
await download({{ call_args }}, 'report');
```
""",
    "docs/schema-typescript.md": """```ts
{{ declaration }}
```
""",
    "docs/schema-json.md": """```json
{{ json_schema }}
```
""",
}

_RENDERER = TemplateRenderer(TEMPLATES)


def operation_dir(source_id: str, data: RestData) -> PurePosixPath:
    return PurePosixPath("src", source_id, *data.paths, camel_case(data.operation_id))


def referenced_types(data: RestData) -> List[str]:
    names = {type_identifier(name) for name in (data.request_body, data.response) if name}
    names.update(
        type_identifier(variable.ref.rsplit("/", 1)[-1]) for variable in data.variables if variable.ref != "any"
    )
    return sorted(names)


class ReactHookEmitter:
    """Writes the client hook files for REST descriptors and the data type files.

    Shared by the React and Next.js plugins.
    """

    def __init__(self, renderer: TemplateRenderer = _RENDERER) -> None:
        self.renderer = renderer

    def emit_project_files(self, context: GeneratorContext, package_name: str, dependencies: Dict[str, str]) -> None:
        sources = sorted(context.sources or [context.source], key=lambda item: item.id)
        package = {
            "name": package_name,
            "version": __version__,
            "private": True,
            "main": "src/index.ts",
            "types": "src/index.ts",
            "peerDependencies": dependencies,
        }
        context.dump("package.json", self.renderer.render("package.json", package=package))
        context.dump("src/index.ts", self.renderer.render("index.ts", sources=sources))
        context.dump("src/network-state.ts", self.renderer.render("network-state.ts"))
        context.dump("src/transport.ts", self.renderer.render("transport.ts"))

    def emit_endpoints(self, descriptors: Sequence[ResourceDescriptor[RestData]], context: GeneratorContext) -> List[str]:
        """Write hooks for every descriptor; returns operation directories relative to the source root."""
        source_id = context.source.id
        grouped: Dict[Tuple[str, ...], List[ResourceDescriptor[RestData]]] = defaultdict(list)
        for descriptor in descriptors:
            grouped[operation_dir(source_id, descriptor.data).parts].append(descriptor)

        for descriptor in descriptors:
            self._emit_hooks(descriptor, context)
            context.stats_counter.increment("Endpoints")
            if descriptor.data.is_downloadable:
                context.stats_counter.increment("Download Hooks")

        modules: List[str] = []
        for parts in sorted(grouped):
            members = sorted(grouped[parts], key=lambda item: context.postfix(item))
            variants = [self._variant(member, context) for member in members]
            directory = PurePosixPath(*parts)
            context.dump(directory / "index.ts", self.renderer.render("operation-index.ts", variants=variants))
            modules.append(str(PurePosixPath(*parts[2:])))
        return modules

    def emit_schemas(self, descriptors: Sequence[ResourceDescriptor[Schema]], context: GeneratorContext) -> List[str]:
        source_id = context.source.id
        names: List[str] = []
        for descriptor in descriptors:
            schema = descriptor.data
            name = type_identifier(schema.name)
            imports = sorted(set(schema_refs(schema.schema)) - {name})
            content = self.renderer.render(
                "type.ts",
                name=name,
                imports=imports,
                declaration=schema_declaration(schema),
                json_schema=json_schema_text(schema),
            )
            context.dump(PurePosixPath("src", source_id, "components", "schemas", f"{name}.ts"), content)
            context.stats_counter.increment("Data Types")
            names.append(name)
        return names

    def emit_source_index(self, context: GeneratorContext, modules: Sequence[str], schema_names: Sequence[str]) -> None:
        entries = sorted(set(modules)) + [f"components/schemas/{name}" for name in sorted(schema_names)]
        context.dump(
            PurePosixPath("src", context.source.id, "index.ts"),
            self.renderer.render("source-index.ts", modules=entries),
        )

    def _emit_hooks(self, descriptor: ResourceDescriptor[RestData], context: GeneratorContext) -> None:
        data = descriptor.data
        postfix = context.postfix(descriptor)
        directory = operation_dir(context.source.id, data)
        shared = dict(
            data=data,
            source=context.source.id,
            root="/".join([".."] * (len(directory.parts) - 1)) or ".",
            url=request_url_template(data),
            params_type=params_type_name(data, postfix),
            response=response_type(data),
            request_body=type_identifier(data.request_body) if data.request_body else None,
            imports=referenced_types(data),
            request_hook=hook_name(data, postfix=postfix),
        )
        context.dump(
            directory / f"{hook_name(data, postfix=postfix)}.ts",
            self.renderer.render(
                "request-hook.ts",
                hook=hook_name(data),
                params_declaration=params_declaration(data, postfix),
                **shared,
            ),
        )
        context.dump(
            directory / f"{hook_name(data, 'Async', postfix)}.ts",
            self.renderer.render("async-hook.ts", hook=hook_name(data, "Async"), **shared),
        )
        if data.is_downloadable:
            context.dump(
                directory / f"{hook_name(data, postfix=postfix)}Download.ts",
                self.renderer.render("download-hook.ts", hook=hook_name(data, "Download"), **shared),
            )

    @staticmethod
    def _variant(descriptor: ResourceDescriptor[RestData], context: GeneratorContext) -> Dict[str, Any]:
        data = descriptor.data
        postfix = context.postfix(descriptor)
        return {
            "postfix": postfix,
            "hook": hook_name(data),
            "async_hook": hook_name(data, "Async"),
            "download_hook": hook_name(data, "Download") if data.is_downloadable else None,
            "download_file": f"{hook_name(data, postfix=postfix)}Download",
        }


def endpoint_tabs(descriptor: ResourceDescriptor[RestData], renderer: TemplateRenderer = _RENDERER) -> List[Tab]:
    data = descriptor.data
    shared = dict(
        data=data,
        import_path="/".join([descriptor.source, *data.paths, camel_case(data.operation_id)]),
        call_args=_call_args(data),
    )
    tabs: List[Tab] = []
    if data.response_type == "text/event-stream":
        tabs.append(Tab("SSE Hook", renderer.render("docs/sse-hook.md", hook=hook_name(data), **shared)))
    else:
        tabs.append(Tab("Stateful Hook", renderer.render("docs/stateful-hook.md", hook=hook_name(data), **shared)))
    tabs.append(
        Tab("Stateless Hook", renderer.render("docs/stateless-hook.md", hook=hook_name(data, "Async"), **shared))
    )
    if data.is_downloadable:
        tabs.append(
            Tab("Download Hook", renderer.render("docs/download-hook.md", hook=hook_name(data, "Download"), **shared))
        )
    return tabs


def schema_tabs(descriptor: ResourceDescriptor[Schema], renderer: TemplateRenderer = _RENDERER) -> List[Tab]:
    schema = descriptor.data
    return [
        Tab("TypeScript Type", renderer.render("docs/schema-typescript.md", declaration=schema_declaration(schema))),
        Tab("JSON Schema", renderer.render("docs/schema-json.md", json_schema=json_schema_text(schema))),
    ]


def _call_args(data: RestData) -> str:
    params = ", ".join(f"{json.dumps(v.name)}: {json.dumps('...')}" for v in data.variables if v.location == "path")
    call = "{" + (f" {params} " if params else "") + "}"
    if data.request_body:
        call += ", body"
    return call


def schema_refs(schema: Any) -> List[str]:
    found: List[str] = []
    if isinstance(schema, dict):
        ref = schema.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/components/schemas/"):
            found.append(type_identifier(ref.rsplit("/", 1)[-1]))
        for value in schema.values():
            found.extend(schema_refs(value))
    elif isinstance(schema, list):
        for item in schema:
            found.extend(schema_refs(item))
    return found


class ReactPlugin:
    """Generator plugin producing React hooks."""

    options_schema = {
        "packageName": {"type": "string", "default": "@specbind/react"},
    }

    def __init__(self, emitter: ReactHookEmitter | None = None) -> None:
        self.emitter = emitter or ReactHookEmitter()
        self.logger = get_logger("plugins.react")

    def meta(self) -> PluginMeta:
        return PluginMeta(
            name="specbind-react",
            version=__version__,
            compat=f"^{__version__}",
            generator="react",
            display_name="React",
        )

    def generate(self, descriptors: Sequence[ResourceDescriptor[Any]], context: GeneratorContext) -> None:
        rest = [item for item in descriptors if isinstance(item.data, RestData)]
        schemas = [item for item in descriptors if isinstance(item.data, Schema)]
        self.emitter.emit_project_files(
            context,
            str(context.options.get("packageName", "@specbind/react")),
            {"react": ">=18"},
        )
        modules = self.emitter.emit_endpoints(rest, context)
        schema_names = self.emitter.emit_schemas(schemas, context)
        self.emitter.emit_source_index(context, modules, schema_names)
        self.logger.debug(
            "React bindings for %s: %d written, %d unchanged",
            context.source.id,
            len(context.written),
            len(context.unchanged),
        )

    def get_schema_documentation(self, descriptor: ResourceDescriptor[Schema]) -> List[Tab]:
        return schema_tabs(descriptor)

    def get_endpoint_documentation(self, descriptor: ResourceDescriptor[RestData]) -> List[Tab]:
        return endpoint_tabs(descriptor)

    def init(self, context: InitContext) -> InitResult:
        def _post_init() -> None:
            self.logger.info("Next steps: wrap your application in the generated transport provider.")
            self.logger.info("See the generated package under %s for usage examples.", context.root_dir)

        return InitResult(post_init=_post_init)


__all__ = ["ReactHookEmitter", "ReactPlugin", "endpoint_tabs", "operation_dir", "referenced_types", "schema_refs", "schema_tabs"]
