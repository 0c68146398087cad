"""Next.js bindings: client hooks plus server-side functions and API route proxies."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Sequence

from .. import __version__
from ..logging import get_logger
from ..models import ResourceDescriptor, RestData, Schema, SourceConfig, Tab
from ..naming import constant_case
from .base import BuildContext, GeneratorContext, InitContext, InitResult, PluginMeta, SourceContext
from .react import ReactHookEmitter, endpoint_tabs, operation_dir, referenced_types, schema_tabs
from .rendering import TemplateRenderer
from .typescript import function_name, hook_name, params_type_name, request_url_template, response_type, type_identifier

ENV_FILE = ".env"

TEMPLATES = {
    "server-function.ts": """// Generated by specbind. Do not edit.
import 'server-only';
import type { {{ params_type }} } from './{{ request_hook }}';
{% for name in imports %}
import type { {{ name }} } from '{{ root }}/{{ source }}/components/schemas/{{ name }}';
{% endfor %}

export async function {{ function }}(params: {{ params_type }}{% if data.request_body %}, body: {{ request_body }}{% endif %}): Promise<{{ response }}> {
  const baseUrl = process.env.{{ env_var }};
  if (!baseUrl) {
    throw new Error('{{ env_var }} is not configured');
  }
  const response = await fetch(`${baseUrl}{{ url }}`, {
    method: '{{ data.method | upper }}',
{% if data.request_body %}
    headers: { 'Content-Type': {{ data.content_type | tojson }} },
    body: {% if data.content_type == 'application/json' %}JSON.stringify(body){% else %}body as BodyInit{% endif %},
{% endif %}
  });
  if (!response.ok) {
    throw new Error(`{{ data.operation_id }} failed with ${response.status}`);
  }
{% if data.response_type == 'application/json' %}
  return (await response.json()) as {{ response }};
{% elif data.is_downloadable %}
  return (await response.blob()) as unknown as {{ response }};
{% else %}
  return (await response.text()) as unknown as {{ response }};
{% endif %}
}
""",
    "server-index.ts": """// Generated by specbind. Do not edit.
{% for entry in entries %}
export { {{ entry.function }} } from './{{ entry.module }}';
{% endfor %}
""",
    "route.ts": """// Generated by specbind. Do not edit.
import { NextRequest } from 'next/server';

const upstream = process.env.{{ env_var }};

async function proxy(request: NextRequest, path: string) {
  if (!upstream) {
    return new Response('{{ env_var }} is not configured', { status: 500 });
  }
  const url = new URL(path + request.nextUrl.search, upstream);
  const init: RequestInit = { method: request.method, headers: request.headers };
  if (!['GET', 'HEAD'].includes(request.method)) {
    init.body = await request.arrayBuffer();
  }
  return fetch(url, init);
}
{% for method in methods %}

export async function {{ method | upper }}(request: NextRequest, context: { params: Record<string, string> }) {
  const params = Object.fromEntries(
    Object.entries(context.params).map(([key, value]) => [key, encodeURIComponent(value)]),
  );
  return proxy(request, `{{ url }}`);
}
{% endfor %}
""",
    "docs/server-function.md": """## {{ function }}

Server-side function for `{{ data.method | upper }} {{ data.request_url }}`, usable from
server components and server actions. Reads the upstream URL from `{{ env_var }}`.

```ts
import { {{ function }} } from '@specbind/next/{{ import_path }}/server';

const result = await {{ function }}({{ call_args }});
```
""",
}

_RENDERER = TemplateRenderer(TEMPLATES)


def env_var_name(source: SourceConfig) -> str:
    return f"{constant_case(source.id)}_API_URL"


def route_segments(request_url: str) -> List[str]:
    """``/pets/{petId}`` -> ``["pets", "[petId]"]``."""
    segments = []
    for part in request_url.strip("/").split("/"):
        if not part:
            continue
        if part.startswith("{") and part.endswith("}"):
            part = f"[{part[1:-1]}]"
        segments.append(part)
    return segments


class NextPlugin:
    """Generator plugin producing Next.js client hooks and server bindings."""

    options_schema = {
        "packageName": {"type": "string", "default": "@specbind/next"},
        "apiRoutesDir": {"type": "string", "default": "app/api/(generated)"},
    }

    def __init__(self, emitter: ReactHookEmitter | None = None) -> None:
        self.emitter = emitter or ReactHookEmitter()
        self.renderer = _RENDERER
        self.logger = get_logger("plugins.next")

    def meta(self) -> PluginMeta:
        return PluginMeta(
            name="specbind-next",
            version=__version__,
            compat=f"^{__version__}",
            generator="next",
            display_name="Next.js",
        )

    def generate(self, descriptors: Sequence[ResourceDescriptor[Any]], context: GeneratorContext) -> None:
        rest = [item for item in descriptors if isinstance(item.data, RestData)]
        schemas = [item for item in descriptors if isinstance(item.data, Schema)]
        self.emitter.emit_project_files(
            context,
            str(context.options.get("packageName", "@specbind/next")),
            {"next": ">=14", "react": ">=18"},
        )
        modules = self.emitter.emit_endpoints(rest, context)
        schema_names = self.emitter.emit_schemas(schemas, context)
        self.emitter.emit_source_index(context, modules, schema_names)
        self._emit_server_functions(rest, context)
        self._emit_routes(rest, context)

    def _emit_server_functions(self, descriptors: Sequence[ResourceDescriptor[RestData]], context: GeneratorContext) -> None:
        source = context.source
        entries: List[Dict[str, str]] = []
        for descriptor in descriptors:
            data = descriptor.data
            postfix = context.postfix(descriptor)
            directory = operation_dir(source.id, data)
            module = f"{function_name(data, postfix)}.server"
            context.dump(
                directory / f"{module}.ts",
                self.renderer.render(
                    "server-function.ts",
                    data=data,
                    source=source.id,
                    root="/".join([".."] * (len(directory.parts) - 1)),
                    function=function_name(data, postfix),
                    params_type=params_type_name(data, postfix),
                    request_hook=hook_name(data, postfix=postfix),
                    imports=referenced_types(data),
                    request_body=type_identifier(data.request_body) if data.request_body else None,
                    response=response_type(data),
                    url=request_url_template(data),
                    env_var=env_var_name(source),
                ),
            )
            entries.append(
                {
                    "function": function_name(data, postfix),
                    "module": str(PurePosixPath(*directory.parts[2:], module)),
                }
            )
            context.stats_counter.increment("Server Side Endpoints")
        entries.sort(key=lambda entry: entry["module"])
        context.dump(
            PurePosixPath("src", source.id, "server.ts"),
            self.renderer.render("server-index.ts", entries=entries),
        )

    def _emit_routes(self, descriptors: Sequence[ResourceDescriptor[RestData]], context: GeneratorContext) -> None:
        routes_dir = PurePosixPath(str(context.options.get("apiRoutesDir", "app/api/(generated)")))
        by_url: Dict[str, List[RestData]] = defaultdict(list)
        for descriptor in descriptors:
            by_url[descriptor.data.request_url].append(descriptor.data)
        for request_url in sorted(by_url):
            methods = sorted({data.method for data in by_url[request_url]})
            target = routes_dir.joinpath(context.source.id, *route_segments(request_url), "route.ts")
            context.dump(
                target,
                self.renderer.render(
                    "route.ts",
                    methods=methods,
                    url=request_url_template(by_url[request_url][0]),
                    env_var=env_var_name(context.source),
                ),
            )

    def get_schema_documentation(self, descriptor: ResourceDescriptor[Schema]) -> List[Tab]:
        return schema_tabs(descriptor)

    def get_endpoint_documentation(self, descriptor: ResourceDescriptor[RestData]) -> List[Tab]:
        tabs = endpoint_tabs(descriptor)
        data = descriptor.data
        tabs.append(
            Tab(
                "Server Function",
                self.renderer.render(
                    "docs/server-function.md",
                    data=data,
                    function=function_name(data),
                    env_var=env_var_name(SourceConfig(descriptor.source, descriptor.source, "")),
                    import_path="/".join([descriptor.source, *data.paths]),
                    call_args="{}" if not data.variables else "{ ... }",
                ),
            )
        )
        return tabs

    def init(self, context: InitContext) -> InitResult:
        def _post_init() -> None:
            self.logger.info("Next steps: set the *_API_URL variables in %s.", context.root_dir / ENV_FILE)
            self.logger.info("Generated API routes proxy requests to those upstream URLs.")

        return InitResult(post_init=_post_init)

    def add_source(self, context: SourceContext) -> None:
        """Write ``<ID>_API_URL`` into the project's ``.env``, creating the file if needed."""
        env_path = Path(context.root_dir) / ENV_FILE
        name = env_var_name(context.source)
        line = f"{name}={context.server_url or context.source.spec_url}"
        lines = env_path.read_text(encoding="utf-8").splitlines() if env_path.exists() else []
        for index, existing in enumerate(lines):
            if existing.strip().startswith(f"{name}="):
                lines[index] = line
                break
        else:
            lines.append(line)
        env_path.parent.mkdir(parents=True, exist_ok=True)
        env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        self.logger.info("Added environment variable %s to %s", name, env_path)

    def remove_source(self, context: SourceContext) -> None:
        """Drop ``<ID>_API_URL`` from ``.env``; missing file or entry is a no-op."""
        env_path = Path(context.root_dir) / ENV_FILE
        name = env_var_name(context.source)
        if not env_path.exists():
            self.logger.debug("No %s found at %s", ENV_FILE, env_path)
            return
        lines = env_path.read_text(encoding="utf-8").splitlines()
        kept = [line for line in lines if not line.strip().startswith(f"{name}=")]
        if len(kept) == len(lines):
            self.logger.debug("Environment variable %s not present in %s", name, env_path)
            return
        env_path.write_text("\n".join(kept) + ("\n" if kept else ""), encoding="utf-8")
        self.logger.info("Removed environment variable %s from %s", name, env_path)

    def post_build(self, context: BuildContext) -> None:
        missing = []
        env_path = Path(context.root_dir) / ENV_FILE
        content = env_path.read_text(encoding="utf-8") if env_path.exists() else ""
        for source in context.sources:
            if f"{env_var_name(source)}=" not in content:
                missing.append(env_var_name(source))
        if missing:
            self.logger.warning("Missing environment variables for Next.js bindings: %s", ", ".join(missing))


__all__ = ["NextPlugin", "env_var_name", "route_segments"]
