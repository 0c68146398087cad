"""NestJS bindings: one injectable service per tag plus a module wiring them up."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import PurePosixPath
from typing import Any, Dict, List, Sequence

from .. import __version__
from ..logging import get_logger
from ..models import ResourceDescriptor, RestData, Schema, Tab
from ..naming import camel_case, kebab_case, pascal_case
from .base import GeneratorContext, InitContext, InitResult, PluginMeta
from .react import referenced_types, schema_refs, schema_tabs
from .rendering import TemplateRenderer
from .typescript import function_name, response_type, schema_declaration, type_identifier

TEMPLATES = {
    "package.json": """{{ package | tojson_sorted }}
""",
    "index.ts": """// Generated by specbind. Do not edit.
export * from './specbind.module';
{% for service in services %}
export * from './{{ service.source }}/{{ service.file }}';
{% endfor %}
""",
    "module.ts": """// Generated by specbind. Do not edit.
import { Module } from '@nestjs/common';
import { HttpModule } from '@nestjs/axios';
{% for service in services %}
import { {{ service.class_name }} } from './{{ service.source }}/{{ service.file }}';
{% endfor %}

@Module({
  imports: [HttpModule],
  providers: [{% for service in services %}{{ service.class_name }}{% if not loop.last %}, {% endif %}{% endfor %}],
  exports: [{% for service in services %}{{ service.class_name }}{% if not loop.last %}, {% endif %}{% endfor %}],
})
export class SpecbindModule {}
""",
    "service.ts": """// Generated by specbind. Do not edit.
import { Injectable } from '@nestjs/common';
import { HttpService } from '@nestjs/axios';
import { firstValueFrom } from 'rxjs';
{% for name in imports %}
import type { {{ name }} } from '../components/schemas/{{ name }}';
{% endfor %}

@Injectable()
export class {{ class_name }} {
  constructor(private readonly httpService: HttpService) {}
{% for method in methods %}

  async {{ method.name }}({{ method.params | join(', ') }}): Promise<{{ method.returns }}> {
    const response = await firstValueFrom(
      this.httpService.request<{{ method.returns }}>({
        method: '{{ method.http_method }}',
        url: {{ method.url }},
{% if method.query %}
        params: { {{ method.query | join(', ') }} },
{% endif %}
{% if method.has_body %}
        data,
        headers: { 'Content-Type': {{ method.content_type | tojson }} },
{% endif %}
{% if method.binary %}
        responseType: 'arraybuffer',
{% endif %}
      }),
    );
    return response.data;
  }
{% endfor %}
}
""",
    "type.ts": """// Generated by specbind. Do not edit.
{% for name in imports %}
import type { {{ name }} } from './{{ name }}';
{% endfor %}

{{ declaration }}

export const {{ name }}_jsonschema = {{ json_schema }};
""",
    "docs/service-method.md": """## {{ class_name }}.{{ method }}

```ts
import { {{ class_name }} } from '@specbind/nest';

constructor(private readonly service: {{ class_name }}) {}

const result = await this.service.{{ method }}({{ call_args | join(', ') }});
```

- Method: `{{ data.method | upper }}`
- Path: `{{ data.request_url }}`
{% if data.request_body %}
- Request Body Type: `{{ data.request_body }}`
{% endif %}
{% if data.response %}
- Response Type: `{{ data.response }}`
{% endif %}
""",
}

_RENDERER = TemplateRenderer(TEMPLATES)


def service_tag(descriptor: ResourceDescriptor[RestData]) -> str:
    """First tag of the operation, or the source id for untagged operations."""
    return descriptor.data.paths[0] if descriptor.data.paths else descriptor.source


def service_file(tag: str) -> str:
    return f"{kebab_case(tag)}.service"


def service_class_name(source_id: str, tag: str) -> str:
    """Class name for a service; unique across sources sharing one module."""
    return f"{pascal_case(source_id)}{pascal_case(kebab_case(tag))}Service"


def _argument(name: str) -> str:
    return camel_case(name) or "value"


class NestPlugin:
    """Generator plugin producing NestJS services."""

    options_schema = {
        "packageName": {"type": "string", "default": "@specbind/nest"},
    }

    def __init__(self) -> None:
        self.renderer = _RENDERER
        self.logger = get_logger("plugins.nest")

    def meta(self) -> PluginMeta:
        return PluginMeta(
            name="specbind-nest",
            version=__version__,
            compat=f"^{__version__}",
            generator="nest",
            display_name="NestJS",
        )

    def generate(self, descriptors: Sequence[ResourceDescriptor[Any]], context: GeneratorContext) -> None:
        rest = [item for item in descriptors if isinstance(item.data, RestData)]
        schemas = [item for item in descriptors if isinstance(item.data, Schema)]
        source_id = context.source.id

        grouped: Dict[str, List[ResourceDescriptor[RestData]]] = defaultdict(list)
        for descriptor in rest:
            grouped[service_tag(descriptor)].append(descriptor)

        for tag in sorted(grouped):
            members = sorted(grouped[tag], key=lambda item: (item.data.operation_id, context.postfix(item)))
            imports = sorted({name for member in members for name in referenced_types(member.data)})
            methods = [self._method(member, context.postfix(member)) for member in members]
            context.dump(
                PurePosixPath("src", source_id, f"{service_file(tag)}.ts"),
                self.renderer.render(
                    "service.ts",
                    class_name=service_class_name(source_id, tag),
                    imports=imports,
                    methods=methods,
                ),
            )
            context.stats_counter.increment("Services")
            context.stats_counter.increment("Endpoints", len(members))

        for descriptor in schemas:
            schema = descriptor.data
            name = type_identifier(schema.name)
            context.dump(
                PurePosixPath("src", source_id, "components", "schemas", f"{name}.ts"),
                self.renderer.render(
                    "type.ts",
                    name=name,
                    imports=sorted(set(schema_refs(schema.schema)) - {name}),
                    declaration=schema_declaration(schema),
                    json_schema=json.dumps(schema.schema, indent=2, sort_keys=True),
                ),
            )
            context.stats_counter.increment("Data Types")

        self._emit_project_files(context)

    def _method(self, descriptor: ResourceDescriptor[RestData], postfix: str) -> Dict[str, Any]:
        data = descriptor.data
        params: List[str] = []
        query: List[str] = []
        url = data.request_url
        for variable in data.variables:
            target = type_identifier(variable.ref.rsplit("/", 1)[-1]) if variable.ref != "any" else "any"
            argument = _argument(variable.name)
            if variable.location == "path":
                params.append(f"{argument}: {target}")
                url = url.replace("{" + variable.name + "}", "${encodeURIComponent(String(" + argument + "))}")
            elif variable.location == "query":
                params.append(f"{argument}?: {target}")
                query.append(f"{json.dumps(variable.name)}: {argument}")
        if data.request_body:
            params.append(f"data: {type_identifier(data.request_body)}")
        if data.response:
            returns = response_type(data)
        elif data.is_downloadable:
            returns = "ArrayBuffer"
        elif data.response_type:
            returns = response_type(data)
        else:
            returns = "void"
        return {
            "name": function_name(data, postfix),
            "params": params,
            "query": query,
            "returns": returns,
            "http_method": data.method.upper(),
            "url": "`" + url + "`",
            "has_body": bool(data.request_body),
            "content_type": data.content_type,
            "binary": data.is_downloadable,
        }

    def _emit_project_files(self, context: GeneratorContext) -> None:
        # Covers every source with service files on disk, not only this run.
        services: List[Dict[str, str]] = []
        for source in sorted(context.sources or [context.source], key=lambda item: item.id):
            source_dir = context.root_dir / "src" / source.id
            if not source_dir.is_dir():
                continue
            for path in sorted(source_dir.glob("*.service.ts")):
                tag = path.name[: -len(".service.ts")]
                services.append(
                    {
                        "source": source.id,
                        "file": service_file(tag),
                        "class_name": service_class_name(source.id, tag),
                    }
                )
        package = {
            "name": str(context.options.get("packageName", "@specbind/nest")),
            "version": __version__,
            "private": True,
            "main": "src/index.ts",
            "types": "src/index.ts",
            "peerDependencies": {
                "@nestjs/axios": "^3.0.0",
                "@nestjs/common": "^10.0.0",
                "rxjs": "^7.8.0",
            },
        }
        context.dump("package.json", self.renderer.render("package.json", package=package))
        context.dump("src/index.ts", self.renderer.render("index.ts", services=services))
        context.dump("src/specbind.module.ts", self.renderer.render("module.ts", services=services))

    def get_schema_documentation(self, descriptor: ResourceDescriptor[Schema]) -> List[Tab]:
        return schema_tabs(descriptor)

    def get_endpoint_documentation(self, descriptor: ResourceDescriptor[RestData]) -> List[Tab]:
        data = descriptor.data
        call_args = [_argument(variable.name) for variable in data.variables if variable.location in ("path", "query")]
        if data.request_body:
            call_args.append("data")
        return [
            Tab(
                "Service Method",
                self.renderer.render(
                    "docs/service-method.md",
                    class_name=service_class_name(descriptor.source, service_tag(descriptor)),
                    method=function_name(data),
                    data=data,
                    call_args=call_args,
                ),
            )
        ]

    def init(self, context: InitContext) -> InitResult:
        def _post_init() -> None:
            self.logger.info("Next steps: import SpecbindModule into your application module.")
            self.logger.info("Generated services under %s are then available for injection.", context.root_dir)

        return InitResult(post_init=_post_init)


__all__ = ["NestPlugin", "service_class_name", "service_file", "service_tag"]
