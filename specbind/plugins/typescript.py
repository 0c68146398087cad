"""Translate JSON Schema fragments into TypeScript type expressions."""

from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Optional

from ..models import RestData, Schema
from ..naming import camel_case, pascal_case
from ..openapi.refs import is_ref, ref_name

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_PRIMITIVES = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "null": "null",
}


def type_identifier(name: str) -> str:
    """Use ``name`` verbatim when it is a valid TypeScript identifier."""
    return name if _IDENTIFIER.match(name) else (pascal_case(name) or "Unnamed")


def type_expression(schema: Any, depth: int = 0) -> str:
    """Return a TypeScript type for ``schema``."""
    if not isinstance(schema, Mapping):
        return "any"
    if is_ref(schema):
        return type_identifier(ref_name(schema["$ref"]))
    if "enum" in schema and isinstance(schema["enum"], list):
        return " | ".join(json.dumps(value) for value in schema["enum"]) or "never"
    if "const" in schema:
        return json.dumps(schema["const"])
    for combinator, joiner in (("oneOf", " | "), ("anyOf", " | "), ("allOf", " & ")):
        members = schema.get(combinator)
        if isinstance(members, list) and members:
            return joiner.join(_wrap(type_expression(member, depth)) for member in members)

    kind = schema.get("type")
    if isinstance(kind, list):
        return " | ".join(_wrap(type_expression({**schema, "type": item}, depth)) for item in kind)
    if kind == "array":
        return f"Array<{type_expression(schema.get('items'), depth)}>"
    if kind == "object" or "properties" in schema:
        return _object_type(schema, depth)
    if kind == "string" and schema.get("format") == "binary":
        return "Blob"
    result = _PRIMITIVES.get(str(kind), "any")
    if schema.get("nullable") is True and result != "any":
        result = f"{result} | null"
    return result


def _object_type(schema: Mapping[str, Any], depth: int) -> str:
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    if not properties:
        additional = schema.get("additionalProperties")
        if isinstance(additional, Mapping):
            return f"Record<string, {type_expression(additional, depth)}>"
        return "Record<string, any>"
    indent = "  " * (depth + 1)
    lines = ["{"]
    for name, prop in properties.items():
        key = name if _IDENTIFIER.match(name) else json.dumps(name)
        optional = "" if name in required else "?"
        lines.append(f"{indent}{key}{optional}: {type_expression(prop, depth + 1)};")
    lines.append("  " * depth + "}")
    return "\n".join(lines)


def _wrap(expression: str) -> str:
    return f"({expression})" if (" | " in expression or " & " in expression) else expression


def schema_declaration(schema: Schema) -> str:
    """Render ``export type Name = ...`` for a component schema."""
    lines: List[str] = []
    if schema.description:
        lines.append("/**")
        lines.extend(f" * {line}".rstrip() for line in schema.description.splitlines())
        lines.append(" */")
    lines.append(f"export type {type_identifier(schema.name)} = {type_expression(schema.schema)};")
    return "\n".join(lines)


def params_type_name(data: RestData, postfix: str = "") -> str:
    return f"{pascal_case(data.operation_id)}Params{postfix}"


def params_declaration(data: RestData, postfix: str = "") -> str:
    lines = [f"export interface {params_type_name(data, postfix)} {{"]
    for variable in data.variables:
        optional = "" if variable.location == "path" else "?"
        target = type_identifier(ref_name(variable.ref)) if variable.ref != "any" else "any"
        key = variable.name if _IDENTIFIER.match(variable.name) else json.dumps(variable.name)
        lines.append(f"  {key}{optional}: {target};")
    lines.append("}")
    return "\n".join(lines)


def hook_name(data: RestData, suffix: str = "", postfix: str = "") -> str:
    return f"use{pascal_case(data.operation_id)}{suffix}{postfix}"


def function_name(data: RestData, postfix: str = "") -> str:
    return f"{camel_case(data.operation_id)}{postfix}"


def response_type(data: RestData) -> str:
    if data.response:
        return type_identifier(data.response)
    if data.response_type == "text/event-stream":
        return "string"
    return "unknown"


def request_url_template(data: RestData) -> str:
    """``/pets/{petId}`` -> ``/pets/${params["petId"]}``."""
    return re.sub(r"\{([^}]+)\}", lambda match: "${params[" + json.dumps(match.group(1)) + "]}", data.request_url)


def json_schema_text(schema: Schema, indent: Optional[int] = 2) -> str:
    return json.dumps(schema.schema, indent=indent, sort_keys=True)


__all__ = [
    "function_name",
    "hook_name",
    "json_schema_text",
    "params_declaration",
    "params_type_name",
    "request_url_template",
    "response_type",
    "schema_declaration",
    "type_expression",
    "type_identifier",
]
