"""Normalization pipeline that prepares an OpenAPI document for descriptor extraction.

Every step takes a document and returns a new one; the input is never mutated.
Steps run in a fixed order:

1. validate the document skeleton
2. dereference path-level parameters and merge them into operations
3. register tags used by operations
4. generate missing operation ids
5. hoist inline parameter schemas into ``components.schemas``
6. hoist inline request body schemas
7. hoist inline response schemas
8. stamp ``info.x-specbind-hash``
"""

from __future__ import annotations

import copy
import hashlib
import json
from typing import Any, Callable, Dict, Iterator, List, Mapping, MutableMapping, Optional, Sequence, Tuple

from ..errors import SpecParseError, UnsupportedFeatureError
from ..naming import camel_case, pascal_case
from .refs import SCHEMA_REF_PREFIX, deref, is_ref

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
HASH_KEY = "x-specbind-hash"

Document = Dict[str, Any]
NormalizationStep = Callable[[Document], Document]


def normalize(document: Mapping[str, Any], extra_steps: Sequence[NormalizationStep] = ()) -> Document:
    """Run the default normalization pipeline over ``document``."""
    if not isinstance(document, Mapping):
        raise SpecParseError("OpenAPI document must be a mapping")
    result: Document = copy.deepcopy(dict(document))
    for step in [*DEFAULT_STEPS[:-1], *extra_steps, DEFAULT_STEPS[-1]]:
        result = step(result)
    return result


def iter_operations(document: Mapping[str, Any]) -> Iterator[Tuple[str, str, MutableMapping[str, Any]]]:
    """Yield ``(path, method, operation)`` in declaration order."""
    for path, path_item in document.get("paths", {}).items():
        if not isinstance(path_item, MutableMapping):
            continue
        for method, operation in path_item.items():
            if method.lower() in HTTP_METHODS and isinstance(operation, MutableMapping):
                yield path, method.lower(), operation


def validate_document(document: Document) -> Document:
    if not isinstance(document, Mapping):
        raise SpecParseError("OpenAPI document must be a mapping")
    if "swagger" in document and "openapi" not in document:
        raise UnsupportedFeatureError(
            f"Swagger {document.get('swagger')} documents are not supported; convert to OpenAPI 3"
        )
    version = document.get("openapi")
    if not isinstance(version, str) or not version.strip():
        raise SpecParseError("Missing required field 'openapi'")
    if not version.startswith("3."):
        raise UnsupportedFeatureError(f"OpenAPI version {version} is not supported")
    info = document.get("info")
    if not isinstance(info, Mapping):
        raise SpecParseError("Missing required field 'info'")
    if not isinstance(info.get("title"), str):
        raise SpecParseError("Missing required field 'info.title'")
    paths = document.get("paths", {})
    if paths is None:
        paths = {}
    if not isinstance(paths, Mapping):
        raise SpecParseError("Field 'paths' must be a mapping")
    document["paths"] = paths
    components = document.get("components")
    if components is not None and not isinstance(components, Mapping):
        raise SpecParseError("Field 'components' must be a mapping")
    return document


def dereference_path_parameters(document: Document) -> Document:
    for path, path_item in document["paths"].items():
        if not isinstance(path_item, MutableMapping):
            raise SpecParseError(f"Path item '{path}' must be a mapping")
        shared = [_deref_parameter(document, param) for param in path_item.get("parameters") or []]
        if "parameters" in path_item:
            path_item["parameters"] = shared
        if not shared:
            continue
        for method, operation in path_item.items():
            if method.lower() not in HTTP_METHODS or not isinstance(operation, MutableMapping):
                continue
            own = [_deref_parameter(document, param) for param in operation.get("parameters") or []]
            declared = {(param.get("name"), param.get("in")) for param in own}
            inherited = [
                copy.deepcopy(param)
                for param in shared
                if (param.get("name"), param.get("in")) not in declared
            ]
            operation["parameters"] = inherited + own
    return document


def register_tags(document: Document) -> Document:
    tags: List[Dict[str, Any]] = list(document.get("tags") or [])
    known = {tag.get("name") for tag in tags if isinstance(tag, Mapping)}
    for _, _, operation in iter_operations(document):
        for tag in operation.get("tags") or []:
            if tag not in known:
                tags.append({"name": tag})
                known.add(tag)
    if tags:
        document["tags"] = tags
    return document


def generate_operation_ids(document: Document) -> Document:
    for path, method, operation in iter_operations(document):
        if not operation.get("operationId"):
            operation["operationId"] = camel_case(f"{method} {path}")
    return document


def normalize_parameters(document: Document) -> Document:
    for _, _, operation in iter_operations(document):
        if "parameters" not in operation:
            continue
        parameters = [_deref_parameter(document, param) for param in operation.get("parameters") or []]
        for param in parameters:
            schema = param.get("schema")
            if schema is None or is_ref(schema):
                continue
            name = _hoist(document, operation, str(param.get("name", "param")), schema)
            param["schema"] = {"$ref": f"{SCHEMA_REF_PREFIX}{name}"}
        operation["parameters"] = parameters
    return document


def normalize_request_bodies(document: Document) -> Document:
    for _, _, operation in iter_operations(document):
        if "requestBody" not in operation:
            continue
        body = deref(document, operation["requestBody"])
        if not isinstance(body, Mapping):
            raise SpecParseError(f"Request body of '{operation.get('operationId')}' must be a mapping")
        body = copy.deepcopy(dict(body))
        content = body.get("content") or {}
        for media in content.values():
            if not isinstance(media, MutableMapping):
                continue
            _deref_examples(document, media)
            schema = media.get("schema")
            if schema is None or is_ref(schema):
                continue
            name = _hoist(document, operation, "RequestBody", schema)
            media["schema"] = {"$ref": f"{SCHEMA_REF_PREFIX}{name}"}
        operation["requestBody"] = body
    return document


def normalize_responses(document: Document) -> Document:
    for _, _, operation in iter_operations(document):
        responses = operation.get("responses")
        if responses is None:
            continue
        if not isinstance(responses, Mapping):
            raise SpecParseError(f"Responses of '{operation.get('operationId')}' must be a mapping")
        resolved: Dict[str, Any] = {}
        for status, response in responses.items():
            target = deref(document, response)
            if target is None:
                continue
            if not isinstance(target, Mapping):
                raise SpecParseError(
                    f"Response {status} of '{operation.get('operationId')}' must be a mapping"
                )
            target = copy.deepcopy(dict(target))
            status = str(status)
            if isinstance(target.get("headers"), Mapping):
                target["headers"] = {
                    key: deref(document, header) for key, header in target["headers"].items()
                }
            for media in (target.get("content") or {}).values():
                if not isinstance(media, MutableMapping):
                    continue
                _deref_examples(document, media)
                schema = media.get("schema")
                if schema is None or is_ref(schema):
                    continue
                suffix = "ResponseBody" if status.startswith("2") else f"ResponseBody{status}"
                name = _hoist(document, operation, suffix, schema)
                media["schema"] = {"$ref": f"{SCHEMA_REF_PREFIX}{name}"}
            resolved[status] = target
        operation["responses"] = resolved
    return document


def add_spec_hash(document: Document) -> Document:
    info = dict(document["info"])
    info.pop(HASH_KEY, None)
    document["info"] = info
    payload = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    info[HASH_KEY] = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return document


def spec_hash(document: Mapping[str, Any]) -> Optional[str]:
    info = document.get("info")
    if isinstance(info, Mapping):
        value = info.get(HASH_KEY)
        return value if isinstance(value, str) else None
    return None


def type_name(operation: Mapping[str, Any], suffix: str) -> str:
    """Name used for a schema hoisted out of ``operation``."""
    tags = operation.get("tags") or []
    parts = [tags[0] if tags else None, operation.get("operationId"), suffix]
    return "$".join(pascal_case(str(part)) for part in parts if part)


def _hoist(document: Document, operation: Mapping[str, Any], suffix: str, schema: Any) -> str:
    schemas = document.setdefault("components", {}).setdefault("schemas", {})
    base = type_name(operation, suffix)
    name = base
    counter = 2
    while name in schemas and schemas[name] != schema:
        name = f"{base}${counter}"
        counter += 1
    schemas[name] = copy.deepcopy(schema)
    return name


def _deref_parameter(document: Document, param: Any) -> Dict[str, Any]:
    resolved = deref(document, param)
    if not isinstance(resolved, Mapping):
        raise SpecParseError("Parameter entries must be mappings")
    if "name" not in resolved or "in" not in resolved:
        raise SpecParseError("Parameters require 'name' and 'in'")
    return copy.deepcopy(dict(resolved))


def _deref_examples(document: Document, media: MutableMapping[str, Any]) -> None:
    examples = media.get("examples")
    if isinstance(examples, Mapping):
        media["examples"] = {
            key: value
            for key, value in ((k, deref(document, v)) for k, v in examples.items())
            if value is not None
        }


DEFAULT_STEPS: Tuple[NormalizationStep, ...] = (
    validate_document,
    dereference_path_parameters,
    register_tags,
    generate_operation_ids,
    normalize_parameters,
    normalize_request_bodies,
    normalize_responses,
    add_spec_hash,
)


__all__ = [
    "DEFAULT_STEPS",
    "HASH_KEY",
    "HTTP_METHODS",
    "iter_operations",
    "normalize",
    "spec_hash",
    "type_name",
]
