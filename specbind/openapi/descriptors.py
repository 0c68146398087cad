"""Build the descriptor model from an OpenAPI document."""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional, Union

from ..errors import SpecParseError, SourceError, UnsupportedFeatureError
from ..models import (
    PARAMETER_LOCATIONS,
    ErrorResponse,
    ResourceDescriptor,
    RestData,
    Schema,
    Variable,
)
from .normalize import iter_operations, normalize
from .refs import is_ref, schema_ref_name

DOWNLOADABLE_MEDIA_TYPES = frozenset(
    {
        "application/octet-stream",
        "application/pdf",
        "application/zip",
        "application/gzip",
        "application/x-tar",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/csv",
    }
)
DOWNLOADABLE_PREFIXES = ("image/", "audio/", "video/")
ERROR_MEDIA_TYPES = ("*/*", "application/json")

AnyDescriptor = ResourceDescriptor[Union[RestData, Schema]]


def build_descriptors(document: Mapping[str, Any], source_id: str) -> List[AnyDescriptor]:
    """Return REST descriptors (path, then method order) followed by schema descriptors.

    Raises ``SpecParseError`` for malformed documents and ``UnsupportedFeatureError``
    for constructs the model cannot represent. The source id is attached to both.
    """
    try:
        normalized = normalize(document)
        descriptors: List[AnyDescriptor] = []
        for data in extract_requests(normalized):
            descriptors.append(
                ResourceDescriptor(id=rest_descriptor_id(source_id, data), source=source_id, data=data)
            )
        for schema in extract_schemas(normalized):
            descriptors.append(
                ResourceDescriptor(id=schema_descriptor_id(source_id, schema.name), source=source_id, data=schema)
            )
    except SourceError as exc:
        if exc.source_id is None:
            exc.source_id = source_id
        raise
    return descriptors


def extract_requests(document: Mapping[str, Any]) -> List[RestData]:
    """Expand every operation into one ``RestData`` per content negotiation variant."""
    requests: List[RestData] = []
    for path, method, operation in iter_operations(document):
        operation_id = operation.get("operationId")
        if not operation_id:
            raise SpecParseError(f"Operation {method.upper()} {path} has no operationId")
        tags = operation.get("tags") or []
        base = RestData(
            operation_id=str(operation_id),
            method=method,
            paths=[str(tags[0])] if tags else [],
            variables=_variables(operation),
            request_url=path,
            description=operation.get("description"),
            summary=operation.get("summary"),
        )

        if method == "delete":
            requests.append(base)
            continue

        responses = operation.get("responses") or {}
        base.error_responses = _error_responses(responses)
        success_status = "200" if "200" in responses else "201" if "201" in responses else None
        success = responses.get(success_status) if success_status else None
        content = (success or {}).get("content") or {}
        attachment = _declares_attachment(success or {})

        variants: List[RestData] = []
        if not content:
            variants.append(_copy(base))
        for media_type, media in content.items():
            schema = (media or {}).get("schema")
            variants.append(
                _copy(
                    base,
                    response=_schema_name(schema, f"response of '{operation_id}'"),
                    response_type=media_type,
                    response_examples=_examples(media or {}),
                    is_downloadable=attachment or is_downloadable_media(media_type),
                )
            )

        body = operation.get("requestBody") or {}
        body_content = body.get("content") or {}
        for variant in variants:
            if method == "get" or not body_content:
                requests.append(variant)
                continue
            for content_type, media in body_content.items():
                schema = (media or {}).get("schema")
                requests.append(
                    _copy(
                        variant,
                        content_type=content_type,
                        request_body=_schema_name(schema, f"request body of '{operation_id}'"),
                    )
                )
    return requests


def extract_schemas(document: Mapping[str, Any]) -> List[Schema]:
    schemas = (document.get("components") or {}).get("schemas") or {}
    if not isinstance(schemas, Mapping):
        raise SpecParseError("Field 'components.schemas' must be a mapping")
    result: List[Schema] = []
    for name, schema in schemas.items():
        if not isinstance(schema, Mapping):
            raise SpecParseError(f"Schema '{name}' must be a mapping")
        description = schema.get("description")
        result.append(
            Schema(
                name=str(name),
                schema=dict(schema),
                description=description if isinstance(description, str) else None,
            )
        )
    return result


def is_downloadable_media(media_type: Optional[str]) -> bool:
    if not media_type:
        return False
    media_type = media_type.split(";", 1)[0].strip().lower()
    return media_type in DOWNLOADABLE_MEDIA_TYPES or media_type.startswith(DOWNLOADABLE_PREFIXES)


def rest_descriptor_id(source_id: str, data: RestData) -> str:
    key = "|".join(
        [source_id, data.method, data.request_url, data.operation_id, data.content_type or "", data.response_type or ""]
    )
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def schema_descriptor_id(source_id: str, name: str) -> str:
    return hashlib.sha1(f"{source_id}|schema|{name}".encode("utf-8")).hexdigest()


def _copy(data: RestData, **changes: Any) -> RestData:
    changes.setdefault("paths", list(data.paths))
    changes.setdefault("variables", list(data.variables))
    changes.setdefault("error_responses", dict(data.error_responses))
    changes.setdefault("response_examples", dict(data.response_examples))
    return replace(data, **changes)


def _variables(operation: Mapping[str, Any]) -> List[Variable]:
    variables: List[Variable] = []
    for param in operation.get("parameters") or []:
        location = param.get("in")
        if location not in PARAMETER_LOCATIONS:
            raise SpecParseError(
                f"Parameter '{param.get('name')}' has unknown location '{location}'"
            )
        schema = param.get("schema")
        ref = schema["$ref"] if is_ref(schema) else "any"
        variables.append(Variable(name=str(param["name"]), location=location, ref=ref))
    return variables


def _schema_name(schema: Any, where: str) -> Optional[str]:
    if schema is None:
        return None
    if not is_ref(schema):
        raise UnsupportedFeatureError(f"Inline schema in {where} could not be normalized")
    return schema_ref_name(schema["$ref"])


def _error_responses(responses: Mapping[str, Any]) -> Dict[str, ErrorResponse]:
    errors: Dict[str, ErrorResponse] = {}
    for status, response in responses.items():
        if str(status).startswith("2"):
            continue
        for media_type, media in ((response or {}).get("content") or {}).items():
            if media_type not in ERROR_MEDIA_TYPES:
                continue
            schema = (media or {}).get("schema")
            errors[str(status)] = ErrorResponse(
                response=schema_ref_name(schema["$ref"]) if is_ref(schema) else None,
                response_type=media_type,
            )
            break
    return errors


def _examples(media: Mapping[str, Any]) -> Dict[str, str]:
    examples = media.get("examples")
    if isinstance(examples, Mapping) and examples:
        rendered: Dict[str, str] = {}
        for key, value in examples.items():
            if isinstance(value, Mapping) and "value" in value:
                value = value["value"]
            rendered[str(key)] = json.dumps(value, sort_keys=True)
        return rendered
    if "example" in media:
        return {"default": json.dumps(media["example"], sort_keys=True)}
    return {}


def _declares_attachment(response: Mapping[str, Any]) -> bool:
    headers = response.get("headers") or {}
    return any(str(name).lower() == "content-disposition" for name in headers)


__all__ = [
    "build_descriptors",
    "extract_requests",
    "extract_schemas",
    "is_downloadable_media",
    "rest_descriptor_id",
    "schema_descriptor_id",
]
