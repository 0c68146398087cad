"""JSON reference helpers for local OpenAPI documents."""

from __future__ import annotations

from typing import Any, Mapping

from ..errors import SpecParseError, UnsupportedFeatureError

SCHEMA_REF_PREFIX = "#/components/schemas/"
_MAX_REF_DEPTH = 32


def is_ref(value: Any) -> bool:
    return isinstance(value, Mapping) and isinstance(value.get("$ref"), str)


def ref_name(ref: str) -> str:
    """Return the last pointer segment of ``ref``."""
    return _unescape(ref.rsplit("/", 1)[-1])


def schema_ref_name(ref: str) -> str:
    """Return the component name a schema ``$ref`` points at."""
    if not ref.startswith(SCHEMA_REF_PREFIX):
        raise UnsupportedFeatureError(
            f"Only references to {SCHEMA_REF_PREFIX}* are supported here, got '{ref}'"
        )
    return ref_name(ref)


def resolve_pointer(document: Mapping[str, Any], ref: str) -> Any:
    """Follow a local ``#/...`` pointer inside ``document``."""
    if not ref.startswith("#/"):
        raise UnsupportedFeatureError(f"External reference '{ref}' is not supported")
    node: Any = document
    for raw in ref[2:].split("/"):
        key = _unescape(raw)
        if isinstance(node, Mapping) and key in node:
            node = node[key]
        elif isinstance(node, list) and key.isdigit() and int(key) < len(node):
            node = node[int(key)]
        else:
            raise SpecParseError(f"Reference '{ref}' does not resolve to anything")
    return node


def deref(document: Mapping[str, Any], value: Any) -> Any:
    """Resolve ``value`` when it is a reference, following reference chains."""
    seen = []
    while is_ref(value):
        ref = value["$ref"]
        if ref in seen or len(seen) >= _MAX_REF_DEPTH:
            raise UnsupportedFeatureError(f"Circular reference chain through '{ref}'")
        seen.append(ref)
        value = resolve_pointer(document, ref)
    return value


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


__all__ = [
    "SCHEMA_REF_PREFIX",
    "deref",
    "is_ref",
    "ref_name",
    "resolve_pointer",
    "schema_ref_name",
]
