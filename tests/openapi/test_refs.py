"""Tests for specbind.openapi.refs."""

from __future__ import annotations

import pytest

from specbind.errors import SpecParseError, UnsupportedFeatureError
from specbind.openapi.refs import deref, ref_name, resolve_pointer, schema_ref_name

DOCUMENT = {
    "components": {
        "schemas": {"Pet": {"type": "object"}, "Alias": {"$ref": "#/components/schemas/Pet"}},
        "responses": {"Loop": {"$ref": "#/components/responses/Loop"}},
        "paths~1with~0escapes": {"ok": True},
    }
}


def test_ref_names() -> None:
    assert ref_name("#/components/schemas/Pet") == "Pet"
    assert schema_ref_name("#/components/schemas/Pet") == "Pet"
    with pytest.raises(UnsupportedFeatureError):
        schema_ref_name("#/components/responses/Pet")


def test_deref_follows_chains() -> None:
    assert deref(DOCUMENT, {"$ref": "#/components/schemas/Alias"}) == {"type": "object"}
    assert deref(DOCUMENT, {"type": "string"}) == {"type": "string"}


def test_pointer_segments_are_unescaped() -> None:
    assert resolve_pointer(DOCUMENT, "#/components/paths~01with~00escapes") == {"ok": True}


def test_circular_and_dangling_references() -> None:
    with pytest.raises(UnsupportedFeatureError):
        deref(DOCUMENT, {"$ref": "#/components/responses/Loop"})
    with pytest.raises(SpecParseError):
        deref(DOCUMENT, {"$ref": "#/components/schemas/Missing"})
    with pytest.raises(UnsupportedFeatureError):
        deref(DOCUMENT, {"$ref": "https://example.com/spec.json#/Pet"})
