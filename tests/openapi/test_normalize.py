"""Tests for specbind.openapi.normalize."""

from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

from specbind.errors import SpecParseError, UnsupportedFeatureError
from specbind.openapi.normalize import HASH_KEY, normalize, spec_hash, type_name


def test_normalize_does_not_mutate_input(petstore_document: Dict[str, Any]) -> None:
    original = copy.deepcopy(petstore_document)

    normalize(petstore_document)

    assert petstore_document == original


def test_inline_schemas_are_hoisted(petstore_document: Dict[str, Any]) -> None:
    result = normalize(petstore_document)

    schemas = result["components"]["schemas"]
    assert schemas["Pets$ListPets$Limit"] == {"type": "integer"}
    assert schemas["Pets$ListPets$ResponseBody"]["type"] == "array"
    assert schemas["Pets$ListPets$ResponseBody$2"] == {"type": "string"}
    media = result["paths"]["/pets"]["get"]["responses"]["200"]["content"]["text/csv"]
    assert media["schema"] == {"$ref": "#/components/schemas/Pets$ListPets$ResponseBody$2"}


def test_path_parameters_are_merged_into_operations(petstore_document: Dict[str, Any]) -> None:
    petstore_document["paths"]["/pets/{petId}"]["get"]["parameters"] = [
        {"name": "petId", "in": "path", "required": True, "schema": {"type": "integer"}},
        {"name": "fields", "in": "query", "schema": {"type": "string"}},
    ]

    result = normalize(petstore_document)

    get_params = result["paths"]["/pets/{petId}"]["get"]["parameters"]
    delete_params = result["paths"]["/pets/{petId}"]["delete"]["parameters"]
    assert [param["name"] for param in get_params] == ["petId", "fields"]
    assert result["components"]["schemas"]["Pets$ShowPetById$PetId"] == {"type": "integer"}
    assert [param["name"] for param in delete_params] == ["petId"]


def test_tags_are_registered(petstore_document: Dict[str, Any]) -> None:
    assert normalize(petstore_document)["tags"] == [{"name": "pets"}]


def test_spec_hash_is_stable_and_content_sensitive(petstore_document: Dict[str, Any]) -> None:
    first = spec_hash(normalize(petstore_document))
    second = spec_hash(normalize(normalize(petstore_document)))
    petstore_document["info"]["version"] = "2.0.0"
    changed = spec_hash(normalize(petstore_document))

    assert first and len(first) == 64
    assert first == second
    assert first != changed
    assert HASH_KEY not in petstore_document["info"]


def test_referenced_responses_and_parameters_are_resolved() -> None:
    document = {
        "openapi": "3.0.0",
        "info": {"title": "t", "version": "1"},
        "paths": {
            "/items": {
                "get": {
                    "operationId": "listItems",
                    "parameters": [{"$ref": "#/components/parameters/Page"}],
                    "responses": {"200": {"$ref": "#/components/responses/Items"}},
                }
            }
        },
        "components": {
            "parameters": {"Page": {"name": "page", "in": "query", "schema": {"type": "integer"}}},
            "responses": {
                "Items": {
                    "description": "items",
                    "content": {"application/json": {"schema": {"type": "array", "items": {"type": "string"}}}},
                }
            },
        },
    }

    result = normalize(document)
    operation = result["paths"]["/items"]["get"]

    assert operation["parameters"][0]["schema"] == {"$ref": "#/components/schemas/ListItems$Page"}
    content = operation["responses"]["200"]["content"]["application/json"]
    assert content["schema"] == {"$ref": "#/components/schemas/ListItems$ResponseBody"}


def test_type_name_uses_first_tag() -> None:
    assert type_name({"operationId": "listPets", "tags": ["pet store"]}, "ResponseBody") == "PetStore$ListPets$ResponseBody"
    assert type_name({"operationId": "ping"}, "ResponseBody404") == "Ping$ResponseBody404"


@pytest.mark.parametrize(
    "document, error",
    [
        ({"openapi": "2.0", "info": {"title": "t"}, "paths": {}}, UnsupportedFeatureError),
        ({"openapi": "3.0.0", "paths": {}}, SpecParseError),
        ({"openapi": "3.0.0", "info": {"title": "t"}, "paths": []}, SpecParseError),
        (
            {
                "openapi": "3.0.0",
                "info": {"title": "t"},
                "paths": {"/a": {"get": {"responses": {"200": {"$ref": "#/components/responses/Nope"}}}}},
            },
            SpecParseError,
        ),
    ],
)
def test_invalid_documents(document: Dict[str, Any], error: type) -> None:
    with pytest.raises(error):
        normalize(document)
