from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from specbind.models import RestData, Schema
from specbind.plugins.base import InitContext
from specbind.plugins.react import ReactPlugin, operation_dir, referenced_types
from tests._fixtures.project_builder import generator_context, petstore, snapshot_tree


def _list_pets_only() -> Dict[str, Any]:
    document = petstore()
    document["paths"] = {"/pets": {"get": document["paths"]["/pets"]["get"]}}
    return document


def test_generate_writes_hooks_types_and_stats(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    descriptors, context = generator_context(tmp_path, petstore_document)

    ReactPlugin().generate(descriptors, context)

    root = tmp_path / "src" / "petstore"
    assert (tmp_path / "package.json").exists()
    assert (tmp_path / "src" / "index.ts").read_text(encoding="utf-8").count("from './petstore'") == 1
    assert (root / "pets" / "createPet" / "useCreatePet.ts").exists()
    assert (root / "pets" / "createPet" / "useCreatePetAsync.ts").exists()
    assert (root / "pets" / "showPetById" / "useShowPetById.ts").exists()
    assert (root / "components" / "schemas" / "Pet.ts").exists()

    hook = (root / "pets" / "showPetById" / "useShowPetById.ts").read_text(encoding="utf-8")
    assert "export function useShowPetById()" in hook
    assert '`/pets/${params["petId"]}`' in hook
    assert "method: 'GET'" in hook

    stats = context.stats_counter.snapshot()
    assert stats["Endpoints"] == 5
    assert stats["Download Hooks"] == 1
    assert stats["Data Types"] == len([item for item in descriptors if isinstance(item.data, Schema)])


def test_conflicting_operation_gets_postfixed_files(tmp_path: Path) -> None:
    descriptors, context = generator_context(tmp_path, _list_pets_only())

    ReactPlugin().generate(descriptors, context)

    directory = tmp_path / "src" / "petstore" / "pets" / "listPets"
    names = sorted(path.name for path in directory.iterdir())
    assert "useListPets$none_json.ts" in names
    assert "useListPets$none_csv.ts" in names
    assert "useListPetsAsync$none_json.ts" in names
    assert "useListPets$none_csvDownload.ts" in names
    assert "useListPets.ts" not in names

    index = (directory / "index.ts").read_text(encoding="utf-8")
    assert "export { useListPets as useListPets$none_json } from './useListPets$none_json';" in index
    assert "useListPetsDownload as useListPetsDownload$none_csv" in index

    stats = context.stats_counter.snapshot()
    assert stats["Endpoints"] == 2
    assert stats["Download Hooks"] == 1


def test_generate_is_idempotent(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    plugin = ReactPlugin()
    descriptors, first = generator_context(tmp_path, petstore_document)
    plugin.generate(descriptors, first)
    before = snapshot_tree(tmp_path)

    descriptors, second = generator_context(tmp_path, petstore_document)
    plugin.generate(descriptors, second)

    assert snapshot_tree(tmp_path) == before
    assert second.written == []
    assert len(second.unchanged) == len(before)
    assert second.stats_counter.snapshot() == first.stats_counter.snapshot()


def test_package_name_option(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    descriptors, context = generator_context(tmp_path, petstore_document, options={"packageName": "@acme/pets"})

    ReactPlugin().generate(descriptors, context)

    assert '"name": "@acme/pets"' in (tmp_path / "package.json").read_text(encoding="utf-8")


def test_endpoint_documentation_tabs(petstore_document: Dict[str, Any], tmp_path: Path) -> None:
    descriptors, _ = generator_context(tmp_path, petstore_document)
    plugin = ReactPlugin()
    rest = [item for item in descriptors if isinstance(item.data, RestData)]

    json_tabs = plugin.get_endpoint_documentation(rest[0])
    csv_tabs = plugin.get_endpoint_documentation(rest[1])

    assert [tab.name for tab in json_tabs] == ["Stateful Hook", "Stateless Hook"]
    assert [tab.name for tab in csv_tabs] == ["Stateful Hook", "Stateless Hook", "Download Hook"]
    assert "useListPets" in json_tabs[0].content
    assert not list(tmp_path.iterdir())


def test_schema_documentation_tabs(petstore_document: Dict[str, Any], tmp_path: Path) -> None:
    descriptors, _ = generator_context(tmp_path, petstore_document)
    pet = next(item for item in descriptors if isinstance(item.data, Schema) and item.data.name == "Pet")

    tabs = ReactPlugin().get_schema_documentation(pet)

    assert [tab.name for tab in tabs] == ["TypeScript Type", "JSON Schema"]
    assert "export type Pet" in tabs[0].content
    assert '"required"' in tabs[1].content


def test_operation_dir_and_referenced_types(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    descriptors, _ = generator_context(tmp_path, petstore_document)
    create = next(item.data for item in descriptors if isinstance(item.data, RestData) and item.data.operation_id == "createPet")

    assert str(operation_dir("petstore", create)) == "src/petstore/pets/createPet"
    assert referenced_types(create) == ["Pet"]


def test_init_returns_post_init(tmp_path: Path) -> None:
    result = ReactPlugin().init(InitContext(root_dir=tmp_path))

    assert callable(result.post_init)
    result.post_init()
