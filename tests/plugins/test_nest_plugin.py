from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from specbind.models import RestData
from specbind.plugins.nest import NestPlugin, service_class_name, service_file, service_tag
from specbind.stats import StatsCounter
from tests._fixtures.project_builder import generator_context, petstore


def test_generate_writes_one_service_per_tag(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    descriptors, context = generator_context(tmp_path, petstore_document)

    NestPlugin().generate(descriptors, context)

    service = (tmp_path / "src" / "petstore" / "pets.service.ts").read_text(encoding="utf-8")
    assert "export class PetstorePetsService" in service
    assert "async listPets$none_json(limit?: Pets$ListPets$Limit)" in service
    assert "async listPets$none_csv(" in service
    assert "responseType: 'arraybuffer'" in service
    assert "async createPet(data: Pet): Promise<Pet>" in service
    assert "url: `/pets/${encodeURIComponent(String(petId))}`" in service
    assert "async deletePet(petId: Pets$DeletePet$PetId): Promise<void>" in service

    stats = context.stats_counter.snapshot()
    assert stats["Services"] == 1
    assert stats["Endpoints"] == 5
    assert stats["Data Types"] >= 2


def test_module_lists_services_from_every_source(tmp_path: Path) -> None:
    plugin = NestPlugin()
    shared = StatsCounter("petstore")
    descriptors, petstore_context = generator_context(tmp_path, petstore(), "petstore", stats=shared)
    plugin.generate(descriptors, petstore_context)

    zoo = petstore()
    for item in zoo["paths"].values():
        for operation in item.values():
            if isinstance(operation, dict) and "tags" in operation:
                operation["tags"] = ["animals"]
    descriptors, zoo_context = generator_context(tmp_path, zoo, "zoo")
    zoo_context.sources = [petstore_context.source, zoo_context.source]
    plugin.generate(descriptors, zoo_context)

    module = (tmp_path / "src" / "specbind.module.ts").read_text(encoding="utf-8")
    assert "import { PetstorePetsService } from './petstore/pets.service';" in module
    assert "import { ZooAnimalsService } from './zoo/animals.service';" in module
    assert "providers: [PetstorePetsService, ZooAnimalsService]" in module
    index = (tmp_path / "src" / "index.ts").read_text(encoding="utf-8")
    assert "export * from './zoo/animals.service';" in index


def test_untagged_operations_use_the_source_service(tmp_path: Path) -> None:
    document = {
        "openapi": "3.0.0",
        "info": {"title": "t", "version": "1"},
        "paths": {"/ping": {"get": {"operationId": "ping", "responses": {"204": {"description": "ok"}}}}},
    }
    descriptors, context = generator_context(tmp_path, document, "health-check")

    NestPlugin().generate(descriptors, context)

    (rest,) = [item for item in descriptors if isinstance(item.data, RestData)]
    tag = service_tag(rest)
    assert (tmp_path / "src" / "health-check" / f"{service_file(tag)}.ts").exists()
    assert service_class_name("health-check", tag).endswith("Service")


def test_generate_twice_leaves_files_untouched(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    plugin = NestPlugin()
    descriptors, first = generator_context(tmp_path, petstore_document)
    plugin.generate(descriptors, first)

    descriptors, second = generator_context(tmp_path, petstore_document)
    plugin.generate(descriptors, second)

    assert second.written == []


def test_service_method_documentation(tmp_path: Path, petstore_document: Dict[str, Any]) -> None:
    descriptors, _ = generator_context(tmp_path, petstore_document)
    show = next(item for item in descriptors if isinstance(item.data, RestData) and item.data.operation_id == "showPetById")

    (tab,) = NestPlugin().get_endpoint_documentation(show)

    assert tab.name == "Service Method"
    assert "PetstorePetsService.showPetById" in tab.content
    assert "this.service.showPetById(petId)" in tab.content
    assert "- Path: `/pets/{petId}`" in tab.content
