"""Tests for the FastAPI service mode."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    pytest.skip("fastapi not installed", allow_module_level=True)

from specbind.config import load_config
from specbind.events import DoneEvent, Status, StatusEvent, Step
from specbind.models import RestData
from specbind.orchestrator import Orchestrator
from specbind.service import create_app
from specbind.service.app import format_sse
from tests._fixtures.project_builder import ProjectBuilder, petstore


@pytest.fixture
def petstore_project(project: ProjectBuilder) -> Path:
    project.write_spec("petstore.json", petstore())
    project.write_config([{"id": "petstore", "specUrl": "specs/petstore.json"}], generator="react")
    return project.path()


@pytest.fixture
def client() -> TestClient:
    orchestrator = Orchestrator()
    app = create_app(lambda: orchestrator)
    return TestClient(app)


def _sse_payloads(body: str) -> list[dict]:
    payloads = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        payloads.append(json.loads(lines["data"]))
    return payloads


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_format_sse() -> None:
    assert format_sse(DoneEvent(success=True)) == 'event: done\ndata: {"type": "done", "success": true}\n\n'
    message = format_sse(StatusEvent(Status.ERROR, "petstore", Step.FETCHING_SPEC, error="SpecFetchError: gone"))
    assert message.startswith("event: status\n")
    assert '"error": "SpecFetchError: gone"' in message


def test_sync_streams_events_then_stats_are_available(client: TestClient, petstore_project: Path) -> None:
    assert client.get("/sources/petstore/stats").status_code == 404

    response = client.get("/sync", params={"path": str(petstore_project)})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = _sse_payloads(response.text)
    assert payloads[0] == {"type": "status", "sourceId": "", "step": "RESOLVING_CONFIG", "status": "started"}
    assert payloads[-1] == {"type": "done", "success": True}
    assert sum(1 for payload in payloads if payload["type"] == "done") == 1
    assert {"type": "status", "sourceId": "petstore", "step": "GENERATING", "status": "success"} in payloads

    stats = client.get("/sources/petstore/stats")
    assert stats.status_code == 200
    assert stats.json()["stats"]["Endpoints"] == 5


def test_sync_reports_failing_source(client: TestClient, project: ProjectBuilder) -> None:
    project.write_config([{"id": "ghost", "specUrl": "specs/ghost.json"}], generator="react")

    response = client.get("/sync", params={"path": str(project.path())})

    payloads = _sse_payloads(response.text)
    errors = [payload for payload in payloads if payload.get("status") == "error"]
    assert errors[0]["sourceId"] == "ghost"
    assert errors[0]["step"] == "FETCHING_SPEC"
    assert payloads[-1] == {"type": "done", "success": False}


def test_documentation_endpoint(client: TestClient, petstore_project: Path) -> None:
    config_descriptors = Orchestrator().descriptors(load_config(petstore_project), "petstore")
    create = next(
        item for item in config_descriptors if isinstance(item.data, RestData) and item.data.operation_id == "createPet"
    )

    response = client.get(
        f"/sources/petstore/descriptors/{create.id}/documentation",
        params={"path": str(petstore_project)},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["descriptor_id"] == create.id
    assert [tab["name"] for tab in data["tabs"]] == ["Stateful Hook", "Stateless Hook"]


def test_documentation_errors_map_to_status_codes(client: TestClient, petstore_project: Path) -> None:
    missing_descriptor = client.get(
        "/sources/petstore/descriptors/nope/documentation",
        params={"path": str(petstore_project)},
    )
    assert missing_descriptor.status_code == 404

    missing_source = client.get(
        "/sources/ghost/descriptors/nope/documentation",
        params={"path": str(petstore_project)},
    )
    assert missing_source.status_code == 400
    assert "Unknown source" in missing_source.json()["detail"]
