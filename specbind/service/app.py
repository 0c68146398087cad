"""FastAPI application entrypoint for specbind service mode."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Set

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .. import __version__
from ..config import SpecbindConfig, load_config
from ..errors import ConfigError, SpecbindError
from ..events import ProgressChannel, SyncEvent
from ..logging import get_logger
from ..orchestrator import Orchestrator


class HealthResponse(BaseModel):
    status: str


class StatsResponse(BaseModel):
    source_id: str
    stats: Dict[str, int]


class TabModel(BaseModel):
    name: str
    content: str


class DocumentationResponse(BaseModel):
    source_id: str
    descriptor_id: str
    tabs: List[TabModel]


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def format_sse(event: SyncEvent) -> str:
    """Encode a sync event as one server-sent events message."""
    payload = event.to_dict()
    return f"event: {payload['type']}\ndata: {json.dumps(payload)}\n\n"


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
    config_loader: Callable[[Path], SpecbindConfig] = load_config,
) -> FastAPI:
    """Create the FastAPI application exposing specbind operations."""

    app = FastAPI(title="specbind service", version=__version__)
    logger = get_logger("service")
    running: Set["asyncio.Task[Any]"] = set()
    holder: Dict[str, Orchestrator] = {}

    async def get_orchestrator() -> Orchestrator:
        # Shared by every request; latest stats live on it.
        if "orchestrator" not in holder:
            holder["orchestrator"] = orchestrator_factory()
        return holder["orchestrator"]

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/sync")
    async def sync(
        path: str = ".",
        source: Optional[str] = None,
        timeout: Optional[float] = None,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> StreamingResponse:
        config = await asyncio.to_thread(config_loader, Path(path))
        channel = ProgressChannel()
        cancel = asyncio.Event()
        task = asyncio.create_task(orchestrator.sync(config, channel, cancel, source, timeout=timeout))
        running.add(task)
        task.add_done_callback(running.discard)
        logger.info("Sync requested for %s", config.root)

        async def _events() -> AsyncIterator[str]:
            try:
                async for event in channel.stream():
                    yield format_sse(event)
            finally:
                if not task.done():
                    logger.info("Client disconnected; cancelling sync for %s", config.root)
                    cancel.set()

        return StreamingResponse(_events(), media_type="text/event-stream")

    @app.get("/sources/{source_id}/stats", response_model=StatsResponse)
    async def source_stats(
        source_id: str,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> StatsResponse:
        snapshot = orchestrator.latest_stats(source_id)
        if snapshot is None:
            return JSONResponse(status_code=404, content={"detail": f"No stats recorded for source '{source_id}'"})
        return StatsResponse(source_id=source_id, stats=snapshot)

    @app.get(
        "/sources/{source_id}/descriptors/{descriptor_id}/documentation",
        response_model=DocumentationResponse,
    )
    async def documentation(
        source_id: str,
        descriptor_id: str,
        path: str = ".",
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> DocumentationResponse:
        def _run() -> List[TabModel]:
            config = config_loader(Path(path))
            tabs = orchestrator.documentation(config, source_id, descriptor_id)
            return [TabModel(name=tab.name, content=tab.content) for tab in tabs]

        tabs = await asyncio.to_thread(_run)
        return DocumentationResponse(source_id=source_id, descriptor_id=descriptor_id, tabs=tabs)

    @app.exception_handler(KeyError)
    async def not_found_handler(_: Request, exc: KeyError) -> JSONResponse:
        detail = exc.args[0] if exc.args else "Not found"
        return JSONResponse(status_code=404, content={"detail": str(detail)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Request, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(SpecbindError)
    async def specbind_error_handler(_: Request, exc: SpecbindError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    return app


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    uvicorn.run(create_app(), host=host, port=port)


__all__ = ["create_app", "format_sse", "run_service"]
