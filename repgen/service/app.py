"""FastAPI application entrypoint for repgen service mode."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import CONFIG_FILE_NAME, load_config
from ..errors import GenerationError, NotFoundError
from ..orchestrator import GenerationResult, Orchestrator, normalize_class_names

T = TypeVar("T")

_locks_guard = threading.Lock()
_storage_locks: Dict[Path, threading.Lock] = {}


class GenerateRequest(BaseModel):
    classes: List[str] = []
    all: bool = False
    proto_package_name: Optional[str] = None
    go_package_import_path_prefix: Optional[str] = None


class GenerateResponse(BaseModel):
    success: bool
    message: str
    requested: int
    generated: int
    written: List[str]
    failed: List[str]


class GeneratedResponse(BaseModel):
    classes: List[str]
    protos: List[str]


class RemoveRequest(BaseModel):
    names: List[str]


class RemoveResponse(BaseModel):
    removed: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator(load_config(Path.cwd() / CONFIG_FILE_NAME))


def storage_lock(storage_dir: Path) -> threading.Lock:
    """Return the lock serializing runs that share ``storage_dir``."""
    key = Path(storage_dir).resolve()
    with _locks_guard:
        lock = _storage_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _storage_locks[key] = lock
        return lock


async def _in_executor(func: Callable[[], T]) -> T:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:  # pragma: no cover - fallback path when not in async context
        return func()
    return await loop.run_in_executor(None, func)


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing repgen operations."""

    app = FastAPI(title="Repgen Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        payload: GenerateRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> GenerateResponse:
        def _run_generate() -> GenerationResult:
            if payload.all:
                targets = orchestrator.replicable_classes()
            else:
                targets = [orchestrator.catalog.get(name) for name in payload.classes]
            with storage_lock(orchestrator.replicator_storage_dir):
                return orchestrator.run(
                    targets,
                    proto_package_name=payload.proto_package_name,
                    go_package_import_path_prefix=payload.go_package_import_path_prefix,
                )

        result = await _in_executor(_run_generate)
        return GenerateResponse(
            success=result.success,
            message=result.message,
            requested=result.requested,
            generated=result.generated,
            written=[str(path) for path in result.written],
            failed=[str(path) for path in result.failed],
        )

    @app.get("/generated", response_model=GeneratedResponse)
    async def generated(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> GeneratedResponse:
        return GeneratedResponse(
            classes=orchestrator.get_generated_target_classes(),
            protos=orchestrator.get_generated_proto_files(),
        )

    @app.post("/remove", response_model=RemoveResponse)
    async def remove(
        payload: RemoveRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RemoveResponse:
        def _run_remove() -> List[Path]:
            with storage_lock(orchestrator.replicator_storage_dir):
                return orchestrator.remove_generated_replicators(normalize_class_names(payload.names))

        removed = await _in_executor(_run_remove)
        return RemoveResponse(removed=[str(path) for path in removed])

    @app.exception_handler(NotFoundError)
    async def not_found_handler(
        _: Any, exc: NotFoundError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(GenerationError)
    async def generation_error_handler(
        _: Any, exc: GenerationError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(
        _: Any, exc: RuntimeError
    ) -> JSONResponse:  # pragma: no cover - simple mapping
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "0.0.0.0",
    port: int = 8000,
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> None:  # pragma: no cover - integration path
    app = create_app(orchestrator_factory)
    uvicorn.run(app, host=host, port=port)
