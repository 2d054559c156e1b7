"""FastAPI application entrypoint for docpatch service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError, DocPatchConfig, load_config
from ..pipeline import Pipeline, RunReport

PipelineFactory = Callable[[DocPatchConfig], Pipeline]


class GenerateRequest(BaseModel):
    path: str
    dry_run: bool = True
    branch: Optional[str] = None
    limit: Optional[int] = None
    include: List[str] = []
    exclude: List[str] = []


class FailureModel(BaseModel):
    path: str
    identifier: str
    reason: Optional[str] = None
    error: Optional[str] = None


class GenerateResponse(BaseModel):
    mode: str
    documented: int
    diffs: Dict[str, str] = {}
    written: List[str] = []
    branch: Optional[str] = None
    committed: bool = False
    cancelled: bool = False
    failures: List[FailureModel] = []


class HealthResponse(BaseModel):
    status: str


def _default_pipeline(config: DocPatchConfig) -> Pipeline:
    return Pipeline(config)


def _request_config(payload: GenerateRequest) -> DocPatchConfig:
    root = Path(payload.path).expanduser()
    config = load_config(root)
    config.root = root.resolve()
    if payload.branch is not None:
        config.publish.branch = payload.branch or None
    if payload.limit is not None:
        config.generation.item_limit = payload.limit
    if payload.include:
        config.finder.include = list(payload.include)
    if payload.exclude:
        config.finder.exclude = config.finder.exclude + list(payload.exclude)
    return config


def _response(report: RunReport) -> GenerateResponse:
    return GenerateResponse(
        mode=report.mode.value,
        documented=report.documented,
        diffs=report.diffs,
        written=report.written,
        branch=report.branch,
        committed=report.committed,
        cancelled=report.cancelled,
        failures=[
            FailureModel(
                path=failure.path,
                identifier=failure.identifier,
                reason=failure.reason,
                error=failure.error,
            )
            for failure in report.failures
        ],
    )


def create_app(
    pipeline_factory: PipelineFactory = _default_pipeline,
) -> FastAPI:
    """Create the FastAPI application exposing docpatch runs."""
    app = FastAPI(title="docpatch", version="1.0.0")

    async def get_pipeline_factory() -> PipelineFactory:
        return pipeline_factory

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        payload: GenerateRequest,
        factory: PipelineFactory = Depends(get_pipeline_factory),
    ) -> GenerateResponse:
        def _run() -> RunReport:
            # Pipelines are built per request so runs never share state.
            pipeline = factory(_request_config(payload))
            return pipeline.run(dry_run=payload.dry_run)

        loop = asyncio.get_running_loop()
        report = await loop.run_in_executor(None, _run)
        return _response(report)

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)
