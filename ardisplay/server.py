"""HTTP API for the resize service.

Routes:
    POST /resize                 resize (or reuse) a model variant
    GET  /check-model/{filename} check whether a source model exists
    GET  /models/...             static model files (optional)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .core.config import ArDisplayConfig
from .core.errors import ModelIOError, ResizeError
from .resize.service import ResizeService, ResizeState

logger = logging.getLogger(__name__)


class ResizeBody(BaseModel):
    """Request body of POST /resize."""

    model_id: Any = Field(
        default=None,
        validation_alias=AliasChoices("modelId", "modelName"),
    )
    size: Any = Field(
        default=None,
        validation_alias=AliasChoices("sizeSpec", "desiredSize"),
    )


class ResizeResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    location_path: str
    cache_hit: bool
    scale: list[float]


class CheckModelResponse(BaseModel):
    exists: bool
    url: str | None = None


def create_app(config: ArDisplayConfig | None = None) -> FastAPI:
    """Build the FastAPI application around a ResizeService.

    Args:
        config: Service and server configuration (defaults if omitted)

    Returns:
        Configured FastAPI app
    """
    config = config or ArDisplayConfig.default()
    service = ResizeService(config.service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config.service.models_dir.mkdir(parents=True, exist_ok=True)
        config.service.resized_dir.mkdir(parents=True, exist_ok=True)
        yield

    app = FastAPI(title="ardisplay", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ResizeError)
    async def resize_error_handler(request: Request, exc: ResizeError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = "; ".join(err.get("msg", "invalid") for err in exc.errors())
        return JSONResponse(
            status_code=400,
            content={"errorKind": "ValidationError", "message": messages or "Invalid request"},
        )

    @app.post("/resize", response_model=ResizeResponse)
    def resize(body: ResizeBody) -> ResizeResponse:
        try:
            result = service.resize(body.model_id, body.size)
        except ModelIOError as e:
            # Retry only failed variant writes
            if e.state != ResizeState.PERSISTING.value:
                raise
            logger.warning(f"I/O error persisting {body.model_id!r}, retrying once: {e}")
            result = service.resize(body.model_id, body.size)

        return ResizeResponse(
            location_path=result.location_path,
            cache_hit=result.cache_hit,
            scale=result.scale.as_list(),
        )

    @app.get("/check-model/{filename}", response_model=CheckModelResponse)
    def check_model(filename: str) -> CheckModelResponse:
        model_id = service.validate_model_id(filename)
        if service.source_path(model_id).is_file():
            return CheckModelResponse(exists=True, url=f"{config.service.url_prefix}/{model_id}")
        return CheckModelResponse(exists=False)

    if config.server.serve_static and config.service.url_prefix:
        app.mount(
            config.service.url_prefix,
            StaticFiles(directory=config.service.models_dir, check_dir=False),
            name="models",
        )

    return app
