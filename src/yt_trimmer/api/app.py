from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import Settings, get_settings
from ..logging_config import get_logger
from ..services.pipeline import ClipPipeline
from ..utils.file_utils import cleanup_stale_files
from .routers import system as system_router
from .routers import trim as trim_router


logger = get_logger(__name__)


def _cleanup_loop(pipeline: ClipPipeline, settings: Settings, stop: threading.Event) -> None:
    while not stop.wait(settings.cleanup_interval_seconds):
        try:
            evicted = pipeline.registry.purge_expired()
            removed = cleanup_stale_files(settings.output_dir, settings.stale_file_max_age_seconds)
        except OSError as e:
            logger.error("Cleanup pass failed", error=str(e))
            continue
        if evicted or removed:
            logger.info("Cleanup pass finished", tasks_evicted=evicted, files_removed=len(removed))


async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"{field}: {message}" if field else message},
    )


def create_app(settings: Optional[Settings] = None, pipeline: Optional[ClipPipeline] = None) -> FastAPI:
    settings = settings if settings is not None else get_settings()
    if pipeline is None:
        pipeline = ClipPipeline(settings)
    stop = threading.Event()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        threading.Thread(
            target=_cleanup_loop,
            args=(pipeline, settings, stop),
            name="temp-cleanup",
            daemon=True,
        ).start()
        yield
        stop.set()
        pipeline.shutdown(wait=False)

    app = FastAPI(title="YT-Trimmer", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)

    app.state.settings = settings
    app.state.pipeline = pipeline

    app.include_router(trim_router.router)
    app.include_router(system_router.router)
    return app
