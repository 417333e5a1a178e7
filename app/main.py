from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.v1 import get_api_router
from app.core.config import get_settings
from app.core.db import create_engine, create_schema, create_session_factory
from app.core.errors import MediaError, media_error_handler
from app.core.logging import configure_logging, get_logger, request_context_middleware
from app.core.storage import get_object_storage
from app.ingest.process import AsyncProcessRunner

logger = get_logger(component="app")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=settings.log_level)
    object_storage = get_object_storage(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    assets_root = Path(settings.assets_root)
    assets_root.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.object_storage = object_storage
        app.state.process_runner = AsyncProcessRunner()
        app.state.engine = engine
        app.state.session_factory = session_factory
        if settings.environment_lower in {"development", "dev", "test"}:
            await create_schema(engine)
        logger.info("app_started", environment=settings.environment, storage_backend=settings.storage_backend)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(MediaError, media_error_handler)
    app.include_router(get_api_router())
    app.mount("/assets", StaticFiles(directory=assets_root), name="assets")
    return app


__all__ = ["create_app"]
