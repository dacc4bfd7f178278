import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import AppSettings, get_settings
from core.container import Services, build_services
from core.errors import DataPipelineError
from router import conversation, file_upload, insights
from schemas.upload import ErrorResponse

logger = logging.getLogger(__name__)


def create_app(settings: Optional[AppSettings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.worker.start()
        yield
        await services.worker.stop()

    app = FastAPI(
        title=settings.api.title,
        version=settings.api.version,
        description=settings.api.description,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(file_upload.router)
    app.include_router(insights.router)
    app.include_router(conversation.router)

    @app.exception_handler(DataPipelineError)
    async def pipeline_error_handler(request: Request, exc: DataPipelineError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message, status_code=exc.status_code).model_dump(),
        )

    @app.get("/")
    def root():
        return {
            "status": "running",
            "ai_enabled": services.capability is not None,
        }

    @app.get("/debug/files")
    async def debug_files():
        return await services.storage.list_keys()

    return app


app = create_app()
