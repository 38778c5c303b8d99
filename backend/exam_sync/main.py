from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from contextlib import asynccontextmanager
import uvicorn
import logging

from exam_sync import __version__
from exam_sync.core.config import Settings, settings as default_settings
from exam_sync.core.database import init_db
from exam_sync.core.security import build_jwt_manager
from exam_sync.api.v1 import sync
from exam_sync.services.sync import SyncService

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database
    await init_db()
    logger.info(f"{app.state.settings.APP_NAME} started")

    yield


def _error_content(detail) -> dict:
    if isinstance(detail, dict):
        return {"success": False, **detail}
    return {"success": False, "message": detail}


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        description="Offline package download and result reconciliation for exam test centers",
        version=__version__,
        lifespan=lifespan
    )

    # Built once per process and injected into handlers
    app.state.settings = settings
    app.state.jwt_manager = build_jwt_manager(settings)
    app.state.sync_service = SyncService.from_settings(settings)

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(sync.router, prefix=f"{settings.API_PREFIX}/sync", tags=["sync"])

    @app.get("/")
    async def root():
        return {"success": True, "message": settings.APP_NAME, "status": "running"}

    @app.get("/health")
    async def health_check():
        return {"success": True, "status": "healthy", "version": __version__}

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics for monitoring."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_content(exc.detail),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        problems = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": f"Validation error: {'; '.join(problems)}"}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error", "error": str(exc)}
        )

    return app


configure_logging(default_settings)
app = create_app()


def run():
    uvicorn.run(
        "exam_sync.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
