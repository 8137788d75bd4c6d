"""Home NAS API - Main Application Module.

This module initializes the FastAPI application with configuration,
middleware, routing, and lifecycle management for the storage service.
"""

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

# Add the project root to Python path if running directly
if __name__ == "__main__":
    project_root = Path(__file__).parent.parent
    sys.path.insert(0, str(project_root))

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import ConfigValidator, get_config_summary, settings
from app.core.dependencies import get_blob_store, get_metadata_store
from app.core.logging import configure_logging, request_id_ctx
from app.database import engine
from app.domains.namespace.repository import MetadataStore
from app.exceptions.storage import StoreUnavailableError
from app.schemas.base import ErrorResponse
from app.services.blob_store import BlobStore
from models import Base

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Manage application lifecycle events."""
    configure_logging(settings)
    ConfigValidator.validate_required_settings()
    logger.info(f"🚀 Starting {settings.app_name} ({settings.environment.value})...")
    logger.info(f"Configuration: {get_config_summary()}")

    if settings.auto_create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables created/verified")

    await get_blob_store().purge_partials()

    yield

    logger.info(f"🛑 Shutting down {settings.app_name}...")
    await engine.dispose()
    logger.info("✅ Database connections closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Personal network-attached storage: folders and files over HTTP",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    setup_routers(app)

    return app


def setup_middleware(app: FastAPI):
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


def _error_response(request: Request, status_code: int, message: str, error_code: str):
    request_id = getattr(request.state, "request_id", None)
    # Errors caught outside the middleware still need the header.
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=message,
            error_code=error_code,
            request_id=request_id,
        ).model_dump(),
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI):
    """Configure global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Handle custom exceptions that have structured detail
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            message = exc.detail["message"]
            error_code = exc.detail.get("error_code", "HTTP_ERROR")
        else:
            message = str(exc.detail) if exc.detail else "An error occurred"
            error_code = "HTTP_ERROR"

        return _error_response(request, exc.status_code, message, error_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = [
            ".".join(str(part) for part in error.get("loc", []) if part != "body")
            for error in exc.errors()
        ]
        message = "Invalid request"
        if any(fields):
            message = f"Invalid request: {', '.join(field for field in fields if field)}"
        return _error_response(request, 400, message, "INVALID_ARGUMENT")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return _error_response(request, 500, "Internal server error", "INTERNAL_ERROR")


def setup_routers(app: FastAPI):
    """Configure application routers."""
    from app.domains.namespace.controller import router as namespace_router

    @app.get("/health")
    async def health_check(
        metadata: MetadataStore = Depends(get_metadata_store),
        blobs: BlobStore = Depends(get_blob_store),
    ):
        """Check the metadata store and the blob directory."""
        db_status = "healthy"
        try:
            await metadata.ping()
        except StoreUnavailableError:
            db_status = "unhealthy"

        storage_status = "healthy" if await blobs.check_writable() else "unhealthy"
        healthy = db_status == "healthy" and storage_status == "healthy"

        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "degraded",
                "version": settings.version,
                "environment": settings.environment.value,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "services": {
                    "database": db_status,
                    "storage": storage_status,
                },
            },
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "description": "Personal network-attached storage",
            "docs_url": "/docs" if settings.environment == "development" else None,
        }

    app.include_router(namespace_router)


# Create the application instance
app = create_app()


def main():
    """Entry point for running the application directly."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    main()
