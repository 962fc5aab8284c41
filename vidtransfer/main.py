"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidtransfer.api import direct, upload, videos
from vidtransfer.core.config import Settings, config_manager
from vidtransfer.core.exceptions import ErrorCategory, TransferException
from vidtransfer.services.local_store import LocalObjectStore, PartStaging
from vidtransfer.services.object_store import MinioObjectStore
from vidtransfer.services.session_store import ChunkSessionStore
from vidtransfer.services.transfer_service import TransferService
from vidtransfer.utils.logger import configure_logging, get_logger

logger: logging.Logger = get_logger(__name__)


def build_transfer_service(settings: Settings) -> TransferService:
    """Wire the object store, local storage and session table from settings."""
    storage_config = settings.get_storage_config()
    session_config = settings.get_session_config()

    return TransferService(
        object_store=MinioObjectStore(settings.get_minio_config()),
        local_store=LocalObjectStore(storage_config.permanent_dir),
        staging=PartStaging(storage_config.staging_dir),
        session_store=ChunkSessionStore(
            max_sessions=session_config.max_sessions,
            ttl_seconds=session_config.ttl_seconds,
            sweep_interval=session_config.sweep_interval
        ),
        transfer_config=settings.get_transfer_config()
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifecycle management

    Builds the transfer service unless one was injected, prepares the bucket
    and runs the session sweeper for the lifetime of the app.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name}...")

    if getattr(app.state, "transfer_service", None) is None:
        app.state.transfer_service = build_transfer_service(settings)

    service: TransferService = app.state.transfer_service

    try:
        await service.object_store.ensure_bucket()
        logger.info("Object store bucket ready")
    except TransferException as e:
        logger.error(f"Failed to prepare object store bucket: {e.message}")
        logger.warning("Application will start without MinIO - direct transfers will fail until it is reachable")

    await service.sessions.start()

    yield  # Application runtime

    logger.info(f"Shutting down {settings.app_name}...")
    await service.sessions.stop()


def create_application(
    settings: Optional[Settings] = None,
    transfer_service: Optional[TransferService] = None
) -> FastAPI:
    """Create and configure FastAPI application instance

    Args:
        settings: Settings to use; defaults to the global configuration.
        transfer_service: Pre-built service, mainly for tests.

    Returns:
        A fully initialized FastAPI app.
    """
    settings = settings or config_manager.settings
    configure_logging(settings.get_logging_config())

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Chunked video transfer API with proxied and direct (signed URL) strategies",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    application.state.settings = settings
    application.state.transfer_service = transfer_service

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(application)

    _register_routes(application, settings.api_prefix)

    logger.info(
        f"Application '{settings.app_name}' v{settings.app_version} "
        "created successfully"
    )

    return application


def _error_body(request: Request, code: str, message: str, **extra: Any) -> Dict[str, Any]:
    error = {
        "code": code,
        "message": message,
        **extra,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": str(request.url.path)
    }
    return {"error": error}


def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers for consistent error responses"""

    @app.exception_handler(TransferException)
    async def transfer_exception_handler(request: Request, exc: TransferException) -> JSONResponse:
        """Handle application exceptions"""
        status_code = _map_error_category_to_status_code(exc.category)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Transfer exception occurred: {exc.message}",
            extra={
                "error_code": exc.error_code,
                "category": exc.category.value,
                "severity": exc.severity.value,
                "details": exc.details,
                "request_path": request.url.path,
                "request_method": request.method
            }
        )

        return JSONResponse(
            status_code=status_code,
            content=_error_body(
                request,
                exc.error_code,
                exc.message,
                category=exc.category.value,
                severity=exc.severity.value,
                details=exc.details
            )
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle request validation errors"""
        logger.warning(f"Validation error: {exc}")
        return JSONResponse(
            status_code=422,
            content=_error_body(
                request,
                "VALIDATION_ERROR",
                "Request validation failed",
                details={"errors": jsonable_errors(exc)}
            )
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle Starlette and FastAPI HTTP exceptions"""
        logger.warning(f"HTTP exception: {exc.status_code} - {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, f"HTTP_{exc.status_code}", str(exc.detail))
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for uncaught exceptions"""
        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {exc}",
            exc_info=True,
            extra={
                "request_path": request.url.path,
                "request_method": request.method,
                "exception_type": type(exc).__name__
            }
        )

        if isinstance(exc, ConnectionError):
            status_code = 503
            message = "Service temporarily unavailable"
        elif isinstance(exc, TimeoutError):
            status_code = 504
            message = "Request timeout"
        else:
            status_code = 500
            message = "Internal server error"

        return JSONResponse(
            status_code=status_code,
            content=_error_body(request, "INTERNAL_SERVER_ERROR", message, type=type(exc).__name__)
        )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors reduced to JSON-safe fields."""
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
        for error in exc.errors()
    ]


def _register_routes(app: FastAPI, prefix: str) -> None:
    """Register API routes with the FastAPI application"""
    app.include_router(upload.router, prefix=prefix, tags=["proxied"])
    app.include_router(direct.router, prefix=prefix, tags=["direct"])
    app.include_router(videos.router, prefix=prefix, tags=["videos"])


def _map_error_category_to_status_code(category: ErrorCategory) -> int:
    """Map error categories to HTTP status codes

    Args:
        category: ErrorCategory enum value

    Returns:
        Corresponding HTTP status code
    """
    status_code_mapping: Dict[ErrorCategory, int] = {
        ErrorCategory.VALIDATION: 400,     # Bad Request
        ErrorCategory.NOT_FOUND: 404,      # Not Found
        ErrorCategory.CONFLICT: 409,       # Conflict
        ErrorCategory.RANGE: 416,          # Range Not Satisfiable
        ErrorCategory.CAPACITY: 429,       # Too Many Requests
        ErrorCategory.TRANSFER: 502,       # Bad Gateway
        ErrorCategory.NETWORK: 503,        # Service Unavailable
        ErrorCategory.STORAGE: 500,        # Internal Server Error
        ErrorCategory.SYSTEM: 500          # Internal Server Error
    }
    return status_code_mapping.get(category, 500)


if __name__ == "__main__":
    import uvicorn

    settings = config_manager.settings
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"Debug mode: {settings.debug}")

    uvicorn.run(
        "vidtransfer.main:create_application",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
        access_log=True
    )
