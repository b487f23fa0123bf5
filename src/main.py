"""CourseTrack API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.catalog.service import CatalogService
from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.locks import ProgressLockManager
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.health import router as health_router
from src.progress.dependencies import progress_error_status
from src.progress.errors import ProgressError
from src.progress.router import courses_router as enrollment_router
from src.progress.router import enrollments_router
from src.progress.router import router as progress_router
from src.progress.service import EnrollmentService, ProgressService
from src.progress.store import CassandraProgressStore
from src.quizzes.router import router as quizzes_router
from src.quizzes.service import QuizService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    store: Any,
    catalog: Any,
    locks: ProgressLockManager,
    write_retries: int = 1,
) -> None:
    """Build the services and expose them on app.state for the routers."""
    enrollment_service = EnrollmentService(store=store, catalog=catalog, locks=locks)
    progress_service = ProgressService(
        store=store, catalog=catalog, locks=locks, write_retries=write_retries
    )
    app.state.lock_manager = locks
    app.state.enrollment_service = enrollment_service
    app.state.progress_service = progress_service
    app.state.quiz_service = QuizService(
        catalog=catalog,
        enrollments=enrollment_service,
        progress=progress_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: without it locks are per-process
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - progress locks are per-process",
            )

    locks = ProgressLockManager(
        redis_client=redis_client,
        timeout_seconds=settings.progress_lock_timeout_seconds,
        wait_seconds=settings.progress_lock_wait_seconds,
    )

    try:
        session = await init_async_cassandra()
        wire_services(
            app,
            store=CassandraProgressStore(session, settings.cassandra_keyspace),
            catalog=CatalogService(session, settings.cassandra_keyspace),
            locks=locks,
            write_retries=settings.progress_write_retries,
        )
        logger.info(
            "progress_services_initialized",
            distributed_locks=locks.is_distributed,
        )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def _error_body(
    request: Request, status_code: int, message: str, code: str
) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", None) or get_request_id()
    return {
        "error": True,
        "message": message,
        "code": code,
        "status_code": status_code,
        "request_id": request_id,
    }


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug=False keeps Starlette from rendering stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Course enrollment, progress and quiz grading API",
        debug=False,
        lifespan=lifespan if use_lifespan else None,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    @app.exception_handler(ProgressError)
    async def progress_error_handler(
        request: Request, exc: ProgressError
    ) -> ORJSONResponse:
        """Translate core errors into typed HTTP responses."""
        status_code = progress_error_status(exc)
        log = (
            logger.error
            if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR
            else logger.info
        )
        log(
            "progress_error",
            code=exc.code,
            category=exc.category.value,
            detail=exc.message,
            status_code=status_code,
            path=request.url.path,
        )
        return ORJSONResponse(
            status_code=status_code,
            content=_error_body(request, status_code, exc.message, exc.code),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, message, "http_error"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle request validation errors (safe to expose)."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        content = _error_body(
            request, status_code, "Validation error", "invalid_request"
        )
        content["details"] = [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return ORJSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler: log everything, expose nothing."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return ORJSONResponse(
            status_code=status_code,
            content=_error_body(
                request,
                status_code,
                "An unexpected error occurred. Please try again later.",
                "internal_error",
            ),
        )

    app.include_router(health_router)
    app.include_router(enrollment_router)
    app.include_router(enrollments_router)
    app.include_router(progress_router)
    app.include_router(quizzes_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "CourseTrack API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
