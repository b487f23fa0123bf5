"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from src.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - ready once the progress services are wired."""
    settings = get_settings()
    state = request.app.state
    database_ready = getattr(state, "progress_service", None) is not None
    lock_manager = getattr(state, "lock_manager", None)

    return ORJSONResponse(
        status_code=(
            status.HTTP_200_OK
            if database_ready
            else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content={
            "status": "ready" if database_ready else "not_ready",
            "environment": settings.environment,
            "database": database_ready,
            "distributed_locks": bool(lock_manager and lock_manager.is_distributed),
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
