import time

from fastapi import APIRouter, Depends

from spark_console.config import settings
from spark_console.dependencies import get_provider
from spark_console.schemas.health import HealthResponse
from spark_console.services.provider import MetricsProvider

router = APIRouter()

_start_time = time.monotonic()


@router.get("/health")
async def health_check(provider: MetricsProvider = Depends(get_provider)) -> HealthResponse:
    """Liveness and feature flags. No auth required."""
    return HealthResponse(
        uptime_seconds=round(time.monotonic() - _start_time, 1),
        modes=provider.modes,
        auth_enabled=bool(settings.spark_auth_token),
        containers_enabled=settings.spark_containers_enabled,
        models_enabled=settings.spark_models_enabled,
    )
