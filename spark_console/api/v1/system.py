from fastapi import APIRouter, Depends

from spark_console.dependencies import get_provider
from spark_console.schemas.system import SystemSnapshot
from spark_console.services.provider import MetricsProvider

router = APIRouter()


@router.get("/system")
async def system_snapshot(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    """All metric families. Families that could not be collected are null and listed in `errors`."""
    return await provider.get_snapshot()


@router.get("/system/gpu")
async def system_gpu(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    """GPU devices only. `gpu` is an empty list when no device is present, null when unavailable."""
    return await provider.get_gpu()


@router.get("/system/memory")
async def system_memory(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    return await provider.get_memory()


@router.get("/system/cpu")
async def system_cpu(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    return await provider.get_cpu()


@router.get("/system/disk")
async def system_disk(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    return await provider.get_disk()


@router.get("/system/uptime")
async def system_uptime(provider: MetricsProvider = Depends(get_provider)) -> SystemSnapshot:
    return await provider.get_uptime()
