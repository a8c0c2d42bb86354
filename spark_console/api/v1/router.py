from fastapi import APIRouter

from spark_console.api.v1.auth import router as auth_router
from spark_console.api.v1.containers import router as containers_router
from spark_console.api.v1.health import router as health_router
from spark_console.api.v1.models import router as models_router
from spark_console.api.v1.system import router as system_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(health_router, tags=["Health"])
v1_router.include_router(system_router, tags=["System"])
v1_router.include_router(containers_router, tags=["Containers"])
v1_router.include_router(models_router, tags=["Models"])
v1_router.include_router(auth_router, tags=["Auth"])
