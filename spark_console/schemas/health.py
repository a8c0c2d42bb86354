from pydantic import BaseModel

from spark_console.schemas.system import CollectionModeName


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    uptime_seconds: float = 0.0
    modes: dict[str, CollectionModeName] = {}
    auth_enabled: bool = False
    containers_enabled: bool = True
    models_enabled: bool = True
