from fastapi import APIRouter, Depends

from spark_console.dependencies import get_model_discovery
from spark_console.schemas.models import ModelRecord
from spark_console.services.model_discovery import ModelDiscovery

router = APIRouter()


@router.get("/models")
async def list_models(discovery: ModelDiscovery = Depends(get_model_discovery)) -> list[ModelRecord]:
    """Model files found under the configured roots. Rescanned on every call."""
    return await discovery.scan()
