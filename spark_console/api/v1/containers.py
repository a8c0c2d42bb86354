from fastapi import APIRouter, Depends

from spark_console.core.exceptions import RuntimeUnavailableError, SourceUnavailable
from spark_console.dependencies import get_container_control, get_container_reader
from spark_console.schemas.containers import ContainerActionRequest, ContainerRecord
from spark_console.services.containers import ContainerControl, ContainerReader

router = APIRouter()


@router.get("/containers")
async def list_containers(reader: ContainerReader = Depends(get_container_reader)) -> list[ContainerRecord]:
    """All containers. 503 when the runtime is unreachable, which is not the same as an empty list."""
    try:
        return await reader.collect()
    except SourceUnavailable as e:
        raise RuntimeUnavailableError(e.reason) from e


@router.post("/containers/action")
async def container_action(
    body: ContainerActionRequest,
    control: ContainerControl = Depends(get_container_control),
) -> ContainerRecord:
    """Start, stop or restart a container and return its state after the runtime acknowledged."""
    return await control.apply_action(body.container_id, body.action)
