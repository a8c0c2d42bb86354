from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ContainerStatus(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    PAUSED = "paused"
    UNKNOWN = "unknown"


class ContainerAction(str, Enum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"


class ContainerRecord(BaseModel):
    id: str
    name: str
    image: str
    status: ContainerStatus = ContainerStatus.UNKNOWN
    created: datetime | None = None
    state_text: str = ""  # raw runtime state, e.g. "exited", "restarting"
    ports: list[str] = []
    restart_policy: str = ""
    runtime: str = ""
    mounts: list[str] = []
    # Resource usage, running containers only; None when not sampled
    cpu_pct: float | None = None
    memory_usage_bytes: int | None = None
    memory_limit_bytes: int | None = None
    net_rx_bytes: int | None = None
    net_tx_bytes: int | None = None


class ContainerActionRequest(BaseModel):
    container_id: str
    action: ContainerAction
