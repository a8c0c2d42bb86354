from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

CollectionModeName = Literal["live", "mock"]


class GpuProcess(BaseModel):
    pid: int
    name: str
    memory_used_bytes: int | None = None


class GpuMetrics(BaseModel):
    index: int
    uuid: str | None = None
    name: str
    utilization_pct: float | None = Field(default=None, ge=0, le=100)
    memory_used_bytes: int | None = None
    memory_total_bytes: int | None = None
    temperature_c: float | None = None
    power_draw_w: float | None = None
    unified_memory: bool = False
    processes: list[GpuProcess] = []


class CpuMetrics(BaseModel):
    utilization_pct: float = Field(ge=0, le=100)
    per_core_pct: list[float] = []
    load_1m: float
    load_5m: float
    load_15m: float
    core_count: int


class MemoryMetrics(BaseModel):
    total_bytes: int
    used_bytes: int
    available_bytes: int
    swap_total_bytes: int
    swap_used_bytes: int


class DiskMount(BaseModel):
    path: str
    device: str
    fstype: str
    total_bytes: int
    used_bytes: int
    available_bytes: int


class DiskMetrics(BaseModel):
    mounts: list[DiskMount] = []


class UptimeMetrics(BaseModel):
    seconds: float


class FamilyError(BaseModel):
    kind: Literal["source_unavailable", "parse_failure"]
    message: str


class SystemSnapshot(BaseModel):
    """Point-in-time aggregate. A family set to None failed or was not collected."""

    collected_at: datetime
    mode: dict[str, CollectionModeName] = {}
    gpu: list[GpuMetrics] | None = None
    cpu: CpuMetrics | None = None
    memory: MemoryMetrics | None = None
    disk: DiskMetrics | None = None
    uptime: UptimeMetrics | None = None
    errors: dict[str, FamilyError] = {}
