"""Synthetic readers for hosts without the target hardware.

Values drift around realistic baselines and always stay inside their bounds,
so the API shape is identical to the live path. Pass a seed for reproducible
sequences.
"""

import random

from spark_console.schemas.system import (
    CpuMetrics,
    DiskMetrics,
    DiskMount,
    GpuMetrics,
    GpuProcess,
    MemoryMetrics,
    UptimeMetrics,
)
from spark_console.services.readers.base import MetricReader

GIB = 1024**3
MIB = 1024**2


def _jitter(rng: random.Random, base: float, spread: float, low: float, high: float) -> float:
    return round(min(max(base + rng.uniform(-spread, spread), low), high), 1)


class _MockReader(MetricReader):
    def __init__(self, seed: int | None = None):
        self._rng = random.Random(seed)


class MockGpuReader(_MockReader):
    family = "gpu"

    MEMORY_TOTAL_BYTES = 96 * GIB

    async def collect(self) -> list[GpuMetrics]:
        rng = self._rng
        processes = [
            GpuProcess(pid=1234, name="python3", memory_used_bytes=8192 * MIB),
            GpuProcess(pid=5678, name="comfyui", memory_used_bytes=4096 * MIB),
            GpuProcess(pid=9012, name="ollama", memory_used_bytes=int(_jitter(rng, 3072, 512, 0, 8192)) * MIB),
        ]
        used = sum(p.memory_used_bytes or 0 for p in processes)
        return [
            GpuMetrics(
                index=0,
                uuid="GPU-00000000-0000-0000-0000-000000000000",
                name="NVIDIA GH200 (mock)",
                utilization_pct=_jitter(rng, 42.0, 30.0, 0.0, 100.0),
                memory_used_bytes=min(used, self.MEMORY_TOTAL_BYTES),
                memory_total_bytes=self.MEMORY_TOTAL_BYTES,
                temperature_c=_jitter(rng, 55.0, 8.0, 30.0, 90.0),
                power_draw_w=_jitter(rng, 185.0, 60.0, 60.0, 450.0),
                processes=processes,
            )
        ]


class MockCpuReader(_MockReader):
    family = "cpu"

    CORES = 8

    async def collect(self) -> CpuMetrics:
        rng = self._rng
        per_core = [_jitter(rng, 35.0, 30.0, 0.0, 100.0) for _ in range(self.CORES)]
        return CpuMetrics(
            utilization_pct=round(sum(per_core) / len(per_core), 1),
            per_core_pct=per_core,
            load_1m=_jitter(rng, 2.45, 1.0, 0.0, 64.0),
            load_5m=_jitter(rng, 1.89, 0.5, 0.0, 64.0),
            load_15m=_jitter(rng, 1.32, 0.2, 0.0, 64.0),
            core_count=self.CORES,
        )


class MockMemoryReader(_MockReader):
    family = "memory"

    TOTAL = 128 * GIB
    SWAP_TOTAL = 8 * GIB

    async def collect(self) -> MemoryMetrics:
        used = int(_jitter(self._rng, 48.0, 8.0, 1.0, 127.0) * GIB)
        return MemoryMetrics(
            total_bytes=self.TOTAL,
            used_bytes=used,
            available_bytes=self.TOTAL - used,
            swap_total_bytes=self.SWAP_TOTAL,
            swap_used_bytes=512 * MIB,
        )


class MockDiskReader(_MockReader):
    family = "disk"

    async def collect(self) -> DiskMetrics:
        root_total = 2048 * GIB
        root_used = int(_jitter(self._rng, 750.0, 5.0, 0.0, 2048.0) * GIB)
        models_total = 4096 * GIB
        models_used = 1800 * GIB
        return DiskMetrics(
            mounts=[
                DiskMount(
                    path="/",
                    device="/dev/nvme0n1p2",
                    fstype="ext4",
                    total_bytes=root_total,
                    used_bytes=root_used,
                    available_bytes=root_total - root_used,
                ),
                DiskMount(
                    path="/opt/models",
                    device="/dev/nvme1n1",
                    fstype="xfs",
                    total_bytes=models_total,
                    used_bytes=models_used,
                    available_bytes=models_total - models_used,
                ),
            ]
        )


class MockUptimeReader(_MockReader):
    family = "uptime"

    BASE_SECONDS = 3 * 86400 + 7 * 3600 + 42 * 60 + 15

    def __init__(self, seed: int | None = None):
        super().__init__(seed)
        self._calls = 0

    async def collect(self) -> UptimeMetrics:
        self._calls += 1
        return UptimeMetrics(seconds=float(self.BASE_SECONDS + self._calls))
