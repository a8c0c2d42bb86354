"""Provider facade: fans out to the per-family readers and merges their results.

A reader's failure only blanks its own family in the snapshot; the facade never
raises. Each reader call carries its own deadline so one hung source cannot stall
the whole snapshot.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog

from spark_console.config import METRIC_FAMILIES, Settings
from spark_console.core.exceptions import CollectionError, ParseFailure, SourceUnavailable
from spark_console.schemas.system import FamilyError, SystemSnapshot
from spark_console.services.readers import (
    CpuReader,
    DiskReader,
    MemoryReader,
    MetricReader,
    MockCpuReader,
    MockDiskReader,
    MockGpuReader,
    MockMemoryReader,
    MockUptimeReader,
    NvidiaSmiReader,
    UptimeReader,
)
from spark_console.services.readers.disk import DEFAULT_FS_DENYLIST

logger = structlog.get_logger()

# Share of the per-family deadline given to the GPU reader; the optional process list gets what the device query leaves
GPU_READER_BUDGET = 0.8


class MetricsProvider:
    def __init__(
        self,
        readers: dict[str, MetricReader],
        modes: dict[str, str] | None = None,
        timeout: float = 5.0,
    ):
        self._readers = dict(readers)
        self._modes = dict(modes or {})
        self._timeout = timeout

    @property
    def modes(self) -> dict[str, str]:
        return dict(self._modes)

    async def _collect(self, family: str) -> tuple[Any, FamilyError | None]:
        reader = self._readers.get(family)
        if reader is None:
            return None, FamilyError(kind="source_unavailable", message=f"no reader configured for {family}")
        try:
            try:
                fragment = await asyncio.wait_for(reader.collect(), timeout=self._timeout)
            except asyncio.TimeoutError as e:
                raise SourceUnavailable(family, f"timed out after {self._timeout}s") from e
        except ParseFailure as e:
            logger.warning("metrics_parse_failure", family=family, reason=e.reason)
            return None, FamilyError(kind=e.kind, message=e.reason)
        except SourceUnavailable as e:
            logger.info("metrics_source_unavailable", family=family, reason=e.reason)
            return None, FamilyError(kind=e.kind, message=e.reason)
        except CollectionError as e:
            logger.warning("metrics_collection_failed", family=family, reason=e.reason)
            return None, FamilyError(kind="source_unavailable", message=e.reason)
        except Exception as e:
            # A reader bug must not take the whole snapshot down
            logger.error("metrics_reader_crashed", family=family, error=str(e), exc_info=True)
            return None, FamilyError(kind="source_unavailable", message=f"reader error: {e}")
        return fragment, None

    async def _snapshot_of(self, families: tuple[str, ...]) -> SystemSnapshot:
        results = await asyncio.gather(*(self._collect(f) for f in families))

        fields: dict[str, Any] = {}
        errors: dict[str, FamilyError] = {}
        for family, (fragment, error) in zip(families, results):
            fields[family] = fragment
            if error is not None:
                errors[family] = error

        return SystemSnapshot(
            collected_at=datetime.now(timezone.utc),
            mode={f: self._modes[f] for f in families if f in self._modes},
            errors=errors,
            **fields,
        )

    async def get_snapshot(self) -> SystemSnapshot:
        """Collect every family concurrently."""
        return await self._snapshot_of(METRIC_FAMILIES)

    async def get_family(self, family: str) -> SystemSnapshot:
        """Collect one family only; the other fields stay empty."""
        if family not in METRIC_FAMILIES:
            raise ValueError(f"Unknown metric family: {family}")
        return await self._snapshot_of((family,))

    async def get_gpu(self) -> SystemSnapshot:
        return await self.get_family("gpu")

    async def get_memory(self) -> SystemSnapshot:
        return await self.get_family("memory")

    async def get_cpu(self) -> SystemSnapshot:
        return await self.get_family("cpu")

    async def get_disk(self) -> SystemSnapshot:
        return await self.get_family("disk")

    async def get_uptime(self) -> SystemSnapshot:
        return await self.get_family("uptime")


def _disk_denylist(settings: Settings) -> frozenset[str]:
    if not settings.spark_disk_fs_denylist:
        return DEFAULT_FS_DENYLIST
    return frozenset(t.strip() for t in settings.spark_disk_fs_denylist.split(",") if t.strip())


def build_provider(settings: Settings) -> MetricsProvider:
    """Pick the live or mock reader for each family from the startup configuration."""
    modes = settings.collection_modes()
    seed = settings.spark_mock_seed
    proc_root = settings.spark_proc_root

    live = {
        "gpu": lambda: NvidiaSmiReader(
            executable=settings.spark_nvidia_smi,
            proc_root=proc_root,
            timeout=settings.spark_source_timeout * GPU_READER_BUDGET,
        ),
        "cpu": lambda: CpuReader(proc_root=proc_root, sample_interval=settings.spark_cpu_sample_interval),
        "memory": lambda: MemoryReader(proc_root=proc_root),
        "disk": lambda: DiskReader(proc_root=proc_root, denylist=_disk_denylist(settings)),
        "uptime": lambda: UptimeReader(proc_root=proc_root),
    }
    mock = {
        "gpu": lambda: MockGpuReader(seed),
        "cpu": lambda: MockCpuReader(seed),
        "memory": lambda: MockMemoryReader(seed),
        "disk": lambda: MockDiskReader(seed),
        "uptime": lambda: MockUptimeReader(seed),
    }

    readers = {family: (mock if modes[family] == "mock" else live)[family]() for family in METRIC_FAMILIES}
    logger.info("metrics_provider_configured", modes=modes)
    return MetricsProvider(readers, modes=modes, timeout=settings.spark_source_timeout)
