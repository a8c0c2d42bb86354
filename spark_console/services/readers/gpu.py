"""GPU metrics from the nvidia-smi query interface.

The tool is asked for a fixed field list in ``csv,noheader,nounits`` format, one
line per device. Each line is parsed on its own so one malformed device does not
hide the others.
"""

import asyncio
from pathlib import Path

import structlog

from spark_console.core.exceptions import ParseFailure, SourceUnavailable
from spark_console.schemas.system import GpuMetrics, GpuProcess
from spark_console.services.readers.base import MetricReader
from spark_console.services.readers.memory import parse_meminfo

logger = structlog.get_logger()

FAMILY = "gpu"

MIB = 1024 * 1024

GPU_QUERY_FIELDS = (
    "index",
    "uuid",
    "name",
    "utilization.gpu",
    "temperature.gpu",
    "memory.used",
    "memory.total",
    "power.draw",
)
PROCESS_QUERY_FIELDS = ("gpu_uuid", "pid", "process_name", "used_gpu_memory")

# nvidia-smi exits non-zero when the driver is loaded but no device is present
_NO_DEVICES_MARKER = "no devices were found"


def parse_nvsmi_field(raw: str, cast=float):
    """Parse one numeric nvidia-smi field.

    Strips brackets and unit suffixes. Returns None for the "[N/A]" family of
    values (including "[Not Supported]"); raises ValueError for anything else
    that is not a number.
    """
    s = raw.strip().strip("[]").strip()
    if not s or s.lower().startswith("n/a") or s.lower() == "not supported":
        return None
    numeric = s.split()[0]
    return cast(float(numeric)) if cast is int else cast(numeric)


def parse_gpu_line(line: str) -> GpuMetrics:
    """Parse one --query-gpu CSV line into GpuMetrics, or raise ParseFailure."""
    fields = [f.strip() for f in line.split(",")]
    expected = len(GPU_QUERY_FIELDS)
    if len(fields) > expected:
        # Device names may contain commas; everything between uuid and the numeric tail is the name
        tail = len(fields) - (expected - 3)
        fields = fields[:2] + [", ".join(fields[2:tail])] + fields[tail:]
    if len(fields) != expected:
        raise ParseFailure(FAMILY, f"expected {expected} fields, got {len(fields)}: {line!r}")

    index, uuid, name, util, temp, mem_used, mem_total, power = fields
    if not name:
        raise ParseFailure(FAMILY, f"missing device name: {line!r}")
    try:
        utilization = parse_nvsmi_field(util)
        memory_used_mib = parse_nvsmi_field(mem_used, int)
        memory_total_mib = parse_nvsmi_field(mem_total, int)
        metrics = GpuMetrics(
            index=int(index),
            uuid=uuid or None,
            name=name,
            utilization_pct=min(max(utilization, 0.0), 100.0) if utilization is not None else None,
            temperature_c=parse_nvsmi_field(temp),
            memory_used_bytes=memory_used_mib * MIB if memory_used_mib is not None else None,
            memory_total_bytes=memory_total_mib * MIB if memory_total_mib is not None else None,
            power_draw_w=parse_nvsmi_field(power),
            unified_memory=memory_total_mib is None,
        )
    except ValueError as e:
        raise ParseFailure(FAMILY, f"non-numeric field in {line!r}: {e}") from e
    return metrics


def parse_gpu_csv(text: str) -> list[GpuMetrics]:
    """Parse all device lines. Malformed lines are logged and skipped.

    Empty output means no devices. Raises ParseFailure only when there was output
    and none of it could be parsed.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    devices = []
    for line in lines:
        try:
            devices.append(parse_gpu_line(line))
        except ParseFailure as e:
            logger.warning("gpu_line_parse_failure", reason=e.reason)
    if lines and not devices:
        raise ParseFailure(FAMILY, f"no parsable device lines in {len(lines)} line(s) of output")
    return devices


def parse_compute_apps(text: str) -> dict[str, list[GpuProcess]]:
    """Group --query-compute-apps lines by GPU uuid. Malformed lines are skipped."""
    by_gpu: dict[str, list[GpuProcess]] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        fields = [f.strip() for f in line.split(",")]
        if len(fields) < len(PROCESS_QUERY_FIELDS):
            logger.warning("gpu_process_line_parse_failure", line=line)
            continue
        uuid, pid, name = fields[0], fields[1], ", ".join(fields[2:-1])
        try:
            memory_mib = parse_nvsmi_field(fields[-1], int)
            process = GpuProcess(
                pid=int(pid),
                name=name,
                memory_used_bytes=memory_mib * MIB if memory_mib is not None else None,
            )
        except ValueError:
            logger.warning("gpu_process_line_parse_failure", line=line)
            continue
        by_gpu.setdefault(uuid, []).append(process)
    return by_gpu


class NvidiaSmiReader(MetricReader):
    family = FAMILY

    def __init__(self, executable: str = "nvidia-smi", proc_root: str = "/proc", timeout: float = 5.0):
        self._executable = executable
        self._meminfo_path = Path(proc_root) / "meminfo"
        self._timeout = timeout

    async def _run(self, *args: str, timeout: float | None = None) -> str:
        timeout = self._timeout if timeout is None else timeout
        try:
            proc = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise SourceUnavailable(FAMILY, f"failed to run {self._executable}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise SourceUnavailable(FAMILY, f"{self._executable} did not answer within {timeout}s") from e
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            err = stderr.decode("utf-8", errors="replace").strip()
            if _NO_DEVICES_MARKER in (out + err).lower():
                return ""
            raise SourceUnavailable(FAMILY, f"{self._executable} exited with status {proc.returncode}: {err}")
        return out

    def _host_memory_total_bytes(self) -> int | None:
        try:
            return parse_meminfo(self._meminfo_path.read_text()).get("MemTotal")
        except (OSError, ParseFailure):
            return None

    async def _collect_processes(self) -> dict[str, list[GpuProcess]]:
        try:
            output = await self._run(
                f"--query-compute-apps={','.join(PROCESS_QUERY_FIELDS)}",
                "--format=csv,noheader,nounits",
            )
        except SourceUnavailable as e:
            logger.debug("gpu_process_query_failed", reason=e.reason)
            return {}
        return parse_compute_apps(output)

    async def _await_processes(self, task: asyncio.Task, budget: float) -> dict[str, list[GpuProcess]]:
        try:
            return await asyncio.wait_for(task, timeout=max(budget, 0))
        except asyncio.TimeoutError:
            logger.debug("gpu_process_query_dropped", reason="out of time")
            return {}

    async def collect(self) -> list[GpuMetrics]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        # The process list is optional: it runs alongside the device query and
        # only gets whatever is left of the budget once the devices are in.
        processes_task = asyncio.create_task(self._collect_processes())
        try:
            output = await self._run(
                f"--query-gpu={','.join(GPU_QUERY_FIELDS)}",
                "--format=csv,noheader,nounits",
            )
            devices = parse_gpu_csv(output)
            if not devices:
                return []

            if any(d.unified_memory for d in devices):
                # Unified-memory parts (e.g. GH200/GB10) report [N/A] for memory.total; use host RAM
                host_total = await asyncio.to_thread(self._host_memory_total_bytes)
                for device in devices:
                    if device.unified_memory:
                        device.memory_total_bytes = host_total

            processes = await self._await_processes(processes_task, deadline - loop.time())
        finally:
            if not processes_task.done():
                processes_task.cancel()
                try:
                    await processes_task
                except asyncio.CancelledError:
                    pass

        for device in devices:
            device.processes = processes.get(device.uuid or "", [])
        return devices
