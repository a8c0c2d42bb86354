import asyncio
from pathlib import Path

from spark_console.core.exceptions import ParseFailure
from spark_console.schemas.system import CpuMetrics
from spark_console.services.readers.base import MetricReader, read_proc_text

FAMILY = "cpu"

# user nice system idle iowait irq softirq steal (guest time is already counted in user)
_STAT_FIELDS = 8
_IDLE_COLUMNS = (3, 4)


def parse_loadavg(text: str) -> tuple[float, float, float]:
    """Parse the 1/5/15 minute load averages from /proc/loadavg."""
    fields = text.split()
    if len(fields) < 3:
        raise ParseFailure(FAMILY, f"unexpected /proc/loadavg format: {text.strip()!r}")
    try:
        return float(fields[0]), float(fields[1]), float(fields[2])
    except ValueError as e:
        raise ParseFailure(FAMILY, f"non-numeric load average: {e}") from e


def parse_proc_stat(text: str) -> dict[str, tuple[int, int]]:
    """Map each cpu line of /proc/stat ("cpu", "cpu0", ...) to (idle_ticks, total_ticks)."""
    counters: dict[str, tuple[int, int]] = {}
    for line in text.splitlines():
        if not line.startswith("cpu"):
            continue
        parts = line.split()
        if len(parts) < 5:
            raise ParseFailure(FAMILY, f"truncated /proc/stat line: {line!r}")
        try:
            ticks = [int(v) for v in parts[1 : _STAT_FIELDS + 1]]
        except ValueError as e:
            raise ParseFailure(FAMILY, f"non-numeric /proc/stat counter: {e}") from e
        idle = sum(ticks[i] for i in _IDLE_COLUMNS if i < len(ticks))
        counters[parts[0]] = (idle, sum(ticks))
    if "cpu" not in counters:
        raise ParseFailure(FAMILY, "no aggregate cpu line in /proc/stat")
    return counters


def utilization_between(before: tuple[int, int], after: tuple[int, int]) -> float:
    idle_delta = after[0] - before[0]
    total_delta = after[1] - before[1]
    if total_delta <= 0:
        return 0.0
    busy = (total_delta - idle_delta) / total_delta * 100.0
    return round(min(max(busy, 0.0), 100.0), 1)


def build_cpu_metrics(
    loadavg_text: str, stat_before: str, stat_after: str
) -> CpuMetrics:
    load_1m, load_5m, load_15m = parse_loadavg(loadavg_text)
    before = parse_proc_stat(stat_before)
    after = parse_proc_stat(stat_after)

    cores = sorted(
        (name for name in after if name != "cpu" and name in before),
        key=lambda name: int(name[3:]),
    )
    return CpuMetrics(
        utilization_pct=utilization_between(before["cpu"], after["cpu"]),
        per_core_pct=[utilization_between(before[c], after[c]) for c in cores],
        load_1m=load_1m,
        load_5m=load_5m,
        load_15m=load_15m,
        core_count=len(cores),
    )


class CpuReader(MetricReader):
    family = FAMILY

    def __init__(self, proc_root: str = "/proc", sample_interval: float = 0.1):
        self._loadavg_path = Path(proc_root) / "loadavg"
        self._stat_path = Path(proc_root) / "stat"
        self._sample_interval = sample_interval

    async def collect(self) -> CpuMetrics:
        stat_before = await read_proc_text(FAMILY, self._stat_path)
        await asyncio.sleep(self._sample_interval)
        stat_after = await read_proc_text(FAMILY, self._stat_path)
        loadavg = await read_proc_text(FAMILY, self._loadavg_path)
        return build_cpu_metrics(loadavg, stat_before, stat_after)
