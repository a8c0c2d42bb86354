from pathlib import Path

from spark_console.core.exceptions import ParseFailure
from spark_console.schemas.system import MemoryMetrics
from spark_console.services.readers.base import MetricReader, read_proc_text

FAMILY = "memory"

_REQUIRED_KEYS = ("MemTotal", "MemAvailable", "SwapTotal", "SwapFree")


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse /proc/meminfo into {key: bytes}. Values are reported in kB."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        parts = rest.split()
        if not parts:
            continue
        try:
            value = int(parts[0])
        except ValueError as e:
            raise ParseFailure(FAMILY, f"non-numeric value for {key}: {parts[0]!r}") from e
        unit = parts[1] if len(parts) > 1 else ""
        values[key.strip()] = value * 1024 if unit.lower() == "kb" else value
    return values


def build_memory_metrics(text: str) -> MemoryMetrics:
    values = parse_meminfo(text)
    missing = [k for k in _REQUIRED_KEYS if k not in values]
    if missing:
        raise ParseFailure(FAMILY, f"/proc/meminfo is missing {', '.join(missing)}")

    total = values["MemTotal"]
    available = values["MemAvailable"]
    swap_total = values["SwapTotal"]
    return MemoryMetrics(
        total_bytes=total,
        used_bytes=max(total - available, 0),
        available_bytes=available,
        swap_total_bytes=swap_total,
        swap_used_bytes=max(swap_total - values["SwapFree"], 0),
    )


class MemoryReader(MetricReader):
    family = FAMILY

    def __init__(self, proc_root: str = "/proc"):
        self._path = Path(proc_root) / "meminfo"

    async def collect(self) -> MemoryMetrics:
        return build_memory_metrics(await read_proc_text(FAMILY, self._path))
