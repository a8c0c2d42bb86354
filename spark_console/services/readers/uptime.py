from pathlib import Path

from spark_console.core.exceptions import ParseFailure
from spark_console.schemas.system import UptimeMetrics
from spark_console.services.readers.base import MetricReader, read_proc_text

FAMILY = "uptime"


def parse_uptime(text: str) -> UptimeMetrics:
    """First field of /proc/uptime is seconds since boot."""
    fields = text.split()
    if not fields:
        raise ParseFailure(FAMILY, "empty /proc/uptime")
    try:
        seconds = float(fields[0])
    except ValueError as e:
        raise ParseFailure(FAMILY, f"failed to parse uptime {fields[0]!r}") from e
    return UptimeMetrics(seconds=seconds)


class UptimeReader(MetricReader):
    family = FAMILY

    def __init__(self, proc_root: str = "/proc"):
        self._path = Path(proc_root) / "uptime"

    async def collect(self) -> UptimeMetrics:
        return parse_uptime(await read_proc_text(FAMILY, self._path))
