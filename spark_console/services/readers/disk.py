import asyncio
import re
from pathlib import Path
from typing import NamedTuple

import psutil
import structlog

from spark_console.core.exceptions import ParseFailure
from spark_console.schemas.system import DiskMetrics, DiskMount
from spark_console.services.readers.base import MetricReader, read_proc_text

logger = structlog.get_logger()

FAMILY = "disk"

# Kernel-backed or otherwise virtual filesystems that never represent real storage
DEFAULT_FS_DENYLIST = frozenset({
    "autofs", "binfmt_misc", "bpf", "cgroup", "cgroup2", "configfs", "debugfs",
    "devpts", "devtmpfs", "efivarfs", "fusectl", "hugetlbfs", "mqueue", "nsfs",
    "overlay", "proc", "pstore", "ramfs", "rpc_pipefs", "securityfs", "squashfs",
    "sysfs", "tmpfs", "tracefs", "fuse.gvfsd-fuse", "fuse.portal", "fuse.lxcfs",
})

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


class MountEntry(NamedTuple):
    device: str
    path: str
    fstype: str


def _unescape(field: str) -> str:
    # /proc/mounts encodes space, tab, newline and backslash as \040, \011, \012, \134
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def parse_mounts(text: str, denylist: frozenset[str] = DEFAULT_FS_DENYLIST) -> list[MountEntry]:
    """Parse /proc/mounts, dropping denylisted filesystem types and repeated mount points."""
    entries: list[MountEntry] = []
    seen: set[str] = set()
    for line in text.splitlines():
        if not line.strip():
            continue
        parts = line.split()
        if len(parts) < 3:
            raise ParseFailure(FAMILY, f"unexpected /proc/mounts line: {line!r}")
        device, path, fstype = _unescape(parts[0]), _unescape(parts[1]), parts[2]
        if fstype in denylist or path in seen:
            continue
        seen.add(path)
        entries.append(MountEntry(device=device, path=path, fstype=fstype))
    return entries


def _stat_mounts(entries: list[MountEntry]) -> list[DiskMount]:
    mounts = []
    for entry in entries:
        try:
            usage = psutil.disk_usage(entry.path)
        except OSError as e:
            logger.debug("disk_mount_stat_skipped", path=entry.path, reason=str(e))
            continue
        if usage.total == 0:
            continue
        mounts.append(
            DiskMount(
                path=entry.path,
                device=entry.device,
                fstype=entry.fstype,
                total_bytes=usage.total,
                used_bytes=min(usage.used, usage.total),
                available_bytes=usage.free,
            )
        )
    return mounts


class DiskReader(MetricReader):
    family = FAMILY

    def __init__(self, proc_root: str = "/proc", denylist: frozenset[str] | None = None):
        self._path = Path(proc_root) / "mounts"
        self._denylist = denylist if denylist is not None else DEFAULT_FS_DENYLIST

    async def collect(self) -> DiskMetrics:
        entries = parse_mounts(await read_proc_text(FAMILY, self._path), self._denylist)
        mounts = await asyncio.to_thread(_stat_mounts, entries)
        return DiskMetrics(mounts=mounts)
