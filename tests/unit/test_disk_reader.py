from unittest.mock import patch

import pytest

from spark_console.core.exceptions import ParseFailure, SourceUnavailable
from spark_console.services.readers.disk import DEFAULT_FS_DENYLIST, DiskReader, parse_mounts

MOUNTS = """sysfs /sys sysfs rw,nosuid,nodev,noexec,relatime 0 0
proc /proc proc rw,nosuid,nodev,noexec,relatime 0 0
udev /dev devtmpfs rw,nosuid,relatime,size=65837304k 0 0
/dev/nvme0n1p2 / ext4 rw,relatime 0 0
tmpfs /run tmpfs rw,nosuid,nodev,noexec,relatime 0 0
cgroup2 /sys/fs/cgroup cgroup2 rw,nosuid,nodev,noexec,relatime 0 0
/dev/nvme1n1 /opt/models xfs rw,relatime 0 0
/dev/sdb1 /mnt/usb\\040drive vfat rw,relatime 0 0
overlay /var/lib/docker/overlay2/abc/merged overlay rw,relatime 0 0
/dev/nvme0n1p2 / ext4 rw,relatime 0 0
"""


class TestParseMounts:
    def test_drops_denylisted_types(self):
        entries = parse_mounts(MOUNTS)
        assert all(e.fstype not in DEFAULT_FS_DENYLIST for e in entries)
        assert [e.path for e in entries] == ["/", "/opt/models", "/mnt/usb drive"]

    def test_keeps_discovery_order_and_dedupes(self):
        entries = parse_mounts(MOUNTS)
        assert [e.path for e in entries].count("/") == 1
        assert entries[0].device == "/dev/nvme0n1p2"

    def test_custom_denylist(self):
        entries = parse_mounts(MOUNTS, denylist=frozenset({"ext4", "xfs", "vfat"}))
        assert "/" not in [e.path for e in entries]
        assert "/proc" in [e.path for e in entries]

    def test_truncated_line(self):
        with pytest.raises(ParseFailure):
            parse_mounts("/dev/sda1 /\n")


class TestDiskReader:
    async def test_reports_real_mount_and_skips_unstattable(self, tmp_path):
        missing = tmp_path / "does-not-exist"
        (tmp_path / "mounts").write_text(
            f"proc /proc proc rw 0 0\n"
            f"/dev/sda1 {tmp_path} ext4 rw 0 0\n"
            f"/dev/sdz9 {missing} ext4 rw 0 0\n"
        )
        metrics = await DiskReader(proc_root=str(tmp_path)).collect()

        assert [m.path for m in metrics.mounts] == [str(tmp_path)]
        mount = metrics.mounts[0]
        assert mount.fstype == "ext4"
        assert 0 <= mount.used_bytes <= mount.total_bytes

    async def test_used_clamped_to_total(self, tmp_path):
        from collections import namedtuple

        usage = namedtuple("usage", "total used free percent")
        (tmp_path / "mounts").write_text("/dev/sda1 /data ext4 rw 0 0\n")
        with patch("spark_console.services.readers.disk.psutil.disk_usage", return_value=usage(100, 150, 0, 100.0)):
            metrics = await DiskReader(proc_root=str(tmp_path)).collect()
        assert metrics.mounts[0].used_bytes == 100

    async def test_unreadable_mount_table(self, tmp_path):
        with pytest.raises(SourceUnavailable):
            await DiskReader(proc_root=str(tmp_path)).collect()
