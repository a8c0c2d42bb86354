import pytest

from spark_console.core.exceptions import ParseFailure, SourceUnavailable
from spark_console.services.readers.memory import MemoryReader, build_memory_metrics, parse_meminfo

MEMINFO = """MemTotal:       131841024 kB
MemFree:         2048000 kB
MemAvailable:   81920000 kB
Buffers:          123456 kB
SwapTotal:       8388604 kB
SwapFree:        7864316 kB
HugePages_Total:       0
"""


class TestParseMeminfo:
    def test_converts_kb_to_bytes(self):
        values = parse_meminfo(MEMINFO)
        assert values["MemTotal"] == 131841024 * 1024
        assert values["HugePages_Total"] == 0

    def test_non_numeric_value(self):
        with pytest.raises(ParseFailure):
            parse_meminfo("MemTotal:   lots kB\n")


class TestBuildMemoryMetrics:
    def test_used_is_total_minus_available(self):
        metrics = build_memory_metrics(MEMINFO)
        assert metrics.total_bytes == 131841024 * 1024
        assert metrics.available_bytes == 81920000 * 1024
        assert metrics.used_bytes == (131841024 - 81920000) * 1024
        assert metrics.swap_total_bytes == 8388604 * 1024
        assert metrics.swap_used_bytes == (8388604 - 7864316) * 1024

    def test_missing_required_key(self):
        with pytest.raises(ParseFailure) as exc_info:
            build_memory_metrics("MemTotal: 1024 kB\nSwapTotal: 0 kB\nSwapFree: 0 kB\n")
        assert "MemAvailable" in exc_info.value.reason

    def test_used_never_negative(self):
        text = "MemTotal: 100 kB\nMemAvailable: 200 kB\nSwapTotal: 0 kB\nSwapFree: 10 kB\n"
        metrics = build_memory_metrics(text)
        assert metrics.used_bytes == 0
        assert metrics.swap_used_bytes == 0


class TestMemoryReader:
    async def test_collect(self, tmp_path):
        (tmp_path / "meminfo").write_text(MEMINFO)
        metrics = await MemoryReader(proc_root=str(tmp_path)).collect()
        assert metrics.total_bytes > 0

    async def test_unreadable(self, tmp_path):
        with pytest.raises(SourceUnavailable) as exc_info:
            await MemoryReader(proc_root=str(tmp_path)).collect()
        assert exc_info.value.family == "memory"
