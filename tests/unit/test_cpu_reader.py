import pytest

from spark_console.core.exceptions import ParseFailure, SourceUnavailable
from spark_console.services.readers.cpu import (
    CpuReader,
    build_cpu_metrics,
    parse_loadavg,
    parse_proc_stat,
    utilization_between,
)

STAT_BEFORE = """cpu  1000 0 500 8000 500 0 0 0 0 0
cpu0 500 0 250 4000 250 0 0 0 0 0
cpu1 500 0 250 4000 250 0 0 0 0 0
intr 12345 0 0
ctxt 99999
"""

STAT_AFTER = """cpu  1300 0 700 8400 600 0 0 0 0 0
cpu0 700 0 300 4100 300 0 0 0 0 0
cpu1 600 0 400 4300 300 0 0 0 0 0
intr 12399 0 0
ctxt 100000
"""

LOADAVG = "0.52 0.58 0.59 2/1024 12345\n"


class TestParseLoadavg:
    def test_parses_three_averages(self):
        assert parse_loadavg(LOADAVG) == (0.52, 0.58, 0.59)

    def test_too_few_fields(self):
        with pytest.raises(ParseFailure):
            parse_loadavg("0.52 0.58")

    def test_non_numeric(self):
        with pytest.raises(ParseFailure):
            parse_loadavg("abc 0.58 0.59 1/2 3")


class TestParseProcStat:
    def test_aggregate_and_cores(self):
        counters = parse_proc_stat(STAT_BEFORE)
        assert set(counters) == {"cpu", "cpu0", "cpu1"}
        idle, total = counters["cpu"]
        assert idle == 8500
        assert total == 10000

    def test_missing_aggregate_line(self):
        with pytest.raises(ParseFailure):
            parse_proc_stat("intr 1 2 3\n")

    def test_garbage_counter(self):
        with pytest.raises(ParseFailure):
            parse_proc_stat("cpu  10 x 5 100 0 0 0 0\n")


class TestUtilization:
    def test_busy_fraction(self):
        # 1000 ticks elapsed, 500 of them idle
        assert utilization_between((8500, 10000), (9000, 11000)) == 50.0

    def test_no_elapsed_ticks(self):
        assert utilization_between((10, 100), (10, 100)) == 0.0


class TestBuildCpuMetrics:
    def test_combines_samples(self):
        metrics = build_cpu_metrics(LOADAVG, STAT_BEFORE, STAT_AFTER)
        assert metrics.core_count == 2
        assert metrics.load_1m == 0.52
        assert metrics.load_15m == 0.59
        # aggregate: delta total 1000, delta idle 500
        assert metrics.utilization_pct == 50.0
        assert len(metrics.per_core_pct) == 2
        for pct in metrics.per_core_pct:
            assert 0.0 <= pct <= 100.0


class TestCpuReader:
    async def test_reads_from_proc_root(self, tmp_path):
        (tmp_path / "stat").write_text(STAT_BEFORE)
        (tmp_path / "loadavg").write_text(LOADAVG)
        reader = CpuReader(proc_root=str(tmp_path), sample_interval=0)
        metrics = await reader.collect()
        assert metrics.core_count == 2
        # identical samples: nothing elapsed
        assert metrics.utilization_pct == 0.0

    async def test_missing_files_are_unavailable(self, tmp_path):
        reader = CpuReader(proc_root=str(tmp_path / "nope"), sample_interval=0)
        with pytest.raises(SourceUnavailable):
            await reader.collect()
