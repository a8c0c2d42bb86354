from spark_console.services.readers import (
    MockCpuReader,
    MockDiskReader,
    MockGpuReader,
    MockMemoryReader,
    MockUptimeReader,
)


class TestMockGpu:
    async def test_values_within_bounds(self):
        reader = MockGpuReader(seed=1)
        for _ in range(50):
            devices = await reader.collect()
            assert len(devices) == 1
            gpu = devices[0]
            assert 0.0 <= gpu.utilization_pct <= 100.0
            assert 0 <= gpu.memory_used_bytes <= gpu.memory_total_bytes
            assert gpu.name.endswith("(mock)")
            assert gpu.processes

    async def test_same_seed_same_sequence(self):
        a, b = MockGpuReader(seed=42), MockGpuReader(seed=42)
        for _ in range(5):
            assert await a.collect() == await b.collect()


class TestMockFamilies:
    async def test_cpu(self):
        cpu = await MockCpuReader(seed=3).collect()
        assert cpu.core_count == len(cpu.per_core_pct)
        assert all(0.0 <= p <= 100.0 for p in cpu.per_core_pct)
        assert 0.0 <= cpu.utilization_pct <= 100.0

    async def test_memory(self):
        mem = await MockMemoryReader(seed=3).collect()
        assert mem.used_bytes + mem.available_bytes == mem.total_bytes
        assert mem.swap_used_bytes <= mem.swap_total_bytes

    async def test_disk(self):
        disk = await MockDiskReader(seed=3).collect()
        assert [m.path for m in disk.mounts] == ["/", "/opt/models"]
        assert all(m.used_bytes <= m.total_bytes for m in disk.mounts)

    async def test_uptime_advances(self):
        reader = MockUptimeReader()
        first = await reader.collect()
        second = await reader.collect()
        assert second.seconds > first.seconds
