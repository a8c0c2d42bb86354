"""Metric source readers (live and mock)."""

from spark_console.services.readers.base import MetricReader
from spark_console.services.readers.cpu import CpuReader
from spark_console.services.readers.disk import DiskReader
from spark_console.services.readers.gpu import NvidiaSmiReader
from spark_console.services.readers.memory import MemoryReader
from spark_console.services.readers.mock import (
    MockCpuReader,
    MockDiskReader,
    MockGpuReader,
    MockMemoryReader,
    MockUptimeReader,
)
from spark_console.services.readers.uptime import UptimeReader

__all__ = [
    "CpuReader",
    "DiskReader",
    "MemoryReader",
    "MetricReader",
    "MockCpuReader",
    "MockDiskReader",
    "MockGpuReader",
    "MockMemoryReader",
    "MockUptimeReader",
    "NvidiaSmiReader",
    "UptimeReader",
]
