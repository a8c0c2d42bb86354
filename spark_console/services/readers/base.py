import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from spark_console.core.exceptions import SourceUnavailable


class MetricReader(ABC):
    """One metric family's source. Live and mock variants share this contract."""

    family: str = ""

    @abstractmethod
    async def collect(self) -> Any:
        """Return the family fragment, or raise SourceUnavailable / ParseFailure."""
        ...


async def read_proc_text(family: str, path: Path) -> str:
    """Read a kernel pseudo-file off the event loop. Any OSError means the source is unavailable."""
    try:
        return await asyncio.to_thread(path.read_text)
    except OSError as e:
        raise SourceUnavailable(family, f"failed to read {path}: {e}") from e
