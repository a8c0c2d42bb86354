"""Container listing and lifecycle control.

Reads and actions both go through a ContainerRuntime. The Docker implementation
talks to the daemon's local socket through the Docker SDK; its calls block, so
they run in a worker thread. The mock runtime keeps containers in memory for
hosts without Docker.
"""

import asyncio
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from functools import partial

import docker
import docker.errors
import structlog

from spark_console.config import Settings
from spark_console.core.exceptions import (
    ActionRejectedError,
    ContainerNotFoundError,
    ControlError,
    RuntimeUnavailableError,
    SourceUnavailable,
)
from spark_console.schemas.containers import ContainerAction, ContainerRecord, ContainerStatus

logger = structlog.get_logger()

_STATUS_MAP = {
    "running": ContainerStatus.RUNNING,
    "paused": ContainerStatus.PAUSED,
    "exited": ContainerStatus.STOPPED,
    "created": ContainerStatus.STOPPED,
    "dead": ContainerStatus.STOPPED,
}

_FRACTION = re.compile(r"\.(\d+)")


def parse_container_status(state: str | None) -> ContainerStatus:
    return _STATUS_MAP.get((state or "").strip().lower(), ContainerStatus.UNKNOWN)


def parse_docker_timestamp(raw: str | None) -> datetime | None:
    """Parse Docker's RFC 3339 timestamps, which carry nanosecond precision."""
    if not raw:
        return None
    value = raw.strip().replace("Z", "+00:00")
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("container_timestamp_unparsable", value=raw)
        return None
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_ports(ports: dict | None) -> list[str]:
    formatted = []
    for container_port, bindings in sorted((ports or {}).items()):
        if not bindings:
            formatted.append(container_port)
            continue
        for b in bindings:
            formatted.append(f"{b.get('HostIp', '')}:{b.get('HostPort', '')}->{container_port}")
    return formatted


def container_record_from_attrs(attrs: dict) -> ContainerRecord:
    """Build a ContainerRecord from `docker inspect` JSON."""
    state = attrs.get("State") or {}
    config = attrs.get("Config") or {}
    host_config = attrs.get("HostConfig") or {}
    raw_state = state.get("Status", "") if isinstance(state, dict) else str(state)

    return ContainerRecord(
        id=attrs.get("Id", ""),
        name=(attrs.get("Name") or "").lstrip("/"),
        image=config.get("Image") or attrs.get("Image", ""),
        status=parse_container_status(raw_state),
        created=parse_docker_timestamp(attrs.get("Created")),
        state_text=raw_state,
        ports=_format_ports((attrs.get("NetworkSettings") or {}).get("Ports")),
        restart_policy=(host_config.get("RestartPolicy") or {}).get("Name", ""),
        runtime=host_config.get("Runtime", ""),
        mounts=[
            f"{m.get('Source', '')}:{m.get('Destination', '')}"
            for m in attrs.get("Mounts") or []
            if m.get("Destination")
        ],
    )


def resource_usage_from_stats(payload: dict) -> dict:
    """Reduce a one-shot `docker stats` payload to the ContainerRecord usage fields.

    CPU percent is computed the way the docker CLI does it: container CPU time
    delta over host CPU time delta, scaled by the number of online CPUs. Memory
    usage excludes inactive page cache.
    """
    cpu = payload.get("cpu_stats") or {}
    precpu = payload.get("precpu_stats") or {}
    cpu_delta = (cpu.get("cpu_usage") or {}).get("total_usage", 0) - (precpu.get("cpu_usage") or {}).get("total_usage", 0)
    system_delta = cpu.get("system_cpu_usage", 0) - precpu.get("system_cpu_usage", 0)
    online = cpu.get("online_cpus") or len((cpu.get("cpu_usage") or {}).get("percpu_usage") or []) or 1
    cpu_pct = round(cpu_delta / system_delta * online * 100.0, 2) if cpu_delta > 0 and system_delta > 0 else 0.0

    memory = payload.get("memory_stats") or {}
    usage = memory.get("usage")
    if usage is not None:
        mem_stats = memory.get("stats") or {}
        cache = mem_stats.get("total_inactive_file", mem_stats.get("inactive_file", 0))
        usage = usage - cache if cache < usage else usage

    networks = payload.get("networks")
    return {
        "cpu_pct": cpu_pct,
        "memory_usage_bytes": usage,
        "memory_limit_bytes": memory.get("limit"),
        "net_rx_bytes": sum(n.get("rx_bytes", 0) for n in networks.values()) if networks else None,
        "net_tx_bytes": sum(n.get("tx_bytes", 0) for n in networks.values()) if networks else None,
    }


class ContainerRuntime(ABC):
    @abstractmethod
    async def list_containers(self) -> list[ContainerRecord]:
        """All containers, running or not."""
        ...

    @abstractmethod
    async def get_container(self, container_id: str) -> ContainerRecord:
        """Look up one container by id, id prefix or name."""
        ...

    @abstractmethod
    async def perform(self, container_id: str, action: ContainerAction) -> None:
        """Issue a lifecycle action. Returns once the runtime acknowledges it."""
        ...

    @abstractmethod
    async def stats(self, container_id: str) -> dict:
        """One resource usage sample for a running container, keyed like the ContainerRecord usage fields."""
        ...


class DockerRuntime(ContainerRuntime):
    def __init__(self, client_factory: Callable = docker.from_env, action_timeout: int = 10):
        self._client_factory = client_factory
        self._client = None
        self._action_timeout = action_timeout

    def _get_client(self):
        """Lazily create the Docker client; a missing daemon surfaces here."""
        if self._client is None:
            try:
                self._client = self._client_factory()
            except docker.errors.DockerException as exc:
                logger.warning("docker_connect_failed", error=str(exc))
                raise RuntimeUnavailableError(f"Cannot connect to Docker: {exc}") from exc
        return self._client

    def _get(self, container_id: str):
        client = self._get_client()
        try:
            return client.containers.get(container_id)
        except docker.errors.NotFound as exc:
            raise ContainerNotFoundError(f"Container '{container_id}' not found.") from exc
        except (docker.errors.DockerException, OSError) as exc:
            raise RuntimeUnavailableError(f"Docker lookup failed: {exc}") from exc

    def _list_sync(self) -> list[ContainerRecord]:
        client = self._get_client()
        try:
            containers = client.containers.list(all=True, ignore_removed=True)
        except (docker.errors.DockerException, OSError) as exc:
            raise RuntimeUnavailableError(f"Docker list failed: {exc}") from exc
        return [container_record_from_attrs(c.attrs) for c in containers]

    def _perform_sync(self, container_id: str, action: ContainerAction) -> None:
        container = self._get(container_id)
        try:
            if action is ContainerAction.START:
                container.start()
            elif action is ContainerAction.STOP:
                container.stop(timeout=self._action_timeout)
            else:
                container.restart(timeout=self._action_timeout)
        except docker.errors.NotFound as exc:
            raise ContainerNotFoundError(f"Container '{container_id}' disappeared.") from exc
        except docker.errors.APIError as exc:
            raise ActionRejectedError(
                f"Docker refused to {action.value} '{container_id}'.",
                details={"reason": exc.explanation or str(exc)},
            ) from exc
        except (docker.errors.DockerException, OSError) as exc:
            raise RuntimeUnavailableError(f"Docker {action.value} failed: {exc}") from exc

    def _stats_sync(self, container_id: str) -> dict:
        container = self._get(container_id)
        try:
            payload = container.stats(stream=False)
        except docker.errors.NotFound as exc:
            raise ContainerNotFoundError(f"Container '{container_id}' disappeared.") from exc
        except (docker.errors.DockerException, OSError) as exc:
            raise RuntimeUnavailableError(f"Docker stats failed: {exc}") from exc
        return resource_usage_from_stats(payload)

    async def list_containers(self) -> list[ContainerRecord]:
        return await asyncio.to_thread(self._list_sync)

    async def get_container(self, container_id: str) -> ContainerRecord:
        container = await asyncio.to_thread(self._get, container_id)
        return container_record_from_attrs(container.attrs)

    async def perform(self, container_id: str, action: ContainerAction) -> None:
        await asyncio.to_thread(self._perform_sync, container_id, action)

    async def stats(self, container_id: str) -> dict:
        return await asyncio.to_thread(self._stats_sync, container_id)


def default_mock_containers() -> list[ContainerRecord]:
    created = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)
    return [
        ContainerRecord(
            id="a1b2c3d4e5f6", name="vllm", image="vllm/vllm-openai:latest",
            status=ContainerStatus.RUNNING, state_text="running", created=created,
            ports=["0.0.0.0:8000->8000/tcp"], restart_policy="unless-stopped", runtime="nvidia",
        ),
        ContainerRecord(
            id="b2c3d4e5f6a1", name="comfyui", image="comfyui/comfyui:latest",
            status=ContainerStatus.STOPPED, state_text="exited", created=created,
            ports=["0.0.0.0:8188->8188/tcp"], restart_policy="no", runtime="nvidia",
        ),
        ContainerRecord(
            id="c3d4e5f6a1b2", name="open-webui", image="ghcr.io/open-webui/open-webui:main",
            status=ContainerStatus.RUNNING, state_text="running", created=created,
            ports=["0.0.0.0:3080->8080/tcp"], restart_policy="always", runtime="runc",
        ),
    ]


class MockContainerRuntime(ContainerRuntime):
    """In-memory runtime. Actions flip status immediately."""

    _TARGET_STATE = {
        ContainerAction.START: (ContainerStatus.RUNNING, "running"),
        ContainerAction.STOP: (ContainerStatus.STOPPED, "exited"),
        ContainerAction.RESTART: (ContainerStatus.RUNNING, "running"),
    }

    _USAGE = {
        "cpu_pct": 12.5,
        "memory_usage_bytes": 6 * 1024**3,
        "memory_limit_bytes": 128 * 1024**3,
        "net_rx_bytes": 48 * 1024**2,
        "net_tx_bytes": 12 * 1024**2,
    }

    def __init__(self, containers: list[ContainerRecord] | None = None, available: bool = True):
        seed = default_mock_containers() if containers is None else containers
        self._containers = {c.id: c.model_copy() for c in seed}
        self.available = available
        self.performed: list[tuple[str, ContainerAction]] = []

    def _check_available(self) -> None:
        if not self.available:
            raise RuntimeUnavailableError("Mock container runtime is offline.")

    def _resolve(self, container_id: str) -> ContainerRecord:
        for record in self._containers.values():
            if container_id in (record.id, record.name) or (
                len(container_id) >= 4 and record.id.startswith(container_id)
            ):
                return record
        raise ContainerNotFoundError(f"Container '{container_id}' not found.")

    async def list_containers(self) -> list[ContainerRecord]:
        self._check_available()
        return [c.model_copy() for c in self._containers.values()]

    async def get_container(self, container_id: str) -> ContainerRecord:
        self._check_available()
        return self._resolve(container_id).model_copy()

    async def perform(self, container_id: str, action: ContainerAction) -> None:
        self._check_available()
        record = self._resolve(container_id)
        self.performed.append((record.id, action))
        record.status, record.state_text = self._TARGET_STATE[action]

    async def stats(self, container_id: str) -> dict:
        self._check_available()
        self._resolve(container_id)
        return dict(self._USAGE)


async def _within(awaitable: Awaitable, timeout: float, what: str):
    """Await a runtime call under a deadline. A hung daemon becomes RuntimeUnavailableError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("container_runtime_timeout", call=what, timeout=timeout)
        raise RuntimeUnavailableError(f"Container runtime did not answer {what} within {timeout}s.") from e


class ContainerReader:
    """Read path: the current container list, or SourceUnavailable when the runtime is unreachable.

    Running containers get one resource usage sample each, taken concurrently
    inside the same deadline as the list. A sample that fails or runs out of
    time leaves that container's usage fields as None.
    """

    family = "containers"

    def __init__(self, runtime: ContainerRuntime, timeout: float = 5.0):
        self._runtime = runtime
        self._timeout = timeout

    async def _attach_usage(self, record: ContainerRecord, budget: float) -> None:
        try:
            usage = await asyncio.wait_for(self._runtime.stats(record.id), timeout=max(budget, 0))
        except (ControlError, asyncio.TimeoutError, TypeError, ValueError) as e:
            logger.debug("container_stats_unavailable", container_id=record.id, error=str(e) or type(e).__name__)
            return
        for field, value in usage.items():
            setattr(record, field, value)

    async def collect(self) -> list[ContainerRecord]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        try:
            records = await _within(self._runtime.list_containers(), self._timeout, "list")
        except RuntimeUnavailableError as e:
            raise SourceUnavailable(self.family, e.message) from e

        running = [r for r in records if r.status is ContainerStatus.RUNNING]
        if running:
            budget = deadline - loop.time()
            await asyncio.gather(*(self._attach_usage(r, budget) for r in running))
        return records


class ContainerControl:
    """Issues start/stop/restart and reports the container's state afterwards.

    The returned record reflects the runtime right after it acknowledged the
    action, which may not be the final steady state. No retries. Lookups are
    bounded by `timeout`; the action itself also gets the runtime's stop grace
    period.
    """

    def __init__(self, runtime: ContainerRuntime, timeout: float = 5.0, action_timeout: float = 10.0):
        self._runtime = runtime
        self._timeout = timeout
        self._action_timeout = action_timeout

    async def apply_action(self, container_id: str, action: ContainerAction) -> ContainerRecord:
        current = await _within(self._runtime.get_container(container_id), self._timeout, "lookup")

        if action is ContainerAction.START and current.status in (ContainerStatus.RUNNING, ContainerStatus.PAUSED):
            raise ActionRejectedError(
                f"Container '{current.name}' is already {current.status.value}.",
                details={"status": current.status.value},
            )
        if action is ContainerAction.STOP and current.status not in (ContainerStatus.RUNNING, ContainerStatus.PAUSED):
            raise ActionRejectedError(
                f"Container '{current.name}' is not running.",
                details={"status": current.status.value},
            )

        await _within(
            self._runtime.perform(current.id, action),
            self._timeout + self._action_timeout,
            action.value,
        )
        logger.info("container_action_issued", container_id=current.id, name=current.name, action=action.value)
        return await _within(self._runtime.get_container(current.id), self._timeout, "lookup")


def build_container_runtime(settings: Settings) -> ContainerRuntime:
    if settings.mode_for("container") == "mock":
        return MockContainerRuntime()
    # HTTP timeout on the daemon socket, in whole seconds
    client_factory = partial(docker.from_env, timeout=math.ceil(settings.spark_source_timeout))
    return DockerRuntime(client_factory=client_factory, action_timeout=settings.spark_container_action_timeout)


def build_container_services(settings: Settings) -> tuple[ContainerReader, ContainerControl]:
    runtime = build_container_runtime(settings)
    return (
        ContainerReader(runtime, timeout=settings.spark_source_timeout),
        ContainerControl(
            runtime,
            timeout=settings.spark_source_timeout,
            action_timeout=settings.spark_container_action_timeout,
        ),
    )
