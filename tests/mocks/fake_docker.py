"""Stand-in for the Docker SDK client, raising the SDK's own error types."""

import threading

import docker.errors

GIB = 1024**3


def make_stats(cpu_before=200_000_000, cpu_after=400_000_000, online_cpus=4):
    """One-shot `docker stats` payload: 40% CPU with the defaults, 2 GiB used after cache."""
    return {
        "cpu_stats": {
            "cpu_usage": {"total_usage": cpu_after},
            "system_cpu_usage": 12_000_000_000,
            "online_cpus": online_cpus,
        },
        "precpu_stats": {
            "cpu_usage": {"total_usage": cpu_before},
            "system_cpu_usage": 10_000_000_000,
        },
        "memory_stats": {"usage": 3 * GIB, "limit": 16 * GIB, "stats": {"inactive_file": GIB}},
        "networks": {
            "eth0": {"rx_bytes": 1000, "tx_bytes": 500},
            "eth1": {"rx_bytes": 24, "tx_bytes": 12},
        },
    }


def make_attrs(container_id, name, status="running", image="example/image:latest"):
    return {
        "Id": container_id,
        "Name": f"/{name}",
        "Created": "2025-01-15T09:30:00.123456789Z",
        "Config": {"Image": image},
        "State": {"Status": status},
        "HostConfig": {"RestartPolicy": {"Name": "unless-stopped"}, "Runtime": "runc"},
        "NetworkSettings": {"Ports": {"8000/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8000"}]}},
        "Mounts": [{"Source": "/opt/models", "Destination": "/models"}],
    }


class FakeContainer:
    def __init__(self, container_id, name, status="running", refuse=None, stats=None):
        self.attrs = make_attrs(container_id, name, status)
        self.stats_payload = stats if stats is not None else make_stats()
        self.stats_calls = 0
        self.refuse = refuse  # action name the fake daemon rejects
        self.calls = []

    @property
    def status(self):
        return self.attrs["State"]["Status"]

    def _set(self, action, status):
        self.calls.append(action)
        if self.refuse == action:
            raise docker.errors.APIError(f"cannot {action}", explanation="permission denied")
        self.attrs["State"]["Status"] = status

    def start(self):
        self._set("start", "running")

    def stop(self, timeout=10):
        self._set("stop", "exited")

    def restart(self, timeout=10):
        self._set("restart", "running")

    def stats(self, stream=True):
        self.stats_calls += 1
        if self.refuse == "stats":
            raise docker.errors.APIError("stats failed", explanation="cgroup not found")
        return self.stats_payload


class FakeContainerCollection:
    def __init__(self, containers=None, removed=()):
        self._containers = {c.attrs["Id"]: c for c in containers or []}
        self._removed = set(removed)  # listed by the daemon but gone by the time they are inspected

    def list(self, all=False, ignore_removed=False):
        listed = []
        for c in self._containers.values():
            if c.attrs["Id"] in self._removed:
                if ignore_removed:
                    continue
                raise docker.errors.NotFound(f"No such container: {c.attrs['Id']}")
            if all or c.status == "running":
                listed.append(c)
        return listed

    def get(self, container_id):
        for c in self._containers.values():
            if container_id in (c.attrs["Id"], c.attrs["Name"].lstrip("/")):
                return c
        raise docker.errors.NotFound(f"No such container: {container_id}")


class FakeDockerClient:
    def __init__(self, containers=None, removed=()):
        self.containers = FakeContainerCollection(containers, removed)


class UnreachableContainerCollection:
    def list(self, all=False, ignore_removed=False):
        raise ConnectionError("Connection aborted: /var/run/docker.sock")

    def get(self, container_id):
        raise ConnectionError("Connection aborted: /var/run/docker.sock")


class UnreachableDockerClient:
    def __init__(self):
        self.containers = UnreachableContainerCollection()


def refuse_connection():
    raise docker.errors.DockerException("Error while fetching server API version: connection refused")


class HangingContainerCollection:
    """Every call blocks as if the daemon accepted the connection and never answered."""

    def __init__(self):
        self.released = threading.Event()

    def list(self, all=False, ignore_removed=False):
        self.released.wait(timeout=10)
        return []

    def get(self, container_id):
        self.released.wait(timeout=10)
        raise docker.errors.NotFound(f"No such container: {container_id}")


class HangingDockerClient:
    def __init__(self):
        self.containers = HangingContainerCollection()

    def release(self):
        self.containers.released.set()
