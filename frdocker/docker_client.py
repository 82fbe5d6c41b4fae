"""Minimal Docker Engine API client: container lookup and resource stats."""

from __future__ import annotations

import logging
import os
import ssl
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from frdocker.packets import generate_container_id

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"


class ContainerNotFoundError(LookupError):
    """No running container listens on the given address."""


@dataclass
class DockerStats:
    """Resource usage of one container."""

    container_id: str
    cpu_percent: float = 0.0
    mem_percent: float = 0.0
    net_upload: float = 0.0
    net_download: float = 0.0
    disk_read: float = 0.0
    disk_write: float = 0.0


def _section(data: Mapping[str, Any] | None, key: str) -> Mapping[str, Any]:
    return (data or {}).get(key) or {}


def calculate_cpu_percent(
    previous_cpu: int, previous_system: int, stats: Mapping[str, Any]
) -> float:
    """CPU usage in percent between the previous and the current reading."""
    cpu_stats = _section(stats, "cpu_stats")
    cpu_usage = _section(cpu_stats, "cpu_usage")
    cpu_delta = float(cpu_usage.get("total_usage") or 0) - float(previous_cpu)
    system_delta = float(cpu_stats.get("system_cpu_usage") or 0) - float(previous_system)
    online_cpus = float(cpu_stats.get("online_cpus") or 0)
    if online_cpus == 0.0:
        online_cpus = float(len(cpu_usage.get("percpu_usage") or []))
    if system_delta > 0.0 and cpu_delta > 0.0:
        return cpu_delta / system_delta * online_cpus * 100.0
    return 0.0


def calculate_block_io(blkio: Mapping[str, Any] | None) -> tuple[int, int]:
    """Total bytes read and written by block devices."""
    read = write = 0
    for entry in (blkio or {}).get("io_service_bytes_recursive") or []:
        op = entry.get("op") or ""
        if not op:
            continue
        value = int(entry.get("value") or 0)
        if op[0] in "rR":
            read += value
        elif op[0] in "wW":
            write += value
    return read, write


def calculate_mem_usage_no_cache(mem: Mapping[str, Any] | None) -> float:
    """Memory usage without the page cache (cgroup v1 or v2)."""
    mem = mem or {}
    usage = int(mem.get("usage") or 0)
    stats = mem.get("stats") or {}
    if "total_inactive_file" in stats:
        inactive = int(stats["total_inactive_file"])
        if inactive < usage:
            return float(usage - inactive)
    inactive = int(stats.get("inactive_file") or 0)
    if inactive < usage:
        return float(usage - inactive)
    return float(usage)


def calculate_mem_percent_no_cache(limit: float, used_no_cache: float) -> float:
    """Memory usage in percent of the limit; 0 without a limit."""
    if limit != 0:
        return used_no_cache / limit * 100.0
    return 0.0


def calculate_network(networks: Mapping[str, Any] | None) -> tuple[float, float]:
    """Total received and transmitted bytes over all interfaces."""
    rx = tx = 0.0
    for net in (networks or {}).values():
        rx += float(net.get("rx_bytes") or 0)
        tx += float(net.get("tx_bytes") or 0)
    return rx, tx


def stats_from_json(container_id: str, data: Mapping[str, Any]) -> DockerStats:
    """Derive resource usage from a Docker stats document."""
    precpu = _section(data, "precpu_stats")
    previous_cpu = int(_section(precpu, "cpu_usage").get("total_usage") or 0)
    previous_system = int(precpu.get("system_cpu_usage") or 0)
    memory = _section(data, "memory_stats")
    used = calculate_mem_usage_no_cache(memory)
    limit = float(memory.get("limit") or 0)
    net_download, net_upload = calculate_network(data.get("networks"))
    disk_read, disk_write = calculate_block_io(data.get("blkio_stats"))
    return DockerStats(
        container_id=container_id,
        cpu_percent=calculate_cpu_percent(previous_cpu, previous_system, data),
        mem_percent=calculate_mem_percent_no_cache(limit, used),
        net_upload=net_upload,
        net_download=net_download,
        disk_read=float(disk_read),
        disk_write=float(disk_write),
    )


def _client_from_env() -> httpx.Client:
    host = os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST
    if host.startswith("unix://"):
        transport = httpx.HTTPTransport(uds=host[len("unix://"):])
        return httpx.Client(transport=transport, base_url="http://docker", timeout=None)
    if host.startswith("tcp://"):
        address = host[len("tcp://"):]
        if os.environ.get("DOCKER_TLS_VERIFY"):
            cert_path = os.environ.get("DOCKER_CERT_PATH") or os.path.join(
                os.path.expanduser("~"), ".docker"
            )
            context = ssl.create_default_context(cafile=os.path.join(cert_path, "ca.pem"))
            context.load_cert_chain(
                os.path.join(cert_path, "cert.pem"), os.path.join(cert_path, "key.pem")
            )
            return httpx.Client(base_url=f"https://{address}", verify=context, timeout=None)
        return httpx.Client(base_url=f"http://{address}", timeout=None)
    raise ValueError(f"unsupported docker host: {host}")


class DockerClient:
    """Looks up running containers by address and reads their stats."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._http = http_client if http_client is not None else _client_from_env()
        self.containers: dict[str, dict[str, Any]] = {}
        try:
            self.get_all_containers()
        except Exception:
            self._http.close()
            raise

    def get_all_containers(self) -> None:
        """Refresh the index of running containers that expose a port."""
        response = self._http.get("/containers/json")
        response.raise_for_status()
        for container in response.json() or []:
            ports = container.get("Ports") or []
            if not ports:
                continue
            networks = _section(container.get("NetworkSettings"), "Networks")
            ip = next((net.get("IPAddress") or "" for net in networks.values()), "")
            port = int(ports[0].get("PrivatePort") or 0)
            self.containers[generate_container_id(ip, port)] = container

    def get_container_info_by_addr(self, ip: str, port: int) -> dict[str, Any]:
        """Return the Docker summary of the container at ip:port, refreshing once."""
        key = generate_container_id(ip, port)
        if key in self.containers:
            return self.containers[key]
        self.get_all_containers()
        if key in self.containers:
            return self.containers[key]
        raise ContainerNotFoundError(f"can not find container by addr: {key}")

    def get_container_stats(self, container_id: str) -> DockerStats:
        """Read a single stats sample of a container."""
        response = self._http.get(
            f"/containers/{container_id}/stats", params={"stream": "false"}
        )
        response.raise_for_status()
        return stats_from_json(container_id, response.json())

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> DockerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()