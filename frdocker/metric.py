"""Resource metrics of a container and their anomaly score."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

from frdocker.docker_client import DockerStats


class StatsSource(Protocol):
    def get_container_stats(self, container_id: str) -> DockerStats: ...


@dataclass(eq=False)
class ContainerMetric:
    """Latest resource usage of a container with its eccentricity and threshold."""

    id: str
    container_id: str
    cpu: float = 0.0
    mem: float = 0.0
    net_up: float = 0.0
    net_dn: float = 0.0
    disk_r: float = 0.0
    disk_w: float = 0.0
    ecc: float = 0.0
    thresh: float = 0.0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def update(self, docker_client: StatsSource) -> None:
        """Read fresh stats from Docker."""
        with self.lock:
            stats = docker_client.get_container_stats(self.container_id)
            self.cpu = stats.cpu_percent
            self.mem = stats.mem_percent
            self.net_up = stats.net_upload
            self.net_dn = stats.net_download
            self.disk_r = stats.disk_read
            self.disk_w = stats.disk_write

    def update_ecc(self, ecc: float, thresh: float) -> None:
        with self.lock:
            self.ecc = ecc
            self.thresh = thresh

    def values(self) -> list[float]:
        """The metric vector used for scoring."""
        with self.lock:
            return [self.cpu, self.mem, self.net_up, self.net_dn, self.disk_r, self.disk_w]

    def to_dict(self) -> dict[str, Any]:
        with self.lock:
            return {
                "id": self.id,
                "containerId": self.container_id,
                "cpu": self.cpu,
                "mem": self.mem,
                "netUp": self.net_up,
                "netDn": self.net_dn,
                "diskR": self.disk_r,
                "diskW": self.disk_w,
                "ecc": self.ecc,
                "thresh": self.thresh,
            }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> ContainerMetric:
        return ContainerMetric(
            id=data.get("id") or "",
            container_id=data.get("containerId") or "",
            cpu=float(data.get("cpu") or 0.0),
            mem=float(data.get("mem") or 0.0),
            net_up=float(data.get("netUp") or 0.0),
            net_dn=float(data.get("netDn") or 0.0),
            disk_r=float(data.get("diskR") or 0.0),
            disk_w=float(data.get("diskW") or 0.0),
            ecc=float(data.get("ecc") or 0.0),
            thresh=float(data.get("thresh") or 0.0),
        )