"""A monitored container of a service or gateway."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Protocol

from frdocker.monitor import ContainerMonitor
from frdocker.packets import generate_container_id


class ContainerLookup(Protocol):
    def get_container_info_by_addr(self, ip: str, port: int) -> dict[str, Any]: ...


@dataclass(eq=False)
class Container:
    """A container instance with its health flag and monitor."""

    id: str
    ip: str = ""
    port: int = 0
    service_name: str = ""
    container_id: str = ""
    container_name: str = ""
    is_healthy: bool = True
    monitor: ContainerMonitor | None = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __post_init__(self) -> None:
        if self.monitor is None:
            self.monitor = ContainerMonitor(self.id, self.container_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "containerID": self.container_id,
            "containerName": self.container_name,
            "ip": self.ip,
            "port": self.port,
            "isHealthy": self.is_healthy,
            "serviceName": self.service_name,
            "monitor": self.monitor.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Container:
        monitor = data.get("monitor")
        return Container(
            id=data.get("id") or "",
            ip=data.get("ip") or "",
            port=int(data.get("port") or 0),
            service_name=data.get("serviceName") or "",
            container_id=data.get("containerID") or "",
            container_name=data.get("containerName") or "",
            is_healthy=bool(data.get("isHealthy", True)),
            monitor=ContainerMonitor.from_dict(monitor) if monitor else None,
        )


def new_container(
    docker_client: ContainerLookup, ip: str, port: int, service_name: str
) -> Container:
    """Create the container at ip:port, resolving its Docker id and name."""
    info = docker_client.get_container_info_by_addr(ip, port)
    names = info.get("Names") or []
    container = Container(
        id=generate_container_id(ip, port),
        ip=ip,
        port=port,
        service_name=service_name,
        container_id=info.get("Id") or "",
        container_name=names[0] if names else "",
    )
    return container