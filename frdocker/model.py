"""Service and container-type model of the monitored system."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ContainerType(IntEnum):
    """Role of a container in the microservice system."""

    INVALID = 0
    SERVICE = 1
    GATEWAY = 2

    def __str__(self) -> str:
        return self.name


@dataclass
class Service:
    """A microservice or gateway and the containers that run it."""

    service_name: str
    group: str | None = None
    gateway: str = ""
    is_leaf: bool = False
    is_root: bool = False
    calls: list[str] = field(default_factory=list)
    containers: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.group is None:
            self.group = self.service_name

    def to_dict(self) -> dict[str, Any]:
        return {
            "serviceName": self.service_name,
            "group": self.group,
            "gateway": self.gateway,
            "isLeaf": self.is_leaf,
            "isRoot": self.is_root,
            "calls": list(self.calls),
            "containers": list(self.containers),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Service:
        return Service(
            service_name=data.get("serviceName") or "",
            group=data.get("group") or "",
            gateway=data.get("gateway") or "",
            is_leaf=bool(data.get("isLeaf", False)),
            is_root=bool(data.get("isRoot", False)),
            calls=list(data.get("calls") or []),
            containers=list(data.get("containers") or []),
        )