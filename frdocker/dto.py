"""Data transfer objects exchanged with the registry and gateways."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MSInstance:
    """A registered microservice instance."""

    name: str = ""
    ip: str = ""
    port: int = 0
    address: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> MSInstance:
        data = data or {}
        return MSInstance(
            name=data.get("name") or "",
            ip=data.get("ip") or "",
            port=int(data.get("port") or 0),
            address=data.get("address") or "",
            metadata=dict(data.get("metadata") or {}),
        )


def _instances(raw: dict[str, Any] | None) -> dict[str, list[MSInstance]]:
    return {
        name: [MSInstance.from_dict(item) for item in (items or [])]
        for name, items in (raw or {}).items()
    }


@dataclass
class MSConfig:
    """The registry's view of services, gateways and groups."""

    services: dict[str, list[MSInstance]] = field(default_factory=dict)
    gateways: dict[str, list[MSInstance]] = field(default_factory=dict)
    groups: list[str] = field(default_factory=list)

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> MSConfig:
        data = data or {}
        return MSConfig(
            services=_instances(data.get("services")),
            gateways=_instances(data.get("gateways")),
            groups=list(data.get("groups") or []),
        )


@dataclass
class ContainerHealth:
    """Result of a container health check."""

    status: str = ""

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> ContainerHealth:
        return ContainerHealth(status=(data or {}).get("status") or "")


@dataclass
class ReplayMessage:
    """Request body asking a gateway to replay messages of a down instance."""

    service_name: str
    down_instance_host: str
    down_instance_port: int
    replace_instance_host: str = ""
    replace_instance_port: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "serviceName": self.service_name,
            "downInstanceHost": self.down_instance_host,
            "downInstancePort": self.down_instance_port,
            "replaceInstanceHost": self.replace_instance_host,
            "replaceInstancePort": self.replace_instance_port,
        }


@dataclass
class CommonResponse:
    """Generic response envelope."""

    code: int = 0
    message: str = ""
    data: Any = None

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> CommonResponse:
        data = data or {}
        return CommonResponse(
            code=int(data.get("code") or 0),
            message=data.get("message") or "",
            data=data.get("data"),
        )