"""HTTP calls to the registry, container health endpoints and gateways."""

from __future__ import annotations

from typing import Any

import httpx

from frdocker import config
from frdocker.dto import CommonResponse, ContainerHealth, MSConfig, ReplayMessage

_JSON = "application/json"


class GatewayNotifyError(Exception):
    """The gateway refused or failed a replay request."""

    def __init__(self, code: int, status_code: int) -> None:
        super().__init__(f"error result code {code} or status code: {status_code}")
        self.code = code
        self.status_code = status_code


def _result(response: httpx.Response) -> dict[str, Any] | None:
    if not response.is_success:
        return None
    data = response.json()
    return data if isinstance(data, dict) else None


def get_registry_info(addr: str) -> MSConfig:
    """Fetch the services and gateways known to the registry."""
    url = f"http://{addr}{config.REGISTRY_INFO_URI}"
    response = httpx.get(url, headers={"Accept": _JSON}, timeout=None)
    return MSConfig.from_dict(_result(response))


def check_container_health(ip: str, port: int) -> bool:
    """Return whether the container reports itself UP."""
    url = f"http://{ip}:{port}{config.CONTAINER_HEALTH_CHECK_URI}"
    response = httpx.get(url, timeout=config.CONTAINER_HEALTH_CHECK_TIMEOUT)
    if response.status_code != 200:
        raise httpx.HTTPStatusError(
            f"check container health failed, status code: {response.status_code}",
            request=response.request,
            response=response,
        )
    return ContainerHealth.from_dict(_result(response)).status == "UP"


def notify_gateway_replay_message(
    gateway_addr: str, service_name: str, container_ip: str, container_port: int
) -> None:
    """Ask a gateway to replay the messages of a failed instance."""
    url = f"http://{gateway_addr}{config.GATEWAY_REPLAY_MESSAGE_URI}"
    body = ReplayMessage(
        service_name=service_name,
        down_instance_host=container_ip,
        down_instance_port=container_port,
    ).to_dict()
    response = httpx.post(
        url,
        json=body,
        headers={"Content-Type": _JSON, "Accept": _JSON},
        timeout=None,
    )
    result = CommonResponse.from_dict(_result(response))
    if result.code != 200 or response.status_code != 200:
        raise GatewayNotifyError(result.code, response.status_code)