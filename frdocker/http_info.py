"""HTTP message information extracted from captured packets."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

from frdocker import config
from frdocker.model import ContainerType
from frdocker.packets import Packet

_MIN_PAYLOAD = 16
_HTTP_VERSION = b"HTTP/1.1"


class InvalidPacketError(ValueError):
    """The packet does not carry a traced HTTP message."""


class HttpType(IntEnum):
    INVALID = 0
    REQUEST = 1
    RESPONSE = 2

    def __str__(self) -> str:
        return self.name


@dataclass
class HttpRole:
    """One end of an HTTP exchange."""

    id: str = ""
    ip: str = ""
    port: int = 0
    type: ContainerType = ContainerType.INVALID
    name: str = ""


@dataclass
class HttpInfo:
    """A traced HTTP request or response between two containers."""

    type: HttpType = HttpType.INVALID
    url: str = ""
    src: HttpRole = field(default_factory=HttpRole)
    dst: HttpRole = field(default_factory=HttpRole)
    trace_id: str = ""
    timestamp: float = 0.0

    def is_enter_container(self, container_id: str) -> bool:
        return self.dst.type == ContainerType.SERVICE and self.dst.id == container_id

    def is_start_container_process(self, container_id: str) -> bool:
        return self.is_enter_container(container_id) and self.type == HttpType.REQUEST

    def is_leave_container(self, container_id: str) -> bool:
        return self.src.type == ContainerType.SERVICE and self.src.id == container_id

    def is_end_container_process(self, container_id: str) -> bool:
        return self.is_leave_container(container_id) and self.type == HttpType.RESPONSE

    def get_other_role(self, container_id: str) -> HttpRole:
        return self.dst if self.src.id == container_id else self.src


def parse_trace_id(payload: bytes) -> str:
    """Return the value of the trace id header."""
    idx = payload.find(config.TRACE_ID_HEADER.encode())
    if idx == -1:
        raise InvalidPacketError("invalid payload")
    line = payload[idx:]
    for stop in (b"\r", b"\n"):
        cut = line.find(stop)
        if cut != -1:
            line = line[:cut]
    parts = line.decode("utf-8", errors="replace").split(": ")
    if len(parts) < 2:
        raise InvalidPacketError("invalid payload")
    return parts[1]


def parse_http_type(payload: bytes) -> HttpType:
    """Classify the message: a response starts with the HTTP version."""
    idx = payload.find(_HTTP_VERSION)
    if idx == -1:
        raise InvalidPacketError("invalid payload")
    return HttpType.RESPONSE if idx == 0 else HttpType.REQUEST


def parse_url(payload: bytes) -> str:
    """Return the request target of a request line."""
    start = payload.find(b"/")
    end = payload.find(b"HTTP")
    if start == -1 or end == -1 or start >= end:
        raise InvalidPacketError("invalid payload")
    return payload[start : end - 1].decode("utf-8", errors="replace")


def parse_http_info(packet: Packet | None) -> HttpInfo:
    """Build the HTTP information of a captured packet."""
    if packet is None or len(packet.payload) < _MIN_PAYLOAD:
        raise InvalidPacketError("invalid packet")
    payload = packet.payload
    try:
        trace_id = parse_trace_id(payload)
        http_type = parse_http_type(payload)
        url = parse_url(payload) if http_type == HttpType.REQUEST else ""
    except InvalidPacketError as exc:
        raise InvalidPacketError("invalid packet") from exc
    return HttpInfo(
        type=http_type,
        url=url,
        src=HttpRole(ip=packet.src_ip, port=packet.src_port),
        dst=HttpRole(ip=packet.dst_ip, port=packet.dst_port),
        trace_id=trace_id,
        timestamp=packet.timestamp,
    )