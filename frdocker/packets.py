"""Packet capture and decoding of TCP segments from Ethernet frames."""

from __future__ import annotations

import ipaddress
import socket
import struct
import time
from collections.abc import Iterator
from dataclasses import dataclass

ETH_P_ALL = 0x0003

_ETH_HEADER_LEN = 14
_ETHERTYPE_IPV4 = 0x0800
_ETHERTYPE_IPV6 = 0x86DD
_ETHERTYPE_VLAN = (0x8100, 0x88A8)
_PROTO_TCP = 6
_IPV6_EXTENSION_HEADERS = (0, 43, 60)
_IPV6_FRAGMENT_HEADER = 44

_SOL_PACKET = 263
_PACKET_ADD_MEMBERSHIP = 1
_PACKET_MR_PROMISC = 1
_POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class Packet:
    """A captured TCP segment with its addressing and capture time (epoch seconds)."""

    src_ip: str
    dst_ip: str
    src_port: int
    dst_port: int
    payload: bytes
    timestamp: float


def generate_container_id(ip: str, port: int) -> str:
    """Identify a container by its address in canonical form.

    Gateways forward from random ports, so the port takes no part.
    Strings that are not IP addresses are used as they are.
    """
    try:
        return str(ipaddress.ip_address(ip))
    except ValueError:
        return ip


def generate_state_id(container_id: str, api: str, src: str, dst: str) -> str:
    """Identify a state of a container by API and the services around it."""
    return f"{container_id}:{api}:{src}:{dst}"


def _parse_ipv4(data: bytes) -> tuple[str, str, bytes] | None:
    if len(data) < 20 or data[0] >> 4 != 4:
        return None
    header_len = (data[0] & 0x0F) * 4
    if header_len < 20 or len(data) < header_len:
        return None
    if data[9] != _PROTO_TCP:
        return None
    flags_fragment = int.from_bytes(data[6:8], "big")
    if flags_fragment & 0x1FFF:
        return None
    total = int.from_bytes(data[2:4], "big")
    end = total if header_len <= total <= len(data) else len(data)
    src = str(ipaddress.IPv4Address(data[12:16]))
    dst = str(ipaddress.IPv4Address(data[16:20]))
    return src, dst, data[header_len:end]


def _parse_ipv6(data: bytes) -> tuple[str, str, bytes] | None:
    if len(data) < 40 or data[0] >> 4 != 6:
        return None
    payload_len = int.from_bytes(data[4:6], "big")
    end = min(40 + payload_len, len(data))
    next_header = data[6]
    offset = 40
    while next_header != _PROTO_TCP:
        if offset + 8 > end:
            return None
        if next_header in _IPV6_EXTENSION_HEADERS:
            length = (data[offset + 1] + 1) * 8
        elif next_header == _IPV6_FRAGMENT_HEADER:
            if int.from_bytes(data[offset + 2 : offset + 4], "big") & 0xFFF8:
                return None
            length = 8
        else:
            return None
        next_header = data[offset]
        offset += length
    src = str(ipaddress.IPv6Address(data[8:24]))
    dst = str(ipaddress.IPv6Address(data[24:40]))
    return src, dst, data[offset:end]


def parse_ethernet_frame(frame: bytes, timestamp: float | None = None) -> Packet | None:
    """Decode a TCP segment carried over IPv4 or IPv6; None for anything else."""
    if timestamp is None:
        timestamp = time.time()
    frame = bytes(frame)
    if len(frame) < _ETH_HEADER_LEN:
        return None
    ethertype = int.from_bytes(frame[12:14], "big")
    offset = _ETH_HEADER_LEN
    while ethertype in _ETHERTYPE_VLAN:
        if len(frame) < offset + 4:
            return None
        ethertype = int.from_bytes(frame[offset + 2 : offset + 4], "big")
        offset += 4
    if ethertype == _ETHERTYPE_IPV4:
        network = _parse_ipv4(frame[offset:])
    elif ethertype == _ETHERTYPE_IPV6:
        network = _parse_ipv6(frame[offset:])
    else:
        return None
    if network is None:
        return None
    src_ip, dst_ip, segment = network
    if len(segment) < 20:
        return None
    data_offset = (segment[12] >> 4) * 4
    if data_offset < 20 or data_offset > len(segment):
        return None
    src_port, dst_port = struct.unpack("!HH", segment[:4])
    return Packet(
        src_ip=src_ip,
        dst_ip=dst_ip,
        src_port=src_port,
        dst_port=dst_port,
        payload=segment[data_offset:],
        timestamp=timestamp,
    )


def _open_live(interface: str, promiscuous: bool) -> socket.socket:
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise OSError("live capture requires AF_PACKET sockets")
    sock = socket.socket(family, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    try:
        sock.bind((interface, 0))
        if promiscuous:
            mreq = struct.pack(
                "iHH8s", socket.if_nametoindex(interface), _PACKET_MR_PROMISC, 0, b""
            )
            sock.setsockopt(_SOL_PACKET, _PACKET_ADD_MEMBERSHIP, mreq)
        sock.settimeout(_POLL_INTERVAL)
    except OSError:
        sock.close()
        raise
    return sock


class PacketCapture:
    """Live capture of TCP packets on a network interface."""

    def __init__(
        self,
        interface: str,
        snaplen: int = 65535,
        promiscuous: bool = True,
        sock: socket.socket | None = None,
    ) -> None:
        self.interface = interface
        self.snaplen = snaplen
        self._sock = sock if sock is not None else _open_live(interface, promiscuous)
        self.closed = False

    def packets(self) -> Iterator[Packet]:
        """Yield captured TCP packets until the capture is closed."""
        while not self.closed:
            try:
                frame = self._sock.recv(self.snaplen)
            except TimeoutError:
                continue
            except OSError:
                if self.closed:
                    return
                raise
            if not frame:
                return
            packet = parse_ethernet_frame(frame, time.time())
            if packet is not None:
                yield packet

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._sock.close()

    def __enter__(self) -> PacketCapture:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()