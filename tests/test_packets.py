import socket
import struct
import time

from frdocker.packets import (
    Packet,
    PacketCapture,
    generate_container_id,
    generate_state_id,
    parse_ethernet_frame,
)

SRC_MAC = bytes.fromhex("020000000001")
DST_MAC = bytes.fromhex("020000000002")
PAYLOAD = b"GET /api/users HTTP/1.1\r\ntrace-id: 7f3a\r\n\r\n"


def _tcp(sport, dport, payload):
    return struct.pack("!HHIIBBHHH", sport, dport, 0, 0, 5 << 4, 0x18, 65535, 0, 0) + payload


def _ipv4(src, dst, segment, proto=6):
    header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45,
        0,
        20 + len(segment),
        0,
        0,
        64,
        proto,
        0,
        socket.inet_aton(src),
        socket.inet_aton(dst),
    )
    return header + segment


def _ipv6(src, dst, segment, next_header=6):
    header = struct.pack(
        "!IHBB16s16s",
        6 << 28,
        len(segment),
        next_header,
        64,
        socket.inet_pton(socket.AF_INET6, src),
        socket.inet_pton(socket.AF_INET6, dst),
    )
    return header + segment


def _ether(ethertype, body):
    return DST_MAC + SRC_MAC + struct.pack("!H", ethertype) + body


def _tcp_frame(payload=PAYLOAD):
    return _ether(0x0800, _ipv4("172.18.0.2", "172.18.0.3", _tcp(41000, 8080, payload)))


def test_parse_ipv4_tcp_frame():
    packet = parse_ethernet_frame(_tcp_frame(), 12.5)
    assert packet == Packet("172.18.0.2", "172.18.0.3", 41000, 8080, PAYLOAD, 12.5)


def test_ethernet_padding_is_ignored():
    packet = parse_ethernet_frame(_tcp_frame(b"") + b"\x00" * 10, 1.0)
    assert packet.payload == b""


def test_vlan_tagged_frame():
    ip = _ipv4("10.0.0.1", "10.0.0.2", _tcp(1, 2, PAYLOAD))
    frame = _ether(0x8100, struct.pack("!HH", 100, 0x0800) + ip)
    packet = parse_ethernet_frame(frame, 1.0)
    assert (packet.src_ip, packet.dst_ip, packet.payload) == ("10.0.0.1", "10.0.0.2", PAYLOAD)


def test_parse_ipv6_tcp_frame():
    frame = _ether(0x86DD, _ipv6("fd00::1", "fd00::2", _tcp(5000, 80, PAYLOAD)))
    packet = parse_ethernet_frame(frame, 2.0)
    assert packet == Packet("fd00::1", "fd00::2", 5000, 80, PAYLOAD, 2.0)


def test_udp_is_rejected():
    frame = _ether(0x0800, _ipv4("10.0.0.1", "10.0.0.2", _tcp(1, 2, PAYLOAD), proto=17))
    assert parse_ethernet_frame(frame, 1.0) is None


def test_non_ip_ethertype_is_rejected():
    assert parse_ethernet_frame(_ether(0x0806, b"\x00" * 28), 1.0) is None


def test_truncated_frame_is_rejected():
    assert parse_ethernet_frame(_tcp_frame()[:20], 1.0) is None


def test_default_timestamp_is_now():
    before = time.time()
    packet = parse_ethernet_frame(_tcp_frame())
    after = time.time()
    assert before <= packet.timestamp <= after


def test_container_id_ignores_port():
    assert generate_container_id("172.18.0.2", 8080) == "172.18.0.2"
    assert generate_container_id("172.18.0.2", 1) == generate_container_id("172.18.0.2", 2)


def test_state_id_joins_parts():
    assert generate_state_id("c1", "/api", "gw", "svc") == "c1:/api:gw:svc"


def test_capture_skips_non_tcp_and_yields_tcp():
    reader, writer = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        capture = PacketCapture("test0", sock=reader)
        udp = _ether(0x0800, _ipv4("10.0.0.1", "10.0.0.2", _tcp(1, 2, b"x"), proto=17))
        writer.send(udp)
        writer.send(_tcp_frame())
        writer.send(b"")
        packets = list(capture.packets())
        assert [p.payload for p in packets] == [PAYLOAD]
        assert packets[0].dst_port == 8080
    finally:
        writer.close()
        reader.close()


def test_capture_close_is_idempotent():
    reader, writer = socket.socketpair(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        with PacketCapture("test0", sock=reader) as capture:
            pass
        capture.close()
        assert capture.closed is True
        assert reader.fileno() == -1
        assert list(capture.packets()) == []
    finally:
        writer.close()