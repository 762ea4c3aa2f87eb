import struct
from datetime import timedelta
from ipaddress import IPv4Address

import pytest

from eoipkit.analyzer.decode import (
    Eoip,
    EoipV6,
    NonEoipUdp,
    Skipped,
    StandardGre,
    UdpEncap,
    decode_packet,
)
from eoipkit.analyzer.errors import PacketTooShortError, UnsupportedProtocolError
from eoipkit.analyzer.pcap_reader import RawPacket

MAGIC = bytes((0x20, 0x01, 0x64, 0x00))
FRAME = b"\x02\x00\x00\x00\x00\x01" + b"\x02\x00\x00\x00\x00\x02" + b"\x08\x00" + bytes(46)
PORT = 26969


def ipv4(proto, payload):
    header = bytearray(20)
    header[0] = 0x45
    header[2:4] = struct.pack(">H", 20 + len(payload))
    header[8] = 64
    header[9] = proto
    header[12:16] = bytes([10, 0, 0, 1])
    header[16:20] = bytes([10, 0, 0, 2])
    return bytes(header) + payload


def ipv6(next_header, payload):
    header = b"\x60\x00\x00\x00" + struct.pack(">H", len(payload)) + bytes([next_header, 64])
    return header + bytes(15) + b"\x01" + bytes(15) + b"\x02" + payload


def eoip(tid, frame, payload_len=None):
    plen = len(frame) if payload_len is None else payload_len
    return MAGIC + struct.pack(">H", plen) + struct.pack("<H", tid) + frame


def udp(sport, dport, payload):
    return struct.pack(">HHHH", sport, dport, 8 + len(payload), 0) + payload


def raw(ip_data):
    return RawPacket(timestamp=timedelta(seconds=1), ip_data=ip_data, full_data=b"L2" + ip_data)


def test_eoip_data_packet():
    pkt = decode_packet(1, raw(ipv4(47, eoip(100, FRAME))), PORT)
    assert pkt.variant == Eoip(magic=MAGIC, payload_len=len(FRAME), tunnel_id=100)
    assert pkt.tunnel_id == 100
    assert not pkt.is_keepalive
    assert pkt.inner_ethernet.ethertype == 0x0800
    assert pkt.inner_ethernet.src_mac == FRAME[6:12]
    assert pkt.deviations == []
    assert pkt.packet_number == 1
    assert pkt.timestamp == timedelta(seconds=1)
    assert pkt.raw_bytes == b"L2" + ipv4(47, eoip(100, FRAME))
    assert pkt.ip_header.src == IPv4Address("10.0.0.1")


def test_eoip_tunnel_id_is_little_endian_on_wire():
    pkt = decode_packet(1, raw(ipv4(47, MAGIC + b"\x00\x00\x01\x02")), PORT)
    assert pkt.tunnel_id == 513
    assert pkt.is_keepalive


def test_eoip_keepalive():
    pkt = decode_packet(2, raw(ipv4(47, eoip(7, b""))), PORT)
    assert pkt.is_keepalive
    assert pkt.inner_ethernet is None
    assert pkt.tunnel_id == 7
    assert pkt.deviations == []


def test_eoip_length_mismatch_is_flagged():
    pkt = decode_packet(1, raw(ipv4(47, eoip(5, FRAME, payload_len=len(FRAME) + 10))), PORT)
    assert [d.field for d in pkt.deviations] == ["gre.payload_len"]


def test_standard_gre():
    pkt = decode_packet(1, raw(ipv4(47, b"\x00\x00\x08\x00" + bytes(20))), PORT)
    assert pkt.variant == StandardGre(b"\x00\x00\x08\x00")
    assert pkt.tunnel_id == 0
    assert [d.field for d in pkt.deviations] == ["ip.protocol"]


def test_gre_too_short():
    with pytest.raises(PacketTooShortError):
        decode_packet(1, raw(ipv4(47, b"\x20\x01")), PORT)


def test_eoip_header_incomplete():
    with pytest.raises(PacketTooShortError):
        decode_packet(1, raw(ipv4(47, MAGIC + b"\x00\x00")), PORT)


def test_eoipv6_packet():
    pkt = decode_packet(1, raw(ipv6(97, b"\x03\x2a" + FRAME)), PORT)
    assert pkt.variant == EoipV6(version_nibble=3, tunnel_id=0x2A)
    assert pkt.tunnel_id == 0x2A
    assert pkt.inner_ethernet.ethertype == 0x0800
    assert pkt.deviations == []


def test_eoipv6_keepalive_and_bad_version():
    pkt = decode_packet(1, raw(ipv6(97, b"\x04\x05")), PORT)
    assert pkt.is_keepalive
    assert [d.field for d in pkt.deviations] == ["etherip.version"]


def test_eoipv6_too_short():
    with pytest.raises(PacketTooShortError):
        decode_packet(1, raw(ipv6(97, b"\x03")), PORT)


def test_udp_encapsulated_eoip():
    inner = eoip(300, FRAME)
    pkt = decode_packet(1, raw(ipv4(17, udp(40000, PORT, b"EO\x04\x00" + inner))), PORT)
    assert isinstance(pkt.variant, UdpEncap)
    assert pkt.variant.inner == Eoip(MAGIC, len(FRAME), 300)
    assert pkt.variant.udp_src_port == 40000
    assert pkt.variant.inner_type == 0x04
    assert pkt.tunnel_id == 300
    assert pkt.deviations == []


def test_udp_encapsulated_eoipv6_with_reserved_byte():
    payload = b"EO\x06\x01" + b"\x03\x09" + FRAME
    pkt = decode_packet(1, raw(ipv4(17, udp(PORT, 5000, payload))), PORT)
    assert pkt.variant.inner == EoipV6(3, 9)
    assert [d.field for d in pkt.deviations] == ["udp_shim.reserved"]


@pytest.mark.parametrize(
    "sport,dport,payload",
    [
        (1000, 2000, b"EO\x04\x00" + MAGIC + bytes(4)),
        (1000, PORT, b"XY\x04\x00"),
        (1000, PORT, b"EO\x07\x00"),
        (1000, PORT, b"EO"),
    ],
)
def test_non_eoip_udp(sport, dport, payload):
    pkt = decode_packet(1, raw(ipv4(17, udp(sport, dport, payload))), PORT)
    assert pkt.variant == NonEoipUdp(sport, dport)
    assert pkt.tunnel_id == 0


def test_udp_header_too_short():
    with pytest.raises(PacketTooShortError):
        decode_packet(1, raw(ipv4(17, b"\x00\x01\x02")), PORT)


def test_other_protocol_is_skipped():
    pkt = decode_packet(1, raw(ipv4(6, bytes(20))), PORT)
    assert pkt.variant == Skipped(6)
    assert pkt.deviations == []


def test_unsupported_ip_version():
    with pytest.raises(UnsupportedProtocolError):
        decode_packet(1, raw(b"\x50" + bytes(30)), PORT)