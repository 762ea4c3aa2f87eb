import io
import struct
from datetime import timedelta

import pytest

from eoipkit.analyzer.errors import (
    CaptureIOError,
    PacketTooShortError,
    PcapParseError,
    UnsupportedProtocolError,
)
from eoipkit.analyzer.pcap_reader import LinkType, PcapSource, RawPacket, strip_link_layer

ETH_HEADER = b"\x02\x00\x00\x00\x00\x01" + b"\x02\x00\x00\x00\x00\x02" + b"\x08\x00"
IP_DATA = bytes([0x45]) + bytes(19)
FRAME = ETH_HEADER + IP_DATA


def pcap_file(packets, endian="<", link_type=1):
    out = struct.pack(endian + "IHHiIII", 0xA1B2C3D4, 2, 4, 0, 0, 65535, link_type)
    for sec, usec, data in packets:
        out += struct.pack(endian + "IIII", sec, usec, len(data), len(data)) + data
    return out


def block(block_type, body):
    body = body + bytes(-len(body) % 4)
    length = 12 + len(body)
    return struct.pack("<II", block_type, length) + body + struct.pack("<I", length)


def shb():
    return block(0x0A0D0D0A, struct.pack("<IHHq", 0x1A2B3C4D, 1, 0, -1))


def idb(link_type=1, options=b""):
    return block(1, struct.pack("<HHI", link_type, 0, 65535) + options)


def epb(ticks, data, iface=0):
    header = struct.pack("<IIIII", iface, ticks >> 32, ticks & 0xFFFFFFFF, len(data), len(data))
    return block(6, header + data)


def spb(data):
    return block(3, struct.pack("<I", len(data)) + data)


def test_little_endian_pcap():
    source = PcapSource(io.BytesIO(pcap_file([(5, 250, FRAME)])))
    packets = list(source)
    assert packets == [
        RawPacket(timestamp=timedelta(seconds=5, microseconds=250), ip_data=IP_DATA, full_data=FRAME)
    ]


def test_big_endian_pcap():
    source = PcapSource(io.BytesIO(pcap_file([(1, 2, FRAME), (3, 4, FRAME)], endian=">")))
    packets = list(source)
    assert [p.timestamp for p in packets] == [
        timedelta(seconds=1, microseconds=2),
        timedelta(seconds=3, microseconds=4),
    ]
    assert all(p.ip_data == IP_DATA for p in packets)


def test_raw_link_type_keeps_data():
    source = PcapSource(io.BytesIO(pcap_file([(0, 0, IP_DATA)], link_type=101)))
    assert [p.ip_data for p in source] == [IP_DATA]


def test_bad_packet_is_yielded_as_error_and_reading_continues():
    data = pcap_file([(0, 0, b"\x00" * 10), (1, 0, FRAME)])
    results = list(PcapSource(io.BytesIO(data)))
    assert isinstance(results[0], PacketTooShortError)
    assert isinstance(results[1], RawPacket)
    assert results[1].ip_data == IP_DATA


def test_truncated_record_ends_with_parse_error():
    data = pcap_file([(0, 0, FRAME)])[:-5]
    results = list(PcapSource(io.BytesIO(data)))
    assert len(results) == 1
    assert isinstance(results[0], PcapParseError)


def test_unrecognized_magic():
    with pytest.raises(PcapParseError):
        PcapSource(io.BytesIO(b"\x00\x01\x02\x03" + bytes(40)))


def test_file_too_short_for_magic():
    with pytest.raises(CaptureIOError):
        PcapSource(io.BytesIO(b"\xd4\xc3"))


def test_truncated_pcap_header():
    with pytest.raises(PcapParseError):
        PcapSource(io.BytesIO(bytes((0xD4, 0xC3, 0xB2, 0xA1)) + bytes(5)))


def test_pcapng_enhanced_and_simple_blocks():
    data = shb() + idb() + epb(3_000_500, FRAME) + block(5, b"") + spb(FRAME)
    results = list(PcapSource(io.BytesIO(data)))
    assert results == [
        RawPacket(timedelta(seconds=3, microseconds=500), IP_DATA, FRAME),
        RawPacket(timedelta(0), IP_DATA, FRAME),
    ]


def test_pcapng_link_type_from_interface_block():
    data = shb() + idb(link_type=101) + epb(0, IP_DATA)
    source = PcapSource(io.BytesIO(data))
    results = list(source)
    assert [r.ip_data for r in results] == [IP_DATA]
    assert source.link_type == LinkType.RAW


def test_pcapng_nanosecond_resolution():
    options = struct.pack("<HH", 9, 1) + b"\x09" + bytes(3) + struct.pack("<HH", 0, 0)
    data = shb() + idb(options=options) + epb(2_000_001_000, FRAME)
    results = list(PcapSource(io.BytesIO(data)))
    assert results[0].timestamp == timedelta(seconds=2, microseconds=1)


def test_pcapng_bad_block_length():
    data = shb() + struct.pack("<II", 6, 13) + bytes(8)
    results = list(PcapSource(io.BytesIO(data)))
    assert len(results) == 1
    assert isinstance(results[0], PcapParseError)


def test_pcapng_bad_byte_order_magic():
    bad = struct.pack("<II", 0x0A0D0D0A, 28) + b"\x00\x00\x00\x00" + bytes(16)
    with pytest.raises(PcapParseError):
        PcapSource(io.BytesIO(bad))


def test_strip_ethernet_vlan():
    vlan_frame = ETH_HEADER[:12] + b"\x81\x00\x00\x64\x08\x00" + IP_DATA
    assert strip_link_layer(LinkType.ETHERNET, vlan_frame) == IP_DATA


def test_strip_ethernet_vlan_too_short():
    with pytest.raises(PacketTooShortError):
        strip_link_layer(LinkType.ETHERNET, ETH_HEADER[:12] + b"\x81\x00\x00")


def test_strip_linux_cooked():
    assert strip_link_layer(LinkType.LINUX_SLL, bytes(16) + IP_DATA) == IP_DATA
    assert strip_link_layer(LinkType.LINUX_SLL2, bytes(20) + IP_DATA) == IP_DATA
    with pytest.raises(PacketTooShortError):
        strip_link_layer(LinkType.LINUX_SLL, bytes(15))
    with pytest.raises(PacketTooShortError):
        strip_link_layer(LinkType.LINUX_SLL2, bytes(19))


def test_strip_unsupported_link_type():
    with pytest.raises(UnsupportedProtocolError):
        strip_link_layer(105, FRAME)