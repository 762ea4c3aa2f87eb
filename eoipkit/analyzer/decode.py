"""Layer-by-layer decoding of EoIP, EoIPv6 and UDP-encapsulated packets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import NamedTuple, Union

from eoipkit.analyzer.deviation import (
    Deviation,
    check_eoip_deviations,
    check_eoipv6_deviations,
    check_udp_shim_deviations,
    flag_standard_gre,
)
from eoipkit.analyzer.errors import AnalyzerError, PacketTooShortError
from eoipkit.analyzer.ethernet import EthernetFrame, parse_ethernet_frame
from eoipkit.analyzer.ip import PROTO_ETHERIP, PROTO_GRE, PROTO_UDP, IpHeader, parse_ip_header
from eoipkit.analyzer.pcap_reader import RawPacket

EOIP_MAGIC = bytes((0x20, 0x01, 0x64, 0x00))
EOIP_HEADER_LEN = 8
ETHERIP_HEADER_LEN = 2
UDP_SHIM_MAGIC = b"EO"
UDP_SHIM_LEN = 4
UDP_INNER_TYPE_EOIP = 0x04
UDP_INNER_TYPE_EOIPV6 = 0x06
DEFAULT_UDP_PORT = 26969

_MIN_ETHERNET_LEN = 14


@dataclass(frozen=True)
class Eoip:
    """EoIP over IPv4 (IP protocol 47, GRE-like)."""

    magic: bytes
    payload_len: int
    tunnel_id: int


@dataclass(frozen=True)
class EoipV6:
    """EoIPv6 over IPv6 (IP protocol 97, EtherIP)."""

    version_nibble: int
    tunnel_id: int


@dataclass(frozen=True)
class UdpEncap:
    """A tunnel packet carried in UDP behind the EO shim."""

    udp_src_port: int
    udp_dst_port: int
    inner_type: int
    reserved_byte: int
    inner: Union[Eoip, EoipV6]


@dataclass(frozen=True)
class StandardGre:
    """Protocol 47 without the MikroTik magic."""

    first_bytes: bytes


@dataclass(frozen=True)
class NonEoipUdp:
    """A UDP packet without the EO shim."""

    udp_src_port: int
    udp_dst_port: int


@dataclass(frozen=True)
class Skipped:
    """An IP protocol the analyzer does not decode."""

    protocol: int


Variant = Union[Eoip, EoipV6, UdpEncap, StandardGre, NonEoipUdp, Skipped]


@dataclass
class DecodedPacket:
    """A packet with all of its layers parsed."""

    packet_number: int
    timestamp: timedelta
    ip_header: IpHeader
    variant: Variant
    tunnel_id: int
    is_keepalive: bool
    inner_ethernet: EthernetFrame | None
    deviations: list[Deviation] = field(default_factory=list)
    raw_bytes: bytes = b""


class _Layers(NamedTuple):
    variant: Variant
    tunnel_id: int = 0
    is_keepalive: bool = False
    inner_ethernet: EthernetFrame | None = None
    deviations: tuple[Deviation, ...] = ()


def decode_packet(packet_number: int, raw: RawPacket, udp_port: int = DEFAULT_UDP_PORT) -> DecodedPacket:
    """Decode one captured packet; raise AnalyzerError if it is malformed."""
    ip_header, ip_payload = parse_ip_header(raw.ip_data)
    protocol = ip_header.protocol

    if protocol == PROTO_GRE:
        layers = _decode_eoip(ip_payload)
    elif protocol == PROTO_ETHERIP:
        layers = _decode_eoipv6(ip_payload)
    elif protocol == PROTO_UDP:
        layers = _decode_udp(ip_payload, udp_port)
    else:
        layers = _Layers(Skipped(protocol))

    return DecodedPacket(
        packet_number=packet_number,
        timestamp=raw.timestamp,
        ip_header=ip_header,
        variant=layers.variant,
        tunnel_id=layers.tunnel_id,
        is_keepalive=layers.is_keepalive,
        inner_ethernet=layers.inner_ethernet,
        deviations=list(layers.deviations),
        raw_bytes=bytes(raw.full_data),
    )


def _inner_frame(eth_data: bytes, is_keepalive: bool) -> EthernetFrame | None:
    if is_keepalive or len(eth_data) < _MIN_ETHERNET_LEN:
        return None
    try:
        return parse_ethernet_frame(eth_data)
    except AnalyzerError:
        return None


def _decode_eoip(payload: bytes) -> _Layers:
    if len(payload) < 4:
        raise PacketTooShortError("GRE payload too short")

    magic = bytes(payload[:4])
    if magic != EOIP_MAGIC:
        return _Layers(StandardGre(magic), deviations=(flag_standard_gre(magic),))

    if len(payload) < EOIP_HEADER_LEN:
        raise PacketTooShortError("EoIP header incomplete")

    payload_len = int.from_bytes(payload[4:6], "big")
    tunnel_id = int.from_bytes(payload[6:8], "little")
    eth_data = payload[EOIP_HEADER_LEN:]
    is_keepalive = payload_len == 0

    return _Layers(
        Eoip(magic=magic, payload_len=payload_len, tunnel_id=tunnel_id),
        tunnel_id,
        is_keepalive,
        _inner_frame(eth_data, is_keepalive),
        tuple(check_eoip_deviations(magic, payload_len, len(eth_data))),
    )


def _decode_eoipv6(payload: bytes) -> _Layers:
    if len(payload) < ETHERIP_HEADER_LEN:
        raise PacketTooShortError("EtherIP payload too short")

    version_nibble = payload[0] & 0x0F
    tunnel_id = ((payload[0] & 0xF0) << 4) | payload[1]
    eth_data = payload[ETHERIP_HEADER_LEN:]
    is_keepalive = not eth_data

    return _Layers(
        EoipV6(version_nibble=version_nibble, tunnel_id=tunnel_id),
        tunnel_id,
        is_keepalive,
        _inner_frame(eth_data, is_keepalive),
        tuple(check_eoipv6_deviations(version_nibble)),
    )


def _decode_udp(payload: bytes, expected_port: int) -> _Layers:
    if len(payload) < 8:
        raise PacketTooShortError("UDP header too short")

    src_port = int.from_bytes(payload[0:2], "big")
    dst_port = int.from_bytes(payload[2:4], "big")
    udp_payload = payload[8:]
    not_eoip = _Layers(NonEoipUdp(src_port, dst_port))

    if expected_port not in (src_port, dst_port):
        return not_eoip

    if len(udp_payload) < UDP_SHIM_LEN or udp_payload[:2] != UDP_SHIM_MAGIC:
        return not_eoip
    inner_type = udp_payload[2]
    if inner_type == UDP_INNER_TYPE_EOIP:
        inner_decoder = _decode_eoip
    elif inner_type == UDP_INNER_TYPE_EOIPV6:
        inner_decoder = _decode_eoipv6
    else:
        return not_eoip

    reserved_byte = udp_payload[3]
    shim_deviations = tuple(check_udp_shim_deviations(reserved_byte))
    inner = inner_decoder(udp_payload[UDP_SHIM_LEN:])

    return _Layers(
        UdpEncap(
            udp_src_port=src_port,
            udp_dst_port=dst_port,
            inner_type=inner_type,
            reserved_byte=reserved_byte,
            inner=inner.variant,
        ),
        inner.tunnel_id,
        inner.is_keepalive,
        inner.inner_ethernet,
        shim_deviations + inner.deviations,
    )