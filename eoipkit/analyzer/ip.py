"""IPv4 and IPv6 header parsing."""

from __future__ import annotations

from dataclasses import dataclass
from ipaddress import IPv4Address, IPv6Address
from typing import ClassVar, Union

from eoipkit.analyzer.errors import PacketTooShortError, UnsupportedProtocolError

PROTO_GRE = 47
PROTO_ETHERIP = 97
PROTO_UDP = 17

_IPV6_HEADER_LEN = 40


@dataclass(frozen=True)
class Ipv4Header:
    """The fields of an IPv4 header the analyzer uses."""

    header_len: int
    total_length: int
    ttl: int
    protocol: int
    src: IPv4Address
    dst: IPv4Address

    version: ClassVar[int] = 4


@dataclass(frozen=True)
class Ipv6Header:
    """The fields of an IPv6 fixed header the analyzer uses."""

    payload_length: int
    next_header: int
    hop_limit: int
    src: IPv6Address
    dst: IPv6Address

    version: ClassVar[int] = 6

    @property
    def protocol(self) -> int:
        return self.next_header

    @property
    def ttl(self) -> int:
        return self.hop_limit

    @property
    def total_length(self) -> int:
        return _IPV6_HEADER_LEN + self.payload_length

    @property
    def header_len(self) -> int:
        return _IPV6_HEADER_LEN


IpHeader = Union[Ipv4Header, Ipv6Header]


def parse_ip_header(data: bytes) -> tuple[IpHeader, bytes]:
    """Parse an IP header and return it with the payload it announces."""
    data = bytes(data)
    if not data:
        raise PacketTooShortError("IP header: empty")

    version = data[0] >> 4
    if version == 4:
        return _parse_ipv4(data)
    if version == 6:
        return _parse_ipv6(data)
    raise UnsupportedProtocolError(f"IP version {version}")


def _parse_ipv4(data: bytes) -> tuple[Ipv4Header, bytes]:
    if len(data) < 20:
        raise PacketTooShortError(f"IPv4: got {len(data)} bytes, need 20")

    ihl = data[0] & 0x0F
    header_len = ihl * 4
    if header_len < 20 or len(data) < header_len:
        raise PacketTooShortError(f"IPv4: IHL={ihl} ({header_len}B) but got {len(data)}B")

    total_length = int.from_bytes(data[2:4], "big")
    header = Ipv4Header(
        header_len=header_len,
        total_length=total_length,
        ttl=data[8],
        protocol=data[9],
        src=IPv4Address(data[12:16]),
        dst=IPv4Address(data[16:20]),
    )
    payload_end = min(total_length, len(data))
    return header, data[header_len:payload_end]


def _parse_ipv6(data: bytes) -> tuple[Ipv6Header, bytes]:
    if len(data) < _IPV6_HEADER_LEN:
        raise PacketTooShortError(f"IPv6: got {len(data)} bytes, need 40")

    payload_length = int.from_bytes(data[4:6], "big")
    header = Ipv6Header(
        payload_length=payload_length,
        next_header=data[6],
        hop_limit=data[7],
        src=IPv6Address(data[8:24]),
        dst=IPv6Address(data[24:40]),
    )
    payload_end = min(_IPV6_HEADER_LEN + payload_length, len(data))
    return header, data[_IPV6_HEADER_LEN:payload_end]