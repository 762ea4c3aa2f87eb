"""Reading packets from pcap and pcapng capture files."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import BinaryIO, Iterator, Union

from eoipkit.analyzer.errors import (
    AnalyzerError,
    CaptureIOError,
    PacketTooShortError,
    PcapParseError,
    UnsupportedProtocolError,
)

_PCAPNG_SHB = bytes((0x0A, 0x0D, 0x0D, 0x0A))
_PCAP_LE = bytes((0xD4, 0xC3, 0xB2, 0xA1))
_PCAP_BE = bytes((0xA1, 0xB2, 0xC3, 0xD4))
_BOM_LE = bytes((0x4D, 0x3C, 0x2B, 0x1A))
_BOM_BE = bytes((0x1A, 0x2B, 0x3C, 0x4D))

_BLOCK_IDB = 0x00000001
_BLOCK_SPB = 0x00000003
_BLOCK_EPB = 0x00000006
_OPT_END = 0
_OPT_IF_TSRESOL = 9
_DEFAULT_UNITS = 1_000_000


class LinkType(IntEnum):
    """Link-layer header types the reader can strip."""

    ETHERNET = 1
    RAW = 101
    LINUX_SLL = 113
    LINUX_SLL2 = 276


@dataclass(frozen=True)
class RawPacket:
    """A captured packet with its link-layer header stripped."""

    timestamp: timedelta
    ip_data: bytes
    full_data: bytes


def _link_name(link_type: int) -> str:
    try:
        return LinkType(link_type).name
    except ValueError:
        return str(int(link_type))


def strip_link_layer(link_type: int, data: bytes) -> bytes:
    """Return the bytes after the link-layer header, starting at the IP header."""
    data = bytes(data)
    if link_type == LinkType.ETHERNET:
        if len(data) < 14:
            raise PacketTooShortError("Ethernet frame too short")
        ethertype = int.from_bytes(data[12:14], "big")
        offset = 18 if ethertype == 0x8100 else 14
        if len(data) < offset:
            raise PacketTooShortError("Ethernet+VLAN frame too short")
        return data[offset:]
    if link_type == LinkType.RAW:
        return data
    if link_type == LinkType.LINUX_SLL:
        if len(data) < 16:
            raise PacketTooShortError("Linux SLL header too short")
        return data[16:]
    if link_type == LinkType.LINUX_SLL2:
        if len(data) < 20:
            raise PacketTooShortError("Linux SLL2 header too short")
        return data[20:]
    raise UnsupportedProtocolError(f"unsupported link type: {_link_name(link_type)}")


def _to_timedelta(ticks: int, units_per_second: int) -> timedelta:
    seconds, fraction = divmod(ticks, units_per_second)
    return timedelta(seconds=seconds, microseconds=fraction * 1_000_000 // units_per_second)


def _tsresol(options: bytes, endian: str) -> int:
    """Read the if_tsresol option of an interface block, in units per second."""
    offset = 0
    while offset + 4 <= len(options):
        code, length = struct.unpack_from(endian + "HH", options, offset)
        if code == _OPT_END:
            break
        value = options[offset + 4:offset + 4 + length]
        if code == _OPT_IF_TSRESOL and value:
            exponent = value[0] & 0x7F
            return 2**exponent if value[0] & 0x80 else 10**exponent
        offset += 4 + length + (-length % 4)
    return _DEFAULT_UNITS


PacketResult = Union[RawPacket, AnalyzerError]


class PcapSource:
    """Iterate over the packets of a pcap or pcapng stream.

    The file header is read on construction. Iteration yields a RawPacket for
    each packet, or an AnalyzerError for a packet that cannot be used; a
    structural error in the file is yielded last and ends the iteration.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._resolutions: list[int] = []
        magic = stream.read(4)
        if len(magic) < 4:
            raise CaptureIOError("failed to fill whole buffer")

        if magic == _PCAPNG_SHB:
            self.format = "pcapng"
            self._endian = self._read_section_header(magic)
            self.link_type: int = LinkType.ETHERNET
        elif magic in (_PCAP_LE, _PCAP_BE):
            self.format = "pcap"
            self._endian = "<" if magic == _PCAP_LE else ">"
            header = stream.read(20)
            if len(header) < 20:
                raise PcapParseError("truncated pcap global header")
            (self.link_type,) = struct.unpack_from(self._endian + "I", header, 16)
        else:
            listing = ", ".join(f"{b:02x}" for b in magic)
            raise PcapParseError(f"unrecognized file magic: [{listing}]")

    def __iter__(self) -> Iterator[PacketResult]:
        if self.format == "pcap":
            return self._iter_pcap()
        return self._iter_pcapng()

    def _packet(self, timestamp: timedelta, data: bytes) -> PacketResult:
        try:
            ip_data = strip_link_layer(self.link_type, data)
        except AnalyzerError as exc:
            return exc
        return RawPacket(timestamp=timestamp, ip_data=ip_data, full_data=bytes(data))

    def _iter_pcap(self) -> Iterator[PacketResult]:
        while True:
            header = self._stream.read(16)
            if not header:
                return
            if len(header) < 16:
                yield PcapParseError("truncated packet record header")
                return
            ts_sec, ts_usec, incl_len, _orig_len = struct.unpack(self._endian + "IIII", header)
            data = self._stream.read(incl_len)
            if len(data) < incl_len:
                yield PcapParseError("truncated packet data")
                return
            yield self._packet(timedelta(seconds=ts_sec, microseconds=ts_usec), data)

    def _read_section_header(self, prefix: bytes) -> str:
        head = prefix + self._stream.read(12 - len(prefix))
        if len(head) < 12:
            raise PcapParseError("truncated section header block")
        bom = head[8:12]
        if bom == _BOM_LE:
            endian = "<"
        elif bom == _BOM_BE:
            endian = ">"
        else:
            raise PcapParseError("invalid section header byte-order magic")
        (length,) = struct.unpack_from(endian + "I", head, 4)
        if length < 28 or length % 4:
            raise PcapParseError(f"invalid section header length {length}")
        rest = self._stream.read(length - 12)
        if len(rest) < length - 12:
            raise PcapParseError("truncated section header block")
        self._resolutions = []
        return endian

    def _iter_pcapng(self) -> Iterator[PacketResult]:
        while True:
            head = self._stream.read(8)
            if not head:
                return
            if len(head) < 8:
                yield PcapParseError("truncated block header")
                return
            if head[:4] == _PCAPNG_SHB:
                try:
                    self._endian = self._read_section_header(head)
                except PcapParseError as exc:
                    yield exc
                    return
                continue

            block_type, length = struct.unpack(self._endian + "II", head)
            if length < 12 or length % 4:
                yield PcapParseError(f"invalid block length {length}")
                return
            rest = self._stream.read(length - 8)
            if len(rest) < length - 8:
                yield PcapParseError("truncated block")
                return
            try:
                packet = self._handle_block(block_type, rest[:-4])
            except PcapParseError as exc:
                yield exc
                return
            if packet is not None:
                yield packet

    def _handle_block(self, block_type: int, body: bytes) -> PacketResult | None:
        endian = self._endian
        if block_type == _BLOCK_IDB:
            if len(body) < 8:
                raise PcapParseError("truncated interface description block")
            (self.link_type,) = struct.unpack_from(endian + "H", body, 0)
            self._resolutions.append(_tsresol(body[8:], endian))
            return None
        if block_type == _BLOCK_EPB:
            if len(body) < 20:
                raise PcapParseError("truncated enhanced packet block")
            iface, ts_high, ts_low, cap_len, _orig = struct.unpack_from(endian + "IIIII", body, 0)
            data = body[20:20 + cap_len]
            if len(data) < cap_len:
                raise PcapParseError("enhanced packet block data shorter than captured length")
            units = self._resolutions[iface] if iface < len(self._resolutions) else _DEFAULT_UNITS
            return self._packet(_to_timedelta((ts_high << 32) | ts_low, units), data)
        if block_type == _BLOCK_SPB:
            if len(body) < 4:
                raise PcapParseError("truncated simple packet block")
            (orig_len,) = struct.unpack_from(endian + "I", body, 0)
            return self._packet(timedelta(0), body[4:4 + orig_len])
        return None