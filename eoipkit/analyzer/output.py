"""Text and JSON rendering of decoded packets and session summaries."""

from __future__ import annotations

import json
import os
import sys
from datetime import timedelta
from typing import Any, TextIO, Union

from eoipkit.analyzer.cli import Options
from eoipkit.analyzer.decode import (
    DecodedPacket,
    Eoip,
    EoipV6,
    NonEoipUdp,
    Skipped,
    StandardGre,
    UdpEncap,
)
from eoipkit.analyzer.deviation import Severity
from eoipkit.analyzer.errors import AnalyzerError
from eoipkit.analyzer.ethernet import ethertype_name, format_mac
from eoipkit.analyzer.stats import SessionStats

_BOLD = "1"
_DIM = "2"
_RED = "31"
_GREEN = "32"
_YELLOW = "33"
_MAGENTA = "35"
_CYAN = "36"

_VARIANT_NAMES = {
    Eoip: "eoip",
    EoipV6: "eoipv6",
    UdpEncap: "udp_encap",
    StandardGre: "standard_gre",
    NonEoipUdp: "non_eoip_udp",
    Skipped: "skipped",
}

PacketResult = Union[DecodedPacket, AnalyzerError]


class _Painter:
    """Wraps text in ANSI escapes when the stream is a colour terminal."""

    def __init__(self, stream: TextIO) -> None:
        self.enabled = _wants_color(stream)

    def __call__(self, text: str, *codes: str) -> str:
        if not self.enabled or not codes:
            return text
        return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"


def _wants_color(stream: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("CLICOLOR_FORCE", "0") != "0":
        return True
    isatty = getattr(stream, "isatty", None)
    return bool(isatty is not None and isatty())


def _micros(value: timedelta) -> int:
    return value // timedelta(microseconds=1)


def _out(stream: TextIO | None) -> TextIO:
    return stream if stream is not None else sys.stdout


def render_packet(result: PacketResult, options: Options, stream: TextIO | None = None) -> None:
    """Write one decoded packet, or the error it produced."""
    stream = _out(stream)
    if options.json:
        line = json.dumps(packet_to_json(result), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        print(line, file=stream)
    else:
        _render_packet_text(result, options, stream)


def render_summary(stats: SessionStats, options: Options, stream: TextIO | None = None) -> None:
    """Write the session summary."""
    stream = _out(stream)
    if options.json:
        print(json.dumps(summary_to_json(stats), sort_keys=True, indent=2, ensure_ascii=False), file=stream)
    else:
        _render_summary_text(stats, stream)


def format_hexdump(data: bytes) -> list[str]:
    """Return hex-dump lines of 16 bytes each, with offsets and ASCII."""
    data = bytes(data)
    lines = []
    for offset in range(0, len(data), 16):
        chunk = data[offset:offset + 16]
        left = " ".join(f"{b:02x}" for b in chunk[:8])
        right = " ".join(f"{b:02x}" for b in chunk[8:])
        text = "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in chunk)
        lines.append(f"  {offset:04x}  {left:<23}  {right:<23}  |{text}|")
    return lines


# Text rendering


def _variant_label(variant: Any, paint: _Painter) -> str:
    if isinstance(variant, Eoip):
        return paint("EoIP (proto 47)", _CYAN)
    if isinstance(variant, EoipV6):
        return paint("EoIPv6 (proto 97)", _MAGENTA)
    if isinstance(variant, UdpEncap):
        return paint("EoIP/UDP", _YELLOW)
    if isinstance(variant, StandardGre):
        return paint("GRE (non-EoIP)", _DIM)
    if isinstance(variant, NonEoipUdp):
        return paint("UDP (non-EoIP)", _DIM)
    return paint(f"proto {variant.protocol} (skipped)", _DIM)


def _render_packet_text(result: PacketResult, options: Options, stream: TextIO) -> None:
    paint = _Painter(stream)

    def emit(line: str = "") -> None:
        print(line, file=stream)

    if isinstance(result, AnalyzerError):
        emit(f"  {paint('ERROR', _BOLD, _RED)} {result}")
        return

    pkt = result
    hdr = pkt.ip_header
    ts = f"{pkt.timestamp.total_seconds():.6f}s"
    keepalive = " " + paint("KEEPALIVE", _BOLD, _YELLOW) if pkt.is_keepalive else ""
    number = paint(f"{pkt.packet_number:<5}", _BOLD)
    emit(
        f"#{number} [{paint(ts, _DIM)}]  {hdr.src} -> {hdr.dst}  "
        f"{_variant_label(pkt.variant, paint)}{keepalive}"
    )

    ip_ver = "IPv4" if hdr.version == 4 else "IPv6"
    emit(
        f"  {paint('IP:', _DIM)}  {ip_ver}  ttl={hdr.ttl}  "
        f"proto={hdr.protocol}  len={hdr.total_length}"
    )

    variant = pkt.variant
    if isinstance(variant, Eoip):
        le = variant.tunnel_id.to_bytes(2, "little")
        emit(
            f"  {paint('EoIP:', _DIM)}  magic={variant.magic.hex()}  "
            f"payload_len={variant.payload_len}  tunnel_id={variant.tunnel_id} (LE: {le.hex()})"
        )
    elif isinstance(variant, EoipV6):
        emit(
            f"  {paint('EoIPv6:', _DIM)}  version=0x{variant.version_nibble:x}  "
            f"tunnel_id={variant.tunnel_id} (12-bit)"
        )
    elif isinstance(variant, UdpEncap):
        type_name = {0x04: "EoIP", 0x06: "EoIPv6"}.get(variant.inner_type, "unknown")
        emit(
            f"  {paint('UDP:', _DIM)}  {hdr.src}:{variant.udp_src_port} -> {variant.udp_dst_port}  "
            f"shim: type=0x{variant.inner_type:02x} ({type_name}) "
            f"reserved=0x{variant.reserved_byte:02x}"
        )
        _render_inner_variant(variant.inner, paint, emit)
    elif isinstance(variant, StandardGre):
        emit(f"  {paint('GRE:', _DIM)}  first_bytes={variant.first_bytes.hex()} (not MikroTik EoIP)")
    elif isinstance(variant, NonEoipUdp):
        emit(
            f"  {paint('UDP:', _DIM)}  {hdr.src}:{variant.udp_src_port} -> "
            f"{variant.udp_dst_port} (no EO shim)"
        )
    else:
        emit(f"  {paint('Skip:', _DIM)}  protocol={variant.protocol}")

    eth = pkt.inner_ethernet
    if eth is not None:
        vlan = f"  VLAN={eth.vlan.vid}" if eth.vlan is not None else ""
        emit(
            f"  {paint('Inner:', _DIM)}  {paint(format_mac(eth.src_mac), _GREEN)} -> "
            f"{paint(format_mac(eth.dst_mac), _GREEN)}  {ethertype_name(eth.ethertype)} "
            f"(0x{eth.ethertype:04x}){vlan}"
        )

    for dev in pkt.deviations:
        sev = (
            paint("WARN", _BOLD, _YELLOW)
            if dev.severity is Severity.WARN
            else paint("ERROR", _BOLD, _RED)
        )
        emit(f"  {sev} [{dev.field}] {dev.message}: expected={dev.expected}, actual={dev.actual}")

    if options.hexdump:
        emit(f"  {paint('Hex', _DIM)}:")
        for line in format_hexdump(pkt.raw_bytes):
            emit(line)

    emit()


def _render_inner_variant(variant: Any, paint: _Painter, emit) -> None:
    if isinstance(variant, Eoip):
        emit(
            f"  {paint('  EoIP:', _DIM)}  magic={variant.magic.hex()}  "
            f"payload_len={variant.payload_len}  tunnel_id={variant.tunnel_id}"
        )
    elif isinstance(variant, EoipV6):
        emit(
            f"  {paint('  EoIPv6:', _DIM)}  version=0x{variant.version_nibble:x}  "
            f"tunnel_id={variant.tunnel_id}"
        )


def _render_summary_text(stats: SessionStats, stream: TextIO) -> None:
    paint = _Painter(stream)

    def emit(line: str = "") -> None:
        print(line, file=stream)

    emit(paint("═══ Session Summary ═══", _BOLD))
    emit(f"  Total packets:     {paint(str(stats.total_packets), _BOLD)}")
    if stats.eoip_packets:
        emit(f"  EoIP (proto 47):   {paint(str(stats.eoip_packets), _CYAN)}")
    if stats.eoipv6_packets:
        emit(f"  EoIPv6 (proto 97): {paint(str(stats.eoipv6_packets), _MAGENTA)}")
    if stats.udp_encap_packets:
        emit(f"  UDP encap:         {paint(str(stats.udp_encap_packets), _YELLOW)}")
    if stats.standard_gre_packets:
        emit(f"  Standard GRE:      {paint(str(stats.standard_gre_packets), _DIM)}")
    if stats.skipped_packets:
        emit(f"  Skipped:           {paint(str(stats.skipped_packets), _DIM)}")
    if stats.error_packets:
        emit(f"  Errors:            {paint(str(stats.error_packets), _RED)}")
    emit(f"  Keepalives:        {stats.keepalive_packets}")
    emit(f"  Total bytes:       {stats.total_bytes}")
    duration = stats.duration()
    if duration is not None:
        emit(f"  Capture duration:  {duration.total_seconds():.3f}s")
    if stats.deviation_count:
        emit(f"  Deviations:        {paint(str(stats.deviation_count), _BOLD, _RED)}")

    if not stats.tunnels:
        return
    emit()
    emit(paint("─── Per-Tunnel Breakdown ───", _BOLD))
    for tid in sorted(stats.tunnels):
        ts = stats.tunnels[tid]
        emit(
            f"  Tunnel {paint(str(tid), _BOLD)}: {ts.packet_count} packets "
            f"({ts.keepalive_count} keepalive), {ts.byte_count} bytes"
        )
        emit(f"    Peers: {', '.join(_peer_strings(ts.peers))}")
        if ts.inner_ethertypes:
            types = ", ".join(
                f"{ethertype_name(et)}(0x{et:04x})x{count}"
                for et, count in sorted(ts.inner_ethertypes.items())
            )
            emit(f"    Inner: {types}")


def _peer_strings(peers) -> list[str]:
    return [str(p) for p in sorted(peers, key=lambda a: (a.version, int(a)))]


# JSON rendering


def packet_to_json(result: PacketResult) -> dict[str, Any]:
    """Return the JSON object describing one packet or decode error."""
    if isinstance(result, AnalyzerError):
        return {"type": "error", "message": str(result)}

    pkt = result
    hdr = pkt.ip_header
    obj: dict[str, Any] = {
        "type": "packet",
        "number": pkt.packet_number,
        "timestamp_us": _micros(pkt.timestamp),
        "src": str(hdr.src),
        "dst": str(hdr.dst),
        "ip_proto": hdr.protocol,
        "ttl": hdr.ttl,
        "ip_len": hdr.total_length,
        "variant": _VARIANT_NAMES[type(pkt.variant)],
        "tunnel_id": pkt.tunnel_id,
        "is_keepalive": pkt.is_keepalive,
    }

    variant = pkt.variant
    if isinstance(variant, Eoip):
        obj["payload_len"] = variant.payload_len
    elif isinstance(variant, EoipV6):
        obj["version_nibble"] = variant.version_nibble
    elif isinstance(variant, UdpEncap):
        obj["udp_src_port"] = variant.udp_src_port
        obj["udp_dst_port"] = variant.udp_dst_port
        obj["inner_type"] = variant.inner_type

    eth = pkt.inner_ethernet
    if eth is not None:
        obj["inner_ethernet"] = {
            "src_mac": format_mac(eth.src_mac),
            "dst_mac": format_mac(eth.dst_mac),
            "ethertype": f"0x{eth.ethertype:04x}",
            "ethertype_name": ethertype_name(eth.ethertype),
            "vlan": (
                {"vid": eth.vlan.vid, "pcp": eth.vlan.pcp, "dei": eth.vlan.dei}
                if eth.vlan is not None
                else None
            ),
        }

    if pkt.deviations:
        obj["deviations"] = [dev.to_dict() for dev in pkt.deviations]

    return obj


def summary_to_json(stats: SessionStats) -> dict[str, Any]:
    """Return the JSON object describing the whole session."""
    tunnels = {
        str(tid): {
            "packets": ts.packet_count,
            "keepalives": ts.keepalive_count,
            "bytes": ts.byte_count,
            "peers": _peer_strings(ts.peers),
            "first_seen_us": _micros(ts.first_seen),
            "last_seen_us": _micros(ts.last_seen),
            "ethertypes": {
                f"0x{et:04x}": {"name": ethertype_name(et), "count": count}
                for et, count in sorted(ts.inner_ethertypes.items())
            },
        }
        for tid, ts in sorted(stats.tunnels.items())
    }
    duration = stats.duration()
    return {
        "type": "summary",
        "total_packets": stats.total_packets,
        "eoip_packets": stats.eoip_packets,
        "eoipv6_packets": stats.eoipv6_packets,
        "udp_encap_packets": stats.udp_encap_packets,
        "standard_gre_packets": stats.standard_gre_packets,
        "skipped_packets": stats.skipped_packets,
        "error_packets": stats.error_packets,
        "keepalive_packets": stats.keepalive_packets,
        "deviation_count": stats.deviation_count,
        "total_bytes": stats.total_bytes,
        "duration_us": _micros(duration) if duration is not None else None,
        "tunnels": tunnels,
    }