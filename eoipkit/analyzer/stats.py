"""Session statistics gathered over a capture."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from ipaddress import IPv4Address, IPv6Address
from typing import Union

from eoipkit.analyzer.decode import DecodedPacket, Eoip, EoipV6, NonEoipUdp, Skipped, StandardGre, UdpEncap
from eoipkit.analyzer.errors import AnalyzerError


@dataclass
class TunnelSessionStats:
    """Counters for one tunnel ID."""

    first_seen: timedelta
    last_seen: timedelta
    packet_count: int = 0
    keepalive_count: int = 0
    byte_count: int = 0
    peers: set[Union[IPv4Address, IPv6Address]] = field(default_factory=set)
    inner_ethertypes: Counter[int] = field(default_factory=Counter)


@dataclass
class SessionStats:
    """Counters for a whole capture session."""

    total_packets: int = 0
    eoip_packets: int = 0
    eoipv6_packets: int = 0
    udp_encap_packets: int = 0
    standard_gre_packets: int = 0
    skipped_packets: int = 0
    error_packets: int = 0
    keepalive_packets: int = 0
    deviation_count: int = 0
    total_bytes: int = 0
    first_timestamp: timedelta | None = None
    last_timestamp: timedelta | None = None
    tunnels: dict[int, TunnelSessionStats] = field(default_factory=dict)

    def record(self, result: DecodedPacket | AnalyzerError) -> None:
        """Count a decoded packet, or a packet that failed to decode."""
        self.total_packets += 1

        if isinstance(result, AnalyzerError):
            self.error_packets += 1
            return

        pkt = result
        self.total_bytes += len(pkt.raw_bytes)
        self.deviation_count += len(pkt.deviations)

        if self.first_timestamp is None:
            self.first_timestamp = pkt.timestamp
        self.last_timestamp = pkt.timestamp

        variant = pkt.variant
        if isinstance(variant, Eoip):
            self.eoip_packets += 1
        elif isinstance(variant, EoipV6):
            self.eoipv6_packets += 1
        elif isinstance(variant, UdpEncap):
            self.udp_encap_packets += 1
        elif isinstance(variant, StandardGre):
            self.standard_gre_packets += 1
            return
        elif isinstance(variant, (NonEoipUdp, Skipped)):
            self.skipped_packets += 1
            return

        if pkt.is_keepalive:
            self.keepalive_packets += 1

        tunnel = self.tunnels.get(pkt.tunnel_id)
        if tunnel is None:
            tunnel = TunnelSessionStats(first_seen=pkt.timestamp, last_seen=pkt.timestamp)
            self.tunnels[pkt.tunnel_id] = tunnel

        tunnel.packet_count += 1
        tunnel.byte_count += len(pkt.raw_bytes)
        tunnel.last_seen = pkt.timestamp
        tunnel.peers.add(pkt.ip_header.src)
        tunnel.peers.add(pkt.ip_header.dst)
        if pkt.is_keepalive:
            tunnel.keepalive_count += 1
        if pkt.inner_ethernet is not None:
            tunnel.inner_ethertypes[pkt.inner_ethernet.ethertype] += 1

    def record_skipped(self) -> None:
        """Count a packet left out by a filter."""
        self.total_packets += 1
        self.skipped_packets += 1

    def record_error(self) -> None:
        """Count a packet that could not be read."""
        self.total_packets += 1
        self.error_packets += 1

    def duration(self) -> timedelta | None:
        """Time between the first and last packet, if positive."""
        if self.first_timestamp is None or self.last_timestamp is None:
            return None
        if self.last_timestamp > self.first_timestamp:
            return self.last_timestamp - self.first_timestamp
        return None