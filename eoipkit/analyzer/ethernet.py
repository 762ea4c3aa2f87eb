"""Ethernet frame header parsing with optional 802.1Q tag."""

from __future__ import annotations

from dataclasses import dataclass

from eoipkit.analyzer.errors import PacketTooShortError

_ETHERTYPE_VLAN = 0x8100

_ETHERTYPE_NAMES = {
    0x0800: "IPv4",
    0x0806: "ARP",
    0x8035: "RARP",
    0x86DD: "IPv6",
    0x8100: "802.1Q",
    0x88A8: "802.1ad",
    0x8847: "MPLS",
    0x8848: "MPLS-MC",
    0x88CC: "LLDP",
    0x88F7: "PTP",
}


@dataclass(frozen=True)
class VlanTag:
    """An 802.1Q tag control field."""

    pcp: int
    dei: bool
    vid: int


@dataclass(frozen=True)
class EthernetFrame:
    """The header of an Ethernet frame."""

    dst_mac: bytes
    src_mac: bytes
    vlan: VlanTag | None
    ethertype: int
    payload_offset: int


def parse_ethernet_frame(data: bytes) -> EthernetFrame:
    """Parse an Ethernet header, following one 802.1Q tag if present."""
    data = bytes(data)
    if len(data) < 14:
        raise PacketTooShortError(f"Ethernet: got {len(data)} bytes, need 14")

    dst_mac = data[0:6]
    src_mac = data[6:12]
    ethertype = int.from_bytes(data[12:14], "big")

    if ethertype != _ETHERTYPE_VLAN:
        return EthernetFrame(dst_mac, src_mac, None, ethertype, 14)

    if len(data) < 18:
        raise PacketTooShortError(f"Ethernet+VLAN: got {len(data)} bytes, need 18")

    tci = int.from_bytes(data[14:16], "big")
    vlan = VlanTag(pcp=tci >> 13, dei=bool((tci >> 12) & 1), vid=tci & 0x0FFF)
    real_ethertype = int.from_bytes(data[16:18], "big")
    return EthernetFrame(dst_mac, src_mac, vlan, real_ethertype, 18)


def format_mac(mac: bytes) -> str:
    """Format a MAC address as colon-separated lower-case hex."""
    return ":".join(f"{b:02x}" for b in mac)


def ethertype_name(et: int) -> str:
    """Return a short name for common EtherTypes, or "Unknown"."""
    return _ETHERTYPE_NAMES.get(et, "Unknown")