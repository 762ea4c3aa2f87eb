"""Raw sockets for EoIP (IPv4, protocol 47) and EoIPv6 (IPv6, protocol 97).

Creating them requires CAP_NET_RAW or root.
"""

from __future__ import annotations

import array
import logging
import socket
import struct
import sys

log = logging.getLogger(__name__)

PROTO_GRE = 47
PROTO_ETHERIP = 97
ETH_P_IP = 0x0800

SOCKET_BUFFER_SIZE = 4 * 1024 * 1024
HOP_LIMIT = 255
BUSY_POLL_US = 50

IP_MTU_DISCOVER = getattr(socket, "IP_MTU_DISCOVER", 10)
IP_PMTUDISC_DONT = getattr(socket, "IP_PMTUDISC_DONT", 0)
SO_BUSY_POLL = getattr(socket, "SO_BUSY_POLL", 46)
SO_ATTACH_FILTER = getattr(socket, "SO_ATTACH_FILTER", 26)
SOL_PACKET = getattr(socket, "SOL_PACKET", 263)
PACKET_IGNORE_OUTGOING = 23
AF_PACKET = getattr(socket, "AF_PACKET", 17)

_BPF_INSN = "@HBBI"

# Accept GRE (protocol byte at Ethernet 14 + IP 9 = 23) and every
# continuation fragment (fragment offset at Ethernet 14 + IP 6 = 20).
_GRE_FILTER = (
    (0x30, 0, 0, 23),       # LDB [23]
    (0x15, 3, 0, 47),       # JEQ #47 -> accept
    (0x28, 0, 0, 20),       # LDH [20]
    (0x45, 1, 0, 0x1FFF),   # JSET #0x1FFF -> accept
    (0x06, 0, 0, 0),        # RET drop
    (0x06, 0, 0, 0xFFFF),   # RET accept
)


class RawSocketError(Exception):
    """A raw socket could not be created or configured."""


def _on_linux() -> bool:
    return sys.platform.startswith("linux")


def gre_bpf_filter() -> bytes:
    """Return the classic BPF program accepting GRE packets and their fragments."""
    return b"".join(struct.pack(_BPF_INSN, *insn) for insn in _GRE_FILTER)


def _open(family: int, kind: int, proto: int) -> socket.socket:
    try:
        return socket.socket(family, kind, proto)
    except OSError as exc:
        raise RawSocketError(f"cannot create raw socket: {exc}") from exc


def _configure(sock: socket.socket, options: list[tuple[int, int, int]]) -> None:
    try:
        sock.setblocking(False)
        for level, name, value in options:
            sock.setsockopt(level, name, value)
    except OSError as exc:
        sock.close()
        raise RawSocketError(f"cannot configure raw socket: {exc}") from exc


def _enable_busy_poll(sock: socket.socket) -> None:
    try:
        sock.setsockopt(socket.SOL_SOCKET, SO_BUSY_POLL, BUSY_POLL_US)
    except OSError:
        log.debug("SO_BUSY_POLL not available (non-critical)")


def _buffer_options() -> list[tuple[int, int, int]]:
    return [
        (socket.SOL_SOCKET, socket.SO_RCVBUF, SOCKET_BUFFER_SIZE),
        (socket.SOL_SOCKET, socket.SO_SNDBUF, SOCKET_BUFFER_SIZE),
    ]


def create_raw_socket_v4() -> socket.socket:
    """Create a non-blocking raw IPv4 socket for protocol 47 with TTL 255 and DF cleared."""
    sock = _open(socket.AF_INET, socket.SOCK_RAW, PROTO_GRE)
    _configure(sock, _buffer_options() + [(socket.IPPROTO_IP, socket.IP_TTL, HOP_LIMIT)])

    if _on_linux():
        try:
            sock.setsockopt(socket.IPPROTO_IP, IP_MTU_DISCOVER, IP_PMTUDISC_DONT)
        except OSError:
            log.debug("could not disable path MTU discovery")
        _enable_busy_poll(sock)

    log.info("created raw socket: AF_INET, SOCK_RAW, proto=47 (EoIP), ttl=255, df=0, bufs=4MB")
    return sock


def create_raw_socket_v6() -> socket.socket:
    """Create a non-blocking raw IPv6 socket for protocol 97 with hop limit 255."""
    sock = _open(socket.AF_INET6, socket.SOCK_RAW, PROTO_ETHERIP)
    _configure(
        sock,
        _buffer_options() + [(socket.IPPROTO_IPV6, socket.IPV6_UNICAST_HOPS, HOP_LIMIT)],
    )

    if _on_linux():
        _enable_busy_poll(sock)

    log.info("created raw socket: AF_INET6, SOCK_RAW, proto=97 (EtherIP), hops=255, bufs=4MB")
    return sock


def create_af_packet_socket_v4() -> socket.socket:
    """Create an AF_PACKET socket that receives only inbound GRE frames.

    The BPF offsets assume an untagged 14-byte Ethernet header.
    """
    if not _on_linux():
        raise RawSocketError("AF_PACKET sockets are only supported on Linux")

    sock = _open(AF_PACKET, socket.SOCK_RAW, socket.htons(ETH_P_IP))

    try:
        sock.setsockopt(SOL_PACKET, PACKET_IGNORE_OUTGOING, 1)
    except OSError:
        log.warning("PACKET_IGNORE_OUTGOING not available, outgoing packets may flood ring")

    program = array.array("B", gre_bpf_filter())
    address, _ = program.buffer_info()
    fprog = struct.pack("@HP", len(_GRE_FILTER), address)
    try:
        sock.setsockopt(socket.SOL_SOCKET, SO_ATTACH_FILTER, fprog)
    except OSError as exc:
        sock.close()
        raise RawSocketError(f"cannot attach BPF filter: {exc}") from exc

    log.info("created AF_PACKET socket: SOCK_RAW, ETH_P_IP, BPF=GRE-only, IGNORE_OUTGOING")
    return sock