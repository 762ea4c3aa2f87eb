"""TAP interface creation through the /dev/net/tun clone device.

Interfaces are created in layer-2 mode without the packet-information
header. The returned file descriptor can be handed to an unprivileged
process.
"""

from __future__ import annotations

import logging
import os
import socket
import struct
import sys

try:
    import fcntl
except ImportError:  # not available outside Unix
    fcntl = None  # type: ignore[assignment]

log = logging.getLogger(__name__)

IFNAMSIZ = 16
TUNSETIFF = 0x400454CA
SIOCSIFMTU = 0x8922
IFF_TAP = 0x0002
IFF_NO_PI = 0x1000
IFF_NAPI = 0x0010
TUN_DEVICE = "/dev/net/tun"

_IFRU_SIZE = 24
_U16_MAX = 0xFFFF


class TapError(Exception):
    """A TAP interface could not be created or configured."""

    def __init__(self, iface: str, reason: object) -> None:
        super().__init__(f"TAP error on {iface!r}: {reason}")
        self.iface = iface
        self.reason = reason


def _on_linux() -> bool:
    return sys.platform.startswith("linux")


def _encode_name(name: str) -> bytes:
    encoded = name.encode("utf-8")
    if not encoded or len(encoded) >= IFNAMSIZ:
        raise TapError(name, ValueError(f"interface name must be 1-{IFNAMSIZ - 1} chars"))
    return encoded


def build_ifreq(name: str, value: int, fmt: str) -> bytes:
    """Return a kernel ifreq: the NUL-padded name, then value packed by fmt in the union."""
    encoded = _encode_name(name)
    union = struct.pack("@" + fmt, value)
    if len(union) > _IFRU_SIZE:
        raise ValueError(f"format {fmt!r} does not fit the ifreq union")
    return encoded.ljust(IFNAMSIZ, b"\0") + union.ljust(_IFRU_SIZE, b"\0")


def _ifreq_name(ifr: bytes) -> str:
    return bytes(ifr[:IFNAMSIZ]).split(b"\0", 1)[0].decode("utf-8", "replace")


def create_tap_interface(name: str) -> int:
    """Create a TAP interface and return the open file descriptor of the device.

    Requires CAP_NET_ADMIN or root. The caller owns the descriptor.
    """
    if not _on_linux() or fcntl is None:
        raise TapError(name, "TAP interfaces are only supported on Linux")

    ifr = build_ifreq(name, IFF_TAP | IFF_NO_PI | IFF_NAPI, "h")

    try:
        fd = os.open(TUN_DEVICE, os.O_RDWR | getattr(os, "O_CLOEXEC", 0))
    except OSError as exc:
        raise TapError(name, exc) from exc

    try:
        result = fcntl.ioctl(fd, TUNSETIFF, ifr)
    except OSError as exc:
        os.close(fd)
        raise TapError(name, exc) from exc

    log.info("created TAP interface %s", _ifreq_name(result))
    return fd


def set_interface_mtu(name: str, mtu: int) -> None:
    """Set the MTU of an existing interface. Requires CAP_NET_ADMIN or root."""
    if not 0 <= mtu <= _U16_MAX:
        raise ValueError(f"MTU {mtu} out of range")
    if not _on_linux() or fcntl is None:
        log.debug("set_interface_mtu is a no-op on this platform (%s, mtu=%d)", name, mtu)
        return

    ifr = build_ifreq(name, mtu, "i")
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            fcntl.ioctl(sock.fileno(), SIOCSIFMTU, ifr)
    except OSError as exc:
        raise TapError(name, exc) from exc

    log.info("set MTU of %s to %d", name, mtu)