"""Checks of tunnel headers against what MikroTik peers put on the wire."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

_EOIP_MAGIC = bytes((0x20, 0x01, 0x64, 0x00))
_EOIP_MAGIC_HEX = "20016400"
_MIN_ETHERNET_LEN = 14
_ETHERIP_VERSION = 0x03


class Severity(Enum):
    """How serious a deviation from the expected header is."""

    WARN = "Warn"
    ERROR = "Error"


@dataclass(frozen=True)
class Deviation:
    """One header field that does not match the expected value."""

    severity: Severity
    field: str
    message: str
    expected: str
    actual: str

    def to_dict(self) -> dict[str, str]:
        """Return the deviation as a JSON-ready mapping."""
        return {
            "severity": self.severity.value,
            "field": self.field,
            "message": self.message,
            "expected": self.expected,
            "actual": self.actual,
        }


def _hex4(data: bytes) -> str:
    padded = bytes(data[:4]).ljust(4, b"\x00")
    return padded.hex()


def check_eoip_deviations(magic: bytes, payload_len: int, actual_remaining: int) -> list[Deviation]:
    """Check an EoIP header against MikroTik's GRE-like format."""
    devs: list[Deviation] = []

    if bytes(magic) != _EOIP_MAGIC:
        devs.append(
            Deviation(
                severity=Severity.ERROR,
                field="gre.magic",
                message="GRE magic bytes do not match MikroTik EoIP",
                expected=_EOIP_MAGIC_HEX,
                actual=_hex4(magic),
            )
        )

    if payload_len > 0 and payload_len != actual_remaining:
        devs.append(
            Deviation(
                severity=Severity.ERROR if payload_len > actual_remaining else Severity.WARN,
                field="gre.payload_len",
                message="Payload length does not match actual data",
                expected=str(payload_len),
                actual=str(actual_remaining),
            )
        )

    if 0 < payload_len < _MIN_ETHERNET_LEN:
        devs.append(
            Deviation(
                severity=Severity.ERROR,
                field="gre.payload_len",
                message="Payload too small for Ethernet frame (min 14)",
                expected=">=14",
                actual=str(payload_len),
            )
        )

    return devs


def check_eoipv6_deviations(version_nibble: int) -> list[Deviation]:
    """Check the EtherIP version nibble of an EoIPv6 header."""
    if version_nibble == _ETHERIP_VERSION:
        return []
    return [
        Deviation(
            severity=Severity.ERROR,
            field="etherip.version",
            message="EtherIP version is not 0x3",
            expected="3",
            actual=str(version_nibble),
        )
    ]


def check_udp_shim_deviations(reserved_byte: int) -> list[Deviation]:
    """Check the reserved byte of the UDP encapsulation shim."""
    if reserved_byte == 0x00:
        return []
    return [
        Deviation(
            severity=Severity.WARN,
            field="udp_shim.reserved",
            message="UDP shim reserved byte is non-zero",
            expected="00",
            actual=f"{reserved_byte:02x}",
        )
    ]


def flag_standard_gre(first_bytes: bytes) -> Deviation:
    """Flag a protocol 47 packet that is plain GRE rather than EoIP."""
    return Deviation(
        severity=Severity.WARN,
        field="ip.protocol",
        message="IP protocol 47 packet is standard GRE, not MikroTik EoIP",
        expected=_EOIP_MAGIC_HEX,
        actual=_hex4(first_bytes),
    )