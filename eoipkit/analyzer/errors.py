"""Errors raised while reading and decoding captured packets."""

from __future__ import annotations


class AnalyzerError(Exception):
    """Base class for every analyzer failure."""

    prefix = "analyzer error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.prefix}: {self.detail}"


class CaptureIOError(AnalyzerError):
    """The capture file could not be read."""

    prefix = "I/O error"


class PcapParseError(AnalyzerError):
    """The capture file is not a well-formed pcap or pcapng file."""

    prefix = "pcap parse error"


class PacketTooShortError(AnalyzerError):
    """A packet ended before a header it should hold was complete."""

    prefix = "packet too short"


class UnsupportedProtocolError(AnalyzerError):
    """A packet uses a protocol or link type the analyzer does not handle."""

    prefix = "unsupported protocol"


class DecodeError(AnalyzerError):
    """A tunnel header could not be decoded."""

    prefix = "decode error"