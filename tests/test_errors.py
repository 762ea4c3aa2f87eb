import pytest

from eoipkit.analyzer.errors import (
    AnalyzerError,
    CaptureIOError,
    DecodeError,
    PacketTooShortError,
    PcapParseError,
    UnsupportedProtocolError,
)


@pytest.mark.parametrize(
    ("cls", "prefix"),
    [
        (CaptureIOError, "I/O error"),
        (PcapParseError, "pcap parse error"),
        (PacketTooShortError, "packet too short"),
        (UnsupportedProtocolError, "unsupported protocol"),
        (DecodeError, "decode error"),
    ],
)
def test_message_carries_prefix_and_detail(cls, prefix):
    err = cls("GRE payload too short")
    assert str(err) == f"{prefix}: GRE payload too short"


@pytest.mark.parametrize(
    "cls",
    [CaptureIOError, PcapParseError, PacketTooShortError, UnsupportedProtocolError, DecodeError],
)
def test_subclasses_are_caught_as_analyzer_error(cls):
    err = cls("detail text")
    assert issubclass(cls, AnalyzerError)
    assert err.detail == "detail text"
    assert str(err).endswith(": detail text")


def test_detail_round_trips():
    err = PacketTooShortError("IP header: empty")
    assert err.detail == "IP header: empty"
    assert err.args == ("IP header: empty",)