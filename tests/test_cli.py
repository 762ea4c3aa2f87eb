from pathlib import Path

import pytest

from eoipkit.analyzer.cli import Options, parse_args


def test_defaults():
    options = parse_args(["capture.pcap"])
    assert options == Options(file=Path("capture.pcap"))
    assert options.udp_port == 26969
    assert options.limit == 0
    assert options.tunnel_id is None
    assert not options.json and not options.summary_only and not options.hexdump


def test_all_flags():
    options = parse_args(
        [
            "cap.pcapng",
            "--json",
            "--summary-only",
            "--tunnel-id",
            "100",
            "--hexdump",
            "--limit",
            "5",
            "--udp-port",
            "4000",
        ]
    )
    assert options.file == Path("cap.pcapng")
    assert options.json and options.summary_only and options.hexdump
    assert options.tunnel_id == 100
    assert options.limit == 5
    assert options.udp_port == 4000


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["cap.pcap", "--tunnel-id", "65536"],
        ["cap.pcap", "--tunnel-id", "abc"],
        ["cap.pcap", "--limit", "-1"],
        ["cap.pcap", "--udp-port", "-5"],
    ],
)
def test_invalid_arguments_exit(argv):
    with pytest.raises(SystemExit) as info:
        parse_args(argv)
    assert info.value.code == 2


def test_tunnel_id_upper_bound_accepted():
    assert parse_args(["cap.pcap", "--tunnel-id", "65535"]).tunnel_id == 65535