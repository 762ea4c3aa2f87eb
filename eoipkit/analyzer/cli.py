"""Command-line options of the capture analyzer."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from eoipkit.analyzer.decode import DEFAULT_UDP_PORT

_VERSION = "0.1.0"
_U16_MAX = 0xFFFF


@dataclass(frozen=True)
class Options:
    """What the analyzer was asked to do."""

    file: Path
    json: bool = False
    summary_only: bool = False
    tunnel_id: int | None = None
    hexdump: bool = False
    limit: int = 0
    udp_port: int = DEFAULT_UDP_PORT


def _u16(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid digit found in string: {text!r}") from None
    if not 0 <= value <= _U16_MAX:
        raise argparse.ArgumentTypeError(f"{value} is not in 0..={_U16_MAX}")
    return value


def _count(text: str) -> int:
    try:
        value = int(text, 10)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid digit found in string: {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"{value} is negative")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eoip-analyzer",
        description="EoIP protocol analyzer — decode MikroTik EoIP pcap captures layer by layer.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    parser.add_argument("file", type=Path, help="Path to pcap or pcapng capture file")
    parser.add_argument("--json", action="store_true", help="Output NDJSON instead of colored text")
    parser.add_argument(
        "--summary-only",
        action="store_true",
        help="Only show session summary statistics (no per-packet output)",
    )
    parser.add_argument("--tunnel-id", type=_u16, default=None, help="Filter packets by tunnel ID")
    parser.add_argument("--hexdump", action="store_true", help="Show hex dump of raw packet bytes")
    parser.add_argument(
        "--limit",
        type=_count,
        default=0,
        help="Maximum number of packets to process (0 = unlimited)",
    )
    parser.add_argument(
        "--udp-port",
        type=_u16,
        default=DEFAULT_UDP_PORT,
        help="UDP port for EoIP-rs UDP encapsulation detection",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> Options:
    """Parse command-line arguments; argparse exits on invalid input."""
    ns = _build_parser().parse_args(argv)
    return Options(
        file=ns.file,
        json=ns.json,
        summary_only=ns.summary_only,
        tunnel_id=ns.tunnel_id,
        hexdump=ns.hexdump,
        limit=ns.limit,
        udp_port=ns.udp_port,
    )