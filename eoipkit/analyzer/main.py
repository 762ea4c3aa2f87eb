"""Entry point of the capture analyzer."""

from __future__ import annotations

import sys
from typing import Iterable, Sequence, TextIO

from eoipkit.analyzer.cli import Options, parse_args
from eoipkit.analyzer.decode import decode_packet
from eoipkit.analyzer.errors import AnalyzerError
from eoipkit.analyzer.output import render_packet, render_summary
from eoipkit.analyzer.pcap_reader import PcapSource, RawPacket
from eoipkit.analyzer.stats import SessionStats


def _analyze(
    packets: Iterable[RawPacket | AnalyzerError],
    options: Options,
    stream: TextIO,
) -> SessionStats:
    stats = SessionStats()
    packet_number = 0

    for raw in packets:
        if isinstance(raw, AnalyzerError):
            print(f"warning: failed to read packet: {raw}", file=sys.stderr)
            stats.record_error()
            continue

        packet_number += 1
        try:
            decoded: object = decode_packet(packet_number, raw, options.udp_port)
        except AnalyzerError as exc:
            decoded = exc

        if (
            options.tunnel_id is not None
            and not isinstance(decoded, AnalyzerError)
            and decoded.tunnel_id != options.tunnel_id
        ):
            stats.record_skipped()
            continue

        stats.record(decoded)
        if not options.summary_only:
            render_packet(decoded, options, stream)

        if options.limit > 0 and packet_number >= options.limit:
            break

    return stats


def main(argv: Sequence[str] | None = None) -> int:
    """Analyze a capture file and print packets and a summary; return the exit status."""
    options = parse_args(argv)
    stream = sys.stdout

    try:
        handle = open(options.file, "rb")
    except OSError as exc:
        print(f'error: cannot open "{options.file}": {exc}', file=sys.stderr)
        return 1

    with handle:
        try:
            source = PcapSource(handle)
        except AnalyzerError as exc:
            print(f"error: failed to read pcap: {exc}", file=sys.stderr)
            return 1
        stats = _analyze(source, options, stream)

    render_summary(stats, options, stream)
    return 0


if __name__ == "__main__":
    sys.exit(main())