# eoipkit

Tools for working with Ethernet-over-IP tunnels in the style used by
RouterOS: EoIP over IPv4 (IP protocol 47, GRE-like header), EoIPv6 over
IPv6 (IP protocol 97, EtherIP) and a UDP-encapsulated variant carried
behind a four-byte `EO` shim.

The package has no third-party dependencies.

## Installation

```
pip install .
```

## Capture analyzer

`eoip-analyzer` reads a pcap or pcapng capture and decodes each packet
layer by layer: IP header, tunnel header, inner Ethernet frame. It flags
header fields that deviate from what a tunnel peer expects (wrong magic,
payload length that does not match the data, a payload too small for an
Ethernet frame, an EtherIP version other than 3, a non-zero shim reserved
byte, protocol 47 packets that are plain GRE) and ends with a session
summary broken down per tunnel ID.

```
eoip-analyzer capture.pcap
eoip-analyzer capture.pcapng --json
eoip-analyzer capture.pcap --summary-only
eoip-analyzer capture.pcap --tunnel-id 100 --hexdump --limit 50
eoip-analyzer capture.pcap --udp-port 26969
```

The same entry point can be run as `python -m eoipkit.analyzer.main`.

Options:

- `--json` prints one compact JSON object per packet (or per decode
  error), followed by an indented summary object.
- `--summary-only` prints only the session summary.
- `--tunnel-id N` keeps only packets for tunnel `N`; other decoded
  packets are counted as skipped.
- `--hexdump` adds a hex dump of each packet's raw bytes.
- `--limit N` stops after `N` packets have been read (0, the default,
  means no limit).
- `--udp-port P` sets the UDP port used to recognise encapsulated
  tunnels (default 26969).
- `-V`, `--version` prints the version.

Text output is coloured with ANSI escapes when standard output is a
terminal; setting `NO_COLOR` turns colour off and setting
`CLICOLOR_FORCE` to anything but `0` turns it on.

The exit status is 1 when the file cannot be opened or is not a
pcap/pcapng file, 0 otherwise.

Supported link types are Ethernet (with or without an 802.1Q tag), raw IP
and Linux cooked captures (SLL and SLL2).

### Using the analyzer from Python

`PcapSource` yields a `RawPacket` for each usable packet and an
`AnalyzerError` for a packet that cannot be used. `decode_packet` raises
an `AnalyzerError` subclass for a malformed packet; `SessionStats.record`
accepts either a decoded packet or such an error.

```python
from eoipkit.analyzer.decode import decode_packet
from eoipkit.analyzer.errors import AnalyzerError
from eoipkit.analyzer.pcap_reader import PcapSource
from eoipkit.analyzer.stats import SessionStats

stats = SessionStats()
with open("capture.pcap", "rb") as fh:
    number = 0
    for raw in PcapSource(fh):
        if isinstance(raw, AnalyzerError):
            stats.record_error()
            continue
        number += 1
        try:
            result = decode_packet(number, raw, 26969)
        except AnalyzerError as exc:
            result = exc
        stats.record(result)

print(stats.total_packets, stats.duration())
```

Other pieces:

- `eoipkit.analyzer.ip.parse_ip_header(data)` returns an `Ipv4Header` or
  `Ipv6Header` and the payload.
- `eoipkit.analyzer.ethernet.parse_ethernet_frame(data)`, `format_mac`
  and `ethertype_name`.
- `eoipkit.analyzer.deviation` with `check_eoip_deviations`,
  `check_eoipv6_deviations`, `check_udp_shim_deviations` and
  `flag_standard_gre`.
- `eoipkit.analyzer.output` with `packet_to_json`, `summary_to_json`,
  `format_hexdump`, `render_packet` and `render_summary`.

## Tunnel command parser

`eoipkit.console.parse` turns RouterOS-style commands into command
objects (`Print`, `Add`, `Remove`, `Enable`, `Disable`, `Set`, `Monitor`,
`Stats`, `Health`, `Help`, `Quit`). Full paths and bare verbs are both
accepted; leading `interface`, `eoip` and `system` path segments are
dropped.

```python
from eoipkit.console.parse import parse_command, parse_line

parse_line("/interface/eoip/print detail")
parse_line("print where tunnel-id=100")
parse_line("add tunnel-id=100 remote-address=192.0.2.1 name=tun1")
parse_line("set 100 mtu=1400 keepalive-interval=10")
parse_command(["/interface", "eoip", "print", "detail"])
```

`parse_line` splits its input with `shell_split`, which honours single
and double quotes. Malformed input raises `CommandError`.

## Privileged helpers (Linux)

`eoipkit.helper` holds the pieces that need root or `CAP_NET_ADMIN`:

- `tap.create_tap_interface(name)` creates a TAP interface through
  `/dev/net/tun` and returns its file descriptor;
  `tap.set_interface_mtu(name, mtu)` sets an interface's MTU. Failures
  raise `TapError`; `tap.build_ifreq` builds the request structure.
- `rawsock.create_raw_socket_v4()` and `rawsock.create_raw_socket_v6()`
  return non-blocking raw sockets for protocols 47 and 97 with a TTL /
  hop limit of 255; `rawsock.create_af_packet_socket_v4()` returns an
  `AF_PACKET` socket with the GRE-only BPF program from
  `rawsock.gre_bpf_filter()`. Failures raise `RawSocketError`.
- `mss.add_mss_clamp_rule(iface)` / `mss.remove_mss_clamp_rule(iface)`
  manage an iptables TCP MSS clamping rule by running `iptables`;
  `mss.mss_rule_args` returns the command line. Adding raises `OSError`
  if iptables refuses the rule.
- `privdrop.drop_privileges(uid, gid)` changes group, then user, and
  verifies the result, raising `PrivilegeDropError` on failure.

On other platforms the MTU, MSS and privilege functions do nothing, and
TAP and `AF_PACKET` creation raise their errors.

## What is not included

- There is no tunnel daemon: nothing here forwards frames between a TAP
  interface and a raw socket, or keeps tunnels alive.
- The command parser only produces command objects. There is no
  management client, interactive console or command that sends them
  anywhere.
- The helpers create interfaces and sockets in the calling process; there
  is no long-running helper that hands descriptors to another process.

## Tests

```
pip install .[test]
pytest
```