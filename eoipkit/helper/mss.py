"""TCP MSS clamping on tunnel interfaces via iptables.

The rule clamps the MSS of TCP SYN packets leaving the tunnel interface to
the path MTU:

    iptables -t mangle -A FORWARD -o <iface> -p tcp --tcp-flags SYN,RST SYN
             -j TCPMSS --clamp-mss-to-pmtu
"""

from __future__ import annotations

import logging
import subprocess
import sys

log = logging.getLogger(__name__)

_ACTIONS = frozenset({"-C", "-A", "-D"})
_RULE_MATCH = (
    "-p", "tcp",
    "--tcp-flags", "SYN,RST", "SYN",
    "-j", "TCPMSS",
    "--clamp-mss-to-pmtu",
)


def _on_linux() -> bool:
    return sys.platform.startswith("linux")


def mss_rule_args(action: str, iface: str) -> list[str]:
    """Return the iptables command line that checks (-C), appends (-A) or deletes (-D) the rule."""
    if action not in _ACTIONS:
        raise ValueError(f"unknown iptables action: {action!r}")
    return ["iptables", "-t", "mangle", action, "FORWARD", "-o", iface, *_RULE_MATCH]


def add_mss_clamp_rule(iface: str) -> None:
    """Add the MSS clamping rule for an interface unless it is already present.

    Raises OSError if iptables cannot be run or refuses the rule.
    """
    if not _on_linux():
        log.debug("MSS clamping not supported on this platform (interface %s)", iface)
        return

    check = subprocess.run(
        mss_rule_args("-C", iface),
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    if check.returncode == 0:
        log.debug("MSS clamp rule already exists for %s", iface)
        return

    result = subprocess.run(mss_rule_args("-A", iface), capture_output=True, check=False)
    if result.returncode != 0:
        stderr = (result.stderr or b"").decode("utf-8", "replace")
        log.warning("failed to add MSS clamp rule for %s: %s", iface, stderr)
        raise OSError(f"iptables add MSS rule failed: {stderr}")

    log.info("added TCP MSS clamping rule for %s", iface)


def remove_mss_clamp_rule(iface: str) -> None:
    """Remove the MSS clamping rule for an interface; a missing rule is not an error."""
    if not _on_linux():
        return

    result = subprocess.run(
        mss_rule_args("-D", iface),
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    if result.returncode == 0:
        log.info("removed TCP MSS clamping rule for %s", iface)