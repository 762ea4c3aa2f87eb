"""Tools for Ethernet-over-IP tunnels: capture analysis, command parsing and privileged helpers."""

__version__ = "0.1.0"