"""Command parser for the RouterOS-style tunnel console.

Accepts both full paths (``/interface/eoip/print``) and bare commands (``print``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence, Union

_U32_MAX = 0xFFFFFFFF
_U32_RE = re.compile(r"\+?[0-9]+", re.ASCII)
_PATH_PREFIXES = frozenset({"interface", "eoip", "system"})


class CommandError(ValueError):
    """A command line could not be parsed."""


@dataclass(frozen=True)
class TunnelIdFilter:
    tunnel_id: int


@dataclass(frozen=True)
class NameFilter:
    name: str


Filter = Union[TunnelIdFilter, NameFilter]


@dataclass(frozen=True)
class Print:
    detail: bool = False
    filter: Filter | None = None


@dataclass(frozen=True)
class Add:
    tunnel_id: int
    remote: str
    local: str | None = None
    name: str | None = None
    mtu: int | None = None
    ipsec_secret: str | None = None


@dataclass(frozen=True)
class Remove:
    tunnel_id: int


@dataclass(frozen=True)
class Enable:
    tunnel_id: int


@dataclass(frozen=True)
class Disable:
    tunnel_id: int


@dataclass(frozen=True)
class Set:
    tunnel_id: int
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Monitor:
    pass


@dataclass(frozen=True)
class Stats:
    tunnel_id: int | None = None


@dataclass(frozen=True)
class Health:
    pass


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Command = Union[Print, Add, Remove, Enable, Disable, Set, Monitor, Stats, Health, Help, Quit]


def parse_command(tokens: Sequence[str]) -> Command:
    """Parse a sequence of tokens into a command."""
    if not tokens:
        raise CommandError("empty command")

    normalized = _normalize_tokens(tokens)
    if not normalized:
        raise CommandError("empty command after normalization")

    verb = normalized[0].lower()
    rest = normalized[1:]

    if verb == "print":
        return _parse_print(rest)
    if verb == "add":
        return _parse_add(rest)
    if verb in ("remove", "delete"):
        return _parse_remove(rest)
    if verb == "enable":
        return Enable(_require_tunnel_id(rest, "enable"))
    if verb == "disable":
        return Disable(_require_tunnel_id(rest, "disable"))
    if verb == "set":
        return _parse_set(rest)
    if verb in ("monitor", "watch"):
        return Monitor()
    if verb in ("stats", "statistics"):
        return _parse_stats(rest)
    if verb in ("health", "check"):
        return Health()
    if verb in ("help", "?"):
        return Help()
    if verb in ("quit", "exit"):
        return Quit()
    raise CommandError(f"unknown command: {verb}")


def parse_line(line: str) -> Command:
    """Split an input line into tokens and parse it as a command."""
    tokens = shell_split(line)
    if not tokens:
        raise CommandError("empty input")
    return parse_command(tokens)


def shell_split(line: str) -> list[str]:
    """Split on whitespace, honouring single and double quotes."""
    tokens: list[str] = []
    current: list[str] = []
    quote_char: str | None = None

    for ch in line:
        if quote_char is not None:
            if ch == quote_char:
                quote_char = None
            else:
                current.append(ch)
        elif ch in ('"', "'"):
            quote_char = ch
        elif ch.isspace():
            if current:
                tokens.append("".join(current))
                current = []
        else:
            current.append(ch)
    if current:
        tokens.append("".join(current))
    return tokens


def _parse_u32(text: str) -> int | None:
    if not _U32_RE.fullmatch(text):
        return None
    value = int(text)
    return value if value <= _U32_MAX else None


def _normalize_tokens(tokens: Sequence[str]) -> list[str]:
    segments = [
        segment.strip()
        for token in tokens
        for segment in token.split("/")
        if segment.strip()
    ]
    start = 0
    for segment in segments:
        if segment.lower() not in _PATH_PREFIXES:
            break
        start += 1
    return segments[start:]


def _parse_kv(tokens: Sequence[str]) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if sep:
            pairs[key.lower()] = value
    return pairs


def _parse_print(rest: Sequence[str]) -> Print:
    detail = False
    filter_: Filter | None = None

    for position, token in enumerate(rest):
        word = token.lower()
        if word == "detail":
            detail = True
        elif word == "where":
            condition = rest[position + 1:]
            if not condition:
                raise CommandError("'where' requires a condition (e.g., tunnel-id=100)")
            kv = _parse_kv(condition)
            if "tunnel-id" in kv:
                tid = _parse_u32(kv["tunnel-id"])
                if tid is None:
                    raise CommandError(f"invalid tunnel-id: {kv['tunnel-id']}")
                filter_ = TunnelIdFilter(tid)
            elif "name" in kv:
                filter_ = NameFilter(kv["name"])
            break
        else:
            tid = _parse_u32(token)
            if tid is not None:
                filter_ = TunnelIdFilter(tid)

    return Print(detail=detail, filter=filter_)


def _first_present(kv: dict[str, str], *keys: str) -> str | None:
    for key in keys:
        if key in kv:
            return kv[key]
    return None


def _parse_add(rest: Sequence[str]) -> Add:
    kv = _parse_kv(rest)
    if "tunnel-id" not in kv:
        raise CommandError("add requires tunnel-id=<id>")
    tunnel_id = _parse_u32(kv["tunnel-id"])
    if tunnel_id is None:
        raise CommandError("invalid tunnel-id")

    remote = _first_present(kv, "remote-address", "remote")
    if remote is None:
        raise CommandError("add requires remote-address=<ip>")

    mtu: int | None = None
    if "mtu" in kv:
        mtu = _parse_u32(kv["mtu"])
        if mtu is None:
            raise CommandError("invalid mtu")

    return Add(
        tunnel_id=tunnel_id,
        remote=remote,
        local=_first_present(kv, "local-address", "local"),
        name=kv.get("name"),
        mtu=mtu,
        ipsec_secret=kv.get("ipsec-secret"),
    )


def _parse_remove(rest: Sequence[str]) -> Remove:
    if not rest:
        raise CommandError("remove requires a tunnel-id")
    tid = _parse_u32(rest[0])
    if tid is None:
        keyed = _parse_kv(rest).get("tunnel-id")
        tid = _parse_u32(keyed) if keyed is not None else None
    if tid is None:
        raise CommandError(f"invalid tunnel-id: {rest[0]}")
    return Remove(tid)


def _require_tunnel_id(rest: Sequence[str], verb: str) -> int:
    if not rest:
        raise CommandError(f"{verb} requires a tunnel-id")
    tid = _parse_u32(rest[0])
    if tid is None:
        raise CommandError(f"invalid tunnel-id: {rest[0]}")
    return tid


def _parse_set(rest: Sequence[str]) -> Set:
    if not rest:
        raise CommandError("set requires a tunnel-id and key=value pairs")
    tid = _parse_u32(rest[0])
    if tid is None:
        raise CommandError(f"invalid tunnel-id: {rest[0]}")
    params = _parse_kv(rest[1:])
    if not params:
        raise CommandError("set requires at least one key=value pair")
    return Set(tunnel_id=tid, params=params)


def _parse_stats(rest: Sequence[str]) -> Stats:
    if not rest:
        return Stats(None)
    tid = _parse_u32(rest[0])
    if tid is None:
        raise CommandError(f"invalid tunnel-id: {rest[0]}")
    return Stats(tid)