"""Privileged operations: TAP interfaces, raw sockets, MSS clamping and privilege dropping."""