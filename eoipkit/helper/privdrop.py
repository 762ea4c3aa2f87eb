"""Dropping root privileges once privileged resources exist.

The group is changed before the user: after the user ID is dropped the
process can no longer change its group, and it cannot regain root.
"""

from __future__ import annotations

import logging
import os
import sys

log = logging.getLogger(__name__)


class PrivilegeDropError(Exception):
    """Privileges could not be dropped, or the drop did not take effect."""


def drop_privileges(target_uid: int, target_gid: int) -> None:
    """Switch to the given user and group, verifying the result.

    Must be called as root. On platforms other than Linux this only logs a warning.
    """
    if not sys.platform.startswith("linux"):
        log.warning("privilege dropping not supported on this platform")
        return

    if os.getuid() != 0:
        raise PrivilegeDropError("drop_privileges called but not running as root")

    try:
        os.setgid(target_gid)
    except OSError as exc:
        raise PrivilegeDropError(f"setgid({target_gid}) failed: {exc}") from exc

    try:
        os.setuid(target_uid)
    except OSError as exc:
        raise PrivilegeDropError(f"setuid({target_uid}) failed: {exc}") from exc

    actual_uid = os.getuid()
    actual_gid = os.getgid()
    if actual_uid != target_uid or actual_gid != target_gid:
        raise PrivilegeDropError(
            "privilege drop verification failed: "
            f"expected uid={target_uid}/gid={target_gid}, "
            f"got uid={actual_uid}/gid={actual_gid}"
        )

    log.warning("dropped privileges to uid=%d gid=%d", target_uid, target_gid)