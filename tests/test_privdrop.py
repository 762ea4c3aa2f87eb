from contextlib import ExitStack
from unittest import mock

import pytest

from eoipkit.helper.privdrop import PrivilegeDropError, drop_privileges


def patched(stack, uids, gid=1000, setgid=None, setuid=None):
    stack.enter_context(mock.patch("sys.platform", "linux"))
    stack.enter_context(mock.patch("os.getuid", side_effect=list(uids), create=True))
    stack.enter_context(mock.patch("os.getgid", return_value=gid, create=True))
    g = stack.enter_context(mock.patch("os.setgid", side_effect=setgid, create=True))
    u = stack.enter_context(mock.patch("os.setuid", side_effect=setuid, create=True))
    return g, u


def test_not_root_is_refused():
    with ExitStack() as stack:
        setgid, setuid = patched(stack, [1000])
        with pytest.raises(PrivilegeDropError, match="not running as root"):
            drop_privileges(1000, 1000)
    assert setgid.call_count == 0
    assert setuid.call_count == 0


def test_group_is_changed_before_user():
    calls = []
    with ExitStack() as stack:
        patched(
            stack,
            [0, 1000],
            setgid=lambda g: calls.append(("setgid", g)),
            setuid=lambda u: calls.append(("setuid", u)),
        )
        result = drop_privileges(1000, 1000)
    assert result is None
    assert calls == [("setgid", 1000), ("setuid", 1000)]


def test_setgid_failure_is_reported():
    with ExitStack() as stack:
        _, setuid = patched(stack, [0], setgid=PermissionError("denied"))
        with pytest.raises(PrivilegeDropError, match=r"setgid\(1000\) failed"):
            drop_privileges(1000, 1000)
    assert setuid.call_count == 0


def test_setuid_failure_is_reported():
    with ExitStack() as stack:
        patched(stack, [0], setuid=PermissionError("denied"))
        with pytest.raises(PrivilegeDropError, match=r"setuid\(1000\) failed"):
            drop_privileges(1000, 1000)


def test_verification_mismatch_is_reported():
    with ExitStack() as stack:
        patched(stack, [0, 0])
        with pytest.raises(PrivilegeDropError, match="verification failed"):
            drop_privileges(1000, 1000)


def test_non_linux_leaves_ids_alone():
    with mock.patch("sys.platform", "darwin"), \
            mock.patch("os.setuid", create=True) as setuid, \
            mock.patch("os.setgid", create=True) as setgid:
        result = drop_privileges(1000, 1000)
    assert result is None
    assert setuid.call_count == 0
    assert setgid.call_count == 0