import base64

import pytest

from rotator.errors import ClusterReadError, ClusterWriteError
from rotator.sync.secret import SecretSynchronizer, SyncResult, decode_data


def _data(core, ns="apps", name="db"):
    return decode_data(core.secrets[(ns, name)].data)


def test_absent_secret_is_created(core):
    result = SecretSynchronizer(core).converge("apps", "db", {"user": b"a"})
    assert result is SyncResult.CREATED and result.changed
    assert core.writes == [("create", "apps", "db")]
    assert _data(core) == {"user": b"a"}


def test_converge_is_idempotent(core):
    sync = SecretSynchronizer(core)
    sync.converge("apps", "db", {"user": b"a", "pass": b"b"})
    result = sync.converge("apps", "db", {"pass": b"b", "user": b"a"})
    assert result is SyncResult.UNCHANGED and not result.changed
    assert len(core.writes) == 1


def test_changed_value_overwrites_data(core):
    sync = SecretSynchronizer(core)
    sync.converge("apps", "db", {"user": b"a", "pass": b"b"})
    assert sync.converge("apps", "db", {"user": b"a", "pass": b"c"}) is SyncResult.UPDATED
    assert core.writes[-1] == ("replace", "apps", "db")
    assert _data(core) == {"user": b"a", "pass": b"c"}


def test_stale_key_with_equal_count_is_detected(core):
    sync = SecretSynchronizer(core)
    sync.converge("apps", "db", {"user": b"a", "old": b"x"})
    assert sync.converge("apps", "db", {"user": b"a", "new": b"x"}) is SyncResult.UPDATED
    assert _data(core) == {"user": b"a", "new": b"x"}


def test_existing_secret_data_is_base64_decoded(core):
    sync = SecretSynchronizer(core)
    sync.converge("apps", "db", {"k": b"v"})
    assert core.secrets[("apps", "db")].data == {"k": base64.b64encode(b"v").decode()}


def test_read_error_other_than_not_found_is_fatal(core):
    core.read_error = 500
    with pytest.raises(ClusterReadError):
        SecretSynchronizer(core).converge("apps", "db", {"k": b"v"})


def test_write_conflict_is_fatal(core):
    sync = SecretSynchronizer(core)
    sync.converge("apps", "db", {"k": b"v"})
    core.write_error = 409
    with pytest.raises(ClusterWriteError) as ei:
        sync.converge("apps", "db", {"k": b"w"})
    assert "409" in ei.value.details


def test_socket_timeout_is_a_cluster_error(core):
    core.read_error = TimeoutError("timed out")
    with pytest.raises(ClusterReadError):
        SecretSynchronizer(core).converge("apps", "db", {"user": b"a"})
