import hashlib
import itertools

from rotator.fingerprint import secret_checksum


def test_checksum_matches_reference_algorithm():
    snap = {"user": b"a", "pass": b"b"}
    expected = hashlib.sha256(b"passb" + b"usera").hexdigest()[:16]
    assert secret_checksum(snap) == expected


def test_checksum_is_permutation_invariant():
    items = [("a", b"1"), ("b", b"2"), ("c", b"3")]
    sums = {secret_checksum(dict(p)) for p in itertools.permutations(items)}
    assert len(sums) == 1


def test_checksum_changes_on_any_value_change():
    base = {"user": b"a", "pass": b"b"}
    assert secret_checksum(base) != secret_checksum({"user": b"a", "pass": b"c"})
    assert secret_checksum(base) != secret_checksum({"user": b"A", "pass": b"b"})


def test_checksum_is_fixed_length_hex():
    s = secret_checksum({"k": b"v" * 1000})
    assert len(s) == 16
    int(s, 16)


def test_checksum_of_empty_snapshot_is_stable():
    assert secret_checksum({}) == hashlib.sha256(b"").hexdigest()[:16]
