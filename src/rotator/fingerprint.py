# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/fingerprint.py
from __future__ import annotations

import hashlib
from typing import Mapping

CHECKSUM_LENGTH = 16


def secret_checksum(snapshot: Mapping[str, bytes], length: int = CHECKSUM_LENGTH) -> str:
    """
    Deterministic fingerprint of a secret snapshot.

    SHA-256 is fed each key immediately followed by its value bytes, keys in
    sorted order, no separators. The hex digest is truncated to *length*
    characters (16 = 64 bits) to keep the status field short.

    Note: the truncation weakens collision resistance. Fine for change
    detection, do not reuse it where collisions matter.
    """
    h = hashlib.sha256()
    for key in sorted(snapshot):
        h.update(key.encode("utf-8"))
        h.update(snapshot[key])
    return h.hexdigest()[:length]
