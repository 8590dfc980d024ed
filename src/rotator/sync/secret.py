# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/sync/secret.py
from __future__ import annotations

import base64
import logging
from enum import Enum
from typing import Dict, Mapping, Optional

from kubernetes import client

from ..config.models import SecretSnapshot
from ..errors import ClusterReadError, ClusterWriteError
from ..k8s.client import API_ERRORS, describe, is_not_found

log = logging.getLogger("rotator")


class SyncResult(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"

    @property
    def changed(self) -> bool:
        return self is not SyncResult.UNCHANGED


def encode_data(snapshot: Mapping[str, bytes]) -> Dict[str, str]:
    return {k: base64.b64encode(v).decode("ascii") for k, v in snapshot.items()}


def decode_data(data: Optional[Mapping[str, str]]) -> Dict[str, bytes]:
    return {k: base64.b64decode(v or "") for k, v in (data or {}).items()}


class SecretSynchronizer:
    """
    Converges a Secret to hold exactly a desired snapshot.

    Comparison is full structural equality of the decoded data, so keys that
    disappeared from the store are removed even when the key count matches.
    """

    def __init__(self, core_api) -> None:
        self.core = core_api

    def _read(self, namespace: str, name: str) -> Optional[client.V1Secret]:
        try:
            return self.core.read_namespaced_secret(name=name, namespace=namespace)
        except API_ERRORS as e:
            if is_not_found(e):
                return None
            raise ClusterReadError(f"failed to read Secret {namespace}/{name}", details=describe(e)) from e

    def converge(self, namespace: str, name: str, snapshot: SecretSnapshot) -> SyncResult:
        existing = self._read(namespace, name)

        if existing is None:
            body = client.V1Secret(
                api_version="v1",
                kind="Secret",
                metadata=client.V1ObjectMeta(name=name, namespace=namespace),
                type="Opaque",
                data=encode_data(snapshot),
            )
            try:
                self.core.create_namespaced_secret(namespace=namespace, body=body)
            except API_ERRORS as e:
                raise ClusterWriteError(f"failed to create Secret {namespace}/{name}", details=describe(e)) from e
            log.info(f"Created Secret {namespace}/{name}")
            return SyncResult.CREATED

        if decode_data(existing.data) == dict(snapshot):
            log.info(f"Secret {namespace}/{name} already up-to-date")
            return SyncResult.UNCHANGED

        # metadata (and its resourceVersion) is kept so a concurrent writer makes this fail
        existing.data = encode_data(snapshot)
        existing.string_data = None
        try:
            self.core.replace_namespaced_secret(name=name, namespace=namespace, body=existing)
        except API_ERRORS as e:
            raise ClusterWriteError(f"failed to update Secret {namespace}/{name}", details=describe(e)) from e
        log.info(f"Updated Secret {namespace}/{name}")
        return SyncResult.UPDATED
