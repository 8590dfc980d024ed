# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/errors.py
from __future__ import annotations

from typing import Optional


class RotatorError(RuntimeError):
    """Base class for secret-rotator failures."""

    def __init__(self, message: str, details: Optional[str] = None):
        self.message = message
        self.details = details
        super().__init__(message)


# ---------------------------------------------------------------------
# Secret store (soft: absorbed by the reconciler with a short requeue)
# ---------------------------------------------------------------------
class SecretStoreError(RotatorError):
    """Raised when the external secret store cannot provide a snapshot."""


class SecretNotFoundError(SecretStoreError):
    """The path does not exist or the store returned no data."""


class StoreUnavailableError(SecretStoreError):
    """Transport, authentication or server-side failure talking to the store."""


# ---------------------------------------------------------------------
# Cluster state (hard: abort the pass, caller backs off)
# ---------------------------------------------------------------------
class ClusterError(RotatorError):
    """Raised when reading or writing cluster resources fails."""


class ClusterReadError(ClusterError):
    pass


class ClusterWriteError(ClusterError):
    pass


class StatusPersistError(ClusterError):
    """The RotationRequest status could not be written back."""


# ---------------------------------------------------------------------
# Workloads (hard for one workload only)
# ---------------------------------------------------------------------
class WorkloadError(RotatorError):
    pass


class UnsupportedKindError(WorkloadError):
    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"unsupported workload kind: {kind}")


class WorkloadUpdateError(WorkloadError):
    pass


class ReconcileCancelled(RotatorError):
    """The pass was cancelled before completion; no status was written."""
