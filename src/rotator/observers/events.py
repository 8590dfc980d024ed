# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events of one reconcile pass
    namespace: str    # RotationRequest namespace
    name: str         # RotationRequest name

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(namespace: str, name: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "namespace": namespace,
        "name": name,
    }


# ---------------------------------------------------------------------
# Pass lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ReconcileStarted(BaseEvent):
    pass

@dataclass(frozen=True)
class ReconcileSucceeded(BaseEvent):
    checksum: str
    changed: bool
    updated_workloads: List[str] = field(default_factory=list)
    requeue_after: float = 0.0

@dataclass(frozen=True)
class ReconcileFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Secret store / Secret
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class SecretFetchDeferred(BaseEvent):
    path: str
    error: str
    retry_after: float

@dataclass(frozen=True)
class SecretSynced(BaseEvent):
    secret: str
    result: str       # created / updated / unchanged
    checksum: str


# ---------------------------------------------------------------------
# Workloads
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class WorkloadAnnotated(BaseEvent):
    workload: str
    checksum: str

@dataclass(frozen=True)
class WorkloadAnnotationFailed(BaseEvent):
    kind: str
    workload: str
    error: str
