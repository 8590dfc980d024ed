# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/controller/reconciler.py
from __future__ import annotations

import copy
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..config.models import (
    GROUP,
    PLURAL,
    VERSION,
    OperatorSettings,
    RotationRequest,
    RotationStatus,
    WorkloadReference,
)
from ..errors import (
    ClusterReadError,
    ReconcileCancelled,
    RotatorError,
    SecretStoreError,
    StatusPersistError,
    WorkloadError,
)
from ..fingerprint import secret_checksum
from ..k8s.client import API_ERRORS, KubeApis, describe, is_not_found
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    ReconcileFailed,
    ReconcileStarted,
    ReconcileSucceeded,
    SecretFetchDeferred,
    SecretSynced,
    WorkloadAnnotated,
    WorkloadAnnotationFailed,
)
from ..sync.secret import SecretSynchronizer, SyncResult
from ..vault.fetcher import SecretFetcher
from ..workloads.annotator import WorkloadAnnotator, annotation_key

log = logging.getLogger("rotator")


@dataclass
class ReconcileResult:
    # None = do not requeue (the request no longer exists)
    requeue_after: Optional[float]
    checksum: Optional[str] = None
    changed: bool = False
    updated_workloads: List[str] = field(default_factory=list)


@dataclass
class _Pass:
    """Per-pass context: cancellation and event correlation."""
    cancel: Optional[threading.Event]
    deadline: Optional[float]
    ctx: Dict[str, Any]

    def check(self, step: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise ReconcileCancelled(f"cancelled before {step}")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise ReconcileCancelled(f"deadline exceeded before {step}")


class Reconciler:
    """
    One reconcile pass for a SecretRotation:

      load request -> fetch snapshot -> fingerprint -> converge Secret
      -> (if changed) annotate workloads -> write status

    Secret-store failures are soft (short requeue, status untouched).
    Cluster read/write and status failures propagate to the caller.
    A failing workload is logged and skipped.
    """

    def __init__(
        self,
        apis: KubeApis,
        fetcher: SecretFetcher,
        settings: Optional[OperatorSettings] = None,
        observers: Optional[List] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.apis = apis
        self.fetcher = fetcher
        self.settings = settings or OperatorSettings()
        self.synchronizer = SecretSynchronizer(apis.core)
        self.annotator = WorkloadAnnotator(apis.apps)
        self.bus = EventBus(observers or [])
        self.clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def reconcile(
        self,
        namespace: str,
        name: str,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> ReconcileResult:
        p = _Pass(
            cancel=cancel,
            deadline=time.monotonic() + timeout if timeout else None,
            ctx=new_ctx(namespace, name),
        )
        self.bus.emit(ReconcileStarted(**p.ctx))
        try:
            return self._reconcile(namespace, name, p)
        except RotatorError as e:
            self.bus.emit(ReconcileFailed(error=str(e), **p.ctx))
            raise

    def _reconcile(self, namespace: str, name: str, p: _Pass) -> ReconcileResult:
        # 1) Load the request
        p.check("load")
        obj = self._load(namespace, name)
        if obj is None:
            log.info(f"SecretRotation {namespace}/{name} not found; nothing to reconcile")
            return ReconcileResult(requeue_after=None)
        try:
            request = RotationRequest.from_object(obj)
        except ValidationError as e:
            # retrying cannot help; the next edit of the object triggers a new pass
            log.error(f"SecretRotation {namespace}/{name} has an invalid spec: {e}")
            self.bus.emit(ReconcileFailed(error=f"invalid spec: {e}", **p.ctx))
            return ReconcileResult(requeue_after=None)
        if request.status_error:
            log.warning(f"SecretRotation {namespace}/{name} has an unreadable status, treating it as empty: {request.status_error}")
        spec = request.spec

        # 2) Fetch from the secret store (soft failure)
        p.check("fetch")
        try:
            snapshot = self.fetcher.fetch(spec.vault_path)
        except SecretStoreError as e:
            retry_after = self.settings.retry_interval
            log.warning(f"{namespace}/{name}: {e}; retrying in {retry_after:.0f}s")
            self.bus.emit(SecretFetchDeferred(path=spec.vault_path, error=str(e), retry_after=retry_after, **p.ctx))
            return ReconcileResult(requeue_after=retry_after)

        # 3) Fingerprint, compared before any cluster write
        checksum = secret_checksum(snapshot)
        changed = request.status.secret_checksum != checksum

        # 4) Converge the target Secret (hard failure)
        p.check("secret sync")
        result = self.synchronizer.converge(namespace, spec.target_secret, snapshot)
        if result is SyncResult.CREATED:
            changed = True
        self.bus.emit(SecretSynced(secret=spec.target_secret, result=result.value, checksum=checksum, **p.ctx))

        # 5) Best-effort fan-out to workloads
        updated: List[str] = []
        if changed and spec.target_workloads:
            p.check("workload annotation")
            log.info(f"{namespace}/{name}: secret changed, updating {len(spec.target_workloads)} workload(s) checksum={checksum}")
            key = annotation_key(spec.annotation_prefix)
            updated = self._annotate_all(spec.target_workloads, namespace, key, checksum, p)

        # 6) Status write-back
        p.check("status update")
        status = RotationStatus(
            last_rotation=self.clock(),
            secret_checksum=checksum,
            updated_workloads=updated if changed else request.status.updated_workloads,
        )
        self._write_status(namespace, name, obj, status)

        # 7) Steady-state repoll
        requeue = self.settings.resync_interval
        self.bus.emit(ReconcileSucceeded(checksum=checksum, changed=changed, updated_workloads=updated, requeue_after=requeue, **p.ctx))
        return ReconcileResult(requeue_after=requeue, checksum=checksum, changed=changed, updated_workloads=updated)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _load(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.apis.custom.get_namespaced_custom_object(
                group=GROUP, version=VERSION, namespace=namespace, plural=PLURAL, name=name,
            )
        except API_ERRORS as e:
            if is_not_found(e):
                return None
            raise ClusterReadError(f"failed to read SecretRotation {namespace}/{name}", details=describe(e)) from e

    def _annotate_one(self, ref: WorkloadReference, namespace: str, key: str, checksum: str, p: _Pass) -> Optional[str]:
        try:
            workload = self.annotator.annotate(ref, namespace, key, checksum)
        except WorkloadError as e:
            log.error(f"failed to update workload kind={ref.kind} name={ref.name}: {e}"
                      + (f" ({e.details})" if e.details else ""))
            self.bus.emit(WorkloadAnnotationFailed(kind=ref.kind, workload=ref.name, error=str(e), **p.ctx))
            return None
        log.info(f"Updated workload annotation {workload} checksum={checksum}")
        self.bus.emit(WorkloadAnnotated(workload=workload, checksum=checksum, **p.ctx))
        return workload

    def _annotate_all(
        self,
        refs: List[WorkloadReference],
        namespace: str,
        key: str,
        checksum: str,
        p: _Pass,
    ) -> List[str]:
        concurrency = min(self.settings.workload_concurrency, len(refs))
        if concurrency <= 1:
            results = [self._annotate_one(ref, namespace, key, checksum, p) for ref in refs]
        else:
            with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="annotate") as pool:
                futures = [pool.submit(self._annotate_one, ref, namespace, key, checksum, p) for ref in refs]
                results = [f.result() for f in futures]
        # declared order, successes only
        return [w for w in results if w is not None]

    def _write_status(self, namespace: str, name: str, obj: Dict[str, Any], status: RotationStatus) -> None:
        # full object as read: its resourceVersion makes a concurrent update conflict
        body = copy.deepcopy(obj)
        body["status"] = status.body()
        try:
            self.apis.custom.replace_namespaced_custom_object_status(
                group=GROUP, version=VERSION, namespace=namespace, plural=PLURAL, name=name, body=body,
            )
        except API_ERRORS as e:
            log.error(f"failed to update SecretRotation status {namespace}/{name}: {describe(e)}")
            raise StatusPersistError(f"failed to update status of {namespace}/{name}", details=describe(e)) from e
