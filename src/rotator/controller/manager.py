# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/controller/manager.py
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from kubernetes import watch
from kubernetes.client.exceptions import ApiException

from ..config.models import GROUP, PLURAL, VERSION, OperatorSettings
from ..errors import ReconcileCancelled
from ..k8s.client import KubeApis, describe
from .queue import WorkQueue
from .reconciler import Reconciler

log = logging.getLogger("rotator")

Key = Tuple[str, str]

WATCH_TIMEOUT_SECONDS = 300
WATCH_RESTART_PAUSE = 5.0


class ControllerManager:
    """
    Runs the SecretRotation controller: one watch thread feeding a WorkQueue,
    N worker threads draining it. The queue serializes passes per object.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        apis: KubeApis,
        settings: OperatorSettings,
        queue: Optional[WorkQueue] = None,
    ) -> None:
        self.reconciler = reconciler
        self.apis = apis
        self.settings = settings
        self.queue = queue if queue is not None else WorkQueue(settings.backoff_base, settings.backoff_max)
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._generations: Dict[Key, Optional[int]] = {}
        self._watcher: Optional[watch.Watch] = None
        self._watcher_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        scope = self.settings.namespace or "all namespaces"
        log.info(f"starting controller: workers={self.settings.workers} scope={scope}")

        t = threading.Thread(target=self._watch_loop, name="watch", daemon=True)
        t.start()
        self._threads.append(t)

        for i in range(self.settings.workers):
            t = threading.Thread(target=self._worker, name=f"worker-{i}", daemon=True)
            t.start()
            self._threads.append(t)

    def run(self) -> None:
        """Start and block until stop() is called."""
        self.start()
        self._stop.wait()
        self.join()

    def stop(self) -> None:
        log.info("stopping controller")
        self._stop.set()
        self.queue.shutdown()
        with self._watcher_lock:
            if self._watcher is not None:
                self._watcher.stop()

    def join(self, timeout: Optional[float] = None) -> None:
        for t in self._threads:
            t.join(timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------
    def _worker(self) -> None:
        while True:
            key = self.queue.get()
            if key is None:
                return
            try:
                self.process(key)
            finally:
                self.queue.done(key)

    def process(self, key: Key) -> None:
        namespace, name = key
        try:
            result = self.reconciler.reconcile(namespace, name, cancel=self._stop)
        except ReconcileCancelled as e:
            if self.stopped:
                log.debug(f"{namespace}/{name}: {e}")
                return
            delay = self.queue.add_rate_limited(key)
            log.warning(f"{namespace}/{name}: {e}; retrying in {delay:.0f}s")
            return
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            log.error(f"reconcile {namespace}/{name} failed: {e}; backing off {delay:.0f}s")
            return

        self.queue.forget(key)
        if result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)

    # ------------------------------------------------------------------
    # Watch
    # ------------------------------------------------------------------
    def _list_call(self) -> Tuple[Any, Dict[str, Any]]:
        kwargs: Dict[str, Any] = {"group": GROUP, "version": VERSION, "plural": PLURAL}
        if self.settings.namespace:
            kwargs["namespace"] = self.settings.namespace
            return self.apis.custom.list_namespaced_custom_object, kwargs
        return self.apis.custom.list_cluster_custom_object, kwargs

    def handle_event(self, event: Dict[str, Any]) -> None:
        """
        Enqueue on ADDED and on MODIFIED when metadata.generation moved.
        Status writes do not bump the generation, so our own updates are ignored.
        """
        obj = event.get("object") or {}
        meta = obj.get("metadata") or {}
        key = (meta.get("namespace", ""), meta.get("name", ""))
        etype = event.get("type")
        generation = meta.get("generation")

        if etype == "DELETED":
            self._generations.pop(key, None)
            self.queue.forget(key)
            log.info(f"SecretRotation {key[0]}/{key[1]} deleted")
            return
        if etype == "MODIFIED" and key in self._generations and self._generations[key] == generation:
            return
        if etype not in ("ADDED", "MODIFIED"):
            return

        self._generations[key] = generation
        log.debug(f"{etype} {key[0]}/{key[1]} generation={generation}")
        self.queue.add(key)

    def _watch_loop(self) -> None:
        fn, kwargs = self._list_call()
        resource_version: Optional[str] = None

        while not self.stopped:
            w = watch.Watch()
            with self._watcher_lock:
                self._watcher = w
            try:
                stream_kwargs = dict(kwargs, timeout_seconds=WATCH_TIMEOUT_SECONDS)
                if resource_version:
                    stream_kwargs["resource_version"] = resource_version
                for event in w.stream(fn, **stream_kwargs):
                    if self.stopped:
                        break
                    if event.get("type") == "ERROR":
                        log.warning(f"watch error event: {event.get('raw_object')}")
                        resource_version = None
                        break
                    obj = event.get("object") or {}
                    resource_version = (obj.get("metadata") or {}).get("resourceVersion", resource_version)
                    self.handle_event(event)
            except ApiException as e:
                if e.status == 410:
                    # history expired: relist from scratch
                    resource_version = None
                    continue
                log.error(f"watch failed: {describe(e)}")
                self._stop.wait(WATCH_RESTART_PAUSE)
            except Exception as e:
                log.error(f"watch failed: {e}")
                self._stop.wait(WATCH_RESTART_PAUSE)
            finally:
                w.stop()
