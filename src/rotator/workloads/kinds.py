# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/workloads/kinds.py

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from kubernetes import client

from ..errors import UnsupportedKindError


class WorkloadKind(str, Enum):
    DEPLOYMENT = "Deployment"
    STATEFULSET = "StatefulSet"
    DAEMONSET = "DaemonSet"
    REPLICASET = "ReplicaSet"

    @classmethod
    def parse(cls, value: str) -> "WorkloadKind":
        """Case-insensitive lookup; anything outside the closed set is rejected."""
        for kind in cls:
            if kind.value.lower() == (value or "").lower():
                return kind
        raise UnsupportedKindError(value)


class WorkloadAdapter:
    """
    Read / mutate / persist one workload kind through AppsV1Api.

    Subclasses only bind the API method suffix; the pod template lives at
    ``spec.template`` for all four kinds.
    """

    kind: WorkloadKind
    suffix: str

    def __init__(self, apps_api) -> None:
        self.apps = apps_api

    def read(self, namespace: str, name: str) -> Any:
        fn = getattr(self.apps, f"read_namespaced_{self.suffix}")
        return fn(name=name, namespace=namespace)

    def template_annotations(self, obj: Any) -> Dict[str, str]:
        template = obj.spec.template
        if template.metadata is None:
            template.metadata = client.V1ObjectMeta()
        if template.metadata.annotations is None:
            template.metadata.annotations = {}
        return template.metadata.annotations

    def persist(self, namespace: str, name: str, obj: Any) -> Any:
        # obj still carries the resourceVersion it was read at
        fn = getattr(self.apps, f"replace_namespaced_{self.suffix}")
        return fn(name=name, namespace=namespace, body=obj)


class DeploymentAdapter(WorkloadAdapter):
    kind = WorkloadKind.DEPLOYMENT
    suffix = "deployment"


class StatefulSetAdapter(WorkloadAdapter):
    kind = WorkloadKind.STATEFULSET
    suffix = "stateful_set"


class DaemonSetAdapter(WorkloadAdapter):
    kind = WorkloadKind.DAEMONSET
    suffix = "daemon_set"


class ReplicaSetAdapter(WorkloadAdapter):
    kind = WorkloadKind.REPLICASET
    suffix = "replica_set"


ADAPTERS = {
    WorkloadKind.DEPLOYMENT: DeploymentAdapter,
    WorkloadKind.STATEFULSET: StatefulSetAdapter,
    WorkloadKind.DAEMONSET: DaemonSetAdapter,
    WorkloadKind.REPLICASET: ReplicaSetAdapter,
}
