# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/workloads/annotator.py
from __future__ import annotations

import logging
from typing import Optional

from ..config.models import ANNOTATION_SUFFIX, DEFAULT_ANNOTATION_PREFIX, WorkloadReference
from ..errors import WorkloadUpdateError
from ..k8s.client import API_ERRORS, describe
from .kinds import ADAPTERS, WorkloadKind

log = logging.getLogger("rotator")


def annotation_key(prefix: Optional[str]) -> str:
    return (prefix or DEFAULT_ANNOTATION_PREFIX) + ANNOTATION_SUFFIX


class WorkloadAnnotator:
    """
    Stamps the checksum onto a workload's pod template so its controller
    rolls the pods. Top-level workload metadata is left alone.
    """

    def __init__(self, apps_api) -> None:
        self.apps = apps_api

    def annotate(
        self,
        ref: WorkloadReference,
        default_namespace: str,
        key: str,
        checksum: str,
    ) -> str:
        """
        Returns the workload identifier on success.

        Raises:
            UnsupportedKindError: kind outside Deployment/StatefulSet/DaemonSet/ReplicaSet
            WorkloadUpdateError: read or write failed (not retried here)
        """
        kind = WorkloadKind.parse(ref.kind)
        adapter = ADAPTERS[kind](self.apps)
        namespace = ref.namespace or default_namespace

        try:
            obj = adapter.read(namespace, ref.name)
        except API_ERRORS as e:
            raise WorkloadUpdateError(
                f"failed to read {kind.value} {namespace}/{ref.name}", details=describe(e)
            ) from e

        annotations = adapter.template_annotations(obj)
        annotations[key] = checksum

        try:
            adapter.persist(namespace, ref.name, obj)
        except API_ERRORS as e:
            raise WorkloadUpdateError(
                f"failed to update {kind.value} {namespace}/{ref.name}", details=describe(e)
            ) from e

        log.debug(f"annotated {kind.value} {namespace}/{ref.name} {key}={checksum}")
        return ref.identifier(default_namespace)
