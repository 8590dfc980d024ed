# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/k8s/client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

log = logging.getLogger("rotator")

# what a call to the API server can raise: HTTP status errors and transport failures
API_ERRORS = (ApiException, urllib3.exceptions.HTTPError, OSError)


@dataclass
class KubeApis:
    """The three API groups the operator talks to."""
    core: Any
    apps: Any
    custom: Any


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, ApiException) and exc.status == 404


def describe(exc: BaseException) -> str:
    if isinstance(exc, ApiException):
        return f"{exc.status} {exc.reason}"
    return str(exc)


def load_apis(kube_context: Optional[str] = None, in_cluster: bool = False) -> KubeApis:
    """
    Load cluster credentials and build API clients.

    Args:
        kube_context: optional kube context to load (ignored in-cluster)
        in_cluster: use the pod service account instead of kubeconfig
    """
    if in_cluster:
        config.load_incluster_config()
    elif kube_context:
        config.load_kube_config(context=kube_context)
    else:
        config.load_kube_config()

    log.debug(f"kubernetes client configured in_cluster={in_cluster} context={kube_context}")
    return KubeApis(
        core=client.CoreV1Api(),
        apps=client.AppsV1Api(),
        custom=client.CustomObjectsApi(),
    )
