# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rotator/config/models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# SecretRotation custom resource coordinates
GROUP = "secrets.github.com"
VERSION = "v1alpha1"
PLURAL = "secretrotations"

DEFAULT_ANNOTATION_PREFIX = "secrets.github.com/"
ANNOTATION_SUFFIX = "secret-checksum"

# key -> value bytes, as fetched from the secret store
SecretSnapshot = Dict[str, bytes]


def format_time(ts: datetime) -> str:
    """RFC 3339 UTC with second precision, the way the API server stores metav1.Time."""
    return ts.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class WorkloadReference(_CamelModel):
    kind: str
    name: str
    namespace: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("workload name is required")
        return v

    def identifier(self, default_namespace: str) -> str:
        """Kind/name, namespace-qualified only when it differs from *default_namespace*."""
        if self.namespace and self.namespace != default_namespace:
            return f"{self.namespace}/{self.kind}/{self.name}"
        return f"{self.kind}/{self.name}"


class RotationSpec(_CamelModel):
    vault_path: str = Field(alias="vaultPath")
    target_secret: str = Field(alias="targetSecret")
    target_workloads: List[WorkloadReference] = Field(default_factory=list, alias="targetWorkloads")
    annotation_prefix: str = Field(default="", alias="annotationPrefix")

    @field_validator("vault_path", "target_secret")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v


class RotationStatus(_CamelModel):
    last_rotation: Optional[datetime] = Field(default=None, alias="lastRotation")
    secret_checksum: str = Field(default="", alias="secretChecksum")
    updated_workloads: List[str] = Field(default_factory=list, alias="updatedWorkloads")

    def body(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "secretChecksum": self.secret_checksum,
            "updatedWorkloads": list(self.updated_workloads),
        }
        if self.last_rotation is not None:
            out["lastRotation"] = format_time(self.last_rotation)
        return out


class RotationRequest(BaseModel):
    """A SecretRotation object as read from the API server."""

    namespace: str
    name: str
    resource_version: Optional[str] = None
    spec: RotationSpec
    status: RotationStatus = Field(default_factory=RotationStatus)
    # set when the stored status could not be parsed and was treated as empty
    status_error: Optional[str] = None

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "RotationRequest":
        meta = obj.get("metadata") or {}
        try:
            status, status_error = RotationStatus.model_validate(obj.get("status") or {}), None
        except ValidationError as e:
            status, status_error = RotationStatus(), str(e)
        return cls(
            namespace=meta.get("namespace", ""),
            name=meta.get("name", ""),
            resource_version=meta.get("resourceVersion"),
            spec=RotationSpec.model_validate(obj.get("spec") or {}),
            status=status,
            status_error=status_error,
        )


class OperatorSettings(BaseModel):
    """Process-wide configuration, built once at startup and passed down."""

    # Vault
    vault_addr: str = "http://127.0.0.1:8200"
    vault_token: Optional[str] = None
    vault_role: Optional[str] = None
    vault_auth_mount: str = "kubernetes"
    vault_jwt_path: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    vault_timeout: int = 30

    # Kubernetes
    kube_context: Optional[str] = None
    in_cluster: bool = False
    namespace: Optional[str] = None  # None = watch all namespaces

    # Scheduling
    retry_interval: float = 60.0
    resync_interval: float = 600.0
    workers: int = 2
    workload_concurrency: int = 1
    backoff_base: float = 5.0
    backoff_max: float = 300.0

    # Output
    log_dir: Optional[str] = None
    event_log: Optional[str] = None
    verbose: bool = False

    @field_validator("retry_interval", "resync_interval", "backoff_base", "backoff_max")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals must be positive")
        return v

    @field_validator("workers", "workload_concurrency")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v
