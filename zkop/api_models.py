from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .settings import settings


API_VERSION = "zookeeper.database.apache.com/v1alpha1"
KIND = "ZookeeperCluster"

CLUSTER_NAME_PATTERN = r"^[a-z]([a-z0-9\-]{0,50}[a-z0-9])?$"

DEFAULT_CPU = ".1"
DEFAULT_MEM = "512m"


def _reserved_label(key: str) -> bool:
    return key == "app" or key.startswith("zookeeper_")


class PodPolicy(BaseModel):
    labels: dict[str, str] = Field(default_factory=dict, description="Extra pod labels; 'app' and 'zookeeper_*' are reserved")
    node_selector: dict[str, str] = Field(default_factory=dict)
    affinity: dict[str, Any] | None = Field(None, description="Pod scheduling constraints (k8s Affinity)")
    anti_affinity: bool = Field(False, description="DEPRECATED. Use affinity instead.")
    resources: dict[str, Any] = Field(default_factory=dict, description="k8s ResourceRequirements for all containers")
    tolerations: list[dict[str, Any]] = Field(default_factory=list)
    zookeeper_env: dict[str, str] = Field(default_factory=dict, description="Extra env vars for the zookeeper container")
    annotations: dict[str, str] = Field(default_factory=dict)
    busybox_image: str | None = Field(None, description="Init container image, default busybox:1.28.0-glibc")

    @field_validator("labels")
    @classmethod
    def _no_reserved_labels(cls, v: dict[str, str]) -> dict[str, str]:
        for k in v:
            if _reserved_label(k):
                raise ValueError(f"spec: pod labels contains reserved label {k!r}")
        return v


class ClusterSpec(BaseModel):
    size: int = Field(..., ge=1, description="Expected number of ensemble members")
    repository: str = Field(default_factory=lambda: settings.default_repository)
    version: str = Field(default_factory=lambda: settings.default_version, description="Semver, e.g. 3.5.3-beta")
    paused: bool = Field(False, description="Stop reconciling this cluster until unpaused")
    pod: PodPolicy | None = None
    request_cpu: str = DEFAULT_CPU
    request_mem: str = DEFAULT_MEM

    @field_validator("repository")
    @classmethod
    def _default_repository(cls, v: str) -> str:
        return v or settings.default_repository

    @field_validator("version")
    @classmethod
    def _normalize_version(cls, v: str) -> str:
        v = v.lstrip("v")
        return v or settings.default_version


class ClusterResource(BaseModel):
    """A declared Zookeeper cluster, after validation and defaulting."""

    name: str = Field(..., pattern=CLUSTER_NAME_PATTERN)
    namespace: str = Field("default", pattern=CLUSTER_NAME_PATTERN)
    uid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_version: int = 1
    spec: ClusterSpec

    @model_validator(mode="after")
    def _set_defaults(self) -> ClusterResource:
        # Translate the deprecated anti_affinity flag into a real pod anti-affinity.
        pod = self.spec.pod
        if pod is not None and pod.anti_affinity and pod.affinity is None:
            pod.affinity = {
                "podAntiAffinity": {
                    "requiredDuringSchedulingIgnoredDuringExecution": [
                        {
                            "labelSelector": {"matchLabels": {"zookeeper_cluster": self.name}},
                            "topologyKey": "kubernetes.io/hostname",
                        }
                    ]
                }
            }
        return self

    @property
    def key(self) -> tuple[str, str]:
        return self.namespace, self.name

    def owner_reference(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": KIND,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
        }


class ClusterCreateRequest(BaseModel):
    name: str = Field(..., pattern=CLUSTER_NAME_PATTERN)
    namespace: str = Field("default", pattern=CLUSTER_NAME_PATTERN)
    spec: ClusterSpec


class ClusterPatchRequest(BaseModel):
    size: int | None = Field(None, ge=1)
    version: str | None = None
    paused: bool | None = None
    pod: PodPolicy | None = None
