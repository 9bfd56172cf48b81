from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from .settings import settings

if TYPE_CHECKING:
    from .api_models import ClusterResource
    from .members import Member


POD_PENDING = "Pending"
POD_RUNNING = "Running"
POD_SUCCEEDED = "Succeeded"
POD_FAILED = "Failed"
POD_UNKNOWN = "Unknown"

# Join states a member's pod is bootstrapped with.
STATE_SEED = "seed"
STATE_NEW = "new"
STATE_REPLACEMENT = "replacement"


@dataclass(frozen=True)
class PodInfo:
    name: str
    namespace: str
    phase: str
    version: str = ""
    deleting: bool = False


class Workload(Protocol):
    """What the reconcile core needs from the platform running the pods."""

    def list_pods(self, cluster_name: str, namespace: str) -> list[PodInfo]: ...

    def create_services(self, resource: ClusterResource) -> None: ...

    def create_pod(self, member: Member, existing_config: list[str], state: str, resource: ClusterResource) -> PodInfo:
        """Create the member's pod and wait until it is running."""
        ...

    def delete_pod(self, name: str, namespace: str, graceful: bool) -> None:
        """Delete a pod; graceful deletion waits for it to be gone."""
        ...


def get_workload(backend: str | None = None) -> Workload:
    backend = (backend or settings.backend).strip().lower()
    if backend == "docker":
        from .docker_ops import DockerWorkload

        return DockerWorkload()
    if backend == "kubernetes":
        from .k8s_ops import KubeWorkload

        return KubeWorkload()
    raise ValueError(f"unknown workload backend {backend!r} (expected 'kubernetes' or 'docker')")
