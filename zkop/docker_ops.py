from __future__ import annotations

import time
from typing import Any

import docker
from docker.errors import APIError, ImageNotFound, NotFound

from . import manifests
from .api_models import ClusterResource
from .db import log_event
from .errors import PodCreateError, PodWaitTimeout
from .members import Member
from .settings import settings
from .workload import POD_FAILED, POD_PENDING, POD_RUNNING, POD_UNKNOWN, PodInfo


NAMESPACE_LABEL = "zookeeper_namespace"
OWNER_LABEL = "zookeeper.owner-uid"

# docker container status -> pod phase
_PHASES = {
    "created": POD_PENDING,
    "restarting": POD_PENDING,
    "running": POD_RUNNING,
    "removing": POD_RUNNING,
    "exited": POD_FAILED,
    "dead": POD_FAILED,
}


def _client() -> docker.DockerClient:
    return docker.from_env()


def container_pod_info(container: Any) -> PodInfo:
    labels = container.labels or {}
    return PodInfo(
        name=container.name,
        namespace=labels.get(NAMESPACE_LABEL, ""),
        phase=_PHASES.get(container.status, POD_UNKNOWN),
        version=labels.get(manifests.VERSION_ANNOTATION, ""),
        deleting=container.status == "removing",
    )


class DockerWorkload:
    """Runs each member as a container on a shared bridge network.

    Containers stand in for pods: they carry the same labels, and a network
    alias gives each one the DNS name a pod would get from the peer service.
    """

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        self._docker = client

    def _client(self) -> docker.DockerClient:
        if self._docker is None:
            self._docker = _client()
        return self._docker

    def ensure_network(self) -> Any:
        c = self._client()
        try:
            return c.networks.get(settings.docker_network)
        except NotFound:
            net = c.networks.create(settings.docker_network, driver="bridge")
            log_event("INFO", f"Created docker network '{settings.docker_network}'.")
            return net

    def list_pods(self, cluster_name: str, namespace: str) -> list[PodInfo]:
        labels = [f"{k}={v}" for k, v in sorted(manifests.labels_for_cluster(cluster_name).items())]
        labels.append(f"{NAMESPACE_LABEL}={namespace}")
        containers = self._client().containers.list(all=True, filters={"label": labels})
        return [container_pod_info(x) for x in containers]

    def create_services(self, resource: ClusterResource) -> None:
        # The network (and its aliases) plays the part of the client and peer services.
        self.ensure_network()

    def _ensure_image(self, image: str) -> None:
        c = self._client()
        try:
            c.images.get(image)
        except ImageNotFound:
            c.images.pull(image)

    def create_pod(self, member: Member, existing_config: list[str], state: str, resource: ClusterResource) -> PodInfo:
        spec = resource.spec
        image = manifests.image_name(spec.repository, spec.version)
        labels = {
            "app": manifests.APP_LABEL,
            manifests.CLUSTER_LABEL: resource.name,
            manifests.NODE_LABEL: member.name,
            NAMESPACE_LABEL: member.namespace,
            manifests.VERSION_ANNOTATION: spec.version,
            OWNER_LABEL: resource.uid,
        }
        if spec.pod is not None:
            for k, v in spec.pod.labels.items():
                labels.setdefault(k, v)

        c = self._client()
        try:
            self._ensure_image(image)
            net = self.ensure_network()
            container = c.containers.create(
                image,
                detach=True,
                name=member.name,
                hostname=member.name,
                environment=manifests.pod_env(member, existing_config, state, spec.pod),
                labels=labels,
                # Restarts are the operator's job; keep Docker's restart policy off.
                restart_policy={"Name": "no"},
            )
            net.connect(container, aliases=[member.addr, member.name])
            container.start()
        except APIError as e:
            raise PodCreateError(member.name, f"docker rejected container: {e}") from e

        log_event("INFO", f"Started container {member.name} from image {image}", cluster_name=resource.name, member=member.name)
        return self._wait_running(member, container)

    def _wait_running(self, member: Member, container: Any) -> PodInfo:
        deadline = time.monotonic() + settings.pod_create_timeout_s
        while True:
            try:
                container.reload()
            except NotFound as e:
                raise PodCreateError(member.name, "container disappeared while starting") from e
            info = container_pod_info(container)
            if info.phase == POD_RUNNING:
                return info
            if info.phase != POD_PENDING:
                raise PodCreateError(member.name, f"unexpected container status: {container.status}")
            if time.monotonic() >= deadline:
                raise PodWaitTimeout(member.name, "failed to wait container running, it is still starting")
            time.sleep(max(0.0, settings.pod_poll_interval_s))

    def delete_pod(self, name: str, namespace: str, graceful: bool) -> None:
        try:
            cont = self._client().containers.get(name)
            if graceful:
                # remove() returns once the container is gone, so no extra wait is needed.
                cont.stop(timeout=settings.pod_grace_period_s)
                cont.remove()
            else:
                cont.remove(force=True)
        except NotFound:
            return
