from __future__ import annotations

import time
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from . import manifests
from .api_models import ClusterResource
from .db import log_event
from .errors import PodCreateError, PodDeleteTimeout, PodWaitTimeout
from .members import Member
from .settings import settings
from .workload import POD_PENDING, POD_RUNNING, POD_UNKNOWN, PodInfo


def load_kube_config() -> None:
    """In-cluster config when running as a pod, kubeconfig otherwise."""
    if settings.kube_in_cluster:
        try:
            config.load_incluster_config()
            return
        except config.ConfigException:
            pass
    config.load_kube_config()


def pod_info(pod: Any) -> PodInfo:
    meta = pod.metadata
    annotations = meta.annotations or {}
    phase = (pod.status.phase if pod.status else None) or POD_UNKNOWN
    return PodInfo(
        name=meta.name,
        namespace=meta.namespace,
        phase=phase,
        version=annotations.get(manifests.VERSION_ANNOTATION, ""),
        deleting=meta.deletion_timestamp is not None,
    )


class KubeWorkload:
    """Pods and services of each cluster, managed through the Kubernetes API."""

    def __init__(self, core_api: client.CoreV1Api | None = None) -> None:
        if core_api is None:
            load_kube_config()
            core_api = client.CoreV1Api()
        self.api = core_api

    def list_pods(self, cluster_name: str, namespace: str) -> list[PodInfo]:
        resp = self.api.list_namespaced_pod(namespace, label_selector=manifests.label_selector(cluster_name))
        return [pod_info(p) for p in resp.items]

    def create_services(self, resource: ClusterResource) -> None:
        for svc in (manifests.build_client_service(resource), manifests.build_peer_service(resource)):
            try:
                self.api.create_namespaced_service(resource.namespace, svc)
                log_event("INFO", f"Created service {svc['metadata']['name']}", cluster_name=resource.name)
            except ApiException as e:
                if e.status != 409:  # already exists
                    raise

    def create_pod(self, member: Member, existing_config: list[str], state: str, resource: ClusterResource) -> PodInfo:
        body = manifests.build_pod(member, existing_config, state, resource)
        try:
            self.api.create_namespaced_pod(member.namespace, body)
        except ApiException as e:
            raise PodCreateError(member.name, f"create rejected: {e.status} {e.reason}") from e
        return self._wait_running(member)

    def _wait_running(self, member: Member) -> PodInfo:
        interval = max(0.0, settings.pod_poll_interval_s)
        deadline = time.monotonic() + settings.pod_create_timeout_s
        while True:
            try:
                pod = self.api.read_namespaced_pod(member.name, member.namespace)
            except ApiException as e:
                raise PodCreateError(member.name, f"failed to read pod: {e.status} {e.reason}") from e
            info = pod_info(pod)
            if info.phase == POD_RUNNING:
                return info
            if info.phase != POD_PENDING:
                raise PodCreateError(member.name, f"unexpected pod status.phase: {info.phase}")
            if time.monotonic() >= deadline:
                raise PodWaitTimeout(member.name, "failed to wait pod running, it is still pending")
            time.sleep(interval)

    def delete_pod(self, name: str, namespace: str, graceful: bool) -> None:
        grace = settings.pod_grace_period_s if graceful else 0
        try:
            self.api.delete_namespaced_pod(name, namespace, grace_period_seconds=grace)
        except ApiException as e:
            if e.status == 404:
                return
            raise
        if graceful:
            self._wait_gone(name, namespace)

    def _wait_gone(self, name: str, namespace: str) -> None:
        # The replacement reuses the pod name, so the old pod must be gone first.
        deadline = time.monotonic() + settings.pod_delete_timeout_s
        while time.monotonic() < deadline:
            try:
                self.api.read_namespaced_pod(name, namespace)
            except ApiException as e:
                if e.status == 404:
                    return
                raise
            time.sleep(max(0.0, settings.pod_poll_interval_s))
        raise PodDeleteTimeout(f"{namespace}/{name}", settings.pod_delete_timeout_s)
