from __future__ import annotations

import copy
from typing import Any

from kubernetes.utils.quantity import parse_quantity

from .api_models import DEFAULT_CPU, DEFAULT_MEM, ClusterResource, PodPolicy
from .members import CLIENT_PORT, LEADER_PORT, OBSERVER, PARTICIPANT, PEER_PORT, Member
from .workload import STATE_NEW


APP_LABEL = "zookeeper"
CLUSTER_LABEL = "zookeeper_cluster"
NODE_LABEL = "zookeeper_node"
VERSION_ANNOTATION = "zookeeper.version"
TOLERATE_UNREADY_ENDPOINTS_ANNOTATION = "service.alpha.kubernetes.io/tolerate-unready-endpoints"

DEFAULT_BUSYBOX_IMAGE = "busybox:1.28.0-glibc"
DATA_VOLUME = "zookeeper-data"
TLOG_VOLUME = "zookeeper-tlog"


def labels_for_cluster(cluster_name: str) -> dict[str, str]:
    return {"app": APP_LABEL, CLUSTER_LABEL: cluster_name}


def label_selector(cluster_name: str) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(labels_for_cluster(cluster_name).items()))


def image_name(repository: str, version: str) -> str:
    return f"{repository}:v{version}"


def client_service_name(cluster_name: str) -> str:
    return f"{cluster_name}-client"


def zoo_servers(member: Member, existing_config: list[str], state: str) -> list[str]:
    """Bootstrap server list for a member: the existing ensemble plus itself.

    A brand new member joins as an observer; seeds and replacements take part
    in voting from the start.
    """
    role = OBSERVER if state == STATE_NEW else PARTICIPANT
    return list(existing_config) + [member.config_line(role)]


def _quantity_or_default(raw: str, default: str) -> str:
    try:
        parse_quantity(raw)
        return raw
    except ValueError:
        return default


def pod_env(member: Member, existing_config: list[str], state: str, policy: PodPolicy | None) -> dict[str, str]:
    env = {
        "ZOO_MY_ID": str(member.id),
        "ZOO_SERVERS": " ".join(zoo_servers(member, existing_config, state)),
        "ZOO_MAX_CLIENT_CNXNS": "0",
    }
    if policy is not None:
        for k, v in policy.zookeeper_env.items():
            env.setdefault(k, v)
    return env


def _probe(initial_delay: int, timeout: int, period: int) -> dict[str, Any]:
    return {
        "exec": {"command": ["/bin/sh", "-c", f"zkOk.sh {CLIENT_PORT}"]},
        "initialDelaySeconds": initial_delay,
        "timeoutSeconds": timeout,
        "periodSeconds": period,
        "failureThreshold": 3,
    }


def build_pod(member: Member, existing_config: list[str], state: str, resource: ClusterResource) -> dict[str, Any]:
    spec = resource.spec
    policy = spec.pod
    env = pod_env(member, existing_config, state, policy)

    container: dict[str, Any] = {
        "name": "zookeeper",
        "image": image_name(spec.repository, spec.version),
        "ports": [
            {"name": "client", "containerPort": CLIENT_PORT, "protocol": "TCP"},
            {"name": "peer", "containerPort": PEER_PORT, "protocol": "TCP"},
            {"name": "server", "containerPort": LEADER_PORT, "protocol": "TCP"},
            {"name": "jolokia", "containerPort": 8778, "protocol": "TCP"},
        ],
        "env": [{"name": k, "value": v} for k, v in env.items()],
        "volumeMounts": [
            {"name": DATA_VOLUME, "mountPath": "/data"},
            {"name": TLOG_VOLUME, "mountPath": "/datalog"},
        ],
        "livenessProbe": _probe(10, 10, 60),
        "readinessProbe": _probe(1, 5, 5),
        "resources": {
            "requests": {
                "cpu": _quantity_or_default(spec.request_cpu, DEFAULT_CPU),
                "memory": _quantity_or_default(spec.request_mem, DEFAULT_MEM),
            }
        },
    }

    busybox = (policy.busybox_image if policy else None) or DEFAULT_BUSYBOX_IMAGE
    init_container: dict[str, Any] = {
        "name": "check-dns",
        "image": busybox,
        # The pod binds to its own DNS name, which takes a moment to appear.
        "command": ["/bin/sh", "-c", f"while ( ! nslookup {member.addr} ); do sleep 2; done"],
    }

    labels = {"app": APP_LABEL, NODE_LABEL: member.name, CLUSTER_LABEL: resource.name}
    pod: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": member.name,
            "namespace": member.namespace,
            "labels": labels,
            "annotations": {VERSION_ANNOTATION: spec.version},
            "ownerReferences": [resource.owner_reference()],
        },
        "spec": {
            "initContainers": [init_container],
            "containers": [container],
            "restartPolicy": "Never",
            "volumes": [
                {"name": DATA_VOLUME, "emptyDir": {}},
                {"name": TLOG_VOLUME, "emptyDir": {}},
            ],
            # DNS A record: <member>.<cluster>.<namespace>.svc
            "hostname": member.name,
            "subdomain": resource.name,
            "automountServiceAccountToken": False,
            "securityContext": {"runAsUser": 1000, "runAsNonRoot": True, "fsGroup": 1000},
        },
    }
    apply_pod_policy(pod, policy)
    return pod


def apply_pod_policy(pod: dict[str, Any], policy: PodPolicy | None) -> None:
    if policy is None:
        return
    spec = pod["spec"]
    meta = pod["metadata"]

    if policy.affinity is not None:
        spec["affinity"] = copy.deepcopy(policy.affinity)
    if policy.node_selector:
        spec["nodeSelector"] = dict(policy.node_selector)
    if policy.tolerations:
        spec["tolerations"] = copy.deepcopy(policy.tolerations)

    # Reserved labels win over policy labels.
    for k, v in policy.labels.items():
        meta["labels"].setdefault(k, v)

    if policy.resources:
        for c in spec["containers"] + spec["initContainers"]:
            c["resources"] = copy.deepcopy(policy.resources)

    for k, v in policy.annotations.items():
        if k != VERSION_ANNOTATION:
            meta["annotations"][k] = v


def _service(name: str, resource: ClusterResource, ports: list[dict[str, Any]], cluster_ip: str | None) -> dict[str, Any]:
    labels = labels_for_cluster(resource.name)
    svc: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": name,
            "namespace": resource.namespace,
            "labels": labels,
            "annotations": {TOLERATE_UNREADY_ENDPOINTS_ANNOTATION: "true"},
            "ownerReferences": [resource.owner_reference()],
        },
        "spec": {"ports": ports, "selector": labels},
    }
    if cluster_ip is not None:
        svc["spec"]["clusterIP"] = cluster_ip
    return svc


def build_client_service(resource: ClusterResource) -> dict[str, Any]:
    ports = [{"name": "client", "port": CLIENT_PORT, "targetPort": CLIENT_PORT, "protocol": "TCP"}]
    return _service(client_service_name(resource.name), resource, ports, None)


def build_peer_service(resource: ClusterResource) -> dict[str, Any]:
    """Headless service giving every member its stable DNS name."""
    ports = [
        {"name": "client", "port": CLIENT_PORT, "targetPort": CLIENT_PORT, "protocol": "TCP"},
        {"name": "peer", "port": PEER_PORT, "targetPort": PEER_PORT, "protocol": "TCP"},
        {"name": "leader", "port": LEADER_PORT, "targetPort": LEADER_PORT, "protocol": "TCP"},
    ]
    return _service(resource.name, resource, ports, "None")
