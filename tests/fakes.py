"""In-memory stand-ins for the workload backend and the ensemble client."""

from __future__ import annotations

from zkop.api_models import ClusterResource
from zkop.cluster import Cluster
from zkop.errors import PodCreateError
from zkop.members import Member, MemberSet
from zkop.workload import POD_RUNNING, PodInfo


class FakeWorkload:
    def __init__(self, pods: list[PodInfo] | None = None) -> None:
        self.pods: dict[str, PodInfo] = {p.name: p for p in pods or []}
        self.created: list[tuple[str, list[str], str]] = []
        self.deleted: list[tuple[str, bool]] = []
        self.services: list[str] = []
        self.fail_create: dict[str, Exception] = {}

    def list_pods(self, cluster_name: str, namespace: str) -> list[PodInfo]:
        return [
            p for p in self.pods.values() if p.namespace == namespace and p.name.rsplit("-", 1)[0] == cluster_name
        ]

    def create_services(self, resource: ClusterResource) -> None:
        self.services.append(resource.name)

    def create_pod(self, member: Member, existing_config: list[str], state: str, resource: ClusterResource) -> PodInfo:
        if member.name in self.fail_create:
            raise self.fail_create[member.name]
        self.created.append((member.name, list(existing_config), state))
        info = PodInfo(member.name, member.namespace, POD_RUNNING, resource.spec.version)
        self.pods[member.name] = info
        return info

    def delete_pod(self, name: str, namespace: str, graceful: bool) -> None:
        self.deleted.append((name, graceful))
        self.pods.pop(name, None)


class FakeEnsemble:
    def __init__(self, config: list[str] | None = None) -> None:
        self.config = sorted(config or [])
        self.reads: list[list[str]] = []
        self.reconfigs: list[list[str]] = []
        self.fail: Exception | None = None

    def read_config(self, hosts: list[str]) -> list[str]:
        if self.fail:
            raise self.fail
        self.reads.append(list(hosts))
        return list(self.config)

    def reconfigure(self, hosts: list[str], desired: list[str]) -> list[str]:
        if self.fail:
            raise self.fail
        self.reconfigs.append(list(desired))
        self.config = sorted(desired)
        return list(self.config)


def make_resource(name: str = "example", size: int = 3, **spec) -> ClusterResource:
    return ClusterResource(name=name, namespace="default", spec={"size": size, **spec})


def members_of(ids, name: str = "example") -> MemberSet:
    return MemberSet(Member(name=f"{name}-{i}", namespace="default") for i in ids)


def running_pods(ids, version: str = "3.5.3-beta", name: str = "example") -> list[PodInfo]:
    return [PodInfo(f"{name}-{i}", "default", POD_RUNNING, version) for i in ids]


def make_cluster(size: int, member_ids, running_ids=None, version: str = "3.5.3-beta", **spec):
    """A cluster whose ensemble config already matches its membership."""
    members = members_of(member_ids)
    running_ids = member_ids if running_ids is None else running_ids
    workload = FakeWorkload(running_pods(running_ids, version))
    ensemble = FakeEnsemble(members.to_ensemble_config())
    resource = make_resource(size=size, version=version, **spec)
    return Cluster(resource, workload, ensemble, members=members)
